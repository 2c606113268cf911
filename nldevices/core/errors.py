"""
Error taxonomy for the engine.

Structural and lookup errors are raised before any side effect.
Per-action failures are never raised: they travel as failed
ActionResults and are tallied into the session status.
"""

from __future__ import annotations


class NLDevicesError(Exception):
    """Base class for all fatal engine errors."""


class DeviceNotFound(NLDevicesError):
    """The hostname has no Device record."""

    def __init__(self, hostname: str):
        super().__init__(f"Device '{hostname}' not found. Register it first.")
        self.hostname = hostname


class DeviceRecordError(NLDevicesError):
    """A device.yml or state.yml exists but cannot be decoded."""


class RecipeNotFound(NLDevicesError):
    """No recipe definition exists under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Recipe '{name}' not found")
        self.name = name


class RecipeParseError(NLDevicesError):
    """A recipe definition is malformed."""


class ConnectivityFailure(NLDevicesError):
    """The target device cannot be reached through the transport."""

    def __init__(self, hostname: str, transport: str, user: str | None = None):
        login = f" as {user}" if user else ""
        super().__init__(f"Cannot reach {hostname} over {transport}{login}")
        self.hostname = hostname


class StateWriteError(NLDevicesError):
    """Device state or history could not be persisted."""


class HistoryImmutable(NLDevicesError):
    """Attempt to rewrite a session record that is already finalized."""


class DeviceBusy(NLDevicesError):
    """Another session currently holds the device lease."""

    def __init__(self, hostname: str, holder: str = ""):
        detail = f" (held by {holder})" if holder else ""
        super().__init__(f"Device '{hostname}' is busy with another session{detail}")
        self.hostname = hostname


class SessionNotFound(NLDevicesError):
    """No session record with that id exists for the device."""

    def __init__(self, hostname: str, session_id: str):
        super().__init__(f"Session '{session_id}' not found for device '{hostname}'")
        self.hostname = hostname
        self.session_id = session_id
