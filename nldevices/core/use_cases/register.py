"""
Register use case — add a device to the inventory (or refresh it).

Reaches the device, detects its OS, gathers hardware facts, writes
device.yml and the initial state.yml, and commits "Register: <host>".
Re-registering an existing device refreshes its live facts and keeps
its history and applied state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nldevices.adapters.transport.base import Credentials, Transport
from nldevices.adapters.vcs import CommitOutcome, Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.config.profile_loader import get_profile
from nldevices.core.context import build_store, build_transport, build_versioning
from nldevices.core.errors import ConnectivityFailure, NLDevicesError
from nldevices.core.models.device import Device, OSType
from nldevices.core.services.sysinfo import (
    SystemInfo,
    detect_os,
    gather_system_info,
    resolve_ip,
)

logger = logging.getLogger(__name__)


@dataclass
class RegisterResult:
    """Result of registering a device."""

    hostname: str = ""
    device: Device | None = None
    info: SystemInfo | None = None
    created: bool = False
    commit: CommitOutcome | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"hostname": self.hostname, "error": self.error}
        result: dict = {"hostname": self.hostname, "created": self.created}
        if self.device:
            result["device"] = self.device.model_dump(mode="json")
        if self.commit:
            result["commit"] = self.commit.model_dump(mode="json")
        return result


def register_device(
    hostname: str,
    settings: Settings,
    profile: str | None = None,
    ssh_user: str | None = None,
    ssh_port: int | None = None,
    local: bool = False,
    transport: Transport | None = None,
    versioning: Versioning | None = None,
) -> RegisterResult:
    """Register a device by probing it through the transport.

    Args:
        hostname: Device hostname (also its inventory directory name).
        settings: Inventory settings.
        profile: Profile name. Defaults to the existing one, then settings.
        ssh_user: Login user. Defaults to the existing one, then settings.
        ssh_port: SSH port. Defaults to the existing one, then settings.
        local: Manage the operator machine itself, without SSH.
        transport: Override the transport (tests).
        versioning: Override versioning (tests).

    Returns:
        RegisterResult with the stored Device.
    """
    result = RegisterResult(hostname=hostname)
    store = build_store(settings)

    try:
        existing = store.load_device(hostname) if store.exists(hostname) else None
    except NLDevicesError as e:
        result.error = str(e)
        return result
    result.created = existing is None

    user = ssh_user or (existing.ssh_user if existing else settings.ssh.default_user)
    port = ssh_port or (existing.ssh_port if existing else settings.ssh.default_port)
    is_local = local or (existing is not None and not existing.is_remote)
    credentials = Credentials(user=user, port=port, identity_file=settings.ssh.identity_file)
    transport = transport or build_transport(settings, local=is_local)

    # ── Reach the device ─────────────────────────────────────────
    logger.info("Checking connectivity to %s", hostname)
    if not transport.check(hostname, credentials, timeout=settings.connect_timeout):
        result.error = str(ConnectivityFailure(hostname, transport.name, user))
        return result

    os_type = detect_os(transport, hostname, credentials)
    if os_type is OSType.UNKNOWN:
        result.error = f"Could not detect OS type for {hostname}"
        return result
    logger.info("Detected OS: %s", os_type)

    info = gather_system_info(transport, hostname, credentials, os_type)
    result.info = info

    # ── Profile and tags ─────────────────────────────────────────
    tags = None
    if profile is None and existing is None:
        profile = settings.default_profile
    if profile is not None:
        resolved = get_profile(settings.profiles_path, profile)
        if resolved is None:
            logger.info("Profile '%s' has no definition, using default tags", profile)
            tags = list(settings.default_tags)
        else:
            tags = resolved.tags or list(settings.default_tags)

    try:
        device = store.register(
            hostname,
            os=os_type,
            os_version=info.os_version,
            ip="127.0.0.1" if is_local else resolve_ip(hostname),
            hardware=info.hardware,
            profile=profile,
            tags=tags,
            ssh_user=user,
            ssh_port=port,
            connection="local" if is_local else "ssh",
        )
    except NLDevicesError as e:
        result.error = str(e)
        return result
    result.device = device

    # ── Version ──────────────────────────────────────────────────
    versioning = versioning or build_versioning(settings)
    outcome = versioning.commit(f"Register: {hostname}", [store.device_dir(hostname)])
    if outcome.failed:
        logger.warning("Versioning failed for registration of %s: %s", hostname, outcome.error)
    result.commit = outcome

    logger.info("Device %s registered (profile=%s, os=%s)", hostname, device.profile, device.os)
    return result
