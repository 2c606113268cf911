"""
Handler registry — lookup of action handlers by (module, platform).

The registry is a pure lookup: it holds handler instances and answers
``resolve(module, platform)``. It performs no side effects; the engine
decides what to do with the handler it gets back (or with None).
"""

from __future__ import annotations

import logging
from typing import Any

from nldevices.adapters.base import Handler
from nldevices.core.models.device import OSType

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Central registry of action handlers.

    Features:
        - Register/unregister handlers; one handler per (module, platform)
        - Resolve a recipe action's module for a device platform
        - Query handler availability
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, OSType], Handler] = {}

    def register(self, handler: Handler) -> None:
        """Register a handler for every platform it declares."""
        for platform in handler.platforms:
            key = (handler.module, platform)
            if key in self._handlers:
                logger.warning("Overwriting existing handler: %s/%s", handler.module, platform)
            self._handlers[key] = handler
        logger.debug("Registered handler: %r", handler)

    def unregister(self, module: str, platform: OSType | None = None) -> None:
        """Remove a module's handler for one platform, or for all."""
        for key in list(self._handlers):
            if key[0] == module and (platform is None or key[1] == platform):
                del self._handlers[key]

    def resolve(self, module: str, platform: OSType) -> Handler | None:
        """Look up the handler for a module on a platform. None = not found."""
        return self._handlers.get((module, OSType(platform)))

    def list_handlers(self) -> list[tuple[str, str]]:
        """All registered (module, platform) pairs, sorted."""
        return sorted((module, str(platform)) for module, platform in self._handlers)

    def modules(self) -> list[str]:
        return sorted({module for module, _ in self._handlers})

    def handler_status(self) -> dict[str, dict[str, Any]]:
        """Availability status of every registered module."""
        status: dict[str, dict[str, Any]] = {}
        for (module, platform), handler in self._handlers.items():
            entry = status.setdefault(
                module,
                {"module": module, "platforms": [], "type": handler.__class__.__name__},
            )
            entry["platforms"].append(str(platform))
            try:
                entry["available"] = handler.is_available()
            except Exception:
                entry["available"] = False
        return status


def default_registry() -> HandlerRegistry:
    """A registry with every built-in handler registered."""
    from nldevices.adapters.handlers.command import CommandHandler
    from nldevices.adapters.handlers.network import FirewallHandler, QosHandler
    from nldevices.adapters.handlers.package import PackageHandler
    from nldevices.adapters.handlers.power import PowerHandler
    from nldevices.adapters.handlers.service import ServiceHandler
    from nldevices.adapters.handlers.sysctl import SysctlHandler
    from nldevices.adapters.handlers.windows_registry import RegistryHandler

    registry = HandlerRegistry()
    registry.register(CommandHandler())
    registry.register(SysctlHandler())
    registry.register(RegistryHandler())
    registry.register(PackageHandler())
    registry.register(ServiceHandler())
    registry.register(PowerHandler())
    registry.register(QosHandler())
    registry.register(FirewallHandler())
    return registry
