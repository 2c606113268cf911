"""Adapters — handlers, transports and versioning for the engine.

Public re-exports for convenient access.
"""

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.adapters.mock import MockHandler
from nldevices.adapters.registry import HandlerRegistry, default_registry

__all__ = [
    "Handler",
    "HandlerContext",
    "HandlerRegistry",
    "MockHandler",
    "Verdict",
    "default_registry",
]
