"""
Domain models — Pydantic types for the device inventory and engine.

All models are re-exported here for convenient access:

    from nldevices.core.models import Device, DeviceState, Recipe, Session
"""

from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import Device, Hardware, OSType, utc_now
from nldevices.core.models.profile import Profile
from nldevices.core.models.recipe import (
    PlatformSpec,
    Recipe,
    RecipeAction,
    RecipeSummary,
    VerifySpec,
)
from nldevices.core.models.session import (
    ActionRecord,
    Disposition,
    Session,
    SessionStatus,
    SessionSummary,
)
from nldevices.core.models.state import AppliedRecipe, DeviceState

__all__ = [
    # action.py
    "ActionResult",
    # session.py
    "ActionRecord",
    # state.py
    "AppliedRecipe",
    # device.py
    "Device",
    "DeviceState",
    "Disposition",
    "Hardware",
    "OSType",
    # recipe.py
    "PlatformSpec",
    # profile.py
    "Profile",
    "Recipe",
    "RecipeAction",
    "RecipeSummary",
    "Session",
    "SessionStatus",
    "SessionSummary",
    "VerifySpec",
    "utc_now",
]
