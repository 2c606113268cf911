"""
Profile loader — loads device profiles from YAML files.

Profiles live in profiles/<name>.yml. A profile may name a parent; the
loader resolves the chain so consumers only ever see flat profiles.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from nldevices.core.models.profile import Profile

logger = logging.getLogger(__name__)


def load_profile(path: Path) -> Profile | None:
    """Load a single profile definition from a YAML file.

    Args:
        path: Path to the profile file.

    Returns:
        Profile model, or None if loading fails.
    """
    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
        if not isinstance(data, dict):
            logger.warning("Profile file %s is not a mapping, skipping", path)
            return None
        data.setdefault("name", path.stem)
        profile = Profile.model_validate(data)
        logger.debug("Loaded profile: %s from %s", profile.name, path)
        return profile
    except Exception as e:
        logger.warning("Failed to load profile from %s: %s", path, e)
        return None


def discover_profiles(profiles_dir: Path) -> dict[str, Profile]:
    """Discover, load, and resolve all profile definitions.

    Expects structure::

        profiles/
            base-workstation.yml
            dante-node.yml          # parent: base-workstation
            ...

    Resolution merges each profile with its whole parent chain.
    Returns pre-resolved, flat profiles.
    """
    raw = _load_all(profiles_dir)
    resolved = {name: _resolve(name, raw) for name in raw}
    logger.info("Discovered %d profiles: %s", len(resolved), list(resolved.keys()))
    return resolved


def get_profile(profiles_dir: Path, name: str) -> Profile | None:
    """Resolved profile by name, or None if it does not exist."""
    return discover_profiles(profiles_dir).get(name)


def _load_all(profiles_dir: Path) -> dict[str, Profile]:
    """Load every profile file in profiles/."""
    profiles: dict[str, Profile] = {}

    if not profiles_dir.is_dir():
        logger.debug("Profiles directory not found: %s", profiles_dir)
        return profiles

    for child in sorted(profiles_dir.iterdir()):
        if child.suffix not in (".yml", ".yaml") or not child.is_file():
            continue
        profile = load_profile(child)
        if profile:
            profiles[profile.name] = profile

    return profiles


def _resolve(name: str, raw: dict[str, Profile]) -> Profile:
    """Merge a profile with its ancestors.

    Merge rules:
        description   child's if set, else nearest ancestor's
        tags          ancestor tags first, then child's (deduped)
        recipes       ancestor recipes first, then child's (deduped)
    """
    chain: list[Profile] = []
    seen: set[str] = set()
    current: Profile | None = raw[name]
    while current is not None:
        if current.name in seen:
            logger.warning("Profile '%s' has a parent cycle; stopping at '%s'", name, current.name)
            break
        seen.add(current.name)
        chain.append(current)
        if not current.parent:
            break
        parent = raw.get(current.parent)
        if parent is None:
            logger.warning(
                "Profile '%s' declares parent '%s' which does not exist; "
                "loading without it",
                current.name, current.parent,
            )
        current = parent

    own = chain[0]
    ancestors_first = list(reversed(chain))
    return Profile(
        name=own.name,
        description=next((p.description for p in chain if p.description), ""),
        parent=own.parent,  # keep for reference (consumers can ignore)
        tags=list(dict.fromkeys(t for p in ancestors_first for t in p.tags)),
        recipes=list(dict.fromkeys(r for p in ancestors_first for r in p.recipes)),
    )
