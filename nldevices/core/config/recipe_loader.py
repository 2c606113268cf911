"""
Recipe loader — reads recipes/<name>.yml into Recipe models.

Recipes are loaded fresh for every session. A recipe either loads
completely and validates, or the loader raises: there is no partially
loaded recipe. Malformed structure is rejected here, before any device
is touched.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from nldevices.core.errors import RecipeNotFound, RecipeParseError
from nldevices.core.models.recipe import Recipe, RecipeSummary

logger = logging.getLogger(__name__)

RECIPE_SUFFIXES = (".yml", ".yaml")

_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class RecipeLoader:
    """Load and list recipes from a directory."""

    def __init__(self, recipes_dir: Path):
        self._dir = recipes_dir

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, name: str) -> Path:
        """Path of the recipe file.

        Raises:
            RecipeNotFound: If the name is invalid or no file exists.
        """
        if not _NAME.match(name):
            raise RecipeNotFound(name)
        for suffix in RECIPE_SUFFIXES:
            candidate = self._dir / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        raise RecipeNotFound(name)

    def read_text(self, name: str) -> str:
        """Raw recipe definition, for display."""
        return self.path_for(name).read_text(encoding="utf-8")

    def load(self, name: str) -> Recipe:
        """Load and validate a recipe.

        Raises:
            RecipeNotFound: No recipe under that name.
            RecipeParseError: The definition is malformed.
        """
        path = self.path_for(name)
        recipe = self._parse(path)
        if recipe.name != name:
            raise RecipeParseError(
                f"Recipe file {path.name} declares name '{recipe.name}', expected '{name}'"
            )
        logger.debug("Loaded recipe '%s' with %d actions", recipe.name, len(recipe.actions))
        return recipe

    def list(self) -> list[RecipeSummary]:
        """Summaries of every recipe file; broken ones carry their error."""
        if not self._dir.is_dir():
            logger.debug("Recipes directory not found: %s", self._dir)
            return []

        summaries = []
        for path in sorted(self._dir.iterdir()):
            if path.suffix not in RECIPE_SUFFIXES or not path.is_file():
                continue
            try:
                recipe = self._parse(path)
            except RecipeParseError as e:
                summaries.append(RecipeSummary(name=path.stem, error=str(e)))
                continue
            summaries.append(
                RecipeSummary(
                    name=recipe.name,
                    description=recipe.description,
                    platforms=[str(p) for p in recipe.platforms],
                    actions=len(recipe.actions),
                )
            )
        return summaries

    def _parse(self, path: Path) -> Recipe:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RecipeParseError(f"Cannot read {path}: {e}") from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise RecipeParseError(f"Invalid YAML in {path.name}: {e}") from e

        if not isinstance(data, dict):
            raise RecipeParseError(
                f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
            )
        data.setdefault("name", path.stem)

        try:
            recipe = Recipe.model_validate(data)
        except ValidationError as e:
            raise RecipeParseError(f"Invalid recipe {path.name}: {e}") from e

        names = recipe.action_names
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise RecipeParseError(
                f"Invalid recipe {path.name}: duplicate action names {', '.join(duplicates)}"
            )
        return recipe
