"""Entry source boundary.

The backend that owns walls and entries is an external collaborator.  Its
answers arrive in one of three shapes, and the canvas must handle all of
them without raising:

    PENDING      — the query is still in flight
    NOT_FOUND    — the wall (or its entries) does not exist
    list         — the entries, in creation order

``normalize_entries`` collapses the first two (and any other non-list
value) to ``None``, meaning "render nothing", and turns a list into
``LayoutEntry`` values.

``WallDirectorySource`` is a stand-in backend over a directory of YAML wall
recipes, used by the preview and MCP servers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from .models import LayoutEntry, SignatureRecord, Wall
from .parser import WallRecipe, parse_file

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_LIMIT = 500


class QueryStatus(Enum):
    PENDING = "pending"
    NOT_FOUND = "not_found"


PENDING = QueryStatus.PENDING
NOT_FOUND = QueryStatus.NOT_FOUND


class EntrySource(Protocol):
    """What the canvas needs from the backend."""

    def get_wall_by_slug(self, slug: str) -> Optional[Wall]: ...

    def list_entries(self, wall_id: str, limit: int = DEFAULT_ENTRY_LIMIT) -> list[SignatureRecord]: ...


def _entry_id(item: Any) -> Optional[str]:
    if isinstance(item, Mapping):
        value = item.get("id", item.get("_id"))
    else:
        value = getattr(item, "id", None)
    return None if value is None else str(value)


def normalize_entries(raw: Any) -> Optional[list[LayoutEntry]]:
    """Turn an entry-source answer into layout input.

    Returns ``None`` for pending, not-found or malformed answers.  Items
    without an id are dropped; mappings shaped ``{id, signature}`` keep
    their signature, any other item becomes its own signature payload.
    """
    if raw is None or isinstance(raw, QueryStatus):
        return None
    if not isinstance(raw, (list, tuple)):
        logger.debug("Entry source returned %s; treating as no data", type(raw).__name__)
        return None

    entries = []
    for item in raw:
        if isinstance(item, LayoutEntry):
            entries.append(item)
            continue
        entry_id = _entry_id(item)
        if entry_id is None:
            logger.warning("Dropping entry without an id: %r", item)
            continue
        if isinstance(item, Mapping) and "signature" in item:
            entries.append(LayoutEntry(id=entry_id, signature=item["signature"]))
        else:
            entries.append(LayoutEntry(id=entry_id, signature=item))
    return entries


class WallDirectorySource:
    """EntrySource over ``<directory>/*.yaml`` wall recipes.

    Recipes are re-read on every call so edits show up without a restart.
    Hidden entries (moderated away by the owner) are never listed.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _recipe_paths(self) -> list[Path]:
        if not self.directory.exists():
            return []
        return sorted(self.directory.glob("*.yaml")) + sorted(self.directory.glob("*.yml"))

    def _load(self, path: Path) -> Optional[WallRecipe]:
        try:
            return parse_file(path)
        except Exception as e:
            logger.error(f"Error loading wall recipe {path}: {e}")
            return None

    def _find(self, slug: str) -> Optional[WallRecipe]:
        for path in self._recipe_paths():
            recipe = self._load(path)
            if recipe and recipe.wall.slug == slug:
                return recipe
        return None

    def _recipes(self) -> list[WallRecipe]:
        recipes = []
        for path in self._recipe_paths():
            recipe = self._load(path)
            if recipe:
                recipes.append(recipe)
        return recipes

    def list_walls(self) -> list[Wall]:
        return [recipe.wall for recipe in self._recipes()]

    def list_walls_with_counts(self) -> list[tuple[Wall, int]]:
        """Every wall with its visible entry count, reading each recipe once."""
        return [
            (recipe.wall, sum(1 for entry in recipe.entries if not entry.is_hidden))
            for recipe in self._recipes()
        ]

    def get_wall_by_slug(self, slug: str) -> Optional[Wall]:
        recipe = self._find(slug)
        return recipe.wall if recipe else None

    def list_entries(self, wall_id: str, limit: int = DEFAULT_ENTRY_LIMIT) -> list[SignatureRecord]:
        for path in self._recipe_paths():
            recipe = self._load(path)
            if recipe and recipe.wall.id == wall_id:
                visible = [entry for entry in recipe.entries if not entry.is_hidden]
                return visible[:limit]
        return []

    def count_entries(self, wall_id: str) -> int:
        return len(self.list_entries(wall_id, limit=10**9))
