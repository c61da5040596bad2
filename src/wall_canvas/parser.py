"""YAML wall recipe parser for the memory-wall canvas.

Supports two formats:
1. Full wall recipe (a ``wall`` block plus its ``entries``)
2. Simplified recipe (just a title and a flat list of entries)

Keys exported from the backend use camelCase (``_id``, ``signatureImageId``,
``primaryColor`` ...); both that and snake_case are accepted.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import SignatureLayout, SignatureRecord, Wall, WallTheme


# camelCase (backend export) -> snake_case (models)
_ENTRY_KEYS = {
    "_id": "id",
    "signatureImageId": "signature_image_id",
    "signature_image": "signature_image_id",
    "isVerified": "is_verified",
    "isHidden": "is_hidden",
    "createdAt": "created_at",
}

_WALL_KEYS = {
    "_id": "id",
    "acceptingEntries": "accepting_entries",
}

_THEME_KEYS = {
    "primaryColor": "primary_color",
    "backgroundColor": "background_color",
    "fontFamily": "font_family",
}


@dataclass
class WallRecipe:
    """A wall together with its entries in creation order."""
    wall: Wall
    entries: list[SignatureRecord] = field(default_factory=list)


def _rename(data: dict, mapping: dict[str, str]) -> dict:
    return {mapping.get(key, key): value for key, value in data.items()}


def parse_entry(data: dict) -> SignatureRecord:
    """Parse a single entry from YAML data."""
    fields = _rename(data, _ENTRY_KEYS)
    if "id" not in fields:
        raise ValueError(f"Entry is missing an id: {data!r}")
    fields["id"] = str(fields["id"])
    if fields.get("stickers") is None:
        fields.pop("stickers", None)
    else:
        fields["stickers"] = tuple(fields["stickers"])
    return SignatureRecord(**fields)


def parse_wall(data: dict, default_slug: str = "wall") -> Wall:
    """Parse the ``wall`` block of a recipe."""
    fields = _rename(data, _WALL_KEYS)
    theme_data = fields.pop("theme", None) or {}
    slug = str(fields.get("slug") or default_slug)
    fields["slug"] = slug
    fields["id"] = str(fields.get("id") or slug)
    fields.setdefault("title", slug)
    return Wall(theme=WallTheme(**_rename(theme_data, _THEME_KEYS)), **fields)


def parse_yaml(yaml_str: str, default_slug: str = "wall") -> WallRecipe:
    """Parse a YAML string into a WallRecipe."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")

    # A bare list is the simplest recipe: entries only.
    if isinstance(data, list):
        data = {"entries": data}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping or list at the top level, got {type(data).__name__}")

    if "wall" in data:
        wall = parse_wall(data["wall"] or {}, default_slug=default_slug)
    else:
        # Simplified format
        wall = parse_wall(
            {
                "slug": data.get("slug", default_slug),
                "title": data.get("title", "Untitled Wall"),
                "theme": data.get("theme") or {},
            },
            default_slug=default_slug,
        )

    entries = [parse_entry(item) for item in data.get("entries") or []]
    return WallRecipe(wall=wall, entries=entries)


def parse_file(path: str | Path) -> WallRecipe:
    """Parse a YAML wall recipe file; the file stem is the default slug."""
    path = Path(path)
    return parse_yaml(path.read_text(), default_slug=path.stem)


def layout_to_dict(layout: SignatureLayout) -> dict[str, Any]:
    """Plain-data form of a layout (positions without their payloads)."""
    return {
        "positions": [
            {"id": pos.id, "x": round(pos.x, 3), "y": round(pos.y, 3)}
            for pos in layout.positions
        ],
        "reveal_order": list(layout.reveal_order),
    }


def layout_to_yaml(layout: SignatureLayout) -> str:
    """Serialize a computed layout to YAML."""
    return yaml.dump({"layout": layout_to_dict(layout)}, default_flow_style=False, sort_keys=False)


def recipe_to_yaml(recipe: WallRecipe) -> str:
    """Serialize a WallRecipe back to YAML."""
    wall = recipe.wall
    wall_data: dict[str, Any] = {
        "id": wall.id,
        "slug": wall.slug,
        "title": wall.title,
    }
    if wall.description:
        wall_data["description"] = wall.description
    wall_data["theme"] = wall.theme.model_dump()
    if wall.visibility != "public":
        wall_data["visibility"] = wall.visibility
    if not wall.accepting_entries:
        wall_data["accepting_entries"] = False

    entries = []
    for record in recipe.entries:
        entry = {k: v for k, v in record.model_dump().items() if v not in (None, (), "")}
        if "stickers" in entry:
            entry["stickers"] = list(entry["stickers"])
        entries.append(entry)

    return yaml.dump({"wall": wall_data, "entries": entries}, default_flow_style=False, sort_keys=False)
