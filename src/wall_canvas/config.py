"""Environment-driven paths shared by the MCP and preview servers."""

from __future__ import annotations

import os
from pathlib import Path

OUTPUT_DIR = Path(os.environ.get("WALL_CANVAS_OUTPUT_DIR", Path.home() / ".memory-wall" / "canvas"))
WALLS_DIR = Path(os.environ.get("WALL_CANVAS_WALLS_DIR", Path.cwd() / "walls"))
IMAGES_DIR = Path(os.environ.get("WALL_CANVAS_IMAGES_DIR", WALLS_DIR / "signatures"))
SITE_URL = os.environ.get("WALL_CANVAS_SITE_URL", "http://localhost:3000")


def ensure_output_dir() -> Path:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    return OUTPUT_DIR


def resolve_signature_image(reference: str, images_dir: Path | None = None) -> str | None:
    """Resolve a signature image reference to a PNG under the images directory.

    References are storage ids; anything that tries to leave the directory
    resolves to nothing.
    """
    base = (images_dir or IMAGES_DIR).resolve()
    candidate = (base / f"{reference}.png").resolve()
    if base not in candidate.parents:
        return None
    return str(candidate) if candidate.exists() else None
