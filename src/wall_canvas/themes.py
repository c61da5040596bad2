"""
Theme definitions for the memory-wall canvas.

Provides dark and light color palettes for rendering walls.
Each theme defines colors for:
- Canvas background and accent glow
- Header card (title, signature count)
- Signature elements (placeholder fill, name labels)
- Zoom readout

A wall's own theme (primary and background colour picked by the owner)
is layered on top with ``apply_wall_theme``.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Optional

from PIL import ImageColor

from .models import WallTheme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThemePalette:
    """Color palette for a theme."""

    # Canvas
    background: str
    accent: str
    glow_alpha: int

    # Header card
    card_fill: str
    card_fill_alpha: int
    card_border: str
    title_color: str
    muted_text_color: str

    # Signature elements
    element_fill: str
    element_fill_alpha: int
    element_label: str
    signature_alpha: int

    # Controls readout
    controls_fill: str
    controls_text: str


# Zinc (dark theme) - current default
DARK_THEME = ThemePalette(
    background="#09090b",
    accent="#f4f4f5",
    glow_alpha=32,
    card_fill="#09090b",
    card_fill_alpha=216,
    card_border="#27272a",
    title_color="#ffffff",
    muted_text_color="#a1a1aa",
    element_fill="#18181b",
    element_fill_alpha=102,
    element_label="#a1a1aa",
    signature_alpha=204,
    controls_fill="#18181b",
    controls_text="#e4e4e7",
)


# Light theme - paper background with darker ink
LIGHT_THEME = ThemePalette(
    background="#fafafa",
    accent="#18181b",
    glow_alpha=24,
    card_fill="#ffffff",
    card_fill_alpha=230,
    card_border="#e4e4e7",
    title_color="#09090b",
    muted_text_color="#52525b",
    element_fill="#e4e4e7",
    element_fill_alpha=140,
    element_label="#52525b",
    signature_alpha=230,
    controls_fill="#f4f4f5",
    controls_text="#27272a",
)


# Theme registry
THEMES: dict[str, ThemePalette] = {
    "dark": DARK_THEME,
    "light": LIGHT_THEME,
}


def get_theme(name: str) -> ThemePalette:
    """Get a theme palette by name.

    Args:
        name: Theme name ("dark" or "light")

    Returns:
        ThemePalette for the requested theme

    Raises:
        ValueError: If theme name is not recognized
    """
    if name not in THEMES:
        valid = ", ".join(THEMES.keys())
        raise ValueError(f"Unknown theme '{name}'. Valid themes: {valid}")
    return THEMES[name]


def is_colour(value: Optional[str]) -> bool:
    """True if Pillow can parse the value (hex, CSS name, rgb()/hsl())."""
    if not value:
        return False
    try:
        ImageColor.getrgb(value)
    except ValueError:
        return False
    return True


def apply_wall_theme(palette: ThemePalette, wall_theme: Optional[WallTheme]) -> ThemePalette:
    """Override the palette's background and accent with the wall's colours.

    Owner colours are free-form strings; any that cannot be parsed keep the
    palette's own colour.
    """
    if wall_theme is None:
        return palette
    background = wall_theme.background_color
    accent = wall_theme.primary_color
    if background and not is_colour(background):
        logger.warning(f"Ignoring unparseable wall background colour {background!r}")
    if accent and not is_colour(accent):
        logger.warning(f"Ignoring unparseable wall primary colour {accent!r}")
    return replace(
        palette,
        background=background if is_colour(background) else palette.background,
        accent=accent if is_colour(accent) else palette.accent,
    )
