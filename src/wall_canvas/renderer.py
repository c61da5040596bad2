"""Wall canvas renderer using Pillow — rasterizes canvas frames, exports and share cards."""

from __future__ import annotations

import logging
import textwrap
from collections.abc import Callable, Container, Iterable
from io import BytesIO
from pathlib import Path
from typing import Any, Optional

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont, ImageOps

from .canvas import WallCanvas
from .models import CanvasFrame, CanvasSettings, RenderElement, SignatureRecord, Wall
from .themes import ThemePalette, apply_wall_theme, get_theme

logger = logging.getLogger(__name__)

# Maps a signature image reference to a local file path, or None.
ImageResolver = Callable[[str], Optional[str]]

SHARE_CARD_SIZE = (1200, 630)


# --- Font handling ---

def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a font, falling back to default if none available."""
    font_paths = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    ]
    for fp in font_paths:
        if Path(fp).exists():
            return ImageFont.truetype(fp, size)
    return ImageFont.load_default()


def _load_bold_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a bold font, falling back to regular."""
    font_paths = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    ]
    for fp in font_paths:
        if Path(fp).exists():
            return ImageFont.truetype(fp, size)
    return _load_font(size)


# --- Color helpers ---

def _color_to_rgb(color: str) -> tuple[int, int, int]:
    """Convert a colour string to an RGB tuple.

    Accepts 3/6-char hex plus anything ``ImageColor`` understands (CSS
    names, ``rgb()``, ``hsl()``).  Raises ValueError otherwise.
    """
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b)


def _color_to_rgba(color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    """Convert a colour string to an RGBA tuple."""
    r, g, b = _color_to_rgb(color)
    return (r, g, b, alpha)


# --- Drawing primitives ---

def _draw_rounded_rect(
    draw: ImageDraw.ImageDraw,
    xy: tuple[float, float, float, float],
    radius: int,
    fill: Optional[Any] = None,
    outline: Optional[Any] = None,
    width: int = 1,
):
    """Draw a rounded rectangle."""
    x1, y1, x2, y2 = xy
    draw.rounded_rectangle(
        [x1, y1, x2, y2],
        radius=radius,
        fill=fill,
        outline=outline,
        width=width,
    )


def _text_width(font: ImageFont.FreeTypeFont | ImageFont.ImageFont, text: str) -> float:
    bbox = font.getbbox(text)
    return bbox[2] - bbox[0]


def _wrap_text(text: str, font: ImageFont.FreeTypeFont, max_width: int) -> list[str]:
    """Word-wrap text to fit within max_width pixels."""
    words = text.split()
    lines = []
    current = ""

    for word in words:
        test = f"{current} {word}".strip() if current else word
        if _text_width(font, test) <= max_width:
            current = test
        else:
            if current:
                lines.append(current)
            # If single word is too long, force-wrap it
            if _text_width(font, word) > max_width:
                for chunk in textwrap.wrap(word, width=max(1, max_width // 8)):
                    lines.append(chunk)
                current = ""
            else:
                current = word

    if current:
        lines.append(current)

    return lines if lines else [""]


def _ellipsize(text: str, font: ImageFont.FreeTypeFont, max_width: float) -> str:
    """Trim text with an ellipsis until it fits."""
    if _text_width(font, text) <= max_width:
        return text
    while text and _text_width(font, text + "…") > max_width:
        text = text[:-1]
    return text + "…" if text else ""


# --- Main renderer ---

class WallCanvasRenderer:
    """Renders wall canvas frames to PNG images."""

    # Layout constants (screen pixels, before density scaling)
    CARD_MARGIN = 24
    CARD_PADDING = 16
    CARD_WIDTH = 384
    CARD_RADIUS = 16
    ELEMENT_RADIUS = 4
    LABEL_MIN_ELEMENT_HEIGHT = 48
    CONTROLS_MARGIN = 24

    def __init__(
        self,
        scale: float = 1.0,
        theme: str = "dark",
        image_resolver: Optional[ImageResolver] = None,
    ):
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = scale
        self.theme: ThemePalette = get_theme(theme)
        self.image_resolver = image_resolver
        self.font_kicker = _load_font(max(1, int(12 * scale)))
        self.font_title = _load_bold_font(max(1, int(20 * scale)))
        self.font_body = _load_font(max(1, int(14 * scale)))
        self.font_label = _load_font(max(1, int(12 * scale)))
        self.font_controls = _load_bold_font(max(1, int(13 * scale)))
        self._image_cache: dict[str, Optional[Image.Image]] = {}

    # --- Signature images ---

    def _signature_image(self, element: RenderElement) -> Optional[Image.Image]:
        """Resolve and load the element's signature image, if it has one."""
        ref = getattr(element.signature, "signature_image_id", None)
        if not ref or self.image_resolver is None:
            return None
        if ref in self._image_cache:
            return self._image_cache[ref]

        image = None
        path = self.image_resolver(ref)
        if path and Path(path).exists():
            try:
                with Image.open(path) as src:
                    image = src.convert("RGBA")
            except OSError as e:
                logger.warning(f"Could not load signature image {path}: {e}")
        self._image_cache[ref] = image
        return image

    # --- Frames ---

    def render_frame(
        self,
        frame: CanvasFrame,
        wall: Optional[Wall] = None,
        output_path: Optional[str] = None,
        show_chrome: bool = True,
        revealed: Optional[Container[str]] = None,
        element_width: Optional[float] = None,
        element_height: Optional[float] = None,
    ) -> bytes:
        """Render a composed frame to PNG bytes. Optionally save to file.

        Args:
            frame: Output of ``WallCanvas.frame()``.
            wall: Supplies the title for the header card and the colour
                  overrides; optional.
            output_path: Optional path to save the PNG.
            show_chrome: Draw the header card and zoom readout.
            revealed: When given, only these element ids are painted (the
                      rest are still waiting for their reveal timer).
            element_width / element_height: World footprint; defaults to
                      ``CanvasSettings`` defaults.
        """
        if not frame.size.is_measured():
            raise ValueError("Cannot render a frame without a measured viewport size")

        palette = apply_wall_theme(self.theme, wall.theme if wall else None)
        defaults = CanvasSettings()
        ew = element_width or defaults.element_width
        eh = element_height or defaults.element_height

        s = self.scale
        img_width = int(frame.size.width * s)
        img_height = int(frame.size.height * s)

        img = Image.new("RGBA", (img_width, img_height), _color_to_rgba(palette.background))
        self._draw_glow(img, palette)

        overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        state = frame.viewport

        for element in frame.elements:
            if revealed is not None and element.id not in revealed:
                continue
            sx, sy = state.to_screen(element.x, element.y)
            self._draw_element(
                overlay, draw, element, palette,
                (sx * s, sy * s, ew * state.scale * s, eh * state.scale * s),
            )

        img = Image.alpha_composite(img, overlay)

        if show_chrome:
            chrome = Image.new("RGBA", img.size, (0, 0, 0, 0))
            chrome_draw = ImageDraw.Draw(chrome)
            title = wall.title if wall else "Memory Wall"
            self._draw_header_card(chrome_draw, title, frame.total_count, palette)
            self._draw_zoom_readout(chrome_draw, frame.zoom_percent, img_width, img_height, palette)
            img = Image.alpha_composite(img, chrome)

        return self._to_png(img, output_path)

    def _draw_glow(self, img: Image.Image, palette: ThemePalette):
        """Soft accent glow from the top centre of the canvas."""
        width, height = img.size
        glow = Image.new("RGBA", img.size, (0, 0, 0, 0))
        glow_draw = ImageDraw.Draw(glow)
        radius = max(width, height) * 0.55
        cx = width / 2
        glow_draw.ellipse(
            [cx - radius, -radius, cx + radius, radius],
            fill=_color_to_rgba(palette.accent, palette.glow_alpha),
        )
        glow = glow.filter(ImageFilter.GaussianBlur(radius=max(1, int(radius / 3))))
        img.alpha_composite(glow)

    def _draw_element(
        self,
        overlay: Image.Image,
        draw: ImageDraw.ImageDraw,
        element: RenderElement,
        palette: ThemePalette,
        box: tuple[float, float, float, float],
    ):
        """Draw one signature: its image if resolvable, else a placeholder."""
        x, y, w, h = box
        if w < 1 or h < 1:
            return

        image = self._signature_image(element)
        if image is not None:
            fitted = ImageOps.contain(image, (max(1, int(w)), max(1, int(h))))
            factor = palette.signature_alpha / 255
            alpha = fitted.getchannel("A").point(lambda a: int(a * factor))
            fitted.putalpha(alpha)
            ox = int(x + (w - fitted.width) / 2)
            oy = int(y + (h - fitted.height) / 2)
            # paste() accepts offsets outside the image; alpha_composite() does not
            overlay.paste(fitted, (ox, oy), fitted)
        else:
            _draw_rounded_rect(
                draw, (x, y, x + w, y + h),
                radius=int(self.ELEMENT_RADIUS * self.scale),
                fill=_color_to_rgba(palette.element_fill, palette.element_fill_alpha),
            )

        # Signer name, only when the element is large enough to read it
        if h >= self.LABEL_MIN_ELEMENT_HEIGHT * self.scale:
            name = element.signature.get_display_name() if isinstance(element.signature, SignatureRecord) else ""
            if name:
                label = _ellipsize(name, self.font_label, w - 8 * self.scale)
                draw.text(
                    (x + 4 * self.scale, y + h - 18 * self.scale),
                    label,
                    fill=_color_to_rgba(palette.element_label, 230),
                    font=self.font_label,
                )

    def _draw_header_card(self, draw: ImageDraw.ImageDraw, title: str, count: int, palette: ThemePalette):
        """Title card in the top-left corner: kicker, wall title, count."""
        s = self.scale
        x1 = self.CARD_MARGIN * s
        y1 = self.CARD_MARGIN * s
        pad = self.CARD_PADDING * s
        max_text = (self.CARD_WIDTH - 2 * self.CARD_PADDING) * s

        title_lines = _wrap_text(title, self.font_title, int(max_text))[:2]
        title_line_h = 26 * s
        height = pad + 16 * s + 8 * s + len(title_lines) * title_line_h + 4 * s + 18 * s + pad

        _draw_rounded_rect(
            draw, (x1, y1, x1 + self.CARD_WIDTH * s, y1 + height),
            radius=int(self.CARD_RADIUS * s),
            fill=_color_to_rgba(palette.card_fill, palette.card_fill_alpha),
            outline=_color_to_rgba(palette.card_border),
            width=max(1, int(s)),
        )

        ty = y1 + pad
        draw.text((x1 + pad, ty), "MEMORY WALL", fill=palette.muted_text_color, font=self.font_kicker)
        ty += 16 * s + 8 * s
        for line in title_lines:
            draw.text((x1 + pad, ty), line, fill=palette.title_color, font=self.font_title)
            ty += title_line_h
        ty += 4 * s
        noun = "signature" if count == 1 else "signatures"
        draw.text((x1 + pad, ty), f"{count} {noun}", fill=palette.muted_text_color, font=self.font_body)

    def _draw_zoom_readout(
        self, draw: ImageDraw.ImageDraw, percent: int, img_width: int, img_height: int, palette: ThemePalette,
    ):
        """Zoom percentage pill centred at the bottom, like the canvas controls."""
        s = self.scale
        text = f"{percent}%"
        bbox = self.font_controls.getbbox(text)
        tw = bbox[2] - bbox[0]
        th = bbox[3] - bbox[1]
        pw = tw + 24 * s
        ph = th + 14 * s
        x1 = (img_width - pw) / 2
        y1 = img_height - self.CONTROLS_MARGIN * s - ph
        _draw_rounded_rect(
            draw, (x1, y1, x1 + pw, y1 + ph),
            radius=int(12 * s),
            fill=_color_to_rgba(palette.controls_fill, 230),
        )
        draw.text((x1 + 12 * s, y1 + 7 * s - bbox[1]), text, fill=palette.controls_text, font=self.font_controls)

    # --- Exports ---

    def export_wall(
        self,
        wall: Wall,
        entries: Iterable[SignatureRecord],
        width: int = 1920,
        height: int = 1080,
        settings: Optional[CanvasSettings] = None,
        output_path: Optional[str] = None,
        show_chrome: bool = True,
    ) -> bytes:
        """Render the whole wall zoomed to fit into a width × height image."""
        canvas = WallCanvas(settings=settings, fit_on_first_layout=True)
        canvas.set_viewport_size(width, height)
        canvas.set_entries(list(entries))
        frame = canvas.frame()
        logger.info(f"Exporting wall '{wall.slug}': {len(frame.elements)} signatures at {frame.zoom_percent}%")
        return self.render_frame(
            frame,
            wall=wall,
            output_path=output_path,
            show_chrome=show_chrome,
            element_width=canvas.settings.element_width,
            element_height=canvas.settings.element_height,
        )

    def render_share_card(
        self,
        wall: Wall,
        count: int,
        site_url: str = "",
        output_path: Optional[str] = None,
    ) -> bytes:
        """1200×630 social preview card: title, description, count, URL."""
        width, height = SHARE_CARD_SIZE
        palette = apply_wall_theme(self.theme, wall.theme)
        background = palette.background
        primary = palette.accent
        muted = _color_to_rgba(primary, 178)

        img = Image.new("RGBA", (width, height), _color_to_rgba(background))
        layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        pad = 64
        kicker_font = _load_font(14)
        title_font = _load_bold_font(56)
        body_font = _load_font(24)
        footer_font = _load_font(20)

        y = pad
        draw.text((pad, y), "  ".join("MEMORY WELL"), fill=muted, font=kicker_font)
        y += 14 + 12

        for line in _wrap_text(wall.title, title_font, width - 2 * pad)[:2]:
            draw.text((pad, y), line, fill=_color_to_rgba(primary), font=title_font)
            y += 62
        y += 12

        description = wall.description or "Sign this memory wall and leave your message."
        for line in _wrap_text(description, body_font, 800)[:4]:
            draw.text((pad, y), line, fill=muted, font=body_font)
            y += 34

        footer_y = height - pad - 20
        noun = "signature" if count == 1 else "signatures"
        draw.text((pad, footer_y), f"{count} {noun}", fill=_color_to_rgba(primary, 204), font=footer_font)
        if site_url:
            url_w = _text_width(footer_font, site_url)
            draw.text((width - pad - url_w, footer_y), site_url, fill=_color_to_rgba(primary, 204), font=footer_font)

        img = Image.alpha_composite(img, layer)
        return self._to_png(img, output_path)

    @staticmethod
    def _to_png(img: Image.Image, output_path: Optional[str]) -> bytes:
        buf = BytesIO()
        img.save(buf, format="PNG", optimize=True)
        png_bytes = buf.getvalue()

        if output_path:
            Path(output_path).write_bytes(png_bytes)

        return png_bytes
