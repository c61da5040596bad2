"""
Wall Preview - Web server for browsing memory walls rendered on the canvas

A lightweight aiohttp server over a directory of wall recipes.  It serves
each wall's layout as JSON, renders canvas views to PNG and produces the
social share card.

Usage:
    wall-canvas-preview [--port 8766] [--host 0.0.0.0] [--walls ./walls]
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from aiohttp import web

from . import config
from .canvas import frame_for_view
from .models import CanvasSettings
from .parser import layout_to_dict
from .layout import compute_signature_layout, LayoutOptions
from .renderer import WallCanvasRenderer
from .source import WallDirectorySource, normalize_entries

logger = logging.getLogger(__name__)

SOURCE_KEY = web.AppKey("source", WallDirectorySource)
SITE_URL_KEY = web.AppKey("site_url", str)

MAX_VIEWPORT_PX = 4096


def _query_float(request: web.Request, name: str) -> Optional[float]:
    value = request.query.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise web.HTTPBadRequest(text=f"Invalid {name}: {value!r}")


def _query_size(request: web.Request, name: str, default: int) -> int:
    value = _query_float(request, name)
    if value is None:
        return default
    if not 1 <= value <= MAX_VIEWPORT_PX:
        raise web.HTTPBadRequest(text=f"{name} must be between 1 and {MAX_VIEWPORT_PX}")
    return int(value)


async def handle_status(request):
    """Health check endpoint."""
    return web.json_response({
        "status": "ok",
        "service": "Wall Preview",
        "timestamp": datetime.now().isoformat()
    })


async def handle_walls(request):
    """List walls with their signature counts."""
    source = request.app[SOURCE_KEY]
    return web.json_response({
        "walls": [
            {
                "slug": wall.slug,
                "title": wall.title,
                "accepting_entries": wall.accepting_entries,
                "count": count,
            }
            for wall, count in source.list_walls_with_counts()
        ]
    })


async def handle_layout(request):
    """Positions and reveal order for one wall."""
    source = request.app[SOURCE_KEY]
    slug = request.match_info.get('slug', '')
    wall = source.get_wall_by_slug(slug)
    if wall is None:
        return web.json_response({"error": f"Wall not found: {slug}"}, status=404)

    settings = CanvasSettings()
    layout = compute_signature_layout(
        normalize_entries(source.list_entries(wall.id)),
        LayoutOptions.from_settings(settings),
    )
    return web.json_response({
        "wall": wall.slug,
        "count": len(layout.positions),
        "element_width": settings.element_width,
        "element_height": settings.element_height,
        **layout_to_dict(layout),
    })


async def handle_canvas_png(request):
    """Render one canvas view.

    Query: width, height (px), pan_x, pan_y, zoom, theme.  Without a
    transform the wall is zoomed to fit.
    """
    source = request.app[SOURCE_KEY]
    slug = request.match_info.get('slug', '')
    wall = source.get_wall_by_slug(slug)
    if wall is None:
        return web.Response(text="Not found", status=404)

    width = _query_size(request, 'width', 1280)
    height = _query_size(request, 'height', 720)
    frame = frame_for_view(
        source.list_entries(wall.id),
        width,
        height,
        pan_x=_query_float(request, 'pan_x'),
        pan_y=_query_float(request, 'pan_y'),
        zoom=_query_float(request, 'zoom'),
    )

    try:
        renderer = WallCanvasRenderer(
            theme=request.query.get('theme', 'dark'),
            image_resolver=config.resolve_signature_image,
        )
    except ValueError as e:
        return web.Response(text=str(e), status=400)

    png_bytes = renderer.render_frame(frame, wall=wall)
    logger.info(f"Rendered {slug}: {len(frame.elements)}/{frame.total_count} visible at {frame.zoom_percent}%")
    return web.Response(body=png_bytes, content_type='image/png')


async def handle_share_card(request):
    """Social share card for a wall (1200x630 PNG)."""
    slug = request.match_info.get('slug', '').strip()
    if not slug:
        return web.Response(text="Missing slug", status=400)

    source = request.app[SOURCE_KEY]
    wall = source.get_wall_by_slug(slug)
    if wall is None:
        return web.Response(text="Not found", status=404)

    count = source.count_entries(wall.id)
    png_bytes = WallCanvasRenderer().render_share_card(wall, count, site_url=request.app[SITE_URL_KEY])
    return web.Response(
        body=png_bytes,
        content_type='image/png',
        headers={'Cache-Control': 'public, max-age=300'},
    )


def create_app(walls_dir: Optional[str | Path] = None, site_url: Optional[str] = None):
    """Create the aiohttp application."""
    app = web.Application()
    app[SOURCE_KEY] = WallDirectorySource(walls_dir or config.WALLS_DIR)
    app[SITE_URL_KEY] = config.SITE_URL if site_url is None else site_url

    # API routes
    app.router.add_get('/api/status', handle_status)
    app.router.add_get('/api/walls', handle_walls)
    app.router.add_get('/api/walls/{slug}/layout', handle_layout)
    app.router.add_get('/api/share/wall/', handle_share_card)
    app.router.add_get('/api/share/wall/{slug}', handle_share_card)

    # Rendered views
    app.router.add_get('/wall/{slug}/canvas.png', handle_canvas_png)

    return app


async def main(host: str = '0.0.0.0', port: int = 8766, walls_dir: Optional[str] = None):
    """Run the web server."""
    app = create_app(walls_dir)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Wall Preview running at http://{host}:{port}")
    logger.info(f"Walls: {walls_dir or config.WALLS_DIR}")

    # Keep running
    while True:
        await asyncio.sleep(3600)


def cli():
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description='Memory wall canvas preview server')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    parser.add_argument('--port', type=int, default=8766, help='Port to listen on')
    parser.add_argument('--walls', default=None, help='Directory of wall recipes (*.yaml)')
    args = parser.parse_args()

    try:
        asyncio.run(main(host=args.host, port=args.port, walls_dir=args.walls))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == '__main__':
    cli()
