"""Wall canvas MCP server — MCP tools for laying out and rendering memory walls."""

from __future__ import annotations

import json
import uuid
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, ImageContent, Tool

from . import config
from .canvas import WallCanvas, frame_for_view
from .models import CanvasSettings
from .parser import WallRecipe, layout_to_dict, parse_yaml
from .reveal import ring_index_for
from .renderer import WallCanvasRenderer
from .source import WallDirectorySource


server = Server("wall-canvas")


_RECIPE_PROPERTIES = {
    "yaml_recipe": {
        "type": "string",
        "description": (
            "YAML wall recipe. Simplified format example:\n"
            "title: Grandma's 90th\n"
            "entries:\n"
            "  - id: e0\n"
            "    name: Ada\n"
            "    message: 'Happy birthday!'\n"
            "  - id: e1\n"
            "    name: Grace\n"
            "    stickers: [cake, balloon]\n"
            "\n"
            "Full format nests the wall under 'wall:' (slug, title, theme) "
            "next to 'entries:'. Entries are placed in the order given."
        ),
    },
    "slug": {
        "type": "string",
        "description": "Slug of a wall in the walls directory (alternative to yaml_recipe).",
    },
}


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="layout_wall",
            description=(
                "Compute the deterministic signature layout for a wall: world "
                "positions (top-left corners) and the reveal order with each "
                "entry's reveal ring."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_RECIPE_PROPERTIES,
                    "ring_size": {
                        "type": "integer",
                        "description": "Entries per reveal ring (default 5).",
                        "default": 5,
                    },
                },
            },
        ),
        Tool(
            name="render_wall_canvas",
            description=(
                "Render what a visitor sees on the wall canvas for a given "
                "viewport. Without pan/zoom the wall is zoomed to fit. "
                "Returns the path to the rendered PNG and the visible count."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_RECIPE_PROPERTIES,
                    "width": {"type": "integer", "description": "Viewport width in px", "default": 1280},
                    "height": {"type": "integer", "description": "Viewport height in px", "default": 720},
                    "pan_x": {"type": "number", "description": "Horizontal pan in screen px"},
                    "pan_y": {"type": "number", "description": "Vertical pan in screen px"},
                    "zoom": {"type": "number", "description": "Viewport scale (1.0 = 100%)"},
                    "theme": {
                        "type": "string",
                        "enum": ["dark", "light"],
                        "description": "Base palette; the wall's own colours override it.",
                        "default": "dark",
                    },
                    "scale": {
                        "type": "number",
                        "description": "Pixel density of the output image (default 1.0)",
                        "exclusiveMinimum": 0,
                        "default": 1.0,
                    },
                    "filename": {
                        "type": "string",
                        "description": "Output filename (without extension). Default: auto-generated.",
                    },
                },
            },
        ),
        Tool(
            name="export_wall",
            description="Export the whole wall, zoomed to fit, as a PNG.",
            inputSchema={
                "type": "object",
                "properties": {
                    **_RECIPE_PROPERTIES,
                    "width": {"type": "integer", "default": 1920},
                    "height": {"type": "integer", "default": 1080},
                    "theme": {"type": "string", "enum": ["dark", "light"], "default": "dark"},
                },
            },
        ),
        Tool(
            name="render_share_card",
            description="Render the 1200x630 social share card for a wall.",
            inputSchema={
                "type": "object",
                "properties": dict(_RECIPE_PROPERTIES),
            },
        ),
        Tool(
            name="list_walls",
            description="List the walls available in the walls directory.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent | ImageContent]:
    if name == "layout_wall":
        return await _layout_wall(arguments)
    elif name == "render_wall_canvas":
        return await _render_wall_canvas(arguments)
    elif name == "export_wall":
        return await _export_wall(arguments)
    elif name == "render_share_card":
        return await _render_share_card(arguments)
    elif name == "list_walls":
        return await _list_walls(arguments)
    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _load_recipe(args: dict) -> tuple[Optional[WallRecipe], Optional[str]]:
    """Resolve the wall either from an inline recipe or from the walls directory."""
    if args.get("yaml_recipe"):
        try:
            return parse_yaml(args["yaml_recipe"]), None
        except Exception as e:
            return None, f"Failed to parse YAML recipe: {e}"

    slug = args.get("slug")
    if not slug:
        return None, "Provide either yaml_recipe or slug"

    source = WallDirectorySource(config.WALLS_DIR)
    wall = source.get_wall_by_slug(slug)
    if wall is None:
        return None, f"Wall not found: {slug}"
    return WallRecipe(wall=wall, entries=source.list_entries(wall.id)), None


def _visible_entries(recipe: WallRecipe):
    return [entry for entry in recipe.entries if not entry.is_hidden]


def _optional_float(args: dict, key: str) -> Optional[float]:
    value = args.get(key)
    return None if value is None else float(value)


def _output_path(args: dict, recipe: WallRecipe, suffix: str = "") -> str:
    filename = args.get("filename") or f"{recipe.wall.slug[:30]}{suffix}-{str(uuid.uuid4())[:4]}"
    return str(config.ensure_output_dir() / f"{filename}.png")


async def _layout_wall(args: dict) -> list[TextContent]:
    """Compute positions and reveal order."""
    recipe, error = _load_recipe(args)
    if error:
        return [TextContent(type="text", text=error)]

    try:
        settings = CanvasSettings(ring_size=int(args.get("ring_size", 5)))
    except Exception as e:
        return [TextContent(type="text", text=f"Invalid settings: {e}")]

    canvas = WallCanvas(settings=settings)
    layout = canvas.set_entries(_visible_entries(recipe))
    data = layout_to_dict(layout)
    rings = {
        entry_id: ring_index_for(index, settings.ring_size, settings.ring_count)
        for index, entry_id in enumerate(layout.reveal_order)
    }

    return _text({
        "status": "success",
        "wall": recipe.wall.slug,
        "count": len(layout.positions),
        "element_width": settings.element_width,
        "element_height": settings.element_height,
        **data,
        "rings": rings,
    })


async def _render_wall_canvas(args: dict) -> list[TextContent]:
    """Render one viewport of the wall canvas to PNG."""
    recipe, error = _load_recipe(args)
    if error:
        return [TextContent(type="text", text=error)]

    output_path = _output_path(args, recipe)

    try:
        frame = frame_for_view(
            _visible_entries(recipe),
            int(args.get("width", 1280)),
            int(args.get("height", 720)),
            pan_x=_optional_float(args, "pan_x"),
            pan_y=_optional_float(args, "pan_y"),
            zoom=_optional_float(args, "zoom"),
        )
        renderer = WallCanvasRenderer(
            scale=float(args.get("scale", 1.0)),
            theme=args.get("theme", "dark"),
            image_resolver=config.resolve_signature_image,
        )
        renderer.render_frame(frame, wall=recipe.wall, output_path=output_path)
    except Exception as e:
        return [TextContent(type="text", text=f"Rendering failed: {e}")]

    return _text({
        "status": "success",
        "path": output_path,
        "wall": recipe.wall.slug,
        "total": frame.total_count,
        "visible": len(frame.elements),
        "zoom_percent": frame.zoom_percent,
        "pan": {"x": frame.viewport.pan.x, "y": frame.viewport.pan.y},
    })


async def _export_wall(args: dict) -> list[TextContent]:
    """Export the full wall zoomed to fit."""
    recipe, error = _load_recipe(args)
    if error:
        return [TextContent(type="text", text=error)]

    output_path = _output_path(args, recipe, suffix="-export")
    try:
        renderer = WallCanvasRenderer(
            theme=args.get("theme", "dark"),
            image_resolver=config.resolve_signature_image,
        )
        renderer.export_wall(
            recipe.wall,
            _visible_entries(recipe),
            width=int(args.get("width", 1920)),
            height=int(args.get("height", 1080)),
            output_path=output_path,
        )
    except Exception as e:
        return [TextContent(type="text", text=f"Export failed: {e}")]

    return _text({"status": "success", "path": output_path, "wall": recipe.wall.slug})


async def _render_share_card(args: dict) -> list[TextContent]:
    """Render the social share card."""
    recipe, error = _load_recipe(args)
    if error:
        return [TextContent(type="text", text=error)]

    output_path = _output_path(args, recipe, suffix="-share")
    count = len(_visible_entries(recipe))
    try:
        WallCanvasRenderer().render_share_card(
            recipe.wall, count, site_url=config.SITE_URL, output_path=output_path,
        )
    except Exception as e:
        return [TextContent(type="text", text=f"Rendering failed: {e}")]

    return _text({"status": "success", "path": output_path, "wall": recipe.wall.slug, "count": count})


async def _list_walls(args: dict) -> list[TextContent]:
    """List walls in the walls directory."""
    source = WallDirectorySource(config.WALLS_DIR)
    walls = [
        {"slug": wall.slug, "title": wall.title, "count": count}
        for wall, count in source.list_walls_with_counts()
    ]
    return _text({"walls": walls})


def main():
    """Entry point for the MCP server."""
    import asyncio
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
