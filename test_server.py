"""Tests for the MCP tool handlers (called directly, no stdio transport)."""

import asyncio
import json
from pathlib import Path

import pytest

from wall_canvas import config, server


RECIPE = """
title: Retirement Party
slug: retirement
entries:
""" + "".join(f"  - id: e{i}\n    name: Guest {i}\n" for i in range(12))


@pytest.fixture(autouse=True)
def dirs(tmp_path, monkeypatch):
    walls = tmp_path / "walls"
    walls.mkdir()
    (walls / "retirement.yaml").write_text(RECIPE)
    monkeypatch.setattr(config, "OUTPUT_DIR", tmp_path / "out")
    monkeypatch.setattr(config, "WALLS_DIR", walls)
    return tmp_path


def call(handler, args):
    result = asyncio.run(handler(args))
    assert len(result) == 1
    return result[0].text


def call_json(handler, args):
    return json.loads(call(handler, args))


class TestListTools:
    """Tests for tool registration"""

    def test_tool_names(self):
        tools = asyncio.run(server.list_tools())
        assert {tool.name for tool in tools} == {
            "layout_wall", "render_wall_canvas", "export_wall", "render_share_card", "list_walls",
        }

    def test_unknown_tool(self):
        result = asyncio.run(server.call_tool("nope", {}))
        assert result[0].text == "Unknown tool: nope"


class TestLayoutWall:
    """Tests for the layout_wall tool"""

    def test_layout_from_recipe(self):
        data = call_json(server._layout_wall, {"yaml_recipe": RECIPE})
        assert data["status"] == "success"
        assert data["count"] == 12
        assert len(data["positions"]) == 12
        assert data["reveal_order"] == [f"e{i}" for i in range(12)]
        assert data["rings"]["e4"] == 0
        assert data["rings"]["e5"] == 1
        assert data["rings"]["e11"] == 2

    def test_layout_from_slug(self):
        data = call_json(server._layout_wall, {"slug": "retirement", "ring_size": 4})
        assert data["rings"]["e4"] == 1

    def test_layout_is_deterministic(self):
        first = call_json(server._layout_wall, {"yaml_recipe": RECIPE})
        second = call_json(server._layout_wall, {"slug": "retirement"})
        assert first["positions"] == second["positions"]

    def test_bad_yaml(self):
        assert call(server._layout_wall, {"yaml_recipe": "entries: [ {"}).startswith("Failed to parse YAML recipe")

    def test_missing_wall(self):
        assert call(server._layout_wall, {"slug": "ghost"}) == "Wall not found: ghost"

    def test_no_input(self):
        assert call(server._layout_wall, {}) == "Provide either yaml_recipe or slug"

    def test_invalid_ring_size(self):
        assert call(server._layout_wall, {"yaml_recipe": RECIPE, "ring_size": 0}).startswith("Invalid settings")


class TestRenderTools:
    """Tests for the rendering tools"""

    def test_render_fit(self):
        data = call_json(server._render_wall_canvas, {"slug": "retirement", "width": 640, "height": 360})
        assert data["visible"] == 12
        assert data["total"] == 12
        assert Path(data["path"]).exists()

    def test_render_with_transform(self):
        data = call_json(server._render_wall_canvas, {
            "yaml_recipe": RECIPE, "pan_x": 50000, "pan_y": 0, "zoom": 1.0, "filename": "far",
        })
        assert data["visible"] == 0
        assert data["zoom_percent"] == 100
        assert data["path"].endswith("far.png")

    def test_render_unknown_theme(self):
        text = call(server._render_wall_canvas, {"yaml_recipe": RECIPE, "theme": "neon"})
        assert text.startswith("Rendering failed")

    def test_export(self):
        data = call_json(server._export_wall, {"slug": "retirement", "width": 800, "height": 450})
        assert Path(data["path"]).exists()

    def test_share_card(self):
        data = call_json(server._render_share_card, {"slug": "retirement"})
        assert data["count"] == 12
        assert Path(data["path"]).exists()

    def test_list_walls(self):
        data = call_json(server._list_walls, {})
        assert data == {"walls": [{"slug": "retirement", "title": "Retirement Party", "count": 12}]}
