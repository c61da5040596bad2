"""Tests for YAML wall recipes and the directory-backed entry source."""

import pytest
import yaml
from unittest.mock import Mock

from wall_canvas.layout import compute_signature_layout
from wall_canvas.models import LayoutEntry, SignatureRecord
from wall_canvas.parser import layout_to_yaml, parse_file, parse_yaml, recipe_to_yaml
from wall_canvas.source import (
    NOT_FOUND,
    PENDING,
    WallDirectorySource,
    normalize_entries,
)


FULL_RECIPE = """
wall:
  _id: w1
  slug: grandma-90
  title: Grandma's 90th
  description: Leave a note for Grandma
  acceptingEntries: true
  theme:
    primaryColor: "#fde68a"
    backgroundColor: "#1c1917"
    fontFamily: serif
entries:
  - _id: a1
    name: Ada
    message: Happy birthday!
    signatureImageId: img-a1
    stickers: [cake]
    createdAt: 1700000000000
  - _id: a2
    name: ""
    isHidden: true
  - _id: a3
    name: Grace
    isVerified: true
"""

SIMPLE_RECIPE = """
title: Office Farewell
entries:
  - id: 1
    name: Sam
  - id: 2
    name: Kim
"""


class TestParseYaml:
    """Tests for parse_yaml"""

    def test_full_recipe(self):
        recipe = parse_yaml(FULL_RECIPE)
        wall = recipe.wall

        assert wall.id == "w1"
        assert wall.slug == "grandma-90"
        assert wall.theme.primary_color == "#fde68a"
        assert wall.theme.font_family == "serif"
        assert [e.id for e in recipe.entries] == ["a1", "a2", "a3"]

        ada = recipe.entries[0]
        assert ada.signature_image_id == "img-a1"
        assert ada.stickers == ("cake",)
        assert recipe.entries[1].is_hidden is True
        assert recipe.entries[2].is_verified is True

    def test_simple_recipe(self):
        recipe = parse_yaml(SIMPLE_RECIPE, default_slug="farewell")
        assert recipe.wall.title == "Office Farewell"
        assert recipe.wall.slug == "farewell"
        assert recipe.wall.id == "farewell"
        assert [e.id for e in recipe.entries] == ["1", "2"]

    def test_bare_entry_list(self):
        recipe = parse_yaml("- id: x\n- id: y\n")
        assert [e.id for e in recipe.entries] == ["x", "y"]
        assert recipe.wall.title == "Untitled Wall"

    @pytest.mark.parametrize("text", ["", "   \n", "~"])
    def test_empty_input_raises(self, text):
        with pytest.raises(ValueError):
            parse_yaml(text)

    def test_scalar_input_raises(self):
        with pytest.raises(ValueError):
            parse_yaml("just a string")

    def test_entry_without_id_raises(self):
        with pytest.raises(ValueError):
            parse_yaml("entries:\n  - name: nobody\n")

    def test_recipe_round_trip(self):
        recipe = parse_yaml(FULL_RECIPE)
        again = parse_yaml(recipe_to_yaml(recipe))
        assert again.wall == recipe.wall
        assert again.entries == recipe.entries

    def test_layout_to_yaml(self):
        layout = compute_signature_layout([LayoutEntry(id="a"), LayoutEntry(id="b")])
        data = yaml.safe_load(layout_to_yaml(layout))
        assert data["layout"]["reveal_order"] == ["a", "b"]
        assert [p["id"] for p in data["layout"]["positions"]] == ["a", "b"]

    def test_display_name(self):
        recipe = parse_yaml(FULL_RECIPE)
        assert recipe.entries[0].get_display_name() == "Ada"
        assert recipe.entries[1].get_display_name() == "Anonymous"


class TestNormalizeEntries:
    """Tests for normalize_entries"""

    @pytest.mark.parametrize("raw", [None, PENDING, NOT_FOUND, {"id": "a"}, "text", 3])
    def test_no_data(self, raw):
        assert normalize_entries(raw) is None

    def test_records_become_their_own_signature(self):
        record = SignatureRecord(id="r1", name="Ada")
        entries = normalize_entries([record])
        assert entries == [LayoutEntry(id="r1", signature=record)]

    def test_backend_ids_and_payload_mappings(self):
        entries = normalize_entries([
            {"_id": "k1", "name": "Ada"},
            {"id": "k2", "signature": "payload"},
            {"name": "no id"},
        ])
        assert [e.id for e in entries] == ["k1", "k2"]
        assert entries[0].signature == {"_id": "k1", "name": "Ada"}
        assert entries[1].signature == "payload"

    def test_layout_entries_pass_through(self):
        entry = LayoutEntry(id="x")
        assert normalize_entries((entry,)) == [entry]


class TestWallDirectorySource:
    """Tests for WallDirectorySource"""

    @pytest.fixture
    def walls_dir(self, tmp_path):
        (tmp_path / "grandma.yaml").write_text(FULL_RECIPE)
        (tmp_path / "farewell.yaml").write_text(SIMPLE_RECIPE)
        (tmp_path / "broken.yaml").write_text("wall: [unclosed\n")
        return tmp_path

    def test_list_walls_skips_broken_recipes(self, walls_dir, caplog):
        source = WallDirectorySource(walls_dir)
        slugs = sorted(wall.slug for wall in source.list_walls())
        assert slugs == ["farewell", "grandma-90"]
        assert "Error loading wall recipe" in caplog.text

    def test_get_wall_by_slug(self, walls_dir):
        source = WallDirectorySource(walls_dir)
        assert source.get_wall_by_slug("grandma-90").title == "Grandma's 90th"
        assert source.get_wall_by_slug("missing") is None

    def test_hidden_entries_are_not_listed(self, walls_dir):
        source = WallDirectorySource(walls_dir)
        assert [e.id for e in source.list_entries("w1")] == ["a1", "a3"]
        assert source.count_entries("w1") == 2

    def test_limit(self, walls_dir):
        source = WallDirectorySource(walls_dir)
        assert len(source.list_entries("farewell", limit=1)) == 1

    def test_missing_directory(self, tmp_path):
        source = WallDirectorySource(tmp_path / "nope")
        assert source.list_walls() == []
        assert source.list_entries("w1") == []

    def test_parse_file_uses_stem_as_slug(self, walls_dir):
        assert parse_file(walls_dir / "farewell.yaml").wall.slug == "farewell"

    def test_list_walls_with_counts(self, walls_dir):
        source = WallDirectorySource(walls_dir)
        counts = {wall.slug: count for wall, count in source.list_walls_with_counts()}
        assert counts == {"farewell": 2, "grandma-90": 2}

    def test_list_walls_with_counts_reads_each_recipe_once(self, walls_dir, monkeypatch):
        reader = Mock(wraps=parse_file)
        monkeypatch.setattr("wall_canvas.source.parse_file", reader)

        WallDirectorySource(walls_dir).list_walls_with_counts()

        assert reader.call_count == 3
