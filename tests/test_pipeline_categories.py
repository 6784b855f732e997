"""Tests for app category lookup."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from focusledger.pipeline.categories import DEFAULT_APP_CATEGORIES, StaticCategoryResolver


class TestStaticCategoryResolver:
    def test_builtin_lookup(self) -> None:
        r = StaticCategoryResolver()
        assert r.resolve("com.apple.Terminal") == "Development"
        assert r.resolve("com.tinyspeck.slackmacgap") == "Communication"

    def test_unknown_falls_back_to_other(self) -> None:
        assert StaticCategoryResolver().resolve("org.example.Unknown") == "Other"

    def test_overrides_win(self) -> None:
        r = StaticCategoryResolver({"com.apple.Terminal": "Ops", "org.example.New": "Design"})
        assert r.resolve("com.apple.Terminal") == "Ops"
        assert r.resolve("org.example.New") == "Design"
        assert DEFAULT_APP_CATEGORIES["com.apple.Terminal"] == "Development"

    def test_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "categories.json"
        path.write_text(json.dumps({"org.example.App": "Research"}), "utf-8")
        assert StaticCategoryResolver.from_json(path).resolve("org.example.App") == "Research"

    def test_from_json_rejects_bad_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "categories.json"
        path.write_text(json.dumps(["not", "a", "map"]), "utf-8")
        with pytest.raises(ValueError):
            StaticCategoryResolver.from_json(path)
