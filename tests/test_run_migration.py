"""Tests for scripts.run_migration."""

import sys
import types

import pytest

from collection_schema import build, primary_key, vector
from migration import index
from config.settings import settings
from scripts.run_migration import build_parser, load_target


@pytest.fixture
def target_module(monkeypatch):
    module = types.ModuleType("fake_collections")
    schema = build(name="movies", fields=[primary_key("id"), vector("embedding", 4)])
    module.movies = (schema, [index.hnsw("embedding")])
    module.movies_factory = lambda: (schema, None)
    monkeypatch.setitem(sys.modules, "fake_collections", module)
    return module


class TestLoadTarget:
    def test_attribute(self, target_module):
        schema, indexes = load_target("fake_collections:movies")
        assert schema.name == "movies"
        assert [i.field_name for i in indexes] == ["embedding"]

    def test_callable(self, target_module):
        schema, indexes = load_target("fake_collections:movies_factory")
        assert schema.name == "movies"
        assert indexes == []

    def test_bad_target(self):
        with pytest.raises(ValueError):
            load_target("no_colon")


class TestParser:
    def test_strict_flags(self):
        parser = build_parser()
        assert parser.parse_args(["m:a", "--strict"]).strict is True
        assert parser.parse_args(["m:a", "--no-strict"]).strict is False

    def test_no_strict_overrides_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "strict_migration", True)
        parser = build_parser()
        assert parser.parse_args(["m:a"]).strict is True
        assert parser.parse_args(["m:a", "--no-strict"]).strict is False

    def test_connection_defaults(self):
        args = build_parser().parse_args(["m:a", "--port", "19531"])
        assert args.port == 19531
        assert args.host == settings.milvus_host
