# tests/test_config.py
"""
Tests for engine configuration: defaults, validation and JSON loading.
"""

import json
import logging

import pytest

from cppcheckdata_unitags.config import DEFAULT_ALLOCATORS, EngineConfig
from cppcheckdata_unitags.engine import UnitagsEngine
from cppcheckdata_unitags.errors import ConfigError
from cppcheckdata_unitags.units import PARAM_UNIT_TABLE, ParamUnitRule, UnitKind
from tests.conftest import MockFunction, assign, binop, call, name, num, var


class TestDefaults:

    def test_defaults(self):
        config = EngineConfig()
        assert config.db_path == ":memory:"
        assert config.page_size == 4096
        assert config.param_unit_table == PARAM_UNIT_TABLE
        assert config.allocators == DEFAULT_ALLOCATORS
        assert config.logging_level == logging.WARNING

    def test_tables_are_copies(self):
        config = EngineConfig()
        config.allocators["my_alloc"] = 0
        assert "my_alloc" not in EngineConfig().allocators


class TestValidation:

    @pytest.mark.parametrize("options, option", [
        ({"page_size": 0}, "page_size"),
        ({"conversion_calls": {"f": "furlong"}}, "conversion_calls.f"),
        ({"fixed_member_units": {"(struct a)->b": "x"}}, "fixed_member_units.(struct a)->b"),
        ({"allocators": {"f": -1}}, "allocators.f"),
        ({"allocators": {"f": [0]}}, "allocators.f"),
        ({"log_level": "LOUD"}, "log_level"),
        ({"param_unit_table": [["f", -1, "$", "cubits"]]}, "param_unit_table.f"),
    ])
    def test_bad_values(self, options, option):
        with pytest.raises(ConfigError) as info:
            EngineConfig.from_mapping(options)
        assert info.value.option == option

    def test_unknown_option(self):
        with pytest.raises(ConfigError):
            EngineConfig.from_mapping({"pagesize": 4096})

    def test_malformed_rule(self):
        with pytest.raises(ConfigError):
            EngineConfig.from_mapping({"param_unit_table": [["f", -1]]})

    def test_mapping_conversions(self):
        config = EngineConfig.from_mapping({
            "allocators": {"my_calloc": [0, 1]},
            "param_unit_table": [{"function": "f", "param": 0, "key": "$", "unit": "msec"}],
            "ignored_members": ["(struct a)->b"],
        })
        assert config.allocators == {"my_calloc": (0, 1)}
        assert config.param_unit_table == (ParamUnitRule("f", 0, "$", "msec"),)
        assert config.ignored_members == ("(struct a)->b",)


class TestJsonFile:

    def test_load(self, tmp_path):
        path = tmp_path / "unitags.json"
        path.write_text(json.dumps({"page_size": 16384, "log_level": "debug"}))
        config = EngineConfig.from_json_file(path)
        assert config.page_size == 16384
        assert config.logging_level == logging.DEBUG

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            EngineConfig.from_json_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{page_size: 1")
        with pytest.raises(ConfigError):
            EngineConfig.from_json_file(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            EngineConfig.from_json_file(path)


class TestConfiguredEngine:

    def test_page_size_drives_inference(self, repo):
        engine = UnitagsEngine(EngineConfig(page_size=16384), repository=repo)
        engine.dispatcher.start_function(
            engine.host.function_context(MockFunction("f"), 1))
        engine.dispatcher.statement(assign(var("x", 1), binop("/", var("n", 2), num("16384"))))
        assert engine.units.get_units(var("x", 1)) is UnitKind.PAGE

    def test_custom_conversion_and_allocator(self, repo):
        config = EngineConfig.from_mapping({
            "conversion_calls": {"usecs_to_jiffies": "jiffy"},
            "allocators": {"my_alloc": 0},
        })
        engine = UnitagsEngine(config, repository=repo)
        engine.dispatcher.start_function(
            engine.host.function_context(MockFunction("f"), 1))
        engine.dispatcher.statement(assign(var("t", 1), call("usecs_to_jiffies", num("5"))))
        engine.dispatcher.statement(assign(var("p", 2), call("my_alloc", name("SZ"))))
        assert engine.units.get_units(var("t", 1)) is UnitKind.TICK
        assert engine.host.resolve_tag(var("p", 2)) is not None
