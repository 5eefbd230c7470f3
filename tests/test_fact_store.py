# tests/test_fact_store.py
"""
Tests for the widen-on-conflict fact store and the typed repository.
"""

import sqlite3

import pytest

from cppcheckdata_unitags.errors import FactStoreError, MalformedFactError
from cppcheckdata_unitags.facts import (
    FactKind,
    Lookup,
    MemberUnit,
    ReturnImplication,
    TagAlias,
    TagAliasMap,
    TagData,
    format_passthrough,
    offset_key,
    parse_offset_key,
    parse_passthrough,
    parse_tag_offset,
)
from cppcheckdata_unitags.fact_store import FactStore


class TestFactStore:

    def test_missing_then_found(self):
        with FactStore() as store:
            assert store.lookup(("k",)).is_missing
            store.insert(("k",), "byte")
            assert store.lookup(("k",)) == Lookup.found("byte")

    def test_same_value_twice_is_idempotent(self):
        with FactStore() as store:
            store.insert(("k",), "byte")
            assert store.insert(("k",), "byte") == Lookup.found("byte")

    def test_widening_is_permanent(self):
        with FactStore() as store:
            store.insert(("k",), "byte")
            assert store.insert(("k",), "page").is_unknown
            assert store.insert(("k",), "byte").is_unknown
            assert store.lookup(("k",)).is_unknown

    def test_widening_survives_reopen(self, tmp_path):
        path = tmp_path / "facts.sqlite"
        with FactStore(path) as store:
            store.insert(("k", 1), "byte")
            store.insert(("k", 1), "page")
        with FactStore(path) as store:
            assert store.lookup(("k", 1)).is_unknown

    def test_foreign_schema_version_is_rejected(self, tmp_path):
        path = tmp_path / "foreign.sqlite"
        conn = sqlite3.connect(str(path))
        conn.execute("PRAGMA user_version = 99")
        conn.commit()
        conn.close()
        with pytest.raises(FactStoreError):
            FactStore(path)

    def test_unopenable_path(self, tmp_path):
        with pytest.raises(FactStoreError):
            FactStore(tmp_path / "missing-dir" / "facts.sqlite")


class TestFactRepository:

    def test_member_units_widen(self, repo):
        member = "(struct foo)->len"
        repo.record_member_unit(MemberUnit(1, member, "byte"))
        assert repo.member_unit(member) == Lookup.found("byte")
        repo.record_member_unit(MemberUnit(2, member, "page"))
        repo.record_member_unit(MemberUnit(3, member, "byte"))
        assert repo.member_unit(member).is_unknown
        assert repo.count("type_info") == 3

    def test_exported_function_summaries_ignore_file(self, repo):
        repo.record_return_implication(
            ReturnImplication(7, "f", False, FactKind.UNITS, 0, "$", "page"))
        rows = repo.return_implications("f", False, 99, FactKind.UNITS)
        assert rows == [(0, "$", Lookup.found("page"))]

    def test_static_function_summaries_are_per_file(self, repo):
        repo.record_return_implication(
            ReturnImplication(7, "helper", True, FactKind.UNITS, 0, "$", "page"))
        assert repo.return_implications("helper", True, 8, FactKind.UNITS) == []
        assert repo.return_implications("helper", True, 7, FactKind.UNITS) == [
            (0, "$", Lookup.found("page"))
        ]

    def test_kinds_do_not_mix(self, repo):
        repo.record_return_implication(
            ReturnImplication(1, "f", False, FactKind.MTAG_ASSIGN, 0, "$", "4096+8"))
        assert repo.return_implications("f", False, 1, FactKind.UNITS) == []

    def test_conflicting_summaries_read_unknown(self, repo):
        for value in ("byte", "page"):
            repo.record_return_implication(
                ReturnImplication(1, "f", False, FactKind.UNITS, 1, "$", value))
        [(param, key, lookup)] = repo.return_implications("f", False, 1, FactKind.UNITS)
        assert (param, key) == (1, "$")
        assert lookup.is_unknown

    def test_tag_stores_are_one_fact_per_location(self, repo):
        for value in ("4096+8", "4096+0", "8192+8", "4096+8"):
            repo.record_return_implication(
                ReturnImplication(1, "f", False, FactKind.MTAG_ASSIGN, 1, "$", value))
        assert repo.return_implications("f", False, 1, FactKind.MTAG_ASSIGN) == [
            (1, "$", Lookup.found("4096+0")),
            (1, "$", Lookup.found("4096+8")),
            (1, "$", Lookup.found("8192+8")),
        ]

    def test_tag_records(self, repo):
        repo.record_alias_map(TagAliasMap(8192, -16, 4096 | (1 << 62)))
        repo.record_tag_data(TagData(4096, 16, "s64min-s64max"))
        repo.record_alias(TagAlias(8192, 12288))
        assert repo.alias_maps(8192) == [TagAliasMap(8192, -16, 4096 | (1 << 62))]
        assert repo.alias_container(4096 | (1 << 62)) == Lookup.found("8192+-16")
        assert repo.tag_data(4096, 16) == Lookup.found("s64min-s64max")
        assert repo.alias_origin(12288) == Lookup.found("8192")

    def test_iter_facts(self, repo):
        repo.record_member_unit(MemberUnit(1, "(struct foo)->len", "byte"))
        assert list(repo.iter_facts("type_info")) == [
            {"file": 1, "type": 1, "key": "(struct foo)->len", "value": "byte"}
        ]
        with pytest.raises(KeyError):
            list(repo.iter_facts("nope"))


class TestDescriptors:

    def test_offset_keys(self):
        assert offset_key(16) == "$->[16]"
        assert parse_offset_key("$->[16]") == 16
        assert parse_offset_key("$") is None
        with pytest.raises(MalformedFactError):
            parse_offset_key("$->16")

    def test_tag_offset(self):
        assert parse_tag_offset("4096+-8") == (4096, -8)
        with pytest.raises(MalformedFactError):
            parse_tag_offset("byte")

    def test_passthrough(self):
        assert parse_passthrough(format_passthrough(2)) == 2
        assert parse_passthrough("byte") is None
