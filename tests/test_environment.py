# tests/test_environment.py
"""
Tests for path environments and the merge engine.
"""

from cppcheckdata_unitags.environment import AnalysisPath, MergeEngine, PathEnvironment
from cppcheckdata_unitags.lattice import MERGED, UNDEFINED, concrete
from cppcheckdata_unitags.units import UnitKind

BYTE = concrete(UnitKind.BYTE)
PAGE = concrete(UnitKind.PAGE)


class TestPathEnvironment:

    def test_missing_key_is_undefined(self):
        env = PathEnvironment()
        assert env.get("x") is UNDEFINED
        assert env.get(None) is UNDEFINED

    def test_set_and_name(self):
        env = PathEnvironment()
        env.set("k", BYTE, "len")
        assert env.get("k") == BYTE
        assert env.name_of("k") == "len"

    def test_setting_undefined_forgets(self):
        env = PathEnvironment()
        env.set("k", BYTE)
        env.set("k", UNDEFINED)
        assert "k" not in env
        assert len(env) == 0

    def test_fork_is_independent(self):
        env = PathEnvironment()
        env.set("k", BYTE)
        other = env.fork()
        other.set("k", PAGE)
        assert env.get("k") == BYTE
        assert other.get("k") == PAGE

    def test_concrete_items(self):
        env = PathEnvironment({"a": BYTE, "b": MERGED})
        assert dict(env.concrete_items()) == {"a": BYTE}


class TestAnalysisPath:

    def test_env_is_created_per_owner(self):
        path = AnalysisPath()
        path.env("units").set("x", BYTE)
        assert path.env("units").get("x") == BYTE
        assert path.env("other").get("x") is UNDEFINED
        assert sorted(path.owners()) == ["other", "units"]

    def test_fork_copies_every_env(self):
        path = AnalysisPath()
        path.env("units").set("x", BYTE)
        forked = path.fork()
        forked.env("units").set("x", PAGE)
        assert path.env("units").get("x") == BYTE


class TestMergeEngine:

    def test_merge_keeps_agreeing_and_one_sided_keys(self):
        a = PathEnvironment({"x": BYTE, "y": PAGE})
        b = PathEnvironment({"x": BYTE, "z": PAGE})
        out = MergeEngine().merge(a, b)
        assert out.get("x") == BYTE
        assert out.get("y") == PAGE
        assert out.get("z") == PAGE

    def test_conflict_reports_after_merge(self):
        seen = []
        a = PathEnvironment({"x": BYTE}, {"x": "len"})
        b = PathEnvironment({"x": PAGE})
        out = MergeEngine(pre_merge=lambda *args: seen.append(args)).merge(a, b)
        assert out.get("x") is MERGED
        assert seen == [("x", "len", BYTE, PAGE)]

    def test_return_join_never_reports(self):
        seen = []
        a = PathEnvironment({"x": BYTE})
        b = PathEnvironment({"x": PAGE})
        out = MergeEngine(pre_merge=lambda *args: seen.append(args)).merge(
            a, b, at_return=True)
        assert out.get("x") is MERGED
        assert seen == []

    def test_merged_against_concrete_is_silent(self):
        seen = []
        a = PathEnvironment({"x": MERGED})
        b = PathEnvironment({"x": PAGE})
        MergeEngine(pre_merge=lambda *args: seen.append(args)).merge(a, b)
        assert seen == []

    def test_custom_merge_function(self):
        a = PathEnvironment({"x": BYTE})
        b = PathEnvironment({"x": PAGE})
        out = MergeEngine(merge_fn=lambda s1, s2: s1).merge(a, b)
        assert out.get("x") == BYTE
