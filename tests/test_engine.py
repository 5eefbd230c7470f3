# tests/test_engine.py
"""
Tests for the straight-line addon driver over dump configurations.
"""

from cppcheckdata_unitags.engine import UnitagsEngine, file_id_for, iter_statement_roots
from cppcheckdata_unitags.facts import FactKind, Lookup
from tests.conftest import (
    MockConfiguration,
    MockScope,
    MockToken,
    assign,
    binop,
    make_function,
    name,
    num,
    var,
)


def body(function, *roots):
    """A function scope whose body holds ``roots``, linked through ``next``."""
    start, end = MockToken("{"), MockToken("}")
    chain = [start]
    for root in roots:
        chain.extend(_tokens(root))
    chain.append(end)
    for tok, nxt in zip(chain, chain[1:]):
        tok.next = nxt
    return MockScope(type="Function", function=function, bodyStart=start, bodyEnd=end)


def _tokens(root):
    out = [root]
    for child in (root.astOperand1, root.astOperand2):
        if child is not None:
            out.extend(_tokens(child))
    return out


def ret(expr=None):
    tok = MockToken("return")
    tok.astOperand1 = expr
    if expr is not None:
        expr.astParent = tok
    return tok


class MockDump:
    def __init__(self, configurations, files=("drv.c",)):
        self.configurations = list(configurations)
        self.files = list(files)


class TestStatementRoots:

    def test_only_roots_are_yielded(self):
        fn, _ = make_function("f", [])
        first = assign(var("x", 1), num("1"))
        second = binop("+", var("x", 1), num("2"))
        scope = body(fn, first, second)
        assert list(iter_statement_roots(scope)) == [first, second]

    def test_empty_body(self):
        assert list(iter_statement_roots(MockScope(type="Function"))) == []


class TestRunConfiguration:

    def test_functions_are_summarized(self, engine, repo):
        pages, _ = make_function("pages", [("n", 1)])
        shift, param = make_function("shift", [("p", 2)])
        cfg = MockConfiguration([
            MockScope(className="foo", type="Struct"),
            body(pages, ret(binop("/", var("n", 1), name("PAGE_SIZE")))),
            body(shift, assign(param("p"), num("12", macro="PAGE_SHIFT"), op="<<=")),
        ])
        assert engine.run_configuration(cfg, file_id=5) == 2
        assert repo.return_implications("pages", False, 5, FactKind.UNITS) == [
            (-1, "$", Lookup.found("page"))
        ]
        assert repo.return_implications("shift", False, 5, FactKind.UNITS) == [
            (0, "$", Lookup.found("byte"))
        ]

    def test_diagnostics_reach_the_sink(self, engine):
        fn, _ = make_function("f", [])
        cfg = MockConfiguration([
            body(fn,
                 assign(var("a", 1), name("PAGE_SIZE")),
                 assign(var("b", 2), name("jiffies")),
                 binop("+", var("a", 1), var("b", 2))),
        ])
        engine.run_configuration(cfg)
        assert engine.sink.summary() == {"unitsMissingConversion": 1}

    def test_scope_without_function_is_skipped(self, engine):
        cfg = MockConfiguration([MockScope(type="Function")])
        assert engine.run_configuration(cfg) == 0
        assert engine.dispatcher.function is None


class TestRunDump:

    def test_file_id(self):
        assert file_id_for("drv.c") == file_id_for("drv.c")
        assert file_id_for("drv.c") != file_id_for("other.c")
        assert file_id_for("drv.c") > 0

    def test_run_dump_uses_first_file(self, engine, repo):
        pages, _ = make_function("pages", [])
        dump = MockDump([MockConfiguration([
            body(pages, ret(binop("/", var("n", 1), name("PAGE_SIZE")))),
        ])])
        assert engine.run_dump(dump) == 1
        assert repo.return_implications(
            "pages", False, file_id_for("drv.c"), FactKind.UNITS
        ) == [(-1, "$", Lookup.found("page"))]

    def test_context_manager_closes(self, tmp_path):
        from cppcheckdata_unitags.config import EngineConfig

        db = tmp_path / "facts.sqlite"
        with UnitagsEngine(EngineConfig(db_path=str(db))) as engine:
            assert engine.repository is not None
        assert db.exists()
