# tests/test_cppcheck_host.py
"""
Tests for the Cppcheck dump adapter: values, types, members, parameters,
calls and expression identity.
"""

import pytest

from cppcheckdata_unitags.cppcheck_host import (
    CppcheckHost,
    _parse_int_literal,
    build_function_context,
)
from cppcheckdata_unitags.diagnostics import SourceLocation
from cppcheckdata_unitags.host import Callee, StaticType
from tests.conftest import (
    MockFunction,
    MockToken,
    MockValue,
    MockValueType,
    MockVariable,
    binop,
    call,
    cast,
    make_function,
    member,
    name,
    num,
    record_var,
    sizeof,
    struct_scope,
    var,
)


@pytest.fixture
def host():
    return CppcheckHost()


class TestValues:

    @pytest.mark.parametrize("text, value", [
        ("4096", 4096),
        ("0x1000", 4096),
        ("10UL", 10),
        ("010", 8),
        ("0", 0),
        ("1.5", None),
    ])
    def test_int_literals(self, text, value):
        assert _parse_int_literal(text) == value

    def test_literal_value(self, host):
        assert host.implied_value(num("0x1000")) == 4096
        assert host.implied_value(cast(num("12"))) == 12

    def test_known_value_flow(self, host):
        assert host.implied_value(var("n", 1, values=[MockValue(7)])) == 7
        assert host.implied_value(var("n", 1, values=[MockValue(7, "possible")])) is None
        assert host.implied_value(var("n", 1)) is None


class TestTypes:

    def test_static_types(self, host):
        assert host.static_type(var("a", 1, variable=MockVariable(isArray=True))) \
            is StaticType.ARRAY
        assert host.static_type(var("p", 2, variable=MockVariable(isPointer=True))) \
            is StaticType.POINTER
        assert host.static_type(var("i", 3, value_type=MockValueType("int"))) \
            is StaticType.SCALAR
        assert host.static_type(var("s", 4, value_type=MockValueType("record"))) \
            is StaticType.RECORD
        assert host.static_type(var("u", 5)) is StaticType.UNKNOWN

    def test_pointer_like(self):
        assert StaticType.POINTER.is_pointer_like
        assert StaticType.ARRAY.is_pointer_like
        assert not StaticType.SCALAR.is_pointer_like

    def test_macro_names(self, host):
        assert host.macro_name_at(num("4096", macro="PAGE_SIZE")) == "PAGE_SIZE"
        assert host.macro_name_at(name("jiffies")) == "jiffies"
        assert host.macro_name_at(sizeof(name("T"))) == "sizeof"
        assert host.macro_name_at(num("3")) is None
        assert host.macro_name_at(None) is None


class TestMembers:

    def test_member_names(self, host):
        foo = struct_scope("foo", [("len", "long")])
        anon = struct_scope("", [("__val", "long")], kind="Union")
        assert host.member_name(member(record_var("s", 1, foo), "len")) == "(struct foo)->len"
        assert host.member_name(member(record_var("u", 2, anon), "__val")) \
            == "(union anonymous)->__val"
        assert host.member_name(var("x", 3)) is None

    def test_member_offsets(self, host):
        layout = struct_scope("layout", [("c", "char"), ("l", "long"), ("i", "int")])
        s = record_var("s", 1, layout)
        assert host.member_offset(member(s, "c")) == 0
        assert host.member_offset(member(s, "l")) == 8
        assert host.member_offset(member(s, "i")) == 16

    def test_union_members_share_offset(self, host):
        u = struct_scope("u", [("a", "long"), ("b", "int")], kind="Union")
        assert host.member_offset(member(record_var("v", 1, u), "b")) == 0

    def test_unknown_layout(self, host):
        opaque = struct_scope("opaque", [("inner", "record"), ("n", "int")])
        assert host.member_offset(member(record_var("o", 1, opaque), "n")) is None


class TestParametersAndCalls:

    def test_param_index(self, host):
        _, param = make_function("f", [("a", 1), ("b", 2)])
        assert host.param_index(param("a")) == 0
        assert host.param_index(param("b")) == 1
        assert host.param_index(cast(param("b"))) == 1
        assert host.param_index(var("local", 3)) == -1
        assert host.param_index(num("1")) == -1

    def test_function_context(self):
        function, _ = make_function("f", [("a", 1), ("b", 2)], is_static=True)
        function.argument[3] = MockVariable(nameToken=MockToken("", isName=True))
        ctx = build_function_context(function, file_id=7)
        assert ctx.name == "f"
        assert ctx.file_id == 7
        assert ctx.is_static
        assert ctx.parameters == (("var", 1), ("var", 2), ("arg", 3))
        assert ctx.param_index_of_key(("var", 2)) == 1
        assert ctx.parameter_name(0) == "a"

    def test_call_arguments(self, host):
        tok = call("f", var("a", 1), num("2"), var("c", 3))
        assert [t.str for t in host.call_arguments(tok)] == ["a", "2", "c"]
        assert host.call_argument(tok, 2).str == "c"
        assert host.call_argument(tok, 3) is None

    def test_callee(self, host):
        helper = MockFunction("helper", isStatic=True)
        assert host.callee(call("helper", function=helper)) == Callee("helper", True)
        assert host.callee(call("printk")) == Callee("printk", False)

    def test_control_keywords_are_not_calls(self, host):
        tok = MockToken("(")
        tok.astOperand1 = MockToken("if", isName=True)
        tok.astOperand2 = var("x", 1)
        assert host.callee(tok) is None
        assert host.call_arguments(tok) == ()


class TestIdentity:

    def test_expression_keys(self, host):
        assert host.expression_key(var("x", 4)) == ("var", 4)
        assert host.expression_key(cast(var("x", 4))) == ("var", 4)
        expr = binop("+", var("x", 4), num("1"))
        assert host.expression_key(expr) == ("expr", expr.exprId)
        assert host.expression_key(num("1")) is None
        assert host.expression_key(MockToken('"s"', isString=True, exprId=9)) is None

    def test_same_member_same_key(self, host):
        foo = struct_scope("foo", [("len", "long")])
        first = member(record_var("s", 1, foo), "len")
        second = member(record_var("s", 1, foo), "len")
        assert host.expression_key(first) == host.expression_key(second)

    def test_text_and_location(self, host):
        expr = binop("*", var("n", 1), name("PAGE_SIZE"), line=12)
        assert host.expression_text(expr) == "n * PAGE_SIZE"
        assert host.expression_text(cast(var("n", 1))) == "(unsigned long)n"
        assert host.location(expr) == SourceLocation("test.c", 12, 1)

    def test_no_tags_without_allocations(self, host):
        assert host.resolve_tag(var("p", 1)) is None
        assert host.allocate_tag_alias(4096, var("p", 1)) is None
