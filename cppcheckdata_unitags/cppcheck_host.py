"""
cppcheckdata_unitags/cppcheck_host.py
═════════════════════════════════════

:class:`~cppcheckdata_unitags.host.AnalysisHost` over Cppcheck dump tokens.

Everything here reads attributes of ``cppcheckdata`` objects (Token,
Variable, ValueType, Scope, Function) through ``getattr`` so that the
test doubles in ``tests/conftest.py`` and real dump objects are
interchangeable.

Environment keys are ``("var", varId)`` for variables and
``("expr", exprId)`` for any other expression Cppcheck numbered; literals
have no key.

License: MIT — same as cppcheckdata-unitags.
"""

from __future__ import annotations

import logging
from typing import Any, Hashable, Optional, Tuple

from cppcheckdata_unitags.alias import AliasManager
from cppcheckdata_unitags.ast_helper import (
    expr_to_string,
    get_call_argument,
    get_call_arguments,
    get_called_function_name,
    get_sizeof_type,
    is_cast,
    is_function_call,
    is_identifier,
    is_member_access,
    is_number,
    is_symbol,
    known_int_value,
    tok_column,
    tok_expr_id,
    tok_file,
    tok_function,
    tok_line,
    tok_macro_name,
    tok_op1,
    tok_op2,
    tok_str,
    tok_value_type,
    tok_var_id,
    tok_variable,
)
from cppcheckdata_unitags.diagnostics import SourceLocation
from cppcheckdata_unitags.host import (
    Callee,
    Expr,
    FunctionContext,
    StaticType,
    TagLocation,
)

logger = logging.getLogger(__name__)

_SCALAR_TYPES = frozenset({
    "bool", "char", "short", "wchar_t", "int", "long", "long long",
    "float", "double", "long double",
})


def _parse_int_literal(text: str) -> Optional[int]:
    """Value of a C integer literal, suffixes and all."""
    body = text.rstrip("uUlL")
    try:
        if body.lower().startswith(("0x", "0b")):
            return int(body, 0)
        if len(body) > 1 and body.startswith("0"):
            return int(body, 8)
        return int(body)
    except ValueError:
        return None


def build_function_context(function: Any, file_id: int = 0) -> FunctionContext:
    """Build a :class:`FunctionContext` from a ``cppcheckdata.Function``."""
    arguments = getattr(function, "argument", None) or {}
    keys = []
    names = []
    for nr in sorted(arguments):
        var = arguments[nr]
        name_tok = getattr(var, "nameToken", None)
        vid = tok_var_id(name_tok)
        keys.append(("var", vid) if vid else ("arg", nr))
        names.append(tok_str(name_tok))
    return FunctionContext(
        name=getattr(function, "name", "") or "",
        file_id=file_id,
        is_static=bool(getattr(function, "isStatic", False)),
        parameters=tuple(keys),
        parameter_names=tuple(names),
    )


class CppcheckHost:
    """Answers the engine's semantic queries from a Cppcheck dump."""

    def __init__(
        self,
        allocations: Optional[AliasManager] = None,
        pointer_size: int = 8,
    ) -> None:
        self.allocations = allocations
        self.pointer_size = pointer_size

    def function_context(self, function: Any, file_id: int = 0) -> FunctionContext:
        return build_function_context(function, file_id)

    # ── values and types ─────────────────────────────────────────────

    def implied_value(self, expr: Expr) -> Optional[int]:
        tok = self.strip(expr)
        if tok is None:
            return None
        if is_number(tok):
            return _parse_int_literal(tok_str(tok))
        return known_int_value(tok)

    def static_type(self, expr: Expr) -> StaticType:
        tok = self.strip(expr)
        var = tok_variable(tok)
        if var is not None and is_symbol(tok):
            if getattr(var, "isArray", False):
                return StaticType.ARRAY
            if getattr(var, "isPointer", False):
                return StaticType.POINTER
        vt = tok_value_type(tok)
        if vt is None:
            return StaticType.UNKNOWN
        if getattr(vt, "pointer", 0):
            return StaticType.POINTER
        vt_type = getattr(vt, "type", "") or ""
        if vt_type in ("record", "container"):
            return StaticType.RECORD
        if vt_type in _SCALAR_TYPES:
            return StaticType.SCALAR
        return StaticType.UNKNOWN

    def macro_name_at(self, expr: Expr) -> Optional[str]:
        if expr is None:
            return None
        macro = tok_macro_name(expr)
        if macro:
            return macro
        if is_identifier(expr):
            return tok_str(expr)
        if is_function_call(expr) and tok_str(tok_op1(expr)) == "sizeof":
            return "sizeof"
        return None

    # ── members ──────────────────────────────────────────────────────

    def member_name(self, expr: Expr) -> Optional[str]:
        tok = self.strip(expr)
        if not is_member_access(tok):
            return None
        member = tok_str(tok_op2(tok))
        scope = getattr(tok_value_type(tok_op1(tok)), "typeScope", None)
        if not member or scope is None:
            return None
        kind = "union" if getattr(scope, "type", "") == "Union" else "struct"
        type_name = getattr(scope, "className", "") or "anonymous"
        return f"({kind} {type_name})->{member}"

    def member_offset(self, expr: Expr) -> Optional[int]:
        """Byte offset of the accessed member under natural alignment."""
        tok = self.strip(expr)
        if not is_member_access(tok):
            return None
        member = tok_str(tok_op2(tok))
        scope = getattr(tok_value_type(tok_op1(tok)), "typeScope", None)
        if scope is None:
            return None
        is_union = getattr(scope, "type", "") == "Union"
        offset = 0
        for var in getattr(scope, "varlist", None) or []:
            name_tok = getattr(var, "nameToken", None)
            size = get_sizeof_type(name_tok, self.pointer_size)
            if size is None or getattr(var, "isArray", False):
                return None
            if not is_union:
                align = min(size, self.pointer_size)
                offset = (offset + align - 1) // align * align
            if tok_str(name_tok) == member:
                return 0 if is_union else offset
            if not is_union:
                offset += size
        return None

    # ── parameters and calls ─────────────────────────────────────────

    def param_index(self, expr: Expr) -> int:
        tok = self.strip(expr)
        if not is_symbol(tok):
            return -1
        var = tok_variable(tok)
        if var is None or not getattr(var, "isArgument", False):
            return -1
        function = self._enclosing_function(tok, var)
        arguments = getattr(function, "argument", None) or {}
        vid = tok_var_id(tok)
        for nr, arg in arguments.items():
            if arg is var or (vid and tok_var_id(getattr(arg, "nameToken", None)) == vid):
                return int(nr) - 1
        return -1

    @staticmethod
    def _enclosing_function(tok: Any, var: Any) -> Optional[Any]:
        scope = getattr(var, "scope", None) or getattr(tok, "scope", None)
        while scope is not None:
            function = getattr(scope, "function", None)
            if function is not None:
                return function
            scope = getattr(scope, "nestedIn", None)
        return None

    def call_argument(self, call: Expr, index: int) -> Optional[Expr]:
        return get_call_argument(call, index)

    def call_arguments(self, call: Expr) -> Tuple[Expr, ...]:
        return tuple(get_call_arguments(call))

    def callee(self, call: Expr) -> Optional[Callee]:
        name = get_called_function_name(call)
        if not name:
            return None
        function = tok_function(tok_op1(call))
        return Callee(name, bool(getattr(function, "isStatic", False)))

    def strip(self, expr: Expr) -> Expr:
        tok = expr
        while is_cast(tok) and tok_op1(tok) is not None:
            tok = tok_op1(tok)
        return tok

    # ── tags ─────────────────────────────────────────────────────────

    def allocate_tag_alias(self, tag: int, at_expr: Expr) -> Optional[int]:
        if self.allocations is None:
            return None
        return self.allocations.create_alias(tag, self.location(at_expr))

    def resolve_tag(self, expr: Expr) -> Optional[int]:
        if self.allocations is None:
            return None
        tok = self.strip(expr)
        if tok_str(tok) == "&" and tok_op2(tok) is None:
            location = self.tag_location(tok_op1(tok))
            return location.tag if location else None
        return self.allocations.tag_for_key(self.expression_key(tok))

    def tag_location(self, expr: Expr) -> Optional[TagLocation]:
        if self.allocations is None:
            return None
        tok = self.strip(expr)
        if not is_member_access(tok):
            return None
        tag = self.allocations.tag_for_key(self.expression_key(self.strip(tok_op1(tok))))
        if tag is None:
            return None
        offset = self.member_offset(tok)
        if offset is None:
            logger.debug("no layout for %s", expr_to_string(tok))
            return None
        name = self.member_name(tok) or expr_to_string(tok)
        return TagLocation(tag, name, offset)

    # ── identity and text ────────────────────────────────────────────

    def expression_key(self, expr: Expr) -> Optional[Hashable]:
        tok = self.strip(expr)
        if tok is None or is_number(tok) or getattr(tok, "isString", False):
            return None
        vid = tok_var_id(tok)
        if vid:
            return ("var", vid)
        eid = tok_expr_id(tok)
        if eid:
            return ("expr", eid)
        return None

    def expression_text(self, expr: Expr) -> str:
        return expr_to_string(expr)

    def location(self, expr: Expr) -> SourceLocation:
        return SourceLocation(tok_file(expr), tok_line(expr), tok_column(expr))
