#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppcheckdata_unitags/ast_helper.py
══════════════════════════════════

Read-only accessors and predicates over Cppcheck dump tokens.

Every expression the engine sees is a ``cppcheckdata.Token`` (or anything
shaped like one).  The helpers here never raise on a missing attribute or a
``None`` token; they return empty defaults so the rules built on top of them
simply decline.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Safe accessors      tok_str, tok_op1, tok_op2, tok_var_id, ... │
    │  Classification      is_assignment, is_comparison, is_call, ... │
    │  Call helpers        get_called_function_name, get_call_args    │
    │  Stringification     expr_to_string                             │
    └─────────────────────────────────────────────────────────────────┘

In the Cppcheck AST a call ``f(a, b)`` is a ``(`` token whose
``astOperand1`` is ``f`` and whose ``astOperand2`` is a left-leaning tree of
``,`` tokens; a cast is a ``(`` token flagged ``isCast`` with the operand in
``astOperand1``; ``p->m`` and ``s.m`` are both ``.`` tokens.

License: MIT
"""

from __future__ import annotations

from typing import Any, FrozenSet, Iterator, List, Optional

# Duck-typed: cppcheckdata is only needed by the command line.
Token = Any


# ─────────────────────────────────────────────────────────────────────────
#  Operator sets
# ─────────────────────────────────────────────────────────────────────────

ARITHMETIC_BINARY_OPS: FrozenSet[str] = frozenset('+ - * / % << >>'.split())

COMPARISON_OPS: FrozenSet[str] = frozenset('== != < > <= >='.split())

ASSIGNMENT_OPS: FrozenSet[str] = frozenset(
    '= += -= *= /= %= &= |= ^= <<= >>='.split()
)

# Names whose '(' opens a condition or operand, not an argument list.
CONTROL_KEYWORDS: FrozenSet[str] = frozenset(
    ('if', 'while', 'for', 'switch', 'return', 'do')
)


# ─────────────────────────────────────────────────────────────────────────
#  Accessors
# ─────────────────────────────────────────────────────────────────────────

def _attr(tok: Token, name: str, default: Any = None) -> Any:
    if tok is None:
        return default
    value = getattr(tok, name, default)
    return default if value is None else value


def tok_str(tok: Token) -> str:
    """Token text, ``""`` for a missing token."""
    return _attr(tok, "str", "") or ""


def tok_op1(tok: Token) -> Optional[Token]:
    return _attr(tok, "astOperand1")


def tok_op2(tok: Token) -> Optional[Token]:
    return _attr(tok, "astOperand2")


def tok_parent(tok: Token) -> Optional[Token]:
    return _attr(tok, "astParent")


def tok_var_id(tok: Token) -> int:
    """Cppcheck ``varId``; 0 when the token names no variable."""
    return int(_attr(tok, "varId", 0) or 0)


def tok_expr_id(tok: Token) -> int:
    """
    Cppcheck ``exprId``; 0 when absent.

    Structurally identical expressions share an ``exprId`` inside one
    function, so it doubles as an environment key for non-variables.
    """
    return int(_attr(tok, "exprId", 0) or 0)


def tok_variable(tok: Token) -> Optional[Any]:
    return _attr(tok, "variable")


def tok_function(tok: Token) -> Optional[Any]:
    return _attr(tok, "function")


def tok_value_type(tok: Token) -> Optional[Any]:
    return _attr(tok, "valueType")


def tok_values(tok: Token) -> List[Any]:
    return list(_attr(tok, "values", ()) or ())


def tok_macro_name(tok: Token) -> str:
    """Name of the macro this token was expanded from, or ``""``."""
    return _attr(tok, "macroName", "") or ""


def tok_file(tok: Token) -> str:
    return _attr(tok, "file", "") or ""


def tok_line(tok: Token) -> int:
    return int(_attr(tok, "linenr", 0) or 0)


def tok_column(tok: Token) -> int:
    return int(_attr(tok, "column", 0) or 0)


def iter_ast_preorder(root: Token) -> Iterator[Token]:
    """Node, then its left subtree, then its right subtree."""
    pending: List[Token] = [root] if root is not None else []
    while pending:
        node = pending.pop()
        yield node
        pending.extend(
            child for child in (tok_op2(node), tok_op1(node)) if child is not None
        )


# ─────────────────────────────────────────────────────────────────────────
#  Classification
# ─────────────────────────────────────────────────────────────────────────

def is_identifier(tok: Token) -> bool:
    return bool(_attr(tok, "isName", False))


def is_number(tok: Token) -> bool:
    return bool(_attr(tok, "isNumber", False))


def is_cast(tok: Token) -> bool:
    return bool(_attr(tok, "isCast", False))


def _has_both_operands(tok: Token) -> bool:
    return tok_op1(tok) is not None and tok_op2(tok) is not None


def _is_leaf(tok: Token) -> bool:
    return tok_op1(tok) is None and tok_op2(tok) is None


def is_symbol(tok: Token) -> bool:
    """A bare name bound to a variable, with no AST children."""
    if not is_identifier(tok) or not _is_leaf(tok):
        return False
    return tok_var_id(tok) != 0 or tok_variable(tok) is not None


def is_binary_op(tok: Token) -> bool:
    """``+ - * / % << >>`` with both operands present."""
    return tok_str(tok) in ARITHMETIC_BINARY_OPS and _has_both_operands(tok)


def is_comparison(tok: Token) -> bool:
    return tok_str(tok) in COMPARISON_OPS and _has_both_operands(tok)


def is_assignment(tok: Token) -> bool:
    """Plain or compound assignment."""
    if tok is None:
        return False
    return bool(_attr(tok, "isAssignmentOp", False)) or tok_str(tok) in ASSIGNMENT_OPS


def is_member_access(tok: Token) -> bool:
    return tok_str(tok) in ('.', '->')


def is_function_call(tok: Token) -> bool:
    """
    A ``(`` node with a callee in ``astOperand1``.

    Casts and the parentheses of ``if``/``while``/``return`` ... share the
    ``(`` spelling and are rejected.
    """
    if tok_str(tok) != '(' or is_cast(tok):
        return False
    callee = tok_op1(tok)
    return callee is not None and tok_str(callee) not in CONTROL_KEYWORDS


def is_sizeof(tok: Token) -> bool:
    """The ``sizeof`` name itself, or a ``(`` node calling it."""
    if tok_str(tok) == 'sizeof':
        return True
    return is_function_call(tok) and tok_str(tok_op1(tok)) == 'sizeof'


# ─────────────────────────────────────────────────────────────────────────
#  Calls
# ─────────────────────────────────────────────────────────────────────────

def get_called_function_name(call_tok: Token) -> str:
    """Direct callee name; ``""`` for indirect calls and non-calls."""
    if not is_function_call(call_tok):
        return ""
    callee = tok_op1(call_tok)
    return tok_str(callee) if is_identifier(callee) else ""


def get_call_arguments(call_tok: Token) -> List[Token]:
    """
    Argument roots of a call, left to right.

    ``f(a, b, c)`` keeps its arguments under ``astOperand2`` as
    ``,(,(a, b), c)``; the comma nodes are unfolded in order.
    """
    if not is_function_call(call_tok):
        return []
    args: List[Token] = []
    pending = [tok_op2(call_tok)]
    while pending:
        node = pending.pop()
        if node is None:
            continue
        if tok_str(node) == ',':
            pending.append(tok_op2(node))
            pending.append(tok_op1(node))
        else:
            args.append(node)
    return args


def get_call_argument(call_tok: Token, index: int) -> Optional[Token]:
    args = get_call_arguments(call_tok)
    return args[index] if 0 <= index < len(args) else None


def assignment_target_of_call(call_tok: Token) -> Optional[Token]:
    """
    Left-hand side when ``call_tok`` is the whole right-hand side of a
    plain assignment (``x = f(...)``), otherwise None.
    """
    parent = tok_parent(call_tok)
    if tok_str(parent) != '=' or tok_op2(parent) is not call_tok:
        return None
    return tok_op1(parent)


# ─────────────────────────────────────────────────────────────────────────
#  Rendering
# ─────────────────────────────────────────────────────────────────────────

_PREFIX_CALL_LIKE = ('sizeof', 'alignof', 'typeof')


def expr_to_string(tok: Token, max_depth: int = 50) -> str:
    """
    Approximate source text of an expression, for diagnostic messages.

    Subtrees deeper than ``max_depth`` are rendered as ``...``.
    """
    if tok is None:
        return ""
    if max_depth <= 0:
        return "..."
    text = tok_str(tok)
    if _is_leaf(tok):
        return text

    def sub(node: Token) -> str:
        return expr_to_string(node, max_depth - 1)

    lhs, rhs = tok_op1(tok), tok_op2(tok)
    if is_function_call(tok):
        return "{}({})".format(sub(lhs), ", ".join(sub(a) for a in get_call_arguments(tok)))
    if rhs is None:
        operand = sub(lhs)
        if is_cast(tok):
            type_name = getattr(tok_value_type(tok), "originalTypeName", None) or "?"
            return "(" + type_name + ")" + operand
        if text in _PREFIX_CALL_LIKE:
            return text + "(" + operand + ")"
        if text in ('++', '--'):
            return operand + text
        return text + operand
    if text == '[':
        return sub(lhs) + "[" + sub(rhs) + "]"
    if text in ('.', '->'):
        return sub(lhs) + text + sub(rhs)
    if text == ',':
        return sub(lhs) + ", " + sub(rhs)
    return " ".join((sub(lhs), text, sub(rhs)))


# ─────────────────────────────────────────────────────────────────────────
#  Type sizes and constants
# ─────────────────────────────────────────────────────────────────────────

# LP64
_BASE_TYPE_SIZES = {
    "bool": 1, "char": 1, "short": 2, "int": 4,
    "long": 8, "long long": 8, "float": 4, "double": 8,
}


def get_sizeof_type(tok: Token, pointer_size: int = 8) -> Optional[int]:
    """Byte size of ``tok``'s value type, None when it cannot be told."""
    vt = tok_value_type(tok)
    if vt is None:
        return None
    if getattr(vt, "pointer", 0):
        return pointer_size
    declared = getattr(vt, "typeSize", None)
    if declared:
        return int(declared)
    return _BASE_TYPE_SIZES.get(getattr(vt, "type", ""))


def known_int_value(tok: Token) -> Optional[int]:
    """The ValueFlow value of ``tok`` when it is known on every path."""
    for value in tok_values(tok):
        known = getattr(value, "valueKind", "") == "known" or getattr(value, "isKnown", False)
        intvalue = getattr(value, "intvalue", None)
        if known and intvalue is not None:
            return int(intvalue)
    return None
