"""
cppcheckdata_unitags/host.py
============================

The contract between the engine and the analysis host.

The host owns parsing, CFG construction and path enumeration.  The
engine asks it semantic questions about expressions through
:class:`AnalysisHost`; everything it asks may legitimately have no answer,
and every method signals that with ``None`` (or ``-1`` for parameter
indices) rather than by raising.

Value types exchanged across the boundary live here as well:
:class:`FunctionContext`, :class:`AllocationInfo`, :class:`TagLocation`,
:class:`Callee` and :class:`StaticType`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import (
    Any,
    Hashable,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from cppcheckdata_unitags.diagnostics import SourceLocation

Expr = Any


class StaticType(enum.Enum):
    """Coarse static type of an expression, as far as the rules care."""
    UNKNOWN = "unknown"
    SCALAR = "scalar"
    POINTER = "pointer"
    ARRAY = "array"
    RECORD = "record"

    @property
    def is_pointer_like(self) -> bool:
        return self in (StaticType.POINTER, StaticType.ARRAY)


@dataclass(frozen=True)
class FunctionContext:
    """The function currently being analyzed.

    ``parameters`` holds the environment key of each formal parameter in
    declaration order; ``parameter_names`` the matching source names.
    """
    name: str
    file_id: int = 0
    is_static: bool = False
    parameters: Tuple[Hashable, ...] = ()
    parameter_names: Tuple[str, ...] = ()

    def param_index_of_key(self, key: Optional[Hashable]) -> int:
        if key is None:
            return -1
        try:
            return self.parameters.index(key)
        except ValueError:
            return -1

    def parameter_name(self, index: int) -> str:
        if 0 <= index < len(self.parameter_names):
            return self.parameter_names[index]
        return f"${index}"


@dataclass(frozen=True)
class AllocationInfo:
    """Shape of an allocation call.

    Either ``count`` and ``element_size`` are both set (``kcalloc(n, size)``)
    or ``total_size`` is (``kmalloc(size)``).
    """
    total_size: Optional[Expr] = None
    count: Optional[Expr] = None
    element_size: Optional[Expr] = None


@dataclass(frozen=True)
class TagLocation:
    """A taggable member location: object ``tag`` at byte ``offset``."""
    tag: int
    name: str
    offset: int


@dataclass(frozen=True)
class Callee:
    """Name and linkage of a directly called function."""
    name: str
    is_static: bool = False


@runtime_checkable
class AnalysisHost(Protocol):
    """Outbound queries the engine issues to its host."""

    def implied_value(self, expr: Expr) -> Optional[int]:
        """Constant the expression is known to hold, if any."""
        ...

    def static_type(self, expr: Expr) -> StaticType:
        ...

    def macro_name_at(self, expr: Expr) -> Optional[str]:
        """Identifier written at the expression's source position: the
        macro it was expanded from, or the plain name token."""
        ...

    def member_name(self, expr: Expr) -> Optional[str]:
        """``(struct <type>)-><member>`` for member access expressions."""
        ...

    def param_index(self, expr: Expr) -> int:
        """Index of the formal parameter ``expr`` names, ``-1`` otherwise."""
        ...

    def call_argument(self, call: Expr, index: int) -> Optional[Expr]:
        ...

    def call_arguments(self, call: Expr) -> Tuple[Expr, ...]:
        ...

    def callee(self, call: Expr) -> Optional[Callee]:
        ...

    def strip(self, expr: Expr) -> Expr:
        """Remove casts and other syntactic wrappers."""
        ...

    def allocate_tag_alias(self, tag: int, at_expr: Expr) -> Optional[int]:
        ...

    def resolve_tag(self, expr: Expr) -> Optional[int]:
        """Tag of the object ``expr`` refers to, if one is known."""
        ...

    def tag_location(self, expr: Expr) -> Optional[TagLocation]:
        ...

    def expression_key(self, expr: Expr) -> Optional[Hashable]:
        """Environment key identifying ``expr``; ``None`` if untrackable."""
        ...

    def expression_text(self, expr: Expr) -> str:
        ...

    def location(self, expr: Expr) -> SourceLocation:
        ...
