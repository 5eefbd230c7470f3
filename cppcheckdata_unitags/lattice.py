"""
cppcheckdata_unitags.lattice
============================

The three-valued merge lattice shared by every checker in this package.

::

                 UNDEFINED          (no information, identity of merge)
              /   |   |    \\
        Concrete(a)  Concrete(b) ...
              \\   |   |    /
                  MERGED            (inconsistent, absorbing)

A :class:`State` is a closed tagged union compared by value, so a state
built twice from the same payload is the same state.  The payload of a
concrete state is whatever the owning checker tracks: a
:class:`~cppcheckdata_unitags.units.UnitKind` for the units checker, a
:class:`~cppcheckdata_unitags.tag_assign.TagAssignInfo` for the tag
propagation checker.  It must be hashable.

``merge_states`` is commutative, associative and idempotent:

- ``merge(UNDEFINED, x) == x``
- ``merge(x, x) == x``
- ``merge(concrete(a), concrete(b)) == MERGED`` for ``a != b``
- ``merge(MERGED, x) == MERGED``
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Hashable, Optional


# ===========================================================================
# STATE
# ===========================================================================

class StateKind(enum.Enum):
    """Discriminant of :class:`State`."""
    UNDEFINED = "undefined"
    CONCRETE = "concrete"
    MERGED = "merged"


@dataclass(frozen=True)
class State:
    """One lattice element.

    Only ``CONCRETE`` states carry a ``value``.
    """
    kind: StateKind
    value: Optional[Hashable] = None

    @property
    def is_concrete(self) -> bool:
        return self.kind is StateKind.CONCRETE

    @property
    def is_undefined(self) -> bool:
        return self.kind is StateKind.UNDEFINED

    @property
    def is_merged(self) -> bool:
        return self.kind is StateKind.MERGED

    def concrete_value(self) -> Optional[Any]:
        """Return the payload of a concrete state, ``None`` otherwise."""
        return self.value if self.is_concrete else None

    def __str__(self) -> str:
        if self.is_concrete:
            return str(getattr(self.value, "value", self.value))
        return self.kind.value


UNDEFINED = State(StateKind.UNDEFINED)
MERGED = State(StateKind.MERGED)


def concrete(value: Hashable) -> State:
    """Wrap a checker payload into a concrete state."""
    if value is None:
        raise ValueError("a concrete state needs a payload")
    return State(StateKind.CONCRETE, value)


# ===========================================================================
# MERGE
# ===========================================================================

def merge_states(s1: State, s2: State) -> State:
    """Combine the states two paths hold for the same key at a join."""
    if s1.is_undefined:
        return s2
    if s2.is_undefined:
        return s1
    if s1 == s2:
        return s1
    return MERGED


def is_conflict(s1: State, s2: State) -> bool:
    """True when two *distinct concrete* states are about to be merged.

    This is the only situation in which a pre-merge diagnostic may fire.
    """
    return s1.is_concrete and s2.is_concrete and s1 != s2


class StateLattice:
    """Lattice view of :class:`State` for generic dataflow code.

    Orientation follows the engine: ``top()`` is ``UNDEFINED`` (nothing
    known yet) and ``bottom()`` is ``MERGED``; ``join`` is the merge.
    """

    def top(self) -> State:
        return UNDEFINED

    def bottom(self) -> State:
        return MERGED

    def join(self, a: State, b: State) -> State:
        return merge_states(a, b)

    def leq(self, a: State, b: State) -> bool:
        """``a`` is at least as informative-or-inconsistent as ``b``."""
        if a.is_merged or b.is_undefined:
            return True
        return a == b

    def eq(self, a: State, b: State) -> bool:
        return a == b
