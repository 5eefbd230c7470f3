"""
cppcheckdata_unitags.units
==========================

Vocabulary of the units checker: the closed set of measurement units,
the source idioms that imply them, and the fixed tables of well-known
kernel helpers.

The string values of :class:`UnitKind` are the names written to the fact
store (``type_info.value``, ``return_implies.value``, ...) and must stay
stable for other tools reading the same database.

Text coming from the host (macro names, function names, persisted unit
names) is converted to these enums as soon as it arrives; rules compare
enums only.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional, Tuple


# ===========================================================================
# UNIT KINDS
# ===========================================================================

class UnitKind(enum.Enum):
    """Semantic measurement domain of a numeric expression."""
    BIT = "bit"
    BYTE = "byte"
    PAGE = "page"
    WORD_COUNT = "longs"
    MILLISECOND = "msec"
    TICK = "jiffy"
    ARRAY_SIZE = "array_size"

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["UnitKind"]:
        """Parse a persisted unit name; ``"unknown"`` and junk give ``None``."""
        if not name:
            return None
        return _UNITS_BY_NAME.get(name.strip())

    def __str__(self) -> str:
        return self.value


_UNITS_BY_NAME: Dict[str, UnitKind] = {u.value: u for u in UnitKind}


# ===========================================================================
# SOURCE IDIOMS
# ===========================================================================

class Idiom(enum.Enum):
    """Identifiers and macros whose presence fixes a unit."""
    SIZEOF = "sizeof"
    PAGE_SIZE = "PAGE_SIZE"
    PAGE_SHIFT = "PAGE_SHIFT"
    JIFFIES = "jiffies"
    BITS_PER_LONG = "BITS_PER_LONG"
    BITS_PER_LONG_LONG = "BITS_PER_LONG_LONG"
    ARRAY_SIZE = "ARRAY_SIZE"

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["Idiom"]:
        if not name:
            return None
        return _IDIOMS_BY_NAME.get(name)


_IDIOMS_BY_NAME: Dict[str, Idiom] = {i.value: i for i in Idiom}

# Idioms that name a unit on their own, wherever they appear.
IDIOM_UNITS: Mapping[Idiom, UnitKind] = {
    Idiom.SIZEOF: UnitKind.BYTE,
    Idiom.PAGE_SIZE: UnitKind.BYTE,
    Idiom.JIFFIES: UnitKind.TICK,
    Idiom.BITS_PER_LONG: UnitKind.BIT,
    Idiom.BITS_PER_LONG_LONG: UnitKind.BIT,
    Idiom.ARRAY_SIZE: UnitKind.ARRAY_SIZE,
}

# A right operand of '/' that turns a bit count into a count of longs.
BITS_PER_WORD_IDIOMS: FrozenSet[Idiom] = frozenset({Idiom.BITS_PER_LONG})


# ===========================================================================
# FIXED TABLES
# ===========================================================================

DEFAULT_PAGE_SIZE = 4096

# Calls whose result unit is known without looking at the arguments.
CONVERSION_CALLS: Mapping[str, str] = {
    "msecs_to_jiffies": "jiffy",
    "jiffies_to_msecs": "msec",
}


@dataclass(frozen=True)
class ParamUnitRule:
    """Unit implied for a parameter (or the result, ``param == -1``) of a
    function that is not analyzed in-tree."""
    function: str
    param: int
    key: str
    unit: str


PARAM_UNIT_TABLE: Tuple[ParamUnitRule, ...] = (
    ParamUnitRule("msecs_to_jiffies_timeout", -1, "$", "jiffy"),
    ParamUnitRule("round_jiffies_up_relative", -1, "$", "jiffy"),
)

# Members whose unit is known regardless of what the store says.
FIXED_MEMBER_UNITS: Mapping[str, str] = {
    "(struct vm_area_struct)->vm_pgoff": "page",
}

# Members whose unit is never persisted.
IGNORED_MEMBERS: Tuple[str, ...] = (
    "(union anonymous)->__val",
)
IGNORED_MEMBER_PREFIXES: Tuple[str, ...] = (
    "(struct fs_parse_result)",
)
