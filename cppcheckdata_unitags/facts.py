"""
cppcheckdata_unitags.facts
==========================

Persisted fact records and their textual descriptors.

Fact kinds
----------
``MemberUnit``          unit observed for a structure member
``ReturnImplication``   what a function did to a parameter (or its result)
                        by the time it returned
``CallerInfo``          what a call site knows about an argument
``TagAliasMap``         an alias found at ``offset`` inside ``original_tag``
``TagData``             value stored at ``offset`` inside a tag
``TagAlias``            alias → original tag it stands in for

Descriptor formats (stable, shared with other tools)
----------------------------------------------------
``$``                   the parameter / return value itself
``$->[N]``              the value at byte offset ``N`` inside the object
``<tag>+<offset>``      a tag and a byte offset within it
``param:<P>``           a return value that is formal parameter ``P``
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from cppcheckdata_unitags.errors import MalformedFactError


# ===========================================================================
# KINDS
# ===========================================================================

class FactKind(enum.IntEnum):
    """The ``type`` column of summary tables: which checker wrote a fact."""
    UNITS = 1
    MTAG_ASSIGN = 2


# Kinds whose value names a location ("<tag>+<offset>") rather than a
# property: one parameter may be stored in many places, so each distinct
# value is a fact of its own and never conflicts with another.
LOCATION_KINDS = frozenset({FactKind.MTAG_ASSIGN})


RETURN_KEY = "$"
RETURN_VALUE_PARAM = -1
FULL_RANGE = "s64min-s64max"

_OFFSET_KEY_RE = re.compile(r"^\$->\[(-?\d+)\]$")
_TAG_OFFSET_RE = re.compile(r"^\s*(\d+)\+(-?\d+)\s*$")
_PASSTHROUGH_RE = re.compile(r"^param:(\d+)$")


def offset_key(offset: int) -> str:
    return f"$->[{offset}]"


def parse_offset_key(key: str) -> Optional[int]:
    """Offset encoded in a ``$->[N]`` key, ``None`` for ``$``."""
    if key == RETURN_KEY:
        return None
    m = _OFFSET_KEY_RE.match(key or "")
    if not m:
        raise MalformedFactError(key, "a '$' or '$->[offset]' key")
    return int(m.group(1))


def format_tag_offset(tag: int, offset: int) -> str:
    return f"{tag}+{offset}"


def parse_tag_offset(value: str) -> Tuple[int, int]:
    m = _TAG_OFFSET_RE.match(value or "")
    if not m:
        raise MalformedFactError(value, "'<tag>+<offset>'")
    return int(m.group(1)), int(m.group(2))


def format_passthrough(param: int) -> str:
    return f"param:{param}"


def parse_passthrough(value: str) -> Optional[int]:
    """Parameter index of a ``param:<P>`` descriptor, ``None`` otherwise."""
    m = _PASSTHROUGH_RE.match(value or "")
    return int(m.group(1)) if m else None


# ===========================================================================
# LOOKUP RESULT
# ===========================================================================

class LookupStatus(enum.Enum):
    MISSING = "missing"
    FOUND = "found"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Lookup:
    """Result of a widen-on-conflict lookup."""
    status: LookupStatus
    value: Optional[str] = None

    @classmethod
    def missing(cls) -> "Lookup":
        return cls(LookupStatus.MISSING)

    @classmethod
    def found(cls, value: str) -> "Lookup":
        return cls(LookupStatus.FOUND, value)

    @classmethod
    def unknown(cls) -> "Lookup":
        return cls(LookupStatus.UNKNOWN)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def is_unknown(self) -> bool:
        return self.status is LookupStatus.UNKNOWN

    @property
    def is_missing(self) -> bool:
        return self.status is LookupStatus.MISSING

    def value_or_none(self) -> Optional[str]:
        return self.value if self.is_found else None


# ===========================================================================
# RECORDS
# ===========================================================================

@dataclass(frozen=True)
class MemberUnit:
    file_id: int
    member: str
    unit: str


@dataclass(frozen=True)
class ReturnImplication:
    file_id: int
    function: str
    is_static: bool
    kind: FactKind
    param: int
    key: str
    value: str


@dataclass(frozen=True)
class CallerInfo:
    file_id: int
    function: str
    is_static: bool
    kind: FactKind
    param: int
    key: str
    value: str


@dataclass(frozen=True)
class TagAliasMap:
    original_tag: int
    offset: int
    alias_tag: int


@dataclass(frozen=True)
class TagData:
    tag: int
    offset: int
    value: str


@dataclass(frozen=True)
class TagAlias:
    original_tag: int
    alias_tag: int


@dataclass(frozen=True)
class Implication:
    """One usable summary entry for a call site: ``param`` (``-1`` for the
    result), a ``$``-style ``key`` and the persisted ``value``."""
    param: int
    key: str
    value: str
