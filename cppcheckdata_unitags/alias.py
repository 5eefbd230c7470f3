"""
cppcheckdata_unitags/alias.py
=============================

Heap tags: the identity of allocated objects across functions.

An allocation site ``p = kzalloc(...)`` in function ``f`` of file ``F``
gets the tag ``str_to_tag("F f p")``.  A tag is the first eight bytes of
the MD5 digest of that text, read little-endian, with

    bit 63      cleared   (tags are positive 64-bit values)
    bit 62      cleared   (reserved for aliases)
    bits 0..11  cleared   (room for a byte offset inside the object)

Aliases stand for "whatever object ``tag`` points at from here"; they are
derived from the original tag and the alias site, and carry bit 62.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Hashable, Optional

from cppcheckdata_unitags.diagnostics import SourceLocation
from cppcheckdata_unitags.facts import TagAlias
from cppcheckdata_unitags.fact_store import FactRepository
from cppcheckdata_unitags.hooks import AnalysisHook
from cppcheckdata_unitags.host import AllocationInfo, Expr, FunctionContext

logger = logging.getLogger(__name__)

OFFSET_BITS = 12
OFFSET_MASK = (1 << OFFSET_BITS) - 1
ALIAS_BIT = 1 << 62
_SIGN_BIT = 1 << 63


def str_to_tag(text: str) -> int:
    digest = hashlib.md5(text.encode("utf-8")).digest()
    tag = int.from_bytes(digest[:8], "little")
    return tag & ~(_SIGN_BIT | ALIAS_BIT | OFFSET_MASK)


def is_alias(tag: int) -> bool:
    return bool(tag & ALIAS_BIT)


class AliasManager(AnalysisHook):
    """Assigns tags to allocation sites and mints aliases on request.

    Tags live for the duration of one function; a fresh function starts
    with none.
    """

    name = "tag_allocations"

    def __init__(self, repository: FactRepository) -> None:
        super().__init__()
        self.repository = repository
        self._tags: Dict[Hashable, int] = {}

    def on_function_start(self, ctx: FunctionContext) -> None:
        self._tags.clear()

    def on_allocation(
        self, expr: Expr, name: str, symbol: Expr, info: AllocationInfo
    ) -> None:
        if symbol is None or not name:
            return
        key = self.host.expression_key(symbol)
        if key is None:
            return
        ctx = self.function
        file_id = ctx.file_id if ctx else 0
        function = ctx.name if ctx else ""
        tag = str_to_tag(f"{file_id} {function} {name}")
        self._tags[key] = tag
        logger.debug("tag %d for %s in %s", tag, name, function)

    def tag_for_key(self, key: Optional[Hashable]) -> Optional[int]:
        if key is None:
            return None
        return self._tags.get(key)

    def create_alias(self, tag: int, location: SourceLocation) -> int:
        """Mint the alias of ``tag`` at ``location`` and persist the link."""
        alias = str_to_tag(f"{tag} {location}") | ALIAS_BIT
        self.repository.record_alias(TagAlias(tag, alias))
        return alias
