"""
cppcheckdata_unitags/tag_assign.py
══════════════════════════════════

Tracks which formal parameter ends up stored inside which heap object.

Within a function::

    p = kzalloc(sizeof(*p), GFP_KERNEL);   // p gets a tag
    p->dev = dev;                          // dev is parameter 1

records ``TagAssignInfo(tag(p), offsetof(dev), 1)`` on ``p->dev``, and the
function's return persists ``"<tag>+<offset>"`` against parameter 1.

At a call to such a function the caller either forwards the knowledge
(the argument is one of its own parameters, so its own summary carries
the chain) or, when the argument is anything else, mints an alias of the
callee's tag and records where that alias lives inside the caller's
object.

License: MIT — same as cppcheckdata-unitags.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from cppcheckdata_unitags.ast_helper import tok_op1, tok_op2, tok_str
from cppcheckdata_unitags.errors import MalformedFactError
from cppcheckdata_unitags.facts import (
    FULL_RANGE,
    RETURN_KEY,
    FactKind,
    TagAliasMap,
    TagData,
    format_tag_offset,
    offset_key,
    parse_tag_offset,
)
from cppcheckdata_unitags.fact_store import FactRepository
from cppcheckdata_unitags.hooks import AnalysisHook
from cppcheckdata_unitags.host import Expr
from cppcheckdata_unitags.lattice import concrete
from cppcheckdata_unitags.summaries import SummaryConsumer, SummaryWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagAssignInfo:
    """Location ``tag + offset`` holds the value of formal parameter ``param``."""
    tag: int
    offset: int
    param: int
    name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return f"{format_tag_offset(self.tag, self.offset)} (param {self.param})"


def _describe(info: TagAssignInfo) -> Optional[Tuple[int, str, str]]:
    return info.param, RETURN_KEY, format_tag_offset(info.tag, info.offset)


class TagAssignChecker(AnalysisHook):
    """Carries parameter-to-heap-object stores across function boundaries."""

    name = "param_to_tag_data"

    def __init__(self, repository: FactRepository) -> None:
        super().__init__()
        self.repository = repository
        self.writer = SummaryWriter(repository)
        self.consumer = SummaryConsumer(repository)

    def on_assignment(self, expr: Expr) -> None:
        if tok_str(expr) != '=':
            return
        right = self.host.strip(tok_op2(expr))
        param = self.host.param_index(right)
        if param < 0:
            return
        left = tok_op1(expr)
        location = self.host.tag_location(left)
        if location is None:
            return
        key = self.host.expression_key(left)
        if key is None:
            return
        self.env.set(
            key,
            concrete(TagAssignInfo(location.tag, location.offset, param, location.name)),
            location.name,
        )

    def on_function_call(self, expr: Expr) -> None:
        callee = self.host.callee(expr)
        if callee is None:
            return
        for imp in self.consumer.implications(callee, self.function, FactKind.MTAG_ASSIGN):
            if imp.param < 0:
                continue
            try:
                tag, offset = parse_tag_offset(imp.value)
            except MalformedFactError as exc:
                logger.debug("%s param %d: %s", callee.name, imp.param, exc)
                continue
            arg = self.host.call_argument(expr, imp.param)
            if arg is None:
                continue
            if not self._forward(arg, tag, offset):
                self._alias(expr, arg, tag, offset)

    def _forward(self, arg: Expr, tag: int, offset: int) -> bool:
        """Carry the store on if ``arg`` is one of our own parameters."""
        arg = self.host.strip(arg)
        param = self.host.param_index(arg)
        if param < 0:
            return False
        key = self.host.expression_key(arg)
        if key is None:
            return False
        name = offset_key(offset)
        # One slot per forwarded location: a parameter may reach several.
        self.env.set(
            (key, format_tag_offset(tag, offset)),
            concrete(TagAssignInfo(tag, offset, param, name)),
            name,
        )
        return True

    def _alias(self, call: Expr, arg: Expr, tag: int, offset: int) -> None:
        alias = self.host.allocate_tag_alias(tag, call)
        if alias is None:
            return
        value = self.host.implied_value(arg)
        self.repository.record_tag_data(
            TagData(alias, offset, str(value) if value is not None else FULL_RANGE)
        )
        arg_tag = self.host.resolve_tag(arg)
        if arg_tag is None:
            logger.debug("no tag for %s", self.host.expression_text(arg))
            return
        self.repository.record_alias_map(TagAliasMap(arg_tag, -offset, alias))

    def on_function_return(
        self, return_id: int, return_ranges: str, expr: Optional[Expr]
    ) -> None:
        ctx = self.function
        if ctx is None:
            return
        written = self.writer.state_facts(ctx, self.env, FactKind.MTAG_ASSIGN, _describe)
        if written:
            logger.debug("return %d (%s) of %s: %d tag facts",
                         return_id, return_ranges, ctx.name, len(written))
