"""
cppcheckdata_unitags.summaries
==============================

Interprocedural summaries, in both directions.

Writing (at a function's return)
    * every formal parameter whose concrete state differs from its state
      at entry becomes a ``ReturnImplication`` for that parameter, key
      ``$``;
    * the returned expression may add one more with ``param == -1``;
    * checkers whose states carry their own parameter index (tag
      assignments) emit one fact per concrete state;
    * at call sites, what is known about each argument becomes a
      ``CallerInfo`` fact for the callee.

Reading (at a call site or a function start)
    Only facts that are ``FOUND`` in the widening store are usable.
    Unknown (conflicting) facts are skipped with a DEBUG record.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Tuple

from cppcheckdata_unitags.environment import PathEnvironment
from cppcheckdata_unitags.facts import (
    RETURN_KEY,
    RETURN_VALUE_PARAM,
    CallerInfo,
    FactKind,
    Implication,
    Lookup,
    ReturnImplication,
)
from cppcheckdata_unitags.fact_store import FactRepository
from cppcheckdata_unitags.host import Callee, FunctionContext

logger = logging.getLogger(__name__)

Encode = Callable[[Any], Optional[str]]
Describe = Callable[[Any], Optional[Tuple[int, str, str]]]


class SummaryWriter:
    """Turns end-of-function states into persisted facts."""

    def __init__(self, repository: FactRepository) -> None:
        self.repository = repository

    def param_deltas(
        self,
        ctx: FunctionContext,
        env: PathEnvironment,
        start_env: PathEnvironment,
        kind: FactKind,
        encode: Encode,
    ) -> List[ReturnImplication]:
        written = []
        for index, key in enumerate(ctx.parameters):
            state = env.get(key)
            if not state.is_concrete or state == start_env.get(key):
                continue
            value = encode(state.value)
            if value is None:
                continue
            written.append(self._record(ctx, kind, index, RETURN_KEY, value))
        return written

    def return_value(
        self, ctx: FunctionContext, kind: FactKind, value: str
    ) -> ReturnImplication:
        return self._record(ctx, kind, RETURN_VALUE_PARAM, RETURN_KEY, value)

    def state_facts(
        self,
        ctx: FunctionContext,
        env: PathEnvironment,
        kind: FactKind,
        describe: Describe,
    ) -> List[ReturnImplication]:
        """One fact per concrete state that ``describe`` maps to
        ``(param, key, value)``."""
        written = []
        for _key, state in env.concrete_items():
            described = describe(state.value)
            if described is None:
                continue
            param, key, value = described
            written.append(self._record(ctx, kind, param, key, value))
        return written

    def caller_info(
        self,
        ctx: Optional[FunctionContext],
        callee: Callee,
        kind: FactKind,
        param: int,
        value: str,
    ) -> CallerInfo:
        fact = CallerInfo(
            file_id=ctx.file_id if ctx else 0,
            function=callee.name,
            is_static=callee.is_static,
            kind=kind,
            param=param,
            key=RETURN_KEY,
            value=value,
        )
        self.repository.record_caller_info(fact)
        return fact

    def _record(
        self, ctx: FunctionContext, kind: FactKind, param: int, key: str, value: str
    ) -> ReturnImplication:
        fact = ReturnImplication(
            file_id=ctx.file_id,
            function=ctx.name,
            is_static=ctx.is_static,
            kind=kind,
            param=param,
            key=key,
            value=value,
        )
        self.repository.record_return_implication(fact)
        return fact


class SummaryConsumer:
    """Reads usable summary facts back for call sites and function starts."""

    def __init__(self, repository: FactRepository) -> None:
        self.repository = repository

    def implications(
        self, callee: Callee, ctx: Optional[FunctionContext], kind: FactKind
    ) -> List[Implication]:
        file_id = ctx.file_id if ctx else 0
        rows = self.repository.return_implications(
            callee.name, callee.is_static, file_id, kind
        )
        return self._usable(callee.name, rows)

    def caller_seeds(self, ctx: FunctionContext, kind: FactKind) -> List[Implication]:
        rows = self.repository.caller_info(ctx.name, ctx.is_static, ctx.file_id, kind)
        return self._usable(ctx.name, rows)

    @staticmethod
    def _usable(
        function: str, rows: List[Tuple[int, str, Lookup]]
    ) -> List[Implication]:
        out = []
        for param, key, lookup in rows:
            if lookup.is_found:
                out.append(Implication(param, key, lookup.value))
            elif lookup.is_unknown:
                logger.debug("%s param %d %s: conflicting facts", function, param, key)
        return out
