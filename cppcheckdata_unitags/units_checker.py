"""
cppcheckdata_unitags/units_checker.py
═════════════════════════════════════

Measurement-unit inference and diagnostics.

Every numeric expression may carry one :class:`UnitKind`.  Units come from
source idioms (``sizeof``, ``PAGE_SIZE``, ``jiffies``, ...), from a few
arithmetic shapes (``x * PAGE_SIZE`` is bytes, ``x / PAGE_SIZE`` pages),
from the path environment, from units persisted for structure members,
and from the summaries of called functions.

Diagnostics
───────────
    unitsMissingConversion   a + b / a - b with two different units
    unitsBitsTimesBytes      a * b with one side in bits, the other bytes
    unitsCompareMismatch     a < b (and friends) with two different units
    unitsAmbiguousMerge      two paths disagree on the unit of a variable
    unitsMemberConflict      a member is set to a unit other than the one
                             other code persisted for it

None of them stops the analysis.

License: MIT — same as cppcheckdata-unitags.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, List, Optional

from cppcheckdata_unitags.ast_helper import (
    assignment_target_of_call,
    get_called_function_name,
    is_binary_op,
    is_function_call,
    is_sizeof,
    is_symbol,
    tok_op1,
    tok_op2,
    tok_str,
)
from cppcheckdata_unitags.config import EngineConfig
from cppcheckdata_unitags.diagnostics import DiagnosticSink
from cppcheckdata_unitags.facts import (
    RETURN_KEY,
    RETURN_VALUE_PARAM,
    FactKind,
    MemberUnit,
    format_passthrough,
    parse_passthrough,
)
from cppcheckdata_unitags.fact_store import FactRepository
from cppcheckdata_unitags.hooks import AnalysisHook
from cppcheckdata_unitags.host import AllocationInfo, Expr, FunctionContext
from cppcheckdata_unitags.lattice import State, concrete
from cppcheckdata_unitags.summaries import SummaryConsumer, SummaryWriter
from cppcheckdata_unitags.units import (
    BITS_PER_WORD_IDIOMS,
    IDIOM_UNITS,
    Idiom,
    ParamUnitRule,
    UnitKind,
)

logger = logging.getLogger(__name__)

_COMPOUND_OPS = frozenset({'<<=', '>>=', '/=', '*='})


class UnitsChecker(AnalysisHook):
    """Infers, propagates, persists and checks measurement units."""

    name = "units"

    def __init__(
        self,
        repository: FactRepository,
        sink: Optional[DiagnosticSink] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        super().__init__()
        self.repository = repository
        self.sink = sink if sink is not None else DiagnosticSink()
        self.config = config if config is not None else EngineConfig()
        self.writer = SummaryWriter(repository)
        self.consumer = SummaryConsumer(repository)

        cfg = self.config
        self._conversion_calls: Dict[str, UnitKind] = {
            name: UnitKind(unit) for name, unit in cfg.conversion_calls.items()
        }
        self._param_rules: Dict[str, List[ParamUnitRule]] = {}
        for rule in cfg.param_unit_table:
            self._param_rules.setdefault(rule.function, []).append(rule)
        self._fixed_members: Dict[str, UnitKind] = {
            member: UnitKind(unit) for member, unit in cfg.fixed_member_units.items()
        }

    # ═════════════════════════════════════════════════════════════════
    #  INFERENCE
    # ═════════════════════════════════════════════════════════════════

    def get_units(self, expr: Expr) -> Optional[UnitKind]:
        """Unit of ``expr``, or ``None`` when nothing is known."""
        expr = self.host.strip(expr)
        if expr is None:
            return None
        if is_sizeof(expr):
            return UnitKind.BYTE
        idiom = self._idiom(expr)
        if idiom in IDIOM_UNITS:
            return IDIOM_UNITS[idiom]
        if is_binary_op(expr):
            return self._binop_units(tok_op1(expr), tok_str(expr), tok_op2(expr))
        if is_function_call(expr):
            return self._call_units(expr)
        state = self.env.get(self.host.expression_key(expr))
        if state.is_concrete:
            return state.value
        return self._member_units(expr)

    def is_array_size_units(self, expr: Expr) -> bool:
        return self.get_units(expr) is UnitKind.ARRAY_SIZE

    def unit_name(self, expr: Expr) -> Optional[str]:
        unit = self.get_units(expr)
        return unit.value if unit is not None else None

    def _idiom(self, expr: Expr) -> Optional[Idiom]:
        return Idiom.from_name(self.host.macro_name_at(expr))

    def _is_page_size(self, expr: Expr) -> bool:
        if self._idiom(expr) is Idiom.PAGE_SIZE:
            return True
        return self.host.implied_value(expr) == self.config.page_size

    def _binop_units(self, left: Expr, op: str, right: Expr) -> Optional[UnitKind]:
        if op in ('+', '-'):
            left_units = self.get_units(left)
            right_units = self.get_units(right)
            if UnitKind.ARRAY_SIZE in (left_units, right_units):
                return None
            return left_units if left_units is not None else right_units
        if op == '*':
            if self._is_page_size(right):
                return UnitKind.BYTE
            return None
        if op == '/':
            if self._idiom(right) in BITS_PER_WORD_IDIOMS:
                return UnitKind.WORD_COUNT
            if self._is_page_size(right):
                return UnitKind.PAGE
            return None
        if op == '<<' and self._idiom(right) is Idiom.PAGE_SHIFT:
            return UnitKind.BYTE
        if op == '>>' and self._idiom(right) is Idiom.PAGE_SHIFT:
            return UnitKind.PAGE
        return None

    def _call_units(self, call: Expr) -> Optional[UnitKind]:
        unit = self._conversion_calls.get(get_called_function_name(call))
        if unit is not None:
            return unit
        callee = self.host.callee(call)
        if callee is None:
            return None
        for imp in self.consumer.implications(callee, self.function, FactKind.UNITS):
            if imp.param != RETURN_VALUE_PARAM or imp.key != RETURN_KEY:
                continue
            passthrough = parse_passthrough(imp.value)
            if passthrough is not None:
                arg = self.host.call_argument(call, passthrough)
                return self.get_units(arg) if arg is not None else None
            return UnitKind.from_name(imp.value)
        return None

    def _member_units(self, expr: Expr) -> Optional[UnitKind]:
        member = self.host.member_name(expr)
        if not member:
            return None
        fixed = self._fixed_members.get(member)
        if fixed is not None:
            return fixed
        lookup = self.repository.member_unit(member)
        if lookup.is_unknown:
            logger.debug("%s: conflicting member units", member)
        return UnitKind.from_name(lookup.value_or_none())

    # ═════════════════════════════════════════════════════════════════
    #  STATE UPDATES
    # ═════════════════════════════════════════════════════════════════

    def _set_state(self, expr: Expr, unit: UnitKind) -> None:
        key = self.host.expression_key(expr)
        if key is None:
            logger.debug("cannot track %s", self.host.expression_text(expr))
            return
        self.env.set(key, concrete(unit), self.host.expression_text(expr))

    def set_units(self, expr: Expr, unit: Optional[UnitKind]) -> None:
        """Record ``unit`` on ``expr`` and persist it for members."""
        if unit is None or expr is None:
            return
        self._set_state(expr, unit)
        self._store_member_unit(expr, unit)

    def _is_ignored_member(self, member: str) -> bool:
        if member in self.config.ignored_members:
            return True
        return member.startswith(tuple(self.config.ignored_member_prefixes))

    def _store_member_unit(self, expr: Expr, unit: UnitKind) -> None:
        member = self.host.member_name(expr)
        if not member or self._is_ignored_member(member):
            return
        old = self._member_units(expr)
        if old is not None and old is not unit and self.config.warn_member_conflicts:
            self.sink.emit(
                "unitsMemberConflict",
                f"other places set '{member}' to '{old}' instead of '{unit}'",
                self.host.location(expr),
                checker_name=self.name,
                member=member,
                old=old.value,
                new=unit.value,
            )
        ctx = self.function
        self.repository.record_member_unit(
            MemberUnit(ctx.file_id if ctx else 0, member, unit.value)
        )

    def _propagate(self, left: Expr, right: Expr) -> None:
        left_units = self.get_units(left)
        right_units = self.get_units(right)
        if left_units is not None and right_units is None:
            self.set_units(right, left_units)
        elif right_units is not None and left_units is None:
            self.set_units(left, right_units)

    # ═════════════════════════════════════════════════════════════════
    #  EVENTS
    # ═════════════════════════════════════════════════════════════════

    def on_function_start(self, ctx: FunctionContext) -> None:
        for imp in self.consumer.caller_seeds(ctx, FactKind.UNITS):
            if imp.key != RETURN_KEY or not 0 <= imp.param < len(ctx.parameters):
                continue
            unit = UnitKind.from_name(imp.value)
            if unit is None:
                continue
            self.env.set(
                ctx.parameters[imp.param], concrete(unit), ctx.parameter_name(imp.param)
            )

    def on_assignment(self, expr: Expr) -> None:
        op = tok_str(expr)
        left, right = tok_op1(expr), tok_op2(expr)
        if op == '=':
            unit = self.get_units(right)
        elif op in _COMPOUND_OPS:
            unit = self._binop_units(left, op[:-1], right)
        else:
            return
        self.set_units(left, unit)

    def on_binary_op_check(self, expr: Expr) -> None:
        op = tok_str(expr)
        if op in ('+', '-'):
            self._check_add_sub(expr)
        elif op == '*':
            self._check_mult(expr)

    def _check_add_sub(self, expr: Expr) -> None:
        left, right = tok_op1(expr), tok_op2(expr)
        if self.host.static_type(left).is_pointer_like:
            return
        left_units = self.get_units(left)
        right_units = self.get_units(right)
        if left_units is None or right_units is None or left_units is right_units:
            return
        if UnitKind.ARRAY_SIZE in (left_units, right_units):
            return
        self.sink.emit(
            "unitsMissingConversion",
            f"missing conversion: '{self.host.expression_text(expr)}' "
            f"'{left_units} {tok_str(expr)} {right_units}'",
            self.host.location(expr),
            checker_name=self.name,
            left=left_units.value,
            right=right_units.value,
        )

    def _check_mult(self, expr: Expr) -> None:
        units = {self.get_units(tok_op1(expr)), self.get_units(tok_op2(expr))}
        if units != {UnitKind.BIT, UnitKind.BYTE}:
            return
        self.sink.emit(
            "unitsBitsTimesBytes",
            f"multiplying bits * bytes '{self.host.expression_text(expr)}'",
            self.host.location(expr),
            checker_name=self.name,
        )

    def on_binary_op_set(self, expr: Expr) -> None:
        op = tok_str(expr)
        left, right = tok_op1(expr), tok_op2(expr)
        if op == '<<' and self._idiom(right) is Idiom.PAGE_SHIFT:
            self.set_units(left, UnitKind.PAGE)
            return
        if op == '>>' and self._idiom(right) is Idiom.PAGE_SHIFT:
            self.set_units(left, UnitKind.BYTE)
            return
        if op not in ('+', '-'):
            return
        if self.host.static_type(left).is_pointer_like:
            return
        self._propagate(left, right)

    def on_condition_check(self, expr: Expr) -> None:
        left_units = self.get_units(tok_op1(expr))
        right_units = self.get_units(tok_op2(expr))
        if left_units is None or right_units is None or left_units is right_units:
            return
        self.sink.emit(
            "unitsCompareMismatch",
            f"comparing different units: '{self.host.expression_text(expr)}' "
            f"'{left_units} {tok_str(expr)} {right_units}'",
            self.host.location(expr),
            checker_name=self.name,
            left=left_units.value,
            right=right_units.value,
        )

    def on_condition_set(self, expr: Expr) -> None:
        self._propagate(tok_op1(expr), tok_op2(expr))

    def on_function_call(self, expr: Expr) -> None:
        callee = self.host.callee(expr)
        if callee is None:
            return
        for index, arg in enumerate(self.host.call_arguments(expr)):
            unit = self.get_units(arg)
            if unit is not None:
                self.writer.caller_info(
                    self.function, callee, FactKind.UNITS, index, unit.value
                )
        for rule in self._param_rules.get(callee.name, ()):
            if rule.key != RETURN_KEY:
                continue
            if rule.param == RETURN_VALUE_PARAM:
                target = assignment_target_of_call(expr)
            else:
                target = self.host.call_argument(expr, rule.param)
            if target is not None:
                self._set_state(target, UnitKind(rule.unit))
        for imp in self.consumer.implications(callee, self.function, FactKind.UNITS):
            if imp.param < 0 or imp.key != RETURN_KEY:
                continue
            unit = UnitKind.from_name(imp.value)
            arg = self.host.call_argument(expr, imp.param)
            if unit is None or arg is None:
                continue
            self._set_state(arg, unit)

    def on_allocation(
        self, expr: Expr, name: str, symbol: Expr, info: AllocationInfo
    ) -> None:
        if info.count is not None and info.element_size is not None:
            self._tag_array_size(info.count, info.element_size)
            return
        size = self.host.strip(info.total_size)
        if tok_str(size) == '*' and is_binary_op(size):
            self._tag_array_size(tok_op1(size), tok_op2(size))

    def _tag_array_size(self, a: Expr, b: Expr) -> None:
        if self.get_units(a) is UnitKind.BYTE:
            self.set_units(b, UnitKind.ARRAY_SIZE)
        if self.get_units(b) is UnitKind.BYTE:
            self.set_units(a, UnitKind.ARRAY_SIZE)

    def on_function_return(
        self, return_id: int, return_ranges: str, expr: Optional[Expr]
    ) -> None:
        ctx = self.function
        if ctx is None:
            return
        self.writer.param_deltas(
            ctx, self.env, self.start_env, FactKind.UNITS, lambda unit: unit.value
        )
        if expr is None:
            return
        stripped = self.host.strip(expr)
        if is_symbol(stripped):
            param = self.host.param_index(stripped)
            key = self.host.expression_key(stripped)
            if param >= 0 and self.env.get(key) == self.start_env.get(key):
                self.writer.return_value(ctx, FactKind.UNITS, format_passthrough(param))
                return
        unit = self.get_units(stripped)
        if unit is not None:
            self.writer.return_value(ctx, FactKind.UNITS, unit.value)

    def pre_merge(self, key: Hashable, name: str, s1: State, s2: State) -> None:
        self.sink.emit(
            "unitsAmbiguousMerge",
            f"ambiguous units merge '{name}' '{s1}' or '{s2}'",
            self.dispatcher.current_location(),
            checker_name=self.name,
        )
