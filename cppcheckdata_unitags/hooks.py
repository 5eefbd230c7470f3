"""
cppcheckdata_unitags/hooks.py
=============================

Event interface between the host's path walk and the checkers.

``AnalysisHook``
    One method per host event, all no-ops by default.  A checker overrides
    the events it cares about, plus ``merge`` / ``pre_merge`` when its
    confluence behaviour differs from the shared lattice.

``HookDispatcher``
    Holds the ordered hooks and the current :class:`AnalysisPath`, and
    delivers events.  Per statement the order is fixed::

        assignment
        binary-op check   → binary-op set     (every hook's check first)
        condition check   → condition set
        function call
        allocation

    Function returns, path forks and joins are driven by the host through
    ``function_return``, ``fork``/``switch_to`` and ``join``.  At a join the
    merged state is computed before any ``pre_merge`` diagnostic runs, and
    return joins never reach ``pre_merge``.
"""

from __future__ import annotations

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Hashable,
    Iterable,
    List,
    Optional,
    Tuple,
)

from cppcheckdata_unitags.ast_helper import (
    assignment_target_of_call,
    get_called_function_name,
    is_assignment,
    is_binary_op,
    is_comparison,
    is_function_call,
    is_sizeof,
    iter_ast_preorder,
)
from cppcheckdata_unitags.diagnostics import SourceLocation
from cppcheckdata_unitags.environment import (
    AnalysisPath,
    MergeEngine,
    PathEnvironment,
)
from cppcheckdata_unitags.host import (
    AllocationInfo,
    AnalysisHost,
    Expr,
    FunctionContext,
)
from cppcheckdata_unitags.lattice import State, merge_states

if TYPE_CHECKING:
    from cppcheckdata_unitags.config import EngineConfig

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  HOOK INTERFACE
# ═══════════════════════════════════════════════════════════════════════════

class AnalysisHook:
    """Base class for everything that reacts to host events."""

    name: ClassVar[str] = "hook"

    def __init__(self) -> None:
        self._dispatcher: Optional["HookDispatcher"] = None

    def bind(self, dispatcher: "HookDispatcher") -> None:
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> "HookDispatcher":
        if self._dispatcher is None:
            raise RuntimeError(f"hook {self.name!r} is not registered")
        return self._dispatcher

    @property
    def host(self) -> AnalysisHost:
        return self.dispatcher.host

    @property
    def env(self) -> PathEnvironment:
        """This hook's environment on the current path."""
        return self.dispatcher.path.env(self.name)

    @property
    def start_env(self) -> PathEnvironment:
        """This hook's environment as it was at function entry."""
        return self.dispatcher.start_path.env(self.name)

    @property
    def function(self) -> Optional[FunctionContext]:
        return self.dispatcher.function

    # ── events ───────────────────────────────────────────────────────

    def on_function_start(self, ctx: FunctionContext) -> None:
        pass

    def on_assignment(self, expr: Expr) -> None:
        pass

    def on_binary_op_check(self, expr: Expr) -> None:
        pass

    def on_binary_op_set(self, expr: Expr) -> None:
        pass

    def on_condition_check(self, expr: Expr) -> None:
        pass

    def on_condition_set(self, expr: Expr) -> None:
        pass

    def on_function_call(self, expr: Expr) -> None:
        pass

    def on_allocation(
        self, expr: Expr, name: str, symbol: Expr, info: AllocationInfo
    ) -> None:
        pass

    def on_function_return(
        self, return_id: int, return_ranges: str, expr: Optional[Expr]
    ) -> None:
        pass

    def on_function_end(self) -> None:
        pass

    # ── confluence ───────────────────────────────────────────────────

    def merge(self, s1: State, s2: State) -> State:
        return merge_states(s1, s2)

    def pre_merge(self, key: Hashable, name: str, s1: State, s2: State) -> None:
        """Diagnostic hook for two distinct concrete states; no state effect."""


# ═══════════════════════════════════════════════════════════════════════════
#  DISPATCHER
# ═══════════════════════════════════════════════════════════════════════════

class HookDispatcher:
    """Delivers host events to an ordered collection of hooks."""

    def __init__(
        self,
        host: AnalysisHost,
        hooks: Iterable[AnalysisHook] = (),
        config: Optional["EngineConfig"] = None,
    ) -> None:
        if config is None:
            from cppcheckdata_unitags.config import EngineConfig
            config = EngineConfig()
        self.host = host
        self.config = config
        self._hooks: List[AnalysisHook] = []
        self.path = AnalysisPath()
        self.start_path = AnalysisPath()
        self.function: Optional[FunctionContext] = None
        self.current_token: Optional[Expr] = None
        for hook in hooks:
            self.register(hook)

    def register(self, hook: AnalysisHook) -> AnalysisHook:
        if any(h.name == hook.name for h in self._hooks):
            raise ValueError(f"a hook named {hook.name!r} is already registered")
        hook.bind(self)
        self._hooks.append(hook)
        return hook

    @property
    def hooks(self) -> Tuple[AnalysisHook, ...]:
        return tuple(self._hooks)

    def current_location(self) -> SourceLocation:
        if self.current_token is None:
            return SourceLocation()
        return self.host.location(self.current_token)

    def _at(self, expr: Expr) -> None:
        if expr is not None:
            self.current_token = expr

    # ── function lifecycle ───────────────────────────────────────────

    def start_function(self, ctx: FunctionContext) -> None:
        logger.debug("analyzing %s", ctx.name)
        self.function = ctx
        self.path = AnalysisPath()
        for hook in self._hooks:
            hook.on_function_start(ctx)
        self.start_path = self.path.fork()

    def end_function(self) -> None:
        for hook in self._hooks:
            hook.on_function_end()
        self.function = None
        self.path = AnalysisPath()
        self.start_path = AnalysisPath()
        self.current_token = None

    # ── events ───────────────────────────────────────────────────────

    def assignment(self, expr: Expr) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_assignment(expr)

    def binary_op(self, expr: Expr) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_binary_op_check(expr)
        for hook in self._hooks:
            hook.on_binary_op_set(expr)

    def condition(self, expr: Expr) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_condition_check(expr)
        for hook in self._hooks:
            hook.on_condition_set(expr)

    def function_call(self, expr: Expr) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_function_call(expr)

    def allocation(
        self, expr: Expr, name: str, symbol: Expr, info: AllocationInfo
    ) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_allocation(expr, name, symbol, info)

    def function_return(
        self, return_id: int, return_ranges: str, expr: Optional[Expr]
    ) -> None:
        self._at(expr)
        for hook in self._hooks:
            hook.on_function_return(return_id, return_ranges, expr)

    def statement(self, root: Expr) -> None:
        """Fire every event one statement produces, in the fixed order."""
        nodes = list(iter_ast_preorder(root))
        for node in nodes:
            if is_assignment(node):
                self.assignment(node)
        for node in nodes:
            if is_binary_op(node):
                self.binary_op(node)
        for node in nodes:
            if is_comparison(node):
                self.condition(node)
        calls = [n for n in nodes if is_function_call(n) and not is_sizeof(n)]
        for call in calls:
            self.function_call(call)
        for call in calls:
            found = self._allocation_info(call)
            if found is not None:
                self.allocation(call, *found)

    def _allocation_info(
        self, call: Expr
    ) -> Optional[Tuple[str, Any, AllocationInfo]]:
        shape = self.config.allocators.get(get_called_function_name(call))
        if shape is None:
            return None
        if isinstance(shape, int):
            info = AllocationInfo(total_size=self.host.call_argument(call, shape))
        else:
            info = AllocationInfo(
                count=self.host.call_argument(call, shape[0]),
                element_size=self.host.call_argument(call, shape[1]),
            )
        symbol = assignment_target_of_call(call)
        name = self.host.expression_text(symbol) if symbol is not None else ""
        return name, symbol, info

    # ── paths ────────────────────────────────────────────────────────

    def fork(self) -> AnalysisPath:
        """Copy of the current path for the other side of a branch."""
        return self.path.fork()

    def switch_to(self, path: AnalysisPath) -> None:
        self.path = path

    def join(
        self,
        a: AnalysisPath,
        b: AnalysisPath,
        *,
        at_return: bool = False,
    ) -> AnalysisPath:
        """Merge two paths and continue the walk on the result."""
        out = AnalysisPath()
        for hook in self._hooks:
            engine = MergeEngine(hook.merge, hook.pre_merge)
            out.install(
                hook.name,
                engine.merge(a.env(hook.name), b.env(hook.name), at_return=at_return),
            )
        self.path = out
        return out
