"""
cppcheckdata_unitags.environment
================================

Per-path state for one analyzed function.

``PathEnvironment``
    Mapping *expression key* → :class:`~cppcheckdata_unitags.lattice.State`
    for a single checker on a single analyzed path.  Missing keys read as
    ``UNDEFINED``.  The host forks it at branches; joins go through the
    :class:`MergeEngine`.
``AnalysisPath``
    The environments of every registered checker on one path, keyed by
    checker name.
``MergeEngine``
    Combines two environments key by key with a checker's merge function
    and reports conflicting pairs to its pre-merge hook.  The merged state
    is always computed before the diagnostic hook runs; function-return
    joins never reach the hook.

Expression keys come from
:meth:`~cppcheckdata_unitags.host.AnalysisHost.expression_key` and are
opaque hashables here.
"""

from __future__ import annotations

import logging
from typing import (
    Callable,
    Dict,
    Hashable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

from cppcheckdata_unitags.lattice import (
    UNDEFINED,
    State,
    is_conflict,
    merge_states,
)

logger = logging.getLogger(__name__)

MergeFn = Callable[[State, State], State]
PreMergeFn = Callable[[Hashable, str, State, State], None]


# ===========================================================================
# PATH ENVIRONMENT
# ===========================================================================

class PathEnvironment:
    """States one checker holds on one path."""

    __slots__ = ("_states", "_names")

    def __init__(
        self,
        states: Optional[Mapping[Hashable, State]] = None,
        names: Optional[Mapping[Hashable, str]] = None,
    ) -> None:
        self._states: Dict[Hashable, State] = dict(states or {})
        self._names: Dict[Hashable, str] = dict(names or {})

    def get(self, key: Optional[Hashable]) -> State:
        if key is None:
            return UNDEFINED
        return self._states.get(key, UNDEFINED)

    def set(self, key: Hashable, state: State, name: str = "") -> None:
        """Record ``state`` for ``key``; setting ``UNDEFINED`` forgets it."""
        if state.is_undefined:
            self._states.pop(key, None)
            return
        self._states[key] = state
        if name:
            self._names[key] = name

    def name_of(self, key: Hashable) -> str:
        """Human readable name of ``key`` for diagnostics."""
        return self._names.get(key, str(key))

    def fork(self) -> "PathEnvironment":
        return PathEnvironment(self._states, self._names)

    def keys(self) -> List[Hashable]:
        return list(self._states)

    def items(self) -> Iterator[Tuple[Hashable, State]]:
        return iter(list(self._states.items()))

    def concrete_items(self) -> Iterator[Tuple[Hashable, State]]:
        for key, state in self.items():
            if state.is_concrete:
                yield key, state

    def __contains__(self, key: object) -> bool:
        return key in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathEnvironment):
            return NotImplemented
        return self._states == other._states

    def __repr__(self) -> str:
        inner = ", ".join(
            f"{self.name_of(k)}={s}" for k, s in self._states.items()
        )
        return f"PathEnvironment({inner})"


# ===========================================================================
# ANALYSIS PATH
# ===========================================================================

class AnalysisPath:
    """One path of the host's walk: an environment per checker."""

    __slots__ = ("_envs",)

    def __init__(self, envs: Optional[Mapping[str, PathEnvironment]] = None) -> None:
        self._envs: Dict[str, PathEnvironment] = dict(envs or {})

    def env(self, owner: str) -> PathEnvironment:
        env = self._envs.get(owner)
        if env is None:
            env = self._envs[owner] = PathEnvironment()
        return env

    def install(self, owner: str, env: PathEnvironment) -> None:
        self._envs[owner] = env

    def owners(self) -> List[str]:
        return list(self._envs)

    def fork(self) -> "AnalysisPath":
        return AnalysisPath({o: e.fork() for o, e in self._envs.items()})

    def __repr__(self) -> str:
        return f"AnalysisPath({self._envs!r})"


# ===========================================================================
# MERGE ENGINE
# ===========================================================================

class MergeEngine:
    """Joins two environments of the same checker.

    Parameters
    ----------
    merge_fn:
        The checker's merge; defaults to the shared lattice merge.
    pre_merge:
        Diagnostic callback ``(key, name, s1, s2)`` invoked for every key
        whose two states are distinct concrete values, after the merged
        state has been computed.  Never invoked for return joins.
    """

    def __init__(
        self,
        merge_fn: MergeFn = merge_states,
        pre_merge: Optional[PreMergeFn] = None,
    ) -> None:
        self._merge_fn = merge_fn
        self._pre_merge = pre_merge

    def merge(
        self,
        a: PathEnvironment,
        b: PathEnvironment,
        *,
        at_return: bool = False,
    ) -> PathEnvironment:
        out = PathEnvironment()
        keys = a.keys() + [k for k in b.keys() if k not in a]
        for key in keys:
            s1, s2 = a.get(key), b.get(key)
            name = a.name_of(key) if key in a else b.name_of(key)
            merged = self._merge_fn(s1, s2)
            if is_conflict(s1, s2):
                if at_return:
                    logger.debug("return join of %s: %s / %s", name, s1, s2)
                elif self._pre_merge is not None:
                    self._pre_merge(key, name, s1, s2)
            out.set(key, merged, name)
        return out
