"""
cppcheckdata_unitags/engine.py
══════════════════════════════

Wiring of the whole engine, and a straight-line addon driver.

:class:`UnitagsEngine` owns one fact repository, one diagnostic sink, the
allocation/alias manager, the Cppcheck host adapter, both checkers and
the dispatcher that feeds them.  Hosts that enumerate paths themselves
drive :attr:`UnitagsEngine.dispatcher` directly.

:meth:`UnitagsEngine.run_configuration` is the addon entry point used by
the command line: it visits every function body of a
``cppcheckdata.Configuration`` statement by statement, top to bottom,
without splitting paths.

License: MIT — same as cppcheckdata-unitags.
"""

from __future__ import annotations

import logging
import zlib
from typing import Any, Iterator, Optional

from cppcheckdata_unitags.alias import AliasManager
from cppcheckdata_unitags.ast_helper import tok_op1, tok_op2, tok_parent, tok_str
from cppcheckdata_unitags.config import EngineConfig
from cppcheckdata_unitags.cppcheck_host import CppcheckHost
from cppcheckdata_unitags.diagnostics import DiagnosticSink
from cppcheckdata_unitags.fact_store import FactRepository
from cppcheckdata_unitags.hooks import HookDispatcher
from cppcheckdata_unitags.tag_assign import TagAssignChecker
from cppcheckdata_unitags.units_checker import UnitsChecker

logger = logging.getLogger(__name__)


def file_id_for(path: str) -> int:
    """Stable numeric id of a source file, used to scope static functions."""
    return zlib.crc32(path.encode("utf-8")) or 1


def iter_statement_roots(scope: Any) -> Iterator[Any]:
    """AST roots of the statements between a scope's braces, in order."""
    tok = getattr(scope, "bodyStart", None)
    end = getattr(scope, "bodyEnd", None)
    while tok is not None and tok is not end:
        if tok_parent(tok) is None and (tok_op1(tok) is not None or tok_op2(tok) is not None):
            yield tok
        tok = getattr(tok, "next", None)


class UnitagsEngine:
    """One analysis session: shared store, shared sink, both checkers."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        repository: Optional[FactRepository] = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        if repository is None:
            repository = FactRepository.open(self.config.db_path)
        self.repository = repository
        self.sink = DiagnosticSink()
        self.allocations = AliasManager(repository)
        self.host = CppcheckHost(self.allocations)
        self.units = UnitsChecker(repository, self.sink, self.config)
        self.tag_assign = TagAssignChecker(repository)
        self.dispatcher = HookDispatcher(
            self.host, [self.allocations, self.units, self.tag_assign], self.config
        )

    def close(self) -> None:
        self.repository.close()

    def __enter__(self) -> "UnitagsEngine":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def analyze_scope(self, scope: Any, file_id: int = 0) -> bool:
        """Walk one function body straight through; False if it has none."""
        function = getattr(scope, "function", None)
        if function is None:
            return False
        self.dispatcher.start_function(self.host.function_context(function, file_id))
        return_id = 0
        for root in iter_statement_roots(scope):
            if tok_str(root) == "return":
                return_id += 1
                value = tok_op1(root)
                if value is not None:
                    self.dispatcher.statement(value)
                self.dispatcher.function_return(return_id, "", value)
            else:
                self.dispatcher.statement(root)
        if return_id == 0:
            self.dispatcher.function_return(0, "", None)
        self.dispatcher.end_function()
        return True

    def run_configuration(self, cfg: Any, file_id: int = 0) -> int:
        """Analyze every function of one dump configuration; returns the count."""
        count = 0
        for scope in getattr(cfg, "scopes", []):
            if getattr(scope, "type", "") != "Function":
                continue
            if self.analyze_scope(scope, file_id):
                count += 1
        logger.info("analyzed %d functions", count)
        return count

    def run_dump(self, data: Any, file_id: Optional[int] = None) -> int:
        """Analyze all configurations of a parsed ``cppcheckdata`` dump."""
        if file_id is None:
            files = getattr(data, "files", None) or [""]
            file_id = file_id_for(str(files[0]))
        return sum(
            self.run_configuration(cfg, file_id)
            for cfg in getattr(data, "configurations", [])
        )
