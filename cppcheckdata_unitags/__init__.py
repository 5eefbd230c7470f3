"""
cppcheckdata_unitags — Units and Heap-Tag Dataflow Engine for Cppcheck Addons
=============================================================================

This package tags program expressions with abstract properties, carries
those tags along analyzed paths, and summarizes each function's effect on
its parameters into a persistent fact store so that later call sites, in
any file and any later run, can use them.

Two checkers are built on it:

* **units**: the measurement unit of numeric expressions (bits, bytes,
  pages, longs, milliseconds, jiffies, array element counts), with
  diagnostics for mixing them;
* **param_to_tag_data**: which formal parameter ends up stored at which
  offset of which heap object.

Core modules
------------
lattice
    The three-valued merge lattice shared by both checkers.
environment
    Per-path environments and the merge engine used at joins.
hooks
    The per-event hook interface and the dispatcher.
fact_store
    Widen-on-conflict fact store and the typed repository over it.
summaries
    Interprocedural summary writer and consumer.
units_checker / tag_assign
    The two checkers.
alias
    Heap tags for allocation sites and aliases across opaque calls.
cppcheck_host
    The host adapter over Cppcheck dump tokens.
engine
    Wiring of all of the above, and a straight-line addon driver.

Quick start
-----------
>>> from cppcheckdata_unitags import UnitagsEngine
>>> engine = UnitagsEngine()
>>> engine.run_dump(cppcheckdata.parsedump("file.c.dump"))   # doctest: +SKIP
>>> [d.error_id for d in engine.sink]                         # doctest: +SKIP
['unitsMissingConversion']
"""

from __future__ import annotations

import importlib
import sys
from typing import TYPE_CHECKING, Dict, List, Tuple

__version__ = "0.1.0"
__license__ = "MIT"

# Submodule -> names re-exported at package level, in dependency order.
_EXPORTS: Dict[str, Tuple[str, ...]] = {
    "errors": ("UnitagsError", "ConfigError", "FactStoreError", "MalformedFactError"),
    "lattice": (
        "State", "StateKind", "StateLattice", "UNDEFINED", "MERGED",
        "concrete", "merge_states",
    ),
    "environment": ("PathEnvironment", "AnalysisPath", "MergeEngine"),
    "units": ("UnitKind", "Idiom", "ParamUnitRule"),
    "facts": (
        "FactKind", "Lookup", "LookupStatus", "MemberUnit", "ReturnImplication",
        "CallerInfo", "TagAliasMap", "TagData", "TagAlias",
    ),
    "fact_store": ("FactStore", "FactRepository"),
    "diagnostics": ("Diagnostic", "DiagnosticSeverity", "DiagnosticSink", "SourceLocation"),
    "host": (
        "AnalysisHost", "FunctionContext", "AllocationInfo", "TagLocation",
        "Callee", "StaticType",
    ),
    "config": ("EngineConfig",),
    "hooks": ("AnalysisHook", "HookDispatcher"),
    "summaries": ("SummaryWriter", "SummaryConsumer"),
    "alias": ("AliasManager", "str_to_tag"),
    "units_checker": ("UnitsChecker",),
    "tag_assign": ("TagAssignChecker", "TagAssignInfo"),
    "cppcheck_host": ("CppcheckHost",),
    "engine": ("UnitagsEngine",),
}

__all__: List[str] = []


def _export(module_rel_name: str, names: Tuple[str, ...]) -> None:
    """Bind ``names`` from a submodule into the package namespace."""
    module = importlib.import_module(f"{__name__}.{module_rel_name}")
    package = sys.modules[__name__]
    for name in names:
        if not hasattr(module, name):
            raise AttributeError(
                f"{__name__}.{module_rel_name} does not export {name!r}"
            )
        setattr(package, name, getattr(module, name))
    __all__.extend(names)
    __all__.append(module_rel_name)


for _module_rel_name, _names in _EXPORTS.items():
    _export(_module_rel_name, _names)
del _module_rel_name, _names


def list_submodules() -> List[str]:
    return sorted(_EXPORTS)


def package_info() -> dict:
    """Package metadata plus the fact schema, for ``cppcheckdata-unitags info``."""
    from cppcheckdata_unitags.fact_store import FACT_TABLES, SCHEMA_VERSION

    return {
        "package": __name__,
        "version": __version__,
        "python": sys.version.split()[0],
        "schema_version": SCHEMA_VERSION,
        "fact_tables": sorted(FACT_TABLES),
        "units": [u.value for u in UnitKind],            # noqa: F821
        "submodules": list_submodules(),
    }


__all__ += ["list_submodules", "package_info", "__version__"]

if TYPE_CHECKING:
    from .engine import UnitagsEngine as UnitagsEngine
    from .units import UnitKind as UnitKind
