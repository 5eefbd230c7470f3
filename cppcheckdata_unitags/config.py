"""
cppcheckdata_unitags.config
===========================

Engine configuration.

:class:`EngineConfig` collects every tunable the engine reads.  All
defaults reproduce the built-in tables of :mod:`cppcheckdata_unitags.units`,
so ``EngineConfig()`` is the normal configuration.  Values are validated
once, on construction; the checkers resolve unit names to
:class:`~cppcheckdata_unitags.units.UnitKind` when they are built.

Example JSON file::

    {
        "db_path": "facts.sqlite",
        "page_size": 16384,
        "allocators": {"my_alloc": 0, "my_calloc": [0, 1]},
        "log_level": "INFO"
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

from cppcheckdata_unitags.errors import ConfigError
from cppcheckdata_unitags.units import (
    CONVERSION_CALLS,
    DEFAULT_PAGE_SIZE,
    FIXED_MEMBER_UNITS,
    IGNORED_MEMBER_PREFIXES,
    IGNORED_MEMBERS,
    PARAM_UNIT_TABLE,
    ParamUnitRule,
    UnitKind,
)

# Index of the size argument, or (count index, element size index).
AllocatorShape = Union[int, Tuple[int, int]]

DEFAULT_ALLOCATORS: Dict[str, AllocatorShape] = {
    "malloc": 0,
    "kmalloc": 0,
    "kzalloc": 0,
    "vmalloc": 0,
    "vzalloc": 0,
    "kvmalloc": 0,
    "kvzalloc": 0,
    "devm_kmalloc": 1,
    "devm_kzalloc": 1,
    "calloc": (0, 1),
    "kcalloc": (0, 1),
    "kmalloc_array": (0, 1),
    "kvcalloc": (0, 1),
    "kvmalloc_array": (0, 1),
    "devm_kcalloc": (1, 2),
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EngineConfig:
    db_path: str = ":memory:"
    page_size: int = DEFAULT_PAGE_SIZE
    conversion_calls: Dict[str, str] = field(
        default_factory=lambda: dict(CONVERSION_CALLS))
    param_unit_table: Tuple[ParamUnitRule, ...] = PARAM_UNIT_TABLE
    fixed_member_units: Dict[str, str] = field(
        default_factory=lambda: dict(FIXED_MEMBER_UNITS))
    ignored_members: Tuple[str, ...] = IGNORED_MEMBERS
    ignored_member_prefixes: Tuple[str, ...] = IGNORED_MEMBER_PREFIXES
    allocators: Dict[str, AllocatorShape] = field(
        default_factory=lambda: dict(DEFAULT_ALLOCATORS))
    warn_member_conflicts: bool = True
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.page_size, int) or self.page_size <= 0:
            raise ConfigError(f"must be a positive integer, got {self.page_size!r}",
                              option="page_size")
        for function, unit in self.conversion_calls.items():
            _require_unit(unit, f"conversion_calls.{function}")
        for rule in self.param_unit_table:
            _require_unit(rule.unit, f"param_unit_table.{rule.function}")
        for member, unit in self.fixed_member_units.items():
            _require_unit(unit, f"fixed_member_units.{member}")
        for name, shape in self.allocators.items():
            if not _valid_shape(shape):
                raise ConfigError(
                    f"expected an argument index or [count, size] indices, got {shape!r}",
                    option=f"allocators.{name}",
                )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"unknown level {self.log_level!r}", option="log_level")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"unknown option(s): {', '.join(unknown)}")
        kwargs = dict(options)
        if "param_unit_table" in kwargs:
            kwargs["param_unit_table"] = tuple(
                _param_rule(entry) for entry in kwargs["param_unit_table"]
            )
        if "allocators" in kwargs:
            kwargs["allocators"] = {
                name: tuple(shape) if isinstance(shape, list) else shape
                for name, shape in dict(kwargs["allocators"]).items()
            }
        for name in ("ignored_members", "ignored_member_prefixes"):
            if name in kwargs:
                kwargs[name] = tuple(kwargs[name])
        return cls(**kwargs)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "EngineConfig":
        try:
            with open(path, "r", encoding="utf-8") as fh:
                options = json.load(fh)
        except OSError as exc:
            raise ConfigError(f"cannot read {path}: {exc}", cause=exc) from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON in {path}: {exc}", cause=exc) from exc
        if not isinstance(options, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return cls.from_mapping(options)


def _require_unit(name: str, option: str) -> UnitKind:
    unit = UnitKind.from_name(name)
    if unit is None:
        raise ConfigError(f"unknown unit {name!r}", option=option)
    return unit


def _valid_shape(shape: Any) -> bool:
    if isinstance(shape, bool):
        return False
    if isinstance(shape, int):
        return shape >= 0
    return (
        isinstance(shape, tuple)
        and len(shape) == 2
        and all(isinstance(i, int) and not isinstance(i, bool) and i >= 0 for i in shape)
    )


def _param_rule(entry: Any) -> ParamUnitRule:
    if isinstance(entry, ParamUnitRule):
        return entry
    try:
        if isinstance(entry, Mapping):
            return ParamUnitRule(**entry)
        return ParamUnitRule(*entry)
    except TypeError as exc:
        raise ConfigError(f"malformed rule {entry!r}", option="param_unit_table",
                          cause=exc) from exc
