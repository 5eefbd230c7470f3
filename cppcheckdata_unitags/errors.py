# cppcheckdata_unitags/errors.py
"""
Exception hierarchy for cppcheckdata-unitags.

Analysis itself never raises: absent or conflicting information is a
normal outcome and is expressed as a lattice state or a widened fact.
Exceptions are reserved for the edges of the system.

Error Hierarchy:
────────────────
┌──────────────────────────────────────────────────────────────────┐
│  UnitagsError (base)                                             │
│  ├── ConfigError         - invalid option values or config files │
│  ├── FactStoreError      - the fact store cannot be opened/used  │
│  └── MalformedFactError  - a persisted descriptor is unparsable  │
└──────────────────────────────────────────────────────────────────┘

``MalformedFactError`` is raised by the descriptor parsers in
:mod:`cppcheckdata_unitags.facts` and is always caught by the rule that
consumes the fact, which then declines.
"""

from __future__ import annotations

from typing import Any, Optional


class UnitagsError(Exception):
    """Base exception for all cppcheckdata-unitags errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigError(UnitagsError):
    """An option has an invalid value, or a config file cannot be read."""

    def __init__(
        self,
        message: str,
        option: str = "",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, cause)
        self.option = option

    def __str__(self) -> str:
        if self.option:
            return f"{self.option}: {self.message}"
        return self.message


class FactStoreError(UnitagsError):
    """The persisted fact store cannot be opened or has a foreign schema."""

    def __init__(
        self,
        message: str,
        path: str = "",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, cause)
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class MalformedFactError(UnitagsError):
    """A persisted value descriptor does not have the expected shape."""

    def __init__(self, descriptor: Any, expected: str) -> None:
        super().__init__(f"cannot parse {descriptor!r} as {expected}")
        self.descriptor = descriptor
        self.expected = expected
