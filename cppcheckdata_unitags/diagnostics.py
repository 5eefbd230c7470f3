"""
cppcheckdata_unitags/diagnostics.py
═══════════════════════════════════

Warnings produced by the checkers, and the sink that collects them.

Nothing here aborts an analysis.  A checker reports through
:meth:`DiagnosticSink.emit` and keeps going; the sink logs each report and
holds it until the command line prints it, either as a cppcheck addon JSON
line or as a GCC-style ``file:line: severity: message [id]`` line.

License: MIT — same as cppcheckdata-unitags.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class DiagnosticSeverity(Enum):
    """Severity names understood by cppcheck's addon protocol."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PORTABILITY = "portability"
    INFORMATION = "information"


@dataclass(frozen=True)
class SourceLocation:
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        text = f"{self.file}:{self.line}"
        return f"{text}:{self.column}" if self.column else text


@dataclass(frozen=True)
class Diagnostic:
    """
    One report from a checker.

    ``error_id`` is the stable cppcheck id (``unitsMissingConversion``,
    ``unitsCompareMismatch`` ...).  ``evidence`` carries the units or member
    names behind the message and does not take part in equality.
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    checker_name: str = ""
    addon: str = "cppcheckdata-unitags"
    evidence: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_cppcheck_json(self) -> Dict[str, Any]:
        loc = self.location
        return {
            "file": loc.file,
            "linenr": loc.line,
            "column": loc.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": "",
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        return "{}: {}: {} [{}]".format(
            self.location, self.severity.value, self.message, self.error_id
        )


class DiagnosticSink:
    """Ordered store of every diagnostic emitted during a session."""

    def __init__(self) -> None:
        self._reports: List[Diagnostic] = []

    def emit(
        self,
        error_id: str,
        message: str,
        location: Optional[SourceLocation] = None,
        *,
        severity: DiagnosticSeverity = DiagnosticSeverity.WARNING,
        checker_name: str = "",
        **evidence: Any,
    ) -> Diagnostic:
        report = Diagnostic(
            error_id,
            message,
            severity,
            location if location is not None else SourceLocation(),
            checker_name=checker_name,
            evidence=evidence,
        )
        self._reports.append(report)
        logger.warning("%s", report.to_gcc_format())
        return report

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self._reports[:]

    def by_error_id(self, error_id: str) -> List[Diagnostic]:
        return [r for r in self._reports if r.error_id == error_id]

    def count(self, error_id: Optional[str] = None) -> int:
        if error_id is None:
            return len(self._reports)
        return sum(1 for r in self._reports if r.error_id == error_id)

    def summary(self) -> Dict[str, int]:
        """Number of reports per error id."""
        return dict(Counter(r.error_id for r in self._reports))

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._reports[:])

    def __len__(self) -> int:
        return len(self._reports)
