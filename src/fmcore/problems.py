"""
Diagnostics produced while reading feature models.

A Problem is a human-readable message with a 1-based line number and
a severity. Readers return a ProblemList instead of raising, so callers
(CLI, UI) decide how to render them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class Severity(Enum):
    """Severity of a diagnostic."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Problem:
    """
    A single diagnostic.

    Properties:
        message: Human-readable description
        line: 1-based source line (0 if the problem has no location)
        severity: Severity.ERROR unless stated otherwise
        column: 1-based source column, if known
    """

    message: str
    line: int = 0
    severity: Severity = Severity.ERROR
    column: Optional[int] = None

    def __str__(self) -> str:
        location = f"line {self.line}" if self.line else "no location"
        return f"[{self.severity.value}] {location}: {self.message}"


class ProblemList(list):
    """List of problems with severity helpers."""

    def contains_error(self) -> bool:
        return any(p.severity == Severity.ERROR for p in self)

    @property
    def errors(self) -> List[Problem]:
        return [p for p in self if p.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[Problem]:
        return [p for p in self if p.severity == Severity.WARNING]
