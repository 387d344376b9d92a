from dataclasses import dataclass
from typing import Any, Callable, Literal

__all__ = [
    "DiagnosticRecord",
    "ResolvedDiagnostic",
    "Panic",
    "ReportOutcome",
    "ReportSink",
]


@dataclass(frozen=True)
class DiagnosticRecord:
    """A diagnostic as emitted by the compiler, positioned in the compilation unit"""

    message: str
    position: int
    reserved: Any
    level: str


@dataclass(frozen=True)
class ResolvedDiagnostic:
    document_uri: str
    start: int
    end: int
    level: str
    message: str


@dataclass(frozen=True)
class Panic:
    explanation: str
    kind: Literal["panic"] = "panic"


ReportOutcome = list[ResolvedDiagnostic] | Panic
ReportSink = Callable[[ReportOutcome], None]
