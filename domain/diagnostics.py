"""
Diagnostics collector and run classification.

One DiagnosticCollector is shared by every component taking part in a
conversion run. It only ever grows: diagnostics are appended in the order
they are encountered and are never removed or rewritten.

Strict mode is a post-pass over the finished list (classify_run); it changes
how the run is classified, never the diagnostics themselves.

Usage:
    diagnostics = DiagnosticCollector()
    diagnostics.warning(DiagnosticCategory.MAPPING_GAP, "Unmapped sport 99", path="session[0].sport")
    status = classify_run(diagnostics.diagnostics, strict=True)
    sys.exit(status.exit_code)
"""

from enum import Enum
from typing import Hashable, Iterable, Iterator, List, Optional, Set, Tuple

from domain.models.diagnostic import Diagnostic, DiagnosticCategory, Severity


class DiagnosticCollector:
    """Ordered, append-only accumulator of diagnostics for one run."""

    def __init__(self, diagnostics: Optional[Iterable[Diagnostic]] = None) -> None:
        self._items: List[Diagnostic] = list(diagnostics or [])
        self._reported: Set[Hashable] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(tuple(self._items))

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._items)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.WARNING]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.ERROR]

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self._items)

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        self._items.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._items.extend(diagnostics)

    def warning(self, category: DiagnosticCategory, message: str, path: str = "") -> Diagnostic:
        return self.add(
            Diagnostic(severity=Severity.WARNING, category=category, message=message, path=path)
        )

    def error(self, category: DiagnosticCategory, message: str, path: str = "") -> Diagnostic:
        return self.add(
            Diagnostic(severity=Severity.ERROR, category=category, message=message, path=path)
        )

    def report_once(
        self,
        key: Hashable,
        category: DiagnosticCategory,
        message: str,
        path: str = "",
        severity: Severity = Severity.WARNING,
    ) -> Optional[Diagnostic]:
        """
        Append a diagnostic unless one with the same key was already reported.

        Used for per-field loss on high-frequency data, where the same unmapped
        field would otherwise be reported once per sample.

        Returns:
            The new Diagnostic, or None if the key had been seen before.
        """
        if key in self._reported:
            return None
        self._reported.add(key)
        return self.add(
            Diagnostic(severity=severity, category=category, message=message, path=path)
        )


class RunStatus(str, Enum):
    """Overall classification of a conversion run, with its CLI exit code."""

    SUCCESS = "success"
    SUCCESS_WITH_LOSS = "success_with_loss"
    FAILED = "failed"
    STRICT_BLOCKED = "strict_blocked"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]

    @property
    def succeeded(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.SUCCESS_WITH_LOSS)


_EXIT_CODES = {
    RunStatus.SUCCESS: 0,
    RunStatus.SUCCESS_WITH_LOSS: 1,
    RunStatus.FAILED: 2,
    RunStatus.STRICT_BLOCKED: 3,
}


def classify_run(diagnostics: Iterable[Diagnostic], strict: bool = False) -> RunStatus:
    """
    Classify a finished run from its diagnostics.

    Any error fails the run. Otherwise warnings mean success with loss, or a
    strict-mode failure when ``strict`` is set.
    """
    has_warning = False
    for diagnostic in diagnostics:
        if diagnostic.severity == Severity.ERROR:
            return RunStatus.FAILED
        has_warning = True
    if has_warning:
        return RunStatus.STRICT_BLOCKED if strict else RunStatus.SUCCESS_WITH_LOSS
    return RunStatus.SUCCESS
