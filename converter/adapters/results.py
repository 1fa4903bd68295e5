"""Result objects shared by all decoders and encoders."""

from dataclasses import dataclass, field
from typing import List, Optional

from domain.diagnostics import classify_run, RunStatus
from domain.models import CanonicalActivity, Diagnostic


@dataclass
class DecodeResult:
    """Activities lifted from a source document plus the run's diagnostics."""

    activities: List[CanonicalActivity] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def status(self, strict: bool = False) -> RunStatus:
        return classify_run(self.diagnostics, strict=strict)


@dataclass
class EncodeResult:
    """Encoded document (None when nothing could be written) plus diagnostics."""

    output: Optional[bytes] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def status(self, strict: bool = False) -> RunStatus:
        return classify_run(self.diagnostics, strict=strict)
