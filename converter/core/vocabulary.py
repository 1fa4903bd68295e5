"""
Vocabulary mapping between format-specific codes and canonical enums.

The tables are plain data in shared/dictionaries/*.yaml:

- FIT uses numeric code tables: a primary ``sport`` table and a
  ``sub_sport`` fallback table.
- TCX and GPX use ordered synonym lists per canonical value. Import matches
  any synonym case-insensitively; export writes the first synonym.

Unmapped values become ``Sport.OTHER`` / ``StrokeType.UNKNOWN`` with a
mapping_gap warning, reported once per distinct code per run.
"""

import logging
import pathlib
import re
from functools import lru_cache
from typing import Any, Dict, Hashable, Mapping, Optional

import yaml

from domain.diagnostics import DiagnosticCollector
from domain.models import DeviceType, DiagnosticCategory, Sport, StrokeType

logger = logging.getLogger(__name__)

ROOT = pathlib.Path(__file__).resolve().parents[2]
DICTIONARIES_DIR = ROOT / "shared" / "dictionaries"

SYNONYM_FORMATS = ("tcx", "gpx")


@lru_cache
def load_dictionary(name: str) -> Dict[str, Any]:
    """Load one vocabulary file from shared/dictionaries."""
    path = DICTIONARIES_DIR / f"{name}.yaml"
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    logger.debug(f"Loaded vocabulary {name} version {data.get('version')}")
    return data


def _code_table(raw: Optional[Mapping[Any, str]], enum_cls) -> Dict[int, Any]:
    return {int(code): enum_cls(value) for code, value in (raw or {}).items()}


def _synonym_index(raw: Mapping[str, list]) -> Dict[str, Sport]:
    index: Dict[str, Sport] = {}
    for canonical, synonyms in raw.items():
        sport = Sport(canonical)
        for synonym in synonyms:
            # Earlier entries win so the table order stays meaningful.
            index.setdefault(str(synonym).strip().lower(), sport)
    return index


class VocabularyMapper:
    """
    Resolve sport, stroke and device vocabularies for every format.

    The mapper itself is stateless between calls; de-duplication of
    mapping_gap diagnostics is done by the run's DiagnosticCollector, so the
    same mapper can be shared by concurrent runs.

    Examples:
        >>> mapper = VocabularyMapper()
        >>> mapper.resolve_sport("tcx", "Biking")
        <Sport.CYCLING: 'cycling'>
        >>> mapper.export_sport("tcx", Sport.CYCLING)
        'Biking'
    """

    def __init__(
        self,
        sports: Optional[Mapping[str, Any]] = None,
        strokes: Optional[Mapping[str, Any]] = None,
        devices: Optional[Mapping[str, Any]] = None,
    ) -> None:
        sports = sports if sports is not None else load_dictionary("sports")
        strokes = strokes if strokes is not None else load_dictionary("strokes")
        devices = devices if devices is not None else load_dictionary("devices")

        fit_sports = sports.get("fit", {})
        self._fit_sport = _code_table(fit_sports.get("sport"), Sport)
        self._fit_sub_sport = _code_table(fit_sports.get("sub_sport"), Sport)
        self._fit_stroke = _code_table(strokes.get("fit", {}).get("swim_stroke"), StrokeType)
        self._fit_device = _code_table(
            devices.get("fit", {}).get("antplus_device_type"), DeviceType
        )

        self._export: Dict[str, Dict[Sport, str]] = {}
        self._import: Dict[str, Dict[str, Sport]] = {}
        for fmt in SYNONYM_FORMATS:
            table = sports.get(fmt) or {}
            self._export[fmt] = {
                Sport(canonical): str(synonyms[0])
                for canonical, synonyms in table.items()
                if synonyms
            }
            self._import[fmt] = _synonym_index(table)

        self._keywords = [
            (Sport(canonical), [str(w).lower() for w in words])
            for canonical, words in (sports.get("gpx_keywords") or {}).items()
        ]
        self.versions = {
            "sports": sports.get("version"),
            "strokes": strokes.get("version"),
            "devices": devices.get("version"),
        }

    # -------------------------------------------------------------------------
    # Sport
    # -------------------------------------------------------------------------

    def resolve_sport(
        self,
        fmt: str,
        code: Any,
        sub_code: Any = None,
        diagnostics: Optional[DiagnosticCollector] = None,
        path: str = "",
    ) -> Sport:
        """
        Map a source sport value to the canonical classification.

        1. exact match on the primary code
        2. the sub-classification code against the fallback table (FIT)
        3. Sport.OTHER plus one mapping_gap warning per distinct code
        """
        if fmt == "fit":
            sport = self._fit_sport.get(code) if isinstance(code, int) else None
            if sport is None and isinstance(sub_code, int):
                sport = self._fit_sub_sport.get(sub_code)
            label = f"sport code {code}" + (f" (sub_sport {sub_code})" if sub_code is not None else "")
        else:
            key = str(code).strip().lower() if code is not None else ""
            sport = self._import_table(fmt).get(key)
            label = f"sport '{code}'"

        if sport is not None:
            return sport

        self._report(
            diagnostics,
            ("sport", fmt, code, sub_code),
            f"Unmapped {fmt.upper()} {label}; classified as other",
            path,
        )
        return Sport.OTHER

    def export_sport(
        self,
        fmt: str,
        sport: Sport,
        diagnostics: Optional[DiagnosticCollector] = None,
        path: str = "",
    ) -> str:
        """
        Target-format string for a canonical sport (first listed synonym).

        Sports the target format has no entry for are written as its "other"
        value with an encode_unsupported warning.
        """
        table = self._export_table(fmt)
        value = table.get(sport)
        if value is not None:
            return value
        fallback = table.get(Sport.OTHER, "Other")
        if diagnostics is not None:
            diagnostics.report_once(
                ("export_sport", fmt, sport),
                DiagnosticCategory.ENCODE_UNSUPPORTED,
                f"{fmt.upper()} has no value for sport '{sport.value}'; written as '{fallback}'",
                path=path,
            )
        return fallback

    def infer_sport_from_text(self, *texts: Optional[str]) -> Optional[Sport]:
        """Guess a sport from free text (track names, descriptions) by keyword."""
        words = set()
        for text in texts:
            if text:
                words.update(re.findall(r"[a-z]+", text.lower()))
        if not words:
            return None
        for sport, keywords in self._keywords:
            if any(k in words for k in keywords):
                return sport
        return None

    # -------------------------------------------------------------------------
    # Stroke and devices
    # -------------------------------------------------------------------------

    def resolve_stroke(
        self,
        fmt: str,
        code: Any,
        diagnostics: Optional[DiagnosticCollector] = None,
        path: str = "",
    ) -> StrokeType:
        """Map a source stroke code; unknown codes become StrokeType.UNKNOWN."""
        if code is None:
            return StrokeType.UNKNOWN
        stroke = self._fit_stroke.get(code) if fmt == "fit" and isinstance(code, int) else None
        if stroke is not None:
            return stroke
        self._report(
            diagnostics,
            ("stroke", fmt, code),
            f"Unmapped {fmt.upper()} swim stroke code {code}; classified as unknown",
            path,
        )
        return StrokeType.UNKNOWN

    def resolve_device_type(
        self,
        device_index: Optional[int],
        antplus_code: Optional[int],
        diagnostics: Optional[DiagnosticCollector] = None,
        path: str = "",
    ) -> DeviceType:
        """
        Classify a FIT device.

        Index 0 is always the recording unit. Other devices are classified by
        their ANT+ device type; codes without an entry are reported once.
        """
        if device_index == 0:
            return DeviceType.RECORDER
        if antplus_code is None:
            return DeviceType.OTHER
        device_type = self._fit_device.get(antplus_code)
        if device_type is not None:
            return device_type
        self._report(
            diagnostics,
            ("device_type", antplus_code),
            f"Unmapped FIT device type code {antplus_code}; classified as other",
            path,
        )
        return DeviceType.OTHER

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _import_table(self, fmt: str) -> Dict[str, Sport]:
        if fmt not in self._import:
            raise KeyError(f"No sport vocabulary for format '{fmt}'")
        return self._import[fmt]

    def _export_table(self, fmt: str) -> Dict[Sport, str]:
        if fmt not in self._export:
            raise KeyError(f"No sport vocabulary for format '{fmt}'")
        return self._export[fmt]

    @staticmethod
    def _report(
        diagnostics: Optional[DiagnosticCollector],
        key: Hashable,
        message: str,
        path: str,
    ) -> None:
        if diagnostics is not None:
            diagnostics.report_once(key, DiagnosticCategory.MAPPING_GAP, message, path=path)


@lru_cache
def get_mapper() -> VocabularyMapper:
    """Shared mapper built from the bundled dictionaries."""
    return VocabularyMapper()
