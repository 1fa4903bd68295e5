"""
Format adapters.

Decoders (``<format>_to_activity``) turn document bytes into a DecodeResult;
encoders (``activity_to_<format>``) turn canonical activities into an
EncodeResult. Neither raises for bad data: problems are diagnostics.
"""

from converter.adapters.activity_to_csv import activities_to_csv
from converter.adapters.activity_to_gpx import activities_to_gpx
from converter.adapters.activity_to_tcx import activities_to_tcx
from converter.adapters.activity_to_yaml import activities_to_yaml
from converter.adapters.fit_to_activity import fit_to_activities
from converter.adapters.gpx_to_activity import gpx_to_activities
from converter.adapters.results import DecodeResult, EncodeResult
from converter.adapters.tcx_to_activity import tcx_to_activities
from converter.adapters.yaml_to_activity import yaml_to_activities

__all__ = [
    "DecodeResult",
    "EncodeResult",
    "fit_to_activities",
    "tcx_to_activities",
    "gpx_to_activities",
    "yaml_to_activities",
    "activities_to_tcx",
    "activities_to_gpx",
    "activities_to_csv",
    "activities_to_yaml",
]
