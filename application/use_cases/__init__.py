"""
Application use cases for the activity converter.

Use cases orchestrate the decoders, the validator port and the encoders.
Dependencies are injected via constructors for testability, and results are
returned as dataclasses rather than raised.

Usage:
    from application.use_cases import ConvertActivityUseCase

    use_case = ConvertActivityUseCase(validator=StructuralActivityValidator())
    result = use_case.execute(data, source_format="fit", target_format="tcx")
    if result.success:
        path.write_bytes(result.output)
"""

from application.use_cases.convert_activity import (
    ConversionResult,
    ConvertActivityUseCase,
    SourceFormat,
    TargetFormat,
    parse_source_format,
    parse_target_format,
)

__all__ = [
    "ConvertActivityUseCase",
    "ConversionResult",
    "SourceFormat",
    "TargetFormat",
    "parse_source_format",
    "parse_target_format",
]
