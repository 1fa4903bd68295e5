"""
Fake port implementations for testing.

Fakes implement the same Protocol interfaces as the real adapters, record
their calls, and can be configured to return canned results.

Usage:
    from tests.fakes import FakeSchemaValidator

    validator = FakeSchemaValidator(warnings=["heart rate looks odd"])
    use_case = ConvertActivityUseCase(validator=validator)
"""

from tests.fakes.schema_validator import FakeSchemaValidator

__all__ = ["FakeSchemaValidator"]
