"""
Interfaces (Ports) for the activity converter.

Ports are the abstract interfaces the application layer depends on.
Implementations live in infrastructure/; tests use the fakes in
tests/fakes/.

Usage:
    from application.ports import SchemaValidator, ValidationReport

    class ConvertActivityUseCase:
        def __init__(self, validator: SchemaValidator):
            self._validator = validator
"""

from application.ports.schema_validator import SchemaValidator, ValidationReport

__all__ = [
    "SchemaValidator",
    "ValidationReport",
]
