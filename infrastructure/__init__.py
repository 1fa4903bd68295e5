"""
Infrastructure layer for the activity converter.

Concrete implementations of the application ports:
- validation/: SchemaValidator implementations
"""

from infrastructure.validation import StructuralActivityValidator

__all__ = [
    "StructuralActivityValidator",
]
