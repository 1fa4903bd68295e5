from infrastructure.validation.structural_validator import StructuralActivityValidator

__all__ = ["StructuralActivityValidator"]
