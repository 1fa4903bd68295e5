"""
Exceptions raised at the converter's API surface.

Data problems inside a run are never raised; they are reported as
diagnostics. These exceptions cover caller mistakes made before a run can
start, such as asking for a format that does not exist.
"""


class ConverterError(Exception):
    """Base class for converter exceptions."""


class UnsupportedFormatError(ConverterError):
    """Raised when a format name is unknown or cannot be used in that direction."""

    def __init__(self, fmt: str, direction: str, supported):
        self.fmt = fmt
        self.direction = direction
        self.supported = list(supported)
        super().__init__(
            f"Unsupported {direction} format: {fmt}. "
            f"Valid formats: {', '.join(self.supported)}"
        )
