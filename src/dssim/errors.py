"""
Exception taxonomy for dssim.
All errors raised by the library derive from DssimError so callers (the CLI,
batch comparisons) can isolate a failing pair without catching unrelated bugs.
"""


class DssimError(Exception):
    """Base class for all dssim errors"""
    kind = "DssimError"

    def __init__(self, message: str, source=None):
        self.source = source
        super().__init__(message)

    def describe(self) -> str:
        """Human readable '<source>: <kind>: <message>' line"""
        if self.source is not None:
            return f"{self.source}: {self.kind}: {self}"
        return f"{self.kind}: {self}"


class ConfigError(DssimError):
    """Configuration related errors"""
    kind = "ConfigError"


class ImageDecodeError(DssimError):
    """Image file could not be read or decoded"""
    kind = "ImageDecodeError"


class UnsupportedPixelFormat(DssimError):
    """Pixel buffer shape or dtype is not an accepted raster format"""
    kind = "UnsupportedPixelFormat"


class DimensionMismatch(DssimError):
    """Compared images differ in width or height"""
    kind = "DimensionMismatch"


class EmptyImage(DssimError):
    """Image has zero width or height"""
    kind = "EmptyImage"


class DegenerateComputation(DssimError):
    """Non-finite value detected in input pixels or intermediate statistics"""
    kind = "DegenerateComputation"
