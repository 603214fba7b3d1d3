"""
Exceptions raised by the riscan_pro package.

Configuration problems are fatal and surface when a project is built.
Lookups of unknown scan positions raise a ``LookupError`` so callers can
tell them apart from a point that no photograph covers (``None``).
"""


class RiscanError(Exception):
    """Base exception for riscan_pro errors."""
    pass


class ConfigurationInvalidError(RiscanError, ValueError):
    """Malformed or missing geometric configuration (bad matrix, intrinsics, names)."""
    pass


class DuplicateCameraError(ConfigurationInvalidError):
    """More than one camera calibration supplied for a project."""
    pass


class UnknownScanPositionError(RiscanError, KeyError):
    """A query referenced a scan position name that the project does not have."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown scan position: {self.name!r}"


class FrameMismatchError(RiscanError, ValueError):
    """Two transforms were composed whose coordinate frames do not chain."""
    pass
