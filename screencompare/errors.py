"""
Exceptions raised by the screenshot comparator.
"""

from typing import Optional


class ComparisonError(Exception):
    """Base class for screenshot comparison failures."""


class InvalidArgument(ComparisonError, TypeError):
    """An image reference was not a filesystem path."""


class ImageLoadError(ComparisonError, OSError):
    """An image could not be read or decoded."""

    def __init__(self, path, reason: Optional[str] = None):
        self.path = path
        message = f"Could not load image: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DimensionMismatch(ComparisonError, ValueError):
    """The two images (after cropping) do not have the same size."""

    def __init__(self, size1, size2):
        self.size1 = tuple(size1)
        self.size2 = tuple(size2)
        super().__init__(
            "Image dimensions do not match (width x height): "
            f"{size1[0]}x{size1[1]} and {size2[0]}x{size2[1]}"
        )


class CropOutOfBounds(ComparisonError, ValueError):
    """The header crop would remove the whole image, or is negative."""
