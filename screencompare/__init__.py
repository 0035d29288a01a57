"""
screencompare
Visual regression helpers: compare browser screenshots against stored baselines.
"""

__version__ = "1.0.0"

from .cli import ScreenCompareCLI
from .compare import ComparisonResult, CropConfig, compare_screenshots, crop_screenshot, load_image
from .config import Config
from .errors import ComparisonError, CropOutOfBounds, DimensionMismatch, ImageLoadError, InvalidArgument
from .platforms import get_platform_config
from .screenshot import ScreenshotHandler, ScreenshotPaths

__all__ = [
    "ScreenCompareCLI",
    "ComparisonResult",
    "CropConfig",
    "compare_screenshots",
    "crop_screenshot",
    "load_image",
    "Config",
    "ComparisonError",
    "CropOutOfBounds",
    "DimensionMismatch",
    "ImageLoadError",
    "InvalidArgument",
    "get_platform_config",
    "ScreenshotHandler",
    "ScreenshotPaths",
]
