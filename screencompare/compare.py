"""
Screenshot comparison: load, crop, validate and diff two screenshots.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Awaitable, Optional

from PIL import Image, UnidentifiedImageError

from .errors import CropOutOfBounds, DimensionMismatch, ImageLoadError, InvalidArgument
from .pixeldiff import diff_images

DEFAULT_THRESHOLD = 0.1


@dataclass(frozen=True)
class CropConfig:
    """Height of the device/OS header strip removed from the top of a screenshot."""

    header_height: int


@dataclass(frozen=True)
class ComparisonResult:
    result_image: Image.Image
    are_different: bool
    diff_ratio: float
    diff_pixels: int

    def save(self, path: str) -> None:
        """Write the difference image to path."""
        self.result_image.save(path)


def crop_screenshot(image: Image.Image, crop_config: CropConfig) -> Image.Image:
    """Remove the top ``crop_config.header_height`` rows of an image.

    Raises:
        CropOutOfBounds: if the header height is negative or would leave no rows
    """
    header_height = crop_config.header_height
    width, height = image.size
    if header_height < 0 or header_height >= height:
        raise CropOutOfBounds(
            f"Header height {header_height} is out of range for an image of height {height}"
        )
    return image.crop((0, header_height, width, height))


def load_image(path) -> Image.Image:
    """Open and decode an image as RGBA."""
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except FileNotFoundError as e:
        raise ImageLoadError(path, "file not found") from e
    except UnidentifiedImageError as e:
        raise ImageLoadError(path, "not a recognised image format") from e
    except Image.DecompressionBombError as e:
        raise ImageLoadError(path, str(e)) from e
    except OSError as e:
        raise ImageLoadError(path, str(e)) from e


def _is_path(value) -> bool:
    return isinstance(value, (str, os.PathLike))


def compare_screenshots(
    image1,
    image2,
    threshold: float = DEFAULT_THRESHOLD,
    platform: Optional[CropConfig] = None,
    include_aa: bool = False,
) -> Awaitable[ComparisonResult]:
    """Compare two screenshots given by path.

    Bad arguments are rejected immediately. Everything else (load failures,
    crop and dimension errors) is raised when the returned awaitable is awaited.

    Args:
        image1: Baseline image path
        image2: New image path
        threshold: Matching threshold from 0 to 1; smaller values are more sensitive
        platform: Header crop applied to both images before comparing
        include_aa: Count anti-aliased pixels as differences (ignored by default)

    Returns:
        Awaitable resolving to a ComparisonResult

    Raises:
        InvalidArgument: if either image reference is not a path
    """
    if not _is_path(image1) or not _is_path(image2):
        raise InvalidArgument("Should have passed paths to both images")

    return _compare(image1, image2, threshold, platform, include_aa)


async def _compare(image1, image2, threshold, platform, include_aa) -> ComparisonResult:
    img1, img2 = await asyncio.gather(
        asyncio.to_thread(load_image, image1),
        asyncio.to_thread(load_image, image2),
    )

    if platform is not None:
        img1 = crop_screenshot(img1, platform)
        img2 = crop_screenshot(img2, platform)

    if img1.size != img2.size:
        raise DimensionMismatch(img1.size, img2.size)

    outcome = await asyncio.to_thread(
        diff_images, img1, img2, threshold=threshold, include_aa=include_aa
    )

    return ComparisonResult(
        result_image=outcome.image,
        are_different=outcome.ratio > 0,
        diff_ratio=outcome.ratio,
        diff_pixels=outcome.diff_pixels,
    )
