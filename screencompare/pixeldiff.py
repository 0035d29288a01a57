"""
Perceptual pixel diff between two equally-sized RGBA images.

Follows the pixelmatch approach: pixels are compared by their distance in YIQ
color space, and differences that sit on anti-aliased edges can be ignored.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image

# Maximum possible YIQ delta between two colors.
MAX_YIQ_DELTA = 35215

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class DiffOutcome:
    """Difference image and pixel counts produced by :func:`diff_images`."""

    image: Image.Image
    diff_pixels: int
    total_pixels: int

    @property
    def ratio(self) -> float:
        if not self.total_pixels:
            return 0.0
        return self.diff_pixels / self.total_pixels


def _blend(channel: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    return 255.0 + (channel - 255.0) * alpha


def _blended_rgb(img: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return r, g, b as floats with alpha composited over white."""
    rgba = img.astype(np.float64)
    alpha = rgba[..., 3] / 255.0
    return (
        _blend(rgba[..., 0], alpha),
        _blend(rgba[..., 1], alpha),
        _blend(rgba[..., 2], alpha),
    )


def _rgb2y(r, g, b):
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r, g, b):
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r, g, b):
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def color_delta(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Signed squared YIQ distance for every pixel pair.

    The sign is negative where img1 is lighter than img2.
    """
    r1, g1, b1 = _blended_rgb(img1)
    r2, g2, b2 = _blended_rgb(img2)

    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)

    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    return np.where(y1 > y2, -delta, delta)


def luma(img: np.ndarray) -> np.ndarray:
    """Brightness (Y channel) of each pixel, alpha blended over white."""
    return _rgb2y(*_blended_rgb(img))


# Neighbour offsets as (dx, dy), column by column from the left and top to
# bottom within a column. Ties resolve to the first darkest/brightest one.
_OFFSETS = np.array(
    [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)],
)
_DX = _OFFSETS[:, 0]
_DY = _OFFSETS[:, 1]

# Candidates are checked in chunks to bound the (8, n) neighbour arrays.
_CHUNK = 1 << 18


class _Plane:
    """Padded luma and packed RGBA of one image, for 3x3 neighbourhood lookups."""

    def __init__(self, img: np.ndarray):
        self.height, self.width = img.shape[:2]
        rgba = img.astype(np.int64)
        packed = (rgba[..., 0] << 24) | (rgba[..., 1] << 16) | (rgba[..., 2] << 8) | rgba[..., 3]
        # NaN and -1 never compare equal to a real pixel.
        self.luma = np.pad(luma(img), 1, constant_values=np.nan)
        self.colors = np.pad(packed, 1, constant_values=-1)

    def on_border(self, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
        return (xs == 0) | (xs == self.width - 1) | (ys == 0) | (ys == self.height - 1)

    def around(self, values: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
        """Gather the 8 neighbours of each (y, x) from a padded array, shape (8, n)."""
        return values[ys[None, :] + 1 + _DY[:, None], xs[None, :] + 1 + _DX[:, None]]


def _many_siblings(plane: _Plane, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    centre = plane.colors[ys + 1, xs + 1]
    same = np.count_nonzero(plane.around(plane.colors, ys, xs) == centre, axis=0)
    return same + plane.on_border(ys, xs) > 2


def _antialiased(plane: _Plane, other: _Plane, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    delta = plane.luma[ys + 1, xs + 1][None, :] - plane.around(plane.luma, ys, xs)
    zeroes = np.count_nonzero(delta == 0, axis=0) + plane.on_border(ys, xs)

    darker = np.where(delta < 0, delta, np.inf)
    brighter = np.where(delta > 0, delta, -np.inf)
    # more than 2 equal siblings, or no darker or no brighter neighbour: not an edge
    gradient = (zeroes <= 2) & np.isfinite(darker).any(axis=0) & np.isfinite(brighter).any(axis=0)

    k_min = np.argmin(darker, axis=0)
    k_max = np.argmax(brighter, axis=0)
    min_ys = np.clip(ys + _DY[k_min], 0, plane.height - 1)
    min_xs = np.clip(xs + _DX[k_min], 0, plane.width - 1)
    max_ys = np.clip(ys + _DY[k_max], 0, plane.height - 1)
    max_xs = np.clip(xs + _DX[k_max], 0, plane.width - 1)

    flat_min = _many_siblings(plane, min_ys, min_xs) & _many_siblings(other, min_ys, min_xs)
    flat_max = _many_siblings(plane, max_ys, max_xs) & _many_siblings(other, max_ys, max_xs)
    return gradient & (flat_min | flat_max)


def has_many_siblings(img: np.ndarray, ys, xs) -> np.ndarray:
    """For each (y, x), whether 3+ adjacent pixels have exactly the same color."""
    return _many_siblings(_Plane(img), np.asarray(ys), np.asarray(xs))


def is_antialiased(img: np.ndarray, other: np.ndarray, ys, xs) -> np.ndarray:
    """For each (y, x), whether that pixel of img is likely an anti-aliased edge.

    Based on "Anti-aliased Pixel and Intensity Slope Detector" by V. Vysniauskas
    (2009). The darkest or brightest neighbour must sit inside a flat region of
    both images.
    """
    return _antialiased(_Plane(img), _Plane(other), np.asarray(ys), np.asarray(xs))


def _gray(img: np.ndarray, alpha: float) -> np.ndarray:
    rgba = img.astype(np.float64)
    y = _rgb2y(rgba[..., 0], rgba[..., 1], rgba[..., 2])
    opacity = alpha * img[..., 3].astype(np.float64) / 255.0
    return np.clip(_blend(y, opacity), 0, 255).astype(np.uint8)


def pixel_diff(
    img1: np.ndarray,
    img2: np.ndarray,
    output: Optional[np.ndarray] = None,
    *,
    threshold: float = 0.1,
    include_aa: bool = False,
    alpha: float = 0.1,
    aa_color: Color = (255, 255, 0),
    diff_color: Color = (255, 0, 0),
) -> int:
    """Count pixels that differ between two RGBA arrays of shape (h, w, 4).

    Args:
        img1: Baseline pixels
        img2: Pixels to compare against the baseline
        output: Optional array of the same shape receiving the difference image
        threshold: Matching threshold in [0, 1]; smaller is more sensitive
        include_aa: Count anti-aliased pixels as differences instead of ignoring them
        alpha: Opacity of the unchanged pixels drawn in the difference image
        aa_color: Color of ignored anti-aliased pixels in the difference image
        diff_color: Color of differing pixels in the difference image

    Returns:
        Number of differing pixels
    """
    if img1.shape != img2.shape or img1.ndim != 3 or img1.shape[2] != 4:
        raise ValueError(f"Image data must be two RGBA arrays of the same shape, got {img1.shape} and {img2.shape}")
    if output is not None and output.shape != img1.shape:
        raise ValueError(f"Output shape {output.shape} does not match image shape {img1.shape}")
    if not 0 <= threshold <= 1:
        raise ValueError(f"threshold must be between 0 and 1, got: {threshold}")

    if output is not None:
        gray = _gray(img1, alpha)
        output[..., 0] = gray
        output[..., 1] = gray
        output[..., 2] = gray
        output[..., 3] = 255

    if np.array_equal(img1, img2):
        return 0

    max_delta = MAX_YIQ_DELTA * threshold * threshold
    candidates = np.abs(color_delta(img1, img2)) > max_delta
    if not candidates.any():
        return 0

    if include_aa:
        if output is not None:
            output[candidates] = (*diff_color, 255)
        return int(np.count_nonzero(candidates))

    plane1 = _Plane(img1)
    plane2 = _Plane(img2)
    ys, xs = np.nonzero(candidates)
    antialiased = np.empty(ys.shape, dtype=bool)
    for start in range(0, ys.size, _CHUNK):
        cy = ys[start:start + _CHUNK]
        cx = xs[start:start + _CHUNK]
        antialiased[start:start + _CHUNK] = (
            _antialiased(plane1, plane2, cy, cx) | _antialiased(plane2, plane1, cy, cx)
        )

    if output is not None:
        output[ys[antialiased], xs[antialiased]] = (*aa_color, 255)
        output[ys[~antialiased], xs[~antialiased]] = (*diff_color, 255)
    return int(np.count_nonzero(~antialiased))


def diff_images(
    image1: Image.Image,
    image2: Image.Image,
    *,
    threshold: float = 0.1,
    include_aa: bool = False,
) -> DiffOutcome:
    """Diff two Pillow images of identical size and return the diff image and counts."""
    arr1 = np.asarray(image1.convert("RGBA"), dtype=np.uint8)
    arr2 = np.asarray(image2.convert("RGBA"), dtype=np.uint8)
    output = np.zeros_like(arr1)

    diff_pixels = pixel_diff(arr1, arr2, output, threshold=threshold, include_aa=include_aa)

    return DiffOutcome(
        image=Image.fromarray(output),
        diff_pixels=diff_pixels,
        total_pixels=arr1.shape[0] * arr1.shape[1],
    )
