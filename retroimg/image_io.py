"""Image loading, saving, geometry and output-size arithmetic."""

from __future__ import annotations

from fractions import Fraction
from pathlib import Path

import numpy as np
from PIL import Image

from retroimg.color_utils import as_rgb_pixels
from retroimg.errors import InvalidArgumentError


def load_image(path: str | Path) -> np.ndarray:
    """Load an image as (H, W, 3) uint8 RGB; alpha is discarded."""
    img = Image.open(path).convert("RGB")
    return np.array(img, dtype=np.uint8)


def save_image(array: np.ndarray, path: str | Path) -> None:
    Image.fromarray(np.asarray(array, dtype=np.uint8)).save(path)


def crop(image: np.ndarray, left: int, top: int, width: int, height: int) -> np.ndarray:
    """Cut the rectangle (left, top, width, height), clamped to the image."""
    h, w = image.shape[:2]
    if left >= w or top >= h or width < 1 or height < 1:
        msg = f"crop rectangle {(left, top, width, height)} is outside a {w}x{h} image"
        raise InvalidArgumentError(msg)
    return image[top : min(top + height, h), left : min(left + width, w)].copy()


def _resize(image: np.ndarray, width: int, height: int, resample: int) -> np.ndarray:
    img = Image.fromarray(np.asarray(image, dtype=np.uint8))
    return np.array(img.resize((width, height), resample), dtype=np.uint8)


def reduce(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Downscale to the emulated resolution (bicubic)."""
    return _resize(image, width, height, Image.BICUBIC)


def expand(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Upscale to the output resolution, keeping hard pixel edges."""
    return _resize(image, width, height, Image.NEAREST)


def colors_to_image(width: int, height: int, pixels: np.ndarray) -> np.ndarray:
    """Reshape a row-major (N, 3) buffer into an (H, W, 3) image.

    Raises:
        InvalidArgumentError: if N != width * height.
    """
    flat = as_rgb_pixels(pixels)
    if len(flat) != width * height:
        msg = f"{len(flat)} pixels cannot fill a {width}x{height} image"
        raise InvalidArgumentError(msg)
    return np.ascontiguousarray(flat).reshape(height, width, 3)


def compute_output_size(
    in_width: int,
    in_height: int,
    width: int | None = None,
    height: int | None = None,
    pixel_ratio: Fraction | None = None,
) -> tuple[int, int] | None:
    """Resolve the output resolution of an image emulated at in_width x in_height.

    The displayed aspect ratio is ``in_width * ratio_w : in_height * ratio_h``
    where ``ratio`` is the pixel ratio (1:1 when absent).

    Returns:
        The (width, height) to expand to, or ``None`` when nothing was given
        and the caller's default applies.
    """
    if width is None and height is None:
        if pixel_ratio is None:
            return None
        return in_width * pixel_ratio.numerator, in_height * pixel_ratio.denominator

    if width is not None and height is not None:
        if pixel_ratio is not None:
            msg = "pixel ratio cannot be combined with both output width and height"
            raise ValueError(msg)
        return width, height

    ratio = pixel_ratio if pixel_ratio is not None else Fraction(1)
    aspect = Fraction(in_width) * ratio / in_height  # display width / height
    if width is not None:
        return width, max(1, round(width / aspect))
    return max(1, round(height * aspect)), height
