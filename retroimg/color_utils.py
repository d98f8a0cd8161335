"""Colour value type, distance metrics and colour-space helpers."""

from __future__ import annotations

import enum
import math
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np
from skimage.color import lab2rgb, rgb2lab

from retroimg.errors import InvalidArgumentError

# Accumulator ceiling for the saturating L2 arithmetic (unsigned 64-bit).
U64_MAX = 2**64 - 1


class _RGBA(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255


class Color(_RGBA):
    """An 8-bit RGBA colour. Alpha is always opaque.

    Raises:
        InvalidArgumentError: if a channel lies outside ``[0, 255]``.
    """

    __slots__ = ()

    def __new__(cls, r: int, g: int, b: int, a: int = 255) -> Color:
        channels = (int(r), int(g), int(b))
        if any(not 0 <= v <= 255 for v in channels):
            msg = f"colour channels must be in [0, 255], got {channels}"
            raise InvalidArgumentError(msg)
        # alpha is accepted for tuple compatibility and normalised to opaque
        return super().__new__(cls, *channels, 255)

    @classmethod
    def from_rgb(cls, rgb: Sequence[int]) -> Color:
        """Build an opaque colour from any ``(r, g, b[, a])`` sequence."""
        r, g, b = (int(v) for v in rgb[:3])
        return cls(r, g, b)

    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


def color_diff_l1(c1: Sequence[int], c2: Sequence[int]) -> int:
    """Manhattan distance between two colours, alpha ignored."""
    return (
        abs(int(c1[0]) - int(c2[0]))
        + abs(int(c1[1]) - int(c2[1]))
        + abs(int(c1[2]) - int(c2[2]))
    )


def _saturating_square(d: int) -> int:
    return min(d * d, U64_MAX)


def color_diff_l2(c1: Sequence[int], c2: Sequence[int]) -> int:
    """Euclidean distance between two colours, alpha ignored.

    Squares and their sum saturate at :data:`U64_MAX`; the result is the
    integer square root of the saturated sum.
    """
    total = 0
    for i in range(3):
        total = min(total + _saturating_square(int(c1[i]) - int(c2[i])), U64_MAX)
    return math.isqrt(total)


class LossAlgorithm(enum.Enum):
    """Supported colour distance algorithms for loss calculation.

    The choice may slightly affect which palette colours win, especially in
    modes such as CGA where candidate sub-palettes are compared by loss.
    """

    L1 = "L1"  # Manhattan distance
    L2 = "L2"  # Euclidean distance

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, name: str | LossAlgorithm) -> LossAlgorithm:
        if isinstance(name, LossAlgorithm):
            return name
        try:
            return cls(name.upper())
        except ValueError:
            msg = 'invalid distance/loss algorithm, should be "L1" or "L2"'
            raise ValueError(msg) from None

    def color_diff(self, c1: Sequence[int], c2: Sequence[int]) -> int:
        """Difference between two colours under this algorithm."""
        if self is LossAlgorithm.L1:
            return color_diff_l1(c1, c2)
        return color_diff_l2(c1, c2)

    def pixel_diffs(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Per-pixel distances between two equal-length ``(N, 3)`` buffers."""
        a = as_rgb_pixels(a).astype(np.int64)
        b = as_rgb_pixels(b).astype(np.int64)
        if len(a) != len(b):
            msg = f"cannot compare buffers of {len(a)} and {len(b)} pixels"
            raise InvalidArgumentError(msg)
        diff = np.abs(a - b)
        if self is LossAlgorithm.L1:
            return diff.sum(axis=1)
        # At most 3 * 255**2 per pixel, exact in float64.
        return np.floor(np.sqrt((diff * diff).sum(axis=1))).astype(np.int64)

    def image_diff(self, a: np.ndarray, b: np.ndarray) -> int:
        """Sum of per-pixel distances between two images of equal length.

        Raises:
            InvalidArgumentError: if the buffers differ in length.
        """
        return int(self.pixel_diffs(a, b).sum())


def as_rgb_pixels(image: np.ndarray | Sequence[Sequence[int]]) -> np.ndarray:
    """Flatten an image or colour sequence into an ``(N, 3)`` uint8 buffer.

    Accepts ``(H, W, 3|4)`` images, ``(N, 3|4)`` buffers or sequences of
    :class:`Color`. A fourth (alpha) channel is dropped.
    """
    arr = np.asarray(image)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.uint8)
    if arr.ndim not in (2, 3) or arr.shape[-1] not in (3, 4):
        msg = f"expected an (H, W, 3) image or (N, 3) pixel buffer, got shape {arr.shape}"
        raise InvalidArgumentError(msg)
    if arr.dtype != np.uint8:
        if not np.issubdtype(arr.dtype, np.integer) or arr.min() < 0 or arr.max() > 255:
            msg = "pixel values must be integers in [0, 255]"
            raise InvalidArgumentError(msg)
        arr = arr.astype(np.uint8)
    return arr.reshape(-1, arr.shape[-1])[:, :3]


def color_median(pixels: np.ndarray) -> Color:
    """Per-channel median of a buffer (upper median for even counts).

    Each channel is sorted independently, so the result may be a colour that
    never occurs in the buffer.
    """
    flat = as_rgb_pixels(pixels)
    if len(flat) == 0:
        msg = "cannot take the median of an empty buffer"
        raise InvalidArgumentError(msg)
    ordered = np.sort(flat, axis=0)
    return Color.from_rgb(ordered[len(ordered) // 2])


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) uint8 RGB → (N, 3) float64 CIELAB."""
    return rgb2lab(rgb.astype(np.float64).reshape(1, -1, 3) / 255.0).reshape(-1, 3)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) CIELAB → (N, 3) uint8 RGB, rounded and clipped."""
    rgb = lab2rgb(np.asarray(lab, dtype=np.float64).reshape(1, -1, 3)).reshape(-1, 3)
    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)


def nearest_palette_indices(
    pixels: np.ndarray,
    palette: np.ndarray,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Index of the nearest palette entry for every pixel.

    Brute force over squared Euclidean RGB distance in integer arithmetic;
    ties go to the entry that comes first in the palette.

    Args:
        pixels:  (N, 3) uint8.
        palette: (K, 3) uint8, K >= 1.
        chunk_size: Pixels compared per batch (controls peak RAM).

    Returns:
        (N,) int64 indices into *palette*.
    """
    p = as_rgb_pixels(palette).astype(np.int32)
    if len(p) == 0:
        msg = "palette must contain at least one colour"
        raise InvalidArgumentError(msg)
    t = as_rgb_pixels(pixels).astype(np.int32)

    n = len(t)
    out = np.empty(n, dtype=np.int64)
    for i in range(0, n, chunk_size):
        j = min(i + chunk_size, n)
        diff = t[i:j, np.newaxis, :] - p[np.newaxis, :, :]
        out[i:j] = np.argmin(np.sum(diff * diff, axis=2), axis=1)
    return out
