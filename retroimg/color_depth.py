"""Colour depth strategies.

A colour depth converts an ``(H, W, 3)`` uint8 image into a flat ``(N, 3)``
buffer that only uses colours the emulated hardware could show, and reports
the loss between the original and the result. Strategies hold nothing but
their own read-only configuration, so every conversion is a pure function
of the image and the :class:`~retroimg.config.ColorOptions`.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from retroimg.color_utils import (
    Color,
    as_rgb_pixels,
    color_median,
    nearest_palette_indices,
)
from retroimg.config import ColorOptions
from retroimg.dithering import remap
from retroimg.errors import InvalidArgumentError
from retroimg.quantize import build_palette

logger = logging.getLogger(__name__)

ConversionResult = tuple[np.ndarray, int]  # ((N, 3) uint8 pixels, loss)


def image_pixels(image: np.ndarray) -> tuple[np.ndarray, int]:
    """Split an (H, W, 3|4) image into its (N, 3) buffer and width."""
    arr = np.asarray(image)
    if arr.ndim != 3:
        msg = f"expected an (H, W, 3) image, got shape {arr.shape}"
        raise InvalidArgumentError(msg)
    return as_rgb_pixels(arr), arr.shape[1]


def _frozen_palette(colors: np.ndarray | Sequence[Sequence[int]]) -> np.ndarray:
    palette = as_rgb_pixels(np.asarray(colors)).copy()
    if len(palette) == 0:
        msg = "a fixed palette needs at least one colour"
        raise InvalidArgumentError(msg)
    palette.setflags(write=False)
    return palette


class ColorDepth(abc.ABC):
    """Colour depth image converter."""

    @abc.abstractmethod
    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        """Convert an image and measure the loss of doing so.

        Args:
            image:   (H, W, 3) uint8 RGB image.
            options: Colour cap and loss algorithm; defaults to no cap, L1.

        Returns:
            ((H*W, 3) uint8 converted pixels in row-major order, loss)
        """

    def convert_image(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> np.ndarray:
        """Convert an RGB image to this colour depth."""
        return self.convert_image_with_loss(image, options)[0]

    def loss(self, image: np.ndarray, options: ColorOptions | None = None) -> int:
        """Estimate the loss of converting an image; lower is better."""
        return self.convert_image_with_loss(image, options)[1]


# -- Per-colour mappings -----------------------------------------------


def _vga18_mapper(pixels: np.ndarray) -> np.ndarray:
    """6 bits per channel, top bit replicated into the two low bits."""
    return (pixels & np.uint8(0xFC)) | (pixels >> np.uint8(6))


_VGA16_MASK = np.array([0xF8, 0xFC, 0xF8], dtype=np.uint8)
_VGA16_SHIFT = np.array([5, 6, 5], dtype=np.uint8)


def _vga16_mapper(pixels: np.ndarray) -> np.ndarray:
    """5-6-5 bits per R-G-B, top bits replicated into the vacated low bits."""
    return (pixels & _VGA16_MASK) | (pixels >> _VGA16_SHIFT)


class MappingColorDepth(ColorDepth):
    """Colour depth defined by a per-pixel mapping.

    Args:
        mapper: Vectorised function from an (N, 3) uint8 buffer to an
            (N, 3) uint8 buffer. It must not look at neighbouring pixels.

    With a colour cap, the palette is built from the mapped pixels, each
    palette entry is mapped again and the mapped pixels are remapped onto it.
    """

    def __init__(self, mapper: Callable[[np.ndarray], np.ndarray]) -> None:
        self.mapper = mapper

    def convert_pixels(self, pixels: np.ndarray) -> np.ndarray:
        flat = as_rgb_pixels(pixels)
        if len(flat) == 0:
            return flat
        return as_rgb_pixels(self.mapper(flat))

    def convert_color(self, color: Sequence[int]) -> Color:
        """Convert a single colour."""
        mapped = self.convert_pixels(np.array([color[:3]], dtype=np.uint8))
        return Color.from_rgb(mapped[0])

    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        options = options or ColorOptions()
        original, width = image_pixels(image)
        pixels = self.convert_pixels(original)

        if options.num_colors is not None and len(pixels):
            palette = self.convert_pixels(build_palette(pixels, options.num_colors))
            pixels = remap(palette, pixels, width, dither=options.dither)

        return pixels, options.loss.image_diff(original, pixels)


class CustomColorDepth(MappingColorDepth):
    """Wraps a plain ``Color -> Color`` function as a colour depth.

    The function is called once per distinct colour of the input.
    """

    def __init__(self, func: Callable[[Color], Sequence[int]]) -> None:
        self.func = func
        super().__init__(self._map_unique)

    def _map_unique(self, pixels: np.ndarray) -> np.ndarray:
        unique, inverse = np.unique(pixels, axis=0, return_inverse=True)
        mapped = np.array(
            [self.func(Color.from_rgb(c))[:3] for c in unique], dtype=np.uint8,
        ).reshape(-1, 3)
        return mapped[inverse.reshape(-1)]


class TrueColor24Bit(MappingColorDepth):
    """True 24-bit colour, 8 bits per channel, virtually no limit in colour depth.

    The image comes back untouched with zero loss, whatever the colour cap.
    """

    def __init__(self) -> None:
        super().__init__(lambda pixels: pixels)

    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        original, _ = image_pixels(image)
        return original.copy(), 0


class Vga18Bit(MappingColorDepth):
    """VGA 18-bit colour (64 levels per channel)."""

    def __init__(self) -> None:
        super().__init__(_vga18_mapper)


class Vga16Bit(MappingColorDepth):
    """VGA 16-bit colour, also called High colour in legacy systems
    (5 bits for red and blue channels, 6 bits for green).
    """

    def __init__(self) -> None:
        super().__init__(_vga16_mapper)


# -- Palette-based depths ----------------------------------------------


def _hex_to_rgb(hex_str: str) -> tuple[int, int, int]:
    """Parse '#RRGGBB' (or 'RRGGBB') to an RGB triple."""
    h = hex_str.strip().lstrip("#")
    if len(h) != 6:
        msg = f"invalid hex colour '{hex_str}', expected #RRGGBB"
        raise ValueError(msg)
    try:
        return tuple(int(h[i : i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]
    except ValueError:
        msg = f"invalid hex colour '{hex_str}', expected #RRGGBB"
        raise ValueError(msg) from None


class FixedPalette(ColorDepth):
    """Colour depth defined by a hardware-level palette of RGB colours.

    Args:
        palette: (K, 3) RGB triples, K >= 1. Order only matters for ties,
            which go to the earliest entry.
    """

    def __init__(self, palette: np.ndarray | Sequence[Sequence[int]]) -> None:
        self.palette = _frozen_palette(palette)

    @classmethod
    def from_hex(cls, hex_colors: Sequence[str]) -> FixedPalette:
        """Build a palette from ``["#RRGGBB", ...]``."""
        return cls([_hex_to_rgb(h) for h in hex_colors])

    def __len__(self) -> int:
        return len(self.palette)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.palette)} colours)"

    def convert_pixels(self, pixels: np.ndarray) -> np.ndarray:
        """Snap every pixel to its nearest palette entry."""
        flat = as_rgb_pixels(pixels)
        return self.palette[nearest_palette_indices(flat, self.palette)]

    def convert_color(self, color: Sequence[int]) -> Color:
        """Nearest palette entry by squared Euclidean RGB distance."""
        idx = nearest_palette_indices(np.array([color[:3]], dtype=np.uint8), self.palette)
        return Color.from_rgb(self.palette[idx[0]])

    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        options = options or ColorOptions()
        original, width = image_pixels(image)

        if options.num_colors is not None and len(original):
            # palette is optimised on the original image, then constrained
            palette = self.convert_pixels(build_palette(original, options.num_colors))
            pixels = remap(palette, original, width, dither=options.dither)
        else:
            pixels = self.convert_pixels(original)

        return pixels, options.loss.image_diff(original, pixels)


class BackForePalette(ColorDepth):
    """One freely selectable background colour plus fixed foreground colours.

    The background is picked from *background* by snapping the per-channel
    median of the image; it is appended to *foreground* and the image is
    converted exactly as with :class:`FixedPalette` over those colours.
    """

    def __init__(
        self,
        background: FixedPalette | np.ndarray | Sequence[Sequence[int]],
        foreground: FixedPalette | np.ndarray | Sequence[Sequence[int]],
    ) -> None:
        self.background = (
            background if isinstance(background, FixedPalette) else FixedPalette(background)
        )
        self.foreground = _frozen_palette(
            foreground.palette if isinstance(foreground, FixedPalette) else foreground,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(background={len(self.background)} colours, "
            f"foreground={self.foreground.tolist()})"
        )

    def background_color(self, image: np.ndarray) -> Color:
        """Background colour candidate for an image, before snapping.

        This is the median of each channel taken independently, not the most
        frequent colour, and may not occur in the image at all.
        """
        original, _ = image_pixels(image)
        return color_median(original)

    def palette_for(self, image: np.ndarray) -> FixedPalette:
        """Foreground colours plus the snapped background colour."""
        bkg = self.background.convert_color(self.background_color(image))
        return FixedPalette(np.vstack([self.foreground, np.array([bkg.rgb()], np.uint8)]))

    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        original, _ = image_pixels(image)
        if len(original) == 0:
            return original, 0
        fixed = self.palette_for(image)
        logger.debug("Background colour: %s", tuple(fixed.palette[-1].tolist()))
        return fixed.convert_image_with_loss(image, options)


class BestPalette(ColorDepth):
    """A collection of colour depths; the one with the lowest loss wins.

    Args:
        candidates:  Colour depths to try, in order of preference.
        max_workers: Evaluate candidates on a thread pool of this size.
            The winner is the same as in a sequential run: ties go to the
            earliest candidate, never to the first one to finish.
    """

    def __init__(
        self, candidates: Sequence[ColorDepth], max_workers: int | None = None,
    ) -> None:
        if not candidates:
            msg = "BestPalette needs at least one candidate"
            raise InvalidArgumentError(msg)
        self.candidates = tuple(candidates)
        self.max_workers = max_workers

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.candidates)!r})"

    def evaluate(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> list[ConversionResult]:
        """Run every candidate; results are in candidate order."""
        options = options or ColorOptions()
        if self.max_workers is not None and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                return list(pool.map(
                    lambda cd: cd.convert_image_with_loss(image, options),
                    self.candidates,
                ))
        return [cd.convert_image_with_loss(image, options) for cd in self.candidates]

    def select(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> tuple[int, np.ndarray, int]:
        """Index of the winning candidate, with its pixels and loss."""
        results = self.evaluate(image, options)
        best = min(range(len(results)), key=lambda i: results[i][1])
        logger.debug(
            "Candidate losses %s, picked #%d", [loss for _, loss in results], best,
        )
        pixels, loss = results[best]
        return best, pixels, loss

    def convert_image_with_loss(
        self, image: np.ndarray, options: ColorOptions | None = None,
    ) -> ConversionResult:
        _, pixels, loss = self.select(image, options)
        return pixels, loss
