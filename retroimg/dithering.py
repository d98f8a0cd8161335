"""Palette remapping with Floyd-Steinberg error diffusion.

Every pixel is matched, in raster order, against the palette in CIELAB. The
difference between the (error-adjusted) pixel and the chosen entry is
diffused to the unvisited neighbours: 7/16 to the right, 3/16 below-left,
5/16 below and 1/16 below-right. No randomness is involved, so a given
image and palette always produce the same indices.
"""

from __future__ import annotations

import logging
import time

import numpy as np
from scipy.spatial import KDTree

from retroimg.color_utils import as_rgb_pixels, rgb_to_lab
from retroimg.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# (dx, dy, weight)
FLOYD_STEINBERG = ((1, 0, 7 / 16), (-1, 1, 3 / 16), (0, 1, 5 / 16), (1, 1, 1 / 16))


class Remapper:
    """Maps pixels to indices of a fixed palette.

    Args:
        palette: (K, 3) uint8 RGB, K >= 1.
        dither:  Diffuse quantisation error. Without it each pixel takes its
            nearest entry independently.
    """

    def __init__(self, palette: np.ndarray, dither: bool = True) -> None:
        self.palette = as_rgb_pixels(palette)
        if len(self.palette) == 0:
            msg = "cannot remap onto an empty palette"
            raise InvalidArgumentError(msg)
        self.dither = dither
        self._palette_lab = rgb_to_lab(self.palette)

    def _nearest(self, lab: np.ndarray) -> int:
        d = self._palette_lab - lab
        return int(np.argmin(np.einsum("ij,ij->i", d, d)))

    def remap(self, pixels: np.ndarray, width: int) -> np.ndarray:
        """Assign a palette index to every pixel.

        Args:
            pixels: (N, 3) uint8 row-major buffer.
            width:  Row length, used for error propagation.

        Returns:
            (N,) uint8 indices when the palette fits in a byte, else int64.
        """
        flat = as_rgb_pixels(pixels)
        n = len(flat)
        if width < 1 or n % width:
            msg = f"width {width} does not divide a buffer of {n} pixels"
            raise InvalidArgumentError(msg)
        dtype = np.uint8 if len(self.palette) <= 256 else np.int64
        if n == 0:
            return np.empty(0, dtype=dtype)

        t0 = time.perf_counter()
        lab = rgb_to_lab(flat)
        if not self.dither:
            _, idx = KDTree(self._palette_lab).query(lab)
            return idx.astype(dtype)

        h = n // width
        work = lab.reshape(h, width, 3).copy()
        out = np.empty((h, width), dtype=dtype)
        for y in range(h):
            for x in range(width):
                desired = work[y, x]
                i = self._nearest(desired)
                out[y, x] = i
                err = desired - self._palette_lab[i]
                for dx, dy, weight in FLOYD_STEINBERG:
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and ny < h:
                        work[ny, nx] += err * weight

        logger.debug(
            "Dithered %dx%d onto %d colours  (%.2f s)",
            width, h, len(self.palette), time.perf_counter() - t0,
        )
        return out.reshape(-1)


def remap(
    palette: np.ndarray,
    pixels: np.ndarray,
    width: int,
    dither: bool = True,
) -> np.ndarray:
    """Remap *pixels* onto *palette* and return the resulting colours.

    Returns:
        (N, 3) uint8 - palette colours in row-major order.
    """
    remapper = Remapper(palette, dither=dither)
    return remapper.palette[remapper.remap(pixels, width)]
