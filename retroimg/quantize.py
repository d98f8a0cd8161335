"""Palette construction: histogram, cluster splitting and k-means refinement.

The palette grows one cluster at a time. Each step splits the cluster with
the largest weighted squared error along its principal axis (in CIELAB).
Once the palette reaches the requested size, a bounded number of weighted
k-means passes over the histogram refine the result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator

import numpy as np
from scipy.spatial import KDTree

from retroimg.color_utils import Color, as_rgb_pixels, lab_to_rgb, rgb_to_lab
from retroimg.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# Intermediate refinement runs every time the palette size crosses a multiple
# of this value.
OPTIMIZE_EVERY = 256
INTERMEDIATE_ITERATIONS = 16
FINAL_ITERATIONS = 8


class Histogram:
    """Distinct colours of a buffer with their occurrence counts.

    Colours are kept in ascending packed-RGB order so that everything derived
    from a histogram is stable for a given input.
    """

    def __init__(self, colors: np.ndarray, counts: np.ndarray) -> None:
        self.colors = colors
        self.counts = counts
        self.lab = rgb_to_lab(colors) if len(colors) else np.empty((0, 3))

    @classmethod
    def from_pixels(cls, pixels: np.ndarray) -> Histogram:
        flat = as_rgb_pixels(pixels).astype(np.uint32)
        keys = (flat[:, 0] << 16) | (flat[:, 1] << 8) | flat[:, 2]
        unique, counts = np.unique(keys, return_counts=True)
        colors = np.stack(
            [(unique >> 16) & 0xFF, (unique >> 8) & 0xFF, unique & 0xFF], axis=1,
        ).astype(np.uint8)
        return cls(colors, counts.astype(np.int64))

    def __len__(self) -> int:
        return len(self.colors)

    def __getitem__(self, color: Color) -> int:
        hit = np.flatnonzero((self.colors == np.asarray(color[:3], dtype=np.uint8)).all(axis=1))
        return int(self.counts[hit[0]]) if len(hit) else 0

    def items(self) -> Iterator[tuple[Color, int]]:
        for rgb, count in zip(self.colors, self.counts, strict=True):
            yield Color.from_rgb(rgb), int(count)


def _weighted_mean(points: np.ndarray, weights: np.ndarray) -> np.ndarray:
    return (points * weights[:, np.newaxis]).sum(axis=0) / weights.sum()


def _kmeans(
    points: np.ndarray,
    weights: np.ndarray,
    centers: np.ndarray,
    iterations: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Weighted Lloyd iterations. Centers that lose all members stay put.

    Returns:
        (centers, labels) where labels index the returned centers.
    """
    centers = centers.astype(np.float64).copy()
    for _ in range(iterations):
        _, labels = KDTree(centers).query(points)
        totals = np.bincount(labels, weights=weights, minlength=len(centers))
        sums = np.zeros_like(centers)
        np.add.at(sums, labels, points * weights[:, np.newaxis])

        moved = totals > 0
        updated = centers.copy()
        updated[moved] = sums[moved] / totals[moved, np.newaxis]
        shift = float(np.abs(updated - centers).max())
        centers = updated
        if shift < 1e-9:
            break
    _, labels = KDTree(centers).query(points)
    return centers, labels


class Quantizer:
    """Divisive clustering of a histogram in CIELAB."""

    def __init__(self, histogram: Histogram) -> None:
        self.histogram = histogram
        self._clusters: list[np.ndarray] = (
            [np.arange(len(histogram))] if len(histogram) else []
        )
        self._errors = [self._error(c) for c in self._clusters]

    @property
    def num_colors(self) -> int:
        return len(self._clusters)

    def _error(self, members: np.ndarray) -> float:
        points = self.histogram.lab[members]
        weights = self.histogram.counts[members].astype(np.float64)
        mean = _weighted_mean(points, weights)
        return float((weights * ((points - mean) ** 2).sum(axis=1)).sum())

    def step(self) -> bool:
        """Split the worst cluster in two.

        Returns:
            ``False`` when every cluster holds a single colour and nothing
            could be split.
        """
        splittable = [i for i, c in enumerate(self._clusters) if len(c) > 1]
        if not splittable:
            return False
        worst = max(splittable, key=lambda i: self._errors[i])
        members = self._clusters[worst]

        points = self.histogram.lab[members]
        weights = self.histogram.counts[members].astype(np.float64)
        centred = points - _weighted_mean(points, weights)
        cov = (centred * weights[:, np.newaxis]).T @ centred
        _, vectors = np.linalg.eigh(cov)
        proj = centred @ vectors[:, -1]

        below = proj < 0
        if below.all() or not below.any():
            # Degenerate projection, fall back to halving along the axis.
            order = np.argsort(proj, kind="stable")
            below = np.zeros(len(members), dtype=bool)
            below[order[: len(members) // 2]] = True

        self._clusters[worst] = members[below]
        self._clusters.append(members[~below])
        self._errors[worst] = self._error(self._clusters[worst])
        self._errors.append(self._error(self._clusters[-1]))
        return True

    def colors_lab(self) -> np.ndarray:
        """Weighted cluster means, (K, 3) CIELAB."""
        if not self._clusters:
            return np.empty((0, 3))
        return np.array([
            _weighted_mean(
                self.histogram.lab[c], self.histogram.counts[c].astype(np.float64),
            )
            for c in self._clusters
        ])

    def colors(self) -> np.ndarray:
        """Current palette, (K, 3) uint8 RGB."""
        return lab_to_rgb(self.colors_lab()) if self._clusters else np.empty((0, 3), np.uint8)

    def optimize(self, iterations: int) -> Quantizer:
        """Reassign histogram colours with k-means; empty clusters are dropped."""
        if not self._clusters:
            return self
        _, labels = _kmeans(
            self.histogram.lab,
            self.histogram.counts.astype(np.float64),
            self.colors_lab(),
            iterations,
        )
        self._clusters = [
            members
            for k in range(self.num_colors)
            if len(members := np.flatnonzero(labels == k))
        ]
        self._errors = [self._error(c) for c in self._clusters]
        return self


def optimize_palette(
    palette: np.ndarray,
    histogram: Histogram,
    iterations: int = FINAL_ITERATIONS,
) -> np.ndarray:
    """Refine a palette against histogram-weighted colours.

    Args:
        palette:    (K, 3) uint8 starting palette.
        histogram:  Colours and weights to fit.
        iterations: Maximum number of k-means passes.

    Returns:
        (K, 3) uint8 refined palette.
    """
    if len(palette) == 0 or len(histogram) == 0:
        return np.asarray(palette, dtype=np.uint8).reshape(-1, 3)
    centers, _ = _kmeans(
        histogram.lab,
        histogram.counts.astype(np.float64),
        rgb_to_lab(as_rgb_pixels(palette)),
        iterations,
    )
    return lab_to_rgb(centers)


def build_palette(pixels: np.ndarray, num_colors: int) -> np.ndarray:
    """Build a palette of at most *num_colors* colours for a pixel buffer.

    Args:
        pixels:     (N, 3) uint8 buffer, or an (H, W, 3) image.
        num_colors: Target palette size, at least 1.

    Returns:
        (K, 3) uint8 palette with K <= num_colors. K is smaller only when
        the buffer has fewer distinct colours.
    """
    if num_colors < 1:
        msg = f"num_colors must be at least 1, got {num_colors}"
        raise InvalidArgumentError(msg)

    t0 = time.perf_counter()
    histogram = Histogram.from_pixels(pixels)
    logger.debug("Histogram: %d distinct colours", len(histogram))
    if len(histogram) == 0:
        return np.empty((0, 3), dtype=np.uint8)

    quantizer = Quantizer(histogram)
    next_optimize = OPTIMIZE_EVERY
    while quantizer.num_colors < num_colors:
        if not quantizer.step():
            break
        # very optional and slow, only at multiples of OPTIMIZE_EVERY
        if quantizer.num_colors >= next_optimize:
            next_optimize += OPTIMIZE_EVERY
            quantizer.optimize(INTERMEDIATE_ITERATIONS)

    palette = optimize_palette(quantizer.colors(), histogram, FINAL_ITERATIONS)
    logger.debug(
        "Palette of %d colours built  (%.2f s)", len(palette), time.perf_counter() - t0,
    )
    return palette
