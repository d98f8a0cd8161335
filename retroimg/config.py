"""Centralised configuration via frozen dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from retroimg.color_utils import LossAlgorithm
from retroimg.errors import InvalidArgumentError


@dataclass(frozen=True)
class ColorOptions:
    """Options for transforming an image to a different colour depth.

    Attributes:
        num_colors: Maximum number of simultaneous colours. ``None`` means no
            limit: no palette is built and no dithering takes place, only the
            per-pixel colour depth mapping applies.
        loss:       Distance algorithm used for the reported loss (and for
            picking the best candidate in :class:`~retroimg.color_depth.BestPalette`).
        dither:     Diffuse the quantisation error (Floyd-Steinberg) when
            remapping to a capped palette. Without it every pixel simply takes
            its nearest palette entry.
    """

    num_colors: int | None = None
    loss: LossAlgorithm = LossAlgorithm.L1
    dither: bool = True

    def __post_init__(self) -> None:
        if self.num_colors is not None and self.num_colors < 1:
            msg = f"num_colors must be at least 1, got {self.num_colors}"
            raise InvalidArgumentError(msg)


@dataclass(frozen=True)
class RetroConfig:
    """All tuneable parameters for a command-line run.

    Attributes:
        standard:          Colour standard name (see ``palettes.ColorStandard``).
        internal_resolution: Emulated resolution the image is reduced to
            before colour reduction.
        output_resolution: Output image size used when neither width, height
            nor pixel ratio are given.
        num_colors:        Maximum number of simultaneous colours.
        no_color_limit:    Ignore ``num_colors`` and keep every colour.
        loss:              Loss algorithm name, ``"L1"`` or ``"L2"``.
        dither:            Floyd-Steinberg dithering on the capped palette.
        output:            Output file for single conversions.
        input_dir:         Folder scanned by batch runs.
        output_dir:        Folder for batch results.
    """

    # Colour
    standard: str = "vga"
    num_colors: int = 256
    no_color_limit: bool = False
    loss: str = "L1"
    dither: bool = True

    # Geometry
    internal_resolution: tuple[int, int] = (427, 200)
    output_resolution: tuple[int, int] = (1920, 1080)

    # Paths
    output: Path = field(default_factory=lambda: Path("out.png"))
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".gif", ".tga"}
    )

    def color_options(self) -> ColorOptions:
        """Build the :class:`ColorOptions` this configuration describes."""
        return ColorOptions(
            num_colors=None if self.no_color_limit else self.num_colors,
            loss=LossAlgorithm.from_str(self.loss),
            dither=self.dither,
        )
