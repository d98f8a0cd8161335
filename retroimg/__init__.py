"""
Retro Image Converter
=====================

Reduce a full-colour image to the colour model of historical display
hardware: fixed 16/64-colour palettes, 15/16/18-bit packed colour and
modes with one free background colour. Ships:

- **Palette building** (divisive clustering + k-means in CIELAB)
- **Floyd-Steinberg remapping** onto any fixed palette
- **Colour depth strategies** with a loss score, so competing palettes can
  be compared and the best one picked automatically
"""

__version__ = "0.4.1"

from retroimg.color_depth import (
    BackForePalette,
    BestPalette,
    ColorDepth,
    CustomColorDepth,
    FixedPalette,
    MappingColorDepth,
    TrueColor24Bit,
    Vga16Bit,
    Vga18Bit,
)
from retroimg.color_utils import Color, LossAlgorithm, color_diff_l1, color_diff_l2
from retroimg.config import ColorOptions, RetroConfig
from retroimg.dithering import Remapper, remap
from retroimg.errors import InvalidArgumentError, RetroImgError
from retroimg.image_io import colors_to_image, compute_output_size
from retroimg.palettes import ColorStandard, color_depth_for
from retroimg.quantize import Histogram, build_palette

__all__ = [
    "BackForePalette",
    "BestPalette",
    "Color",
    "ColorDepth",
    "ColorOptions",
    "ColorStandard",
    "CustomColorDepth",
    "FixedPalette",
    "Histogram",
    "InvalidArgumentError",
    "LossAlgorithm",
    "MappingColorDepth",
    "Remapper",
    "RetroConfig",
    "RetroImgError",
    "TrueColor24Bit",
    "Vga16Bit",
    "Vga18Bit",
    "build_palette",
    "color_depth_for",
    "color_diff_l1",
    "color_diff_l2",
    "colors_to_image",
    "compute_output_size",
    "remap",
]
