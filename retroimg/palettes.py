"""Hardware palette catalog and the named colour standards built on it.

Every table here is a read-only (K, 3) uint8 array created at import time and
shared by all conversions.
"""

from __future__ import annotations

import enum

import numpy as np

from retroimg.color_depth import (
    BackForePalette,
    BestPalette,
    ColorDepth,
    FixedPalette,
    TrueColor24Bit,
    Vga16Bit,
    Vga18Bit,
)


def _table(rows: list[list[int]] | np.ndarray) -> np.ndarray:
    arr = np.array(rows, dtype=np.uint8).reshape(-1, 3)
    arr.setflags(write=False)
    return arr


def _ega_table() -> np.ndarray:
    """64 EGA colours from the 6-bit ``rgbRGB`` index.

    Upper-case bits add 0xAA to a channel, lower-case bits add 0x55.
    """
    idx = np.arange(64)

    def bit(i: int) -> np.ndarray:
        return (idx >> i) & 1

    r = bit(2) * 0xAA + bit(5) * 0x55
    g = bit(1) * 0xAA + bit(4) * 0x55
    b = bit(0) * 0xAA + bit(3) * 0x55
    return _table(np.stack([r, g, b], axis=1))


# -- Colour tables -----------------------------------------------------

# Monochrome, black and white.
BW_1BIT = _table([[0, 0, 0], [0xFF, 0xFF, 0xFF]])

# The 16 colours of CGA, also EGA's default palette.
CGA_4BIT = _table([
    [0, 0, 0],
    [0, 0, 0xAA],
    [0, 0xAA, 0],
    [0, 0xAA, 0xAA],
    [0xAA, 0, 0],
    [0xAA, 0, 0xAA],
    [0xAA, 0x55, 0],
    [0xAA, 0xAA, 0xAA],
    [0x55, 0x55, 0x55],
    [0x55, 0x55, 0xFF],
    [0x55, 0xFF, 0x55],
    [0x55, 0xFF, 0xFF],
    [0xFF, 0x55, 0x55],
    [0xFF, 0x55, 0xFF],
    [0xFF, 0xFF, 0x55],
    [0xFF, 0xFF, 0xFF],
])

# The full 64-colour EGA palette.
EGA_6BIT = _ega_table()

# CGA mode 4 foreground sub-palettes (the fourth colour is the background).
CGA_MODE4_0_LOW = _table([
    [0, 0xAA, 0],     # green
    [0xAA, 0, 0],     # red
    [0xAA, 0x55, 0],  # brown
])
CGA_MODE4_0_HIGH = _table([
    [0x55, 0xFF, 0x55],  # light green
    [0xFF, 0x55, 0x55],  # light red
    [0xFF, 0xFF, 0x55],  # yellow
])
CGA_MODE4_1_LOW = _table([
    [0, 0xAA, 0xAA],     # cyan
    [0xAA, 0, 0xAA],     # magenta
    [0xAA, 0xAA, 0xAA],  # light gray
])
CGA_MODE4_1_HIGH = _table([
    [0x55, 0xFF, 0xFF],  # light cyan
    [0xFF, 0x55, 0xFF],  # light magenta
    [0xFF, 0xFF, 0xFF],  # white
])


# -- Colour depths -----------------------------------------------------

TRUE_COLOR_24BIT = TrueColor24Bit()
VGA_18BIT = Vga18Bit()
VGA_16BIT = Vga16Bit()

PALETTE_BW_1BIT = FixedPalette(BW_1BIT)

# All 16 CGA colours at once. Real CGA only allowed this at 160x100, and
# composite colour output is not reproduced.
PALETTE_CGA_4BIT = FixedPalette(CGA_4BIT)
PALETTE_EGA_6BIT = FixedPalette(EGA_6BIT)

PALETTE_CGA_MODE4_0_LOW = BackForePalette(PALETTE_CGA_4BIT, CGA_MODE4_0_LOW)
PALETTE_CGA_MODE4_0_HIGH = BackForePalette(PALETTE_CGA_4BIT, CGA_MODE4_0_HIGH)
PALETTE_CGA_MODE4_1_LOW = BackForePalette(PALETTE_CGA_4BIT, CGA_MODE4_1_LOW)
PALETTE_CGA_MODE4_1_HIGH = BackForePalette(PALETTE_CGA_4BIT, CGA_MODE4_1_HIGH)

# CGA mode 4 with the best of the four sub-palettes picked per image.
PALETTE_CGA_MODE4 = BestPalette([
    PALETTE_CGA_MODE4_0_LOW,
    PALETTE_CGA_MODE4_0_HIGH,
    PALETTE_CGA_MODE4_1_LOW,
    PALETTE_CGA_MODE4_1_HIGH,
])


class ColorStandard(enum.Enum):
    """Kind of colour palette to simulate. Resolution is not affected."""

    TRUE_24BIT = "true"
    VGA_18BIT = "vga"
    VGA_16BIT = "high"
    CGA_MODE4 = "cga"
    CGA_MODE4_HIGH1 = "cgamode4high1"
    BLACK_WHITE = "bw"
    FULL_CGA = "fullcga"
    FULL_EGA = "ega"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, name: str) -> ColorStandard:
        key = name.strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            msg = f"no such color standard '{name}'"
            raise ValueError(msg) from None

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def aliases(self) -> tuple[str, ...]:
        """Alternative names accepted by :meth:`from_str`."""
        return tuple(a for a, name in _ALIASES.items() if name == self.value)

    def color_depth(self) -> ColorDepth:
        return _DEPTHS[self]


_ALIASES = {
    "24bit": "true",
    "18bit": "vga",
    "16bit": "high",
    "cgamode4": "cga",
}

_DESCRIPTIONS = {
    ColorStandard.TRUE_24BIT: "True color 24-bit RGB (8 bits per channel)",
    ColorStandard.VGA_18BIT: "18-bit RGB (6 bits per channel)",
    ColorStandard.VGA_16BIT: "16-bit RGB, also called High color (5-6-5 bits per R-G-B channel)",
    ColorStandard.CGA_MODE4: "Mode 4 of CGA: 3 colors from hardcoded sub-palettes + 1 back color",
    ColorStandard.CGA_MODE4_HIGH1: (
        "Mode 4 of CGA, high intensity of sub-palette 1: "
        "white, cyan, magenta, and one arbitrary back color"
    ),
    ColorStandard.BLACK_WHITE: "Monochrome, black and white",
    ColorStandard.FULL_CGA: "All 16 colors from the CGA palette",
    ColorStandard.FULL_EGA: "All 64 colors from the EGA palette",
}

_DEPTHS: dict[ColorStandard, ColorDepth] = {
    ColorStandard.TRUE_24BIT: TRUE_COLOR_24BIT,
    ColorStandard.VGA_18BIT: VGA_18BIT,
    ColorStandard.VGA_16BIT: VGA_16BIT,
    ColorStandard.CGA_MODE4: PALETTE_CGA_MODE4,
    ColorStandard.CGA_MODE4_HIGH1: PALETTE_CGA_MODE4_1_HIGH,
    ColorStandard.BLACK_WHITE: PALETTE_BW_1BIT,
    ColorStandard.FULL_CGA: PALETTE_CGA_4BIT,
    ColorStandard.FULL_EGA: PALETTE_EGA_6BIT,
}


def color_depth_for(standard: ColorStandard | str) -> ColorDepth:
    """Colour depth for a standard or any of its names."""
    if not isinstance(standard, ColorStandard):
        standard = ColorStandard.from_str(standard)
    return standard.color_depth()
