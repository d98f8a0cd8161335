"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from fractions import Fraction
from pathlib import Path
from typing import TypeVar

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from retroimg.color_depth import ColorDepth, FixedPalette
from retroimg.config import ColorOptions, RetroConfig
from retroimg.errors import RetroImgError
from retroimg.image_io import (
    colors_to_image,
    compute_output_size,
    crop,
    expand,
    load_image,
    reduce,
    save_image,
)
from retroimg.palettes import ColorStandard, color_depth_for

app = typer.Typer(
    name="retroimg",
    help="Convert images to look like in retro IBM hardware.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()
logger = logging.getLogger("retroimg")

T = TypeVar("T")

# Defaults come from RetroConfig - single source of truth
_DEFAULTS = RetroConfig()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


# -- Option parsing ----------------------------------------------------


def parse_resolution(value: str) -> tuple[int, int]:
    """Parse ``<width>x<height>``."""
    parts = value.lower().split("x")
    if len(parts) != 2:
        msg = f"Invalid parameter {value!r}: Number of components should be 2 (<width>x<height>)"
        raise ValueError(msg)
    w, h = int(parts[0]), int(parts[1])
    if w < 1 or h < 1:
        msg = f"Invalid parameter {value!r}: width and height must be positive"
        raise ValueError(msg)
    return w, h


def parse_ratio(value: str) -> Fraction:
    """Parse a pixel ratio ``<width>:<height>``."""
    parts = value.split(":")
    if len(parts) != 2:
        msg = "Number of components should be 2 (<width>:<height>)"
        raise ValueError(msg)
    return Fraction(int(parts[0]), int(parts[1]))


def parse_rect(value: str) -> tuple[int, int, int, int]:
    """Parse a crop rectangle ``<left>,<top>,<width>,<height>``."""
    parts = value.split(",")
    if len(parts) != 4:
        msg = "Number of components should be 4 (<left>,<top>,<width>,<height>)"
        raise ValueError(msg)
    left, top, width, height = (int(p) for p in parts)
    return left, top, width, height


def _parse(value: str | None, parser: Callable[[str], T], name: str) -> T | None:
    if value is None:
        return None
    try:
        return parser(value)
    except (ValueError, ZeroDivisionError) as exc:
        raise typer.BadParameter(str(exc), param_hint=name) from exc


def _color_depth(standard: str, palette_hex: str | None) -> ColorDepth:
    if palette_hex:
        return _parse(
            palette_hex,
            lambda v: FixedPalette.from_hex([h for h in v.split(",") if h.strip()]),
            "--palette-hex",
        )
    return _parse(standard, color_depth_for, "--standard")


def _color_options(
    num_colors: int, no_color_limit: bool, loss: str, dither: bool,
) -> ColorOptions:
    if not no_color_limit and num_colors < 1:
        raise typer.BadParameter("must be at least 1", param_hint="--num-colors")
    config = replace(
        _DEFAULTS,
        num_colors=num_colors,
        no_color_limit=no_color_limit,
        loss=loss,
        dither=dither,
    )
    try:
        return config.color_options()
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--loss") from exc


def _convert_file(
    path: Path,
    depth: ColorDepth,
    options: ColorOptions,
    resolution: tuple[int, int],
    crop_rect: tuple[int, int, int, int] | None = None,
) -> tuple[np.ndarray, int]:
    """Load, crop, reduce and convert one image.

    Returns:
        ((H, W, 3) uint8 image at the internal resolution, loss)
    """
    img = load_image(path)
    if crop_rect is not None:
        img = crop(img, *crop_rect)
    in_w, in_h = resolution
    img = reduce(img, in_w, in_h)
    pixels, loss = depth.convert_image_with_loss(img, options)
    return colors_to_image(in_w, in_h, pixels), loss


# -- convert command ---------------------------------------------------


@app.command()
def convert(
    input_file: Path = typer.Argument(..., metavar="FILE", help="Image file"),
    output: Path = typer.Option(_DEFAULTS.output, "--out", "-o", help="Output image file path"),
    standard: str = typer.Option(_DEFAULTS.standard, "--standard", "-s", help="Color standard"),
    crop_rect: str | None = typer.Option(
        None, "--crop", "-C",
        help="Crop the input image to the rectangle 'left,top,width,height'",
    ),
    resolution: str = typer.Option(
        "x".join(map(str, _DEFAULTS.internal_resolution)), "--res", "-R",
        help="Resolution to resize the image into before color reduction",
    ),
    out_size: str = typer.Option(
        "x".join(map(str, _DEFAULTS.output_resolution)), "--out-size", "-S",
        help="Output image size",
    ),
    pixel_ratio: str | None = typer.Option(
        None, "--pixel-ratio", "-r", help="Pixel ratio (format 'w:h')",
    ),
    width: int | None = typer.Option(None, "--width", min=1, help="Output image width"),
    height: int | None = typer.Option(None, "--height", min=1, help="Output image height"),
    no_color_limit: bool = typer.Option(
        _DEFAULTS.no_color_limit, "--no-color-limit",
        help="Do not limit number of simultaneous colors (invalidates num_colors)",
    ),
    num_colors: int = typer.Option(
        _DEFAULTS.num_colors, "--num-colors", "-c",
        help="Maximum number of simultaneous colors (emulates palette indexing)",
    ),
    loss: str = typer.Option(_DEFAULTS.loss, "--loss", help="'L1' or 'L2'"),
    dither: bool = typer.Option(
        _DEFAULTS.dither, "--dither/--no-dither", help="Floyd-Steinberg dithering",
    ),
    palette_hex: str | None = typer.Option(
        None, "--palette-hex",
        help="Comma-separated hex colours used as a fixed palette instead of --standard",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print some info to stderr"),
) -> None:
    """Convert a single image."""
    _setup_logging(verbose)

    depth = _color_depth(standard, palette_hex)
    options = _color_options(num_colors, no_color_limit, loss, dither)
    in_w, in_h = _parse(resolution, parse_resolution, "--res")
    rect = _parse(crop_rect, parse_rect, "--crop")
    ratio = _parse(pixel_ratio, parse_ratio, "--pixel-ratio")
    try:
        out_res = compute_output_size(in_w, in_h, width, height, ratio)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--pixel-ratio") from exc
    if out_res is None:
        out_res = _parse(out_size, parse_resolution, "--out-size")

    logger.debug("Emulated internal resolution: %d x %d", in_w, in_h)
    logger.debug("External resolution: %d x %d", *out_res)

    t0 = time.perf_counter()
    try:
        img, err = _convert_file(input_file, depth, options, (in_w, in_h), rect)
    except (OSError, RetroImgError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    output.parent.mkdir(parents=True, exist_ok=True)
    save_image(expand(img, *out_res), output)
    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{in_w}x{in_h} -> {out_res[0]}x{out_res[1]}  "
        f"loss({options.loss})={err}  time={time.perf_counter() - t0:.1f}s[/dim]"
    )


# -- batch command -----------------------------------------------------


@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    standard: str = typer.Option(_DEFAULTS.standard, "--standard", "-s"),
    resolution: str = typer.Option(
        "x".join(map(str, _DEFAULTS.internal_resolution)), "--res", "-R",
    ),
    out_size: str = typer.Option(
        "x".join(map(str, _DEFAULTS.output_resolution)), "--out-size", "-S",
    ),
    no_color_limit: bool = typer.Option(_DEFAULTS.no_color_limit, "--no-color-limit"),
    num_colors: int = typer.Option(_DEFAULTS.num_colors, "--num-colors", "-c"),
    loss: str = typer.Option(_DEFAULTS.loss, "--loss"),
    dither: bool = typer.Option(_DEFAULTS.dither, "--dither/--no-dither"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Convert every image in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)

    depth = _color_depth(standard, None)
    options = _color_options(num_colors, no_color_limit, loss, dither)
    in_res = _parse(resolution, parse_resolution, "--res")
    out_res = _parse(out_size, parse_resolution, "--out-size")

    images = _collect_images(input_dir, _DEFAULTS.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        raise typer.Exit(0)
    output_dir.mkdir(parents=True, exist_ok=True)

    console.print(Panel.fit(
        f"[bold]RETROIMG[/bold]\n"
        f"Standard: {standard}  |  Colors: {options.num_colors or 'unlimited'}\n"
        f"Resolution: {in_res[0]}x{in_res[1]}  |  Loss: {options.loss}\n"
        f"Dithering: {options.dither}  |  Images: {len(images)}",
        border_style="cyan",
    ))

    failures = 0
    for idx, img_path in enumerate(images, 1):
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t0 = time.perf_counter()
        try:
            img, err = _convert_file(img_path, depth, options, in_res)
        except (OSError, RetroImgError) as exc:
            failures += 1
            logger.error("Skipping %s: %s", img_path.name, exc)
            continue
        out_path = output_dir / f"{img_path.stem}_{standard}.png"
        save_image(expand(img, *out_res), out_path)
        console.print(
            f"  [green]✓[/green] {out_path.name}  "
            f"[dim]loss={err}  time={time.perf_counter() - t0:.1f}s[/dim]"
        )

    console.print(Panel.fit(
        f"[bold green]ALL DONE[/bold green] - results in [bold]{output_dir}/[/bold]"
        + (f"  [red]{failures} failed[/red]" if failures else ""),
        border_style="green",
    ))
    if failures:
        raise typer.Exit(1)


# -- compare command ---------------------------------------------------


@app.command()
def compare(
    input_file: Path = typer.Argument(..., metavar="FILE", help="Image file"),
    resolution: str = typer.Option(
        "x".join(map(str, _DEFAULTS.internal_resolution)), "--res", "-R",
    ),
    no_color_limit: bool = typer.Option(_DEFAULTS.no_color_limit, "--no-color-limit"),
    num_colors: int = typer.Option(_DEFAULTS.num_colors, "--num-colors", "-c"),
    loss: str = typer.Option(_DEFAULTS.loss, "--loss"),
    dither: bool = typer.Option(_DEFAULTS.dither, "--dither/--no-dither"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Convert an image with every color standard and rank the losses."""
    _setup_logging(verbose)

    options = _color_options(num_colors, no_color_limit, loss, dither)
    in_res = _parse(resolution, parse_resolution, "--res")

    losses: dict[ColorStandard, int] = {}
    for standard in ColorStandard:
        try:
            _, losses[standard] = _convert_file(
                input_file, standard.color_depth(), options, in_res,
            )
        except (OSError, RetroImgError) as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1) from exc

    best = min(losses.values())
    table = Table(title=f"{input_file.name}  loss ({options.loss})")
    table.add_column("Standard")
    table.add_column("Description")
    table.add_column("Loss", justify="right")
    for standard, value in sorted(losses.items(), key=lambda kv: kv[1]):
        style = "bold green" if value == best else None
        table.add_row(str(standard), standard.description, str(value), style=style)
    console.print(table)


# -- standards command -------------------------------------------------


@app.command()
def standards() -> None:
    """List the available color standards."""
    table = Table(title="Color standards")
    table.add_column("Name")
    table.add_column("Aliases")
    table.add_column("Description")
    for standard in ColorStandard:
        table.add_row(str(standard), ", ".join(standard.aliases), standard.description)
    console.print(table)


if __name__ == "__main__":
    app()
