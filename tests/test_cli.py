"""Tests for the command-line interface."""

from __future__ import annotations

from fractions import Fraction
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from retroimg.cli import app, parse_ratio, parse_rect, parse_resolution
from retroimg.palettes import CGA_4BIT

runner = CliRunner()


@pytest.fixture
def tmp_image(tmp_path: Path) -> Path:
    """Write a small non-square test PNG to disk."""
    rng = np.random.default_rng(0)
    img = Image.fromarray(rng.integers(0, 256, (48, 64, 3), dtype=np.uint8))
    p = tmp_path / "test.png"
    img.save(p)
    return p


class TestParsing:
    def test_resolution(self) -> None:
        assert parse_resolution("427x200") == (427, 200)

    def test_resolution_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_resolution("427")
        with pytest.raises(ValueError):
            parse_resolution("0x200")

    def test_ratio(self) -> None:
        assert parse_ratio("5:6") == Fraction(5, 6)
        with pytest.raises(ValueError):
            parse_ratio("5")

    def test_rect(self) -> None:
        assert parse_rect("1,2,30,40") == (1, 2, 30, 40)
        with pytest.raises(ValueError):
            parse_rect("1,2,3")


class TestConvert:
    def test_convert_ega(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.png"
        result = runner.invoke(app, [
            "convert", str(tmp_image), "-o", str(out), "-s", "ega",
            "-R", "16x12", "-S", "32x24", "-c", "8",
        ])
        assert result.exit_code == 0, result.output
        img = Image.open(out)
        assert img.size == (32, 24)
        colours = {tuple(c) for c in np.array(img).reshape(-1, 3)}
        assert len(colours) <= 8

    def test_convert_width_and_ratio(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.png"
        result = runner.invoke(app, [
            "convert", str(tmp_image), "-o", str(out), "-s", "cga",
            "-R", "16x10", "--width", "32", "--pixel-ratio", "5:6",
            "--no-color-limit",
        ])
        assert result.exit_code == 0, result.output
        # display aspect 16*5 : 10*6 = 4:3
        assert Image.open(out).size == (32, 24)

    def test_convert_palette_hex(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.png"
        result = runner.invoke(app, [
            "convert", str(tmp_image), "-o", str(out), "--palette-hex", "#000000,#FFFFFF",
            "-R", "8x6", "-S", "8x6", "--no-color-limit",
        ])
        assert result.exit_code == 0, result.output
        colours = {tuple(c) for c in np.array(Image.open(out)).reshape(-1, 3)}
        assert colours <= {(0, 0, 0), (255, 255, 255)}

    def test_crop(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.png"
        result = runner.invoke(app, [
            "convert", str(tmp_image), "-o", str(out), "-s", "fullcga",
            "-C", "0,0,32,24", "-R", "8x6", "-S", "8x6", "--no-color-limit",
        ])
        assert result.exit_code == 0, result.output
        cga = {tuple(int(v) for v in c) for c in CGA_4BIT}
        colours = {tuple(int(v) for v in c) for c in np.array(Image.open(out)).reshape(-1, 3)}
        assert colours <= cga

    def test_invalid_standard(self, tmp_image: Path) -> None:
        result = runner.invoke(app, ["convert", str(tmp_image), "-s", "amiga"])
        assert result.exit_code == 2

    def test_invalid_loss(self, tmp_image: Path) -> None:
        result = runner.invoke(app, ["convert", str(tmp_image), "--loss", "L3"])
        assert result.exit_code == 2

    @pytest.mark.parametrize("flag", ["--width", "--height"])
    def test_zero_output_side_rejected(self, tmp_image: Path, flag: str) -> None:
        result = runner.invoke(app, ["convert", str(tmp_image), flag, "0"])
        assert result.exit_code == 2

    def test_zero_colors_rejected(self, tmp_image: Path) -> None:
        result = runner.invoke(app, ["convert", str(tmp_image), "-c", "0"])
        assert result.exit_code == 2

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, [
            "convert", str(tmp_path / "nope.png"), "-o", str(tmp_path / "out.png"),
        ])
        assert result.exit_code == 1


class TestOtherCommands:
    def test_standards(self) -> None:
        result = runner.invoke(app, ["standards"])
        assert result.exit_code == 0
        assert "ega" in result.output

    def test_compare(self, tmp_image: Path) -> None:
        result = runner.invoke(app, [
            "compare", str(tmp_image), "-R", "8x6", "--no-color-limit",
        ])
        assert result.exit_code == 0, result.output
        assert "true" in result.output

    def test_batch(self, tmp_image: Path, tmp_path: Path) -> None:
        out_dir = tmp_path / "results"
        result = runner.invoke(app, [
            "batch", "-i", str(tmp_image.parent), "-o", str(out_dir),
            "-s", "bw", "-R", "8x6", "-S", "16x12", "--no-color-limit",
        ])
        assert result.exit_code == 0, result.output
        assert (out_dir / "test_bw.png").exists()

    def test_batch_empty_folder(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["batch", "-i", str(tmp_path / "empty")])
        assert result.exit_code == 0
