"""Tests for falcon_cli.cli.validation: checks that run before any network call."""

from pathlib import Path

import pytest

from falcon_cli.cli.validation import (
    clamp_num_images,
    parse_int_option,
    validate_action_flags,
    validate_aspect,
    validate_generation_model,
    validate_image_path,
    validate_output_path,
    validate_resolution,
)
from falcon_cli.core.errors import ValidationError


class TestOutputPath:
    """Output paths must stay inside the working directory."""

    def test_relative_path_inside(self, temp_dir: Path):
        result = validate_output_path("renders/fox.png", base_dir=temp_dir)
        assert result == (temp_dir / "renders" / "fox.png").resolve()

    def test_absolute_path_inside(self, temp_dir: Path):
        target = temp_dir / "fox.png"
        assert validate_output_path(target, base_dir=temp_dir) == target.resolve()

    def test_rejects_traversal(self, temp_dir: Path):
        with pytest.raises(ValidationError, match="within current directory"):
            validate_output_path("../../etc/passwd", base_dir=temp_dir)

    def test_rejects_absolute_outside(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            validate_output_path("/etc/passwd", base_dir=temp_dir / "sub")

    def test_rejects_sibling_with_common_prefix(self, temp_dir: Path):
        """A sibling directory sharing a name prefix is still outside."""
        base = temp_dir / "work"
        base.mkdir()
        with pytest.raises(ValidationError):
            validate_output_path(temp_dir / "work-evil" / "x.png", base_dir=base)

    def test_defaults_to_cwd(self, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)
        assert validate_output_path("fox.png") == (temp_dir / "fox.png").resolve()


class TestImagePath:
    """Edit and upscale sources must exist and be images."""

    def test_valid_png(self, sample_image: Path):
        assert validate_image_path(sample_image) == sample_image.resolve()

    @pytest.mark.parametrize("suffix", [".jpg", ".JPEG", ".webp"])
    def test_other_extensions(self, temp_dir: Path, suffix):
        path = temp_dir / f"photo{suffix}"
        path.write_bytes(b"x")
        assert validate_image_path(path) == path.resolve()

    def test_missing(self, temp_dir: Path):
        with pytest.raises(ValidationError, match="Image not found"):
            validate_image_path(temp_dir / "missing.png")

    def test_wrong_extension(self, temp_dir: Path):
        path = temp_dir / "notes.txt"
        path.write_text("hi")
        with pytest.raises(ValidationError, match="Invalid image format"):
            validate_image_path(path)


class TestChoices:
    """Model, aspect and resolution must come from the fixed lists."""

    def test_known_model(self):
        assert validate_generation_model("gemini3") == "gemini3"

    def test_unknown_model_lists_available(self):
        with pytest.raises(ValidationError, match="Available: gpt, banana, gemini, gemini3"):
            validate_generation_model("dalle")

    def test_utility_model_rejected(self):
        with pytest.raises(ValidationError, match="not an image generation model"):
            validate_generation_model("clarity")

    def test_aspect(self):
        assert validate_aspect("21:9") == "21:9"
        with pytest.raises(ValidationError, match="Invalid aspect ratio"):
            validate_aspect("7:3")

    def test_resolution(self):
        assert validate_resolution("4K") == "4K"
        with pytest.raises(ValidationError, match="Invalid resolution"):
            validate_resolution("8K")


class TestFlags:
    """Image count clamping and exclusive action flags."""

    @pytest.mark.parametrize("num,expected", [(-3, 1), (0, 1), (1, 1), (3, 3), (4, 4), (10, 4)])
    def test_clamp(self, num, expected):
        assert clamp_num_images(num) == expected

    def test_no_action(self):
        assert validate_action_flags(last=False, vary=False, up=False, rmbg=False) is None

    def test_single_action(self):
        assert validate_action_flags(last=False, vary=True, up=False, rmbg=False) == "vary"

    def test_multiple_actions_rejected(self):
        with pytest.raises(ValidationError, match="--vary, --up"):
            validate_action_flags(last=False, vary=True, up=True, rmbg=False)

    @pytest.mark.parametrize("value,expected", [(None, None), ("3", 3), (" 4 ", 4), ("-2", -2)])
    def test_parse_int_option(self, value, expected):
        assert parse_int_option(value, "--num") == expected

    @pytest.mark.parametrize("value", ["x", "2.5", ""])
    def test_parse_int_option_rejects_text(self, value):
        with pytest.raises(ValidationError, match="Invalid value for --num"):
            parse_int_option(value, "--num")
