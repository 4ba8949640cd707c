"""Validation utilities for command line inputs.

Everything here runs before any network call, so a bad flag never costs
money. Failures raise :class:`~falcon_cli.core.errors.ValidationError` with
a message meant to be shown to the user as is.
"""

import logging
from pathlib import Path

from falcon_cli.core.errors import UnknownModel, ValidationError
from falcon_cli.core.registry import (
    ASPECT_RATIOS,
    GENERATION_MODELS,
    RESOLUTIONS,
    get_model,
)

logger = logging.getLogger(__name__)

VALID_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")

MIN_IMAGES = 1
MAX_IMAGES = 4


def validate_output_path(output: str | Path, base_dir: Path | None = None) -> Path:
    """Validate that an output path stays inside the working directory.

    Args:
        output: Requested output path, relative or absolute
        base_dir: Directory the output must stay within (default: cwd)

    Returns:
        Absolute resolved path if valid

    Raises:
        ValidationError: If the path escapes ``base_dir``
    """
    base = (base_dir or Path.cwd()).resolve()

    try:
        resolved = (base / Path(output)).resolve()
    except (ValueError, OSError) as e:
        raise ValidationError(f"Invalid output path: {e}") from e

    # Security: prevent writing outside the working directory
    try:
        resolved.relative_to(base)
    except ValueError:
        logger.warning(f"Path traversal attempt detected: {output}")
        raise ValidationError(
            f"Output path must be within current directory: {output}"
        ) from None

    return resolved


def validate_image_path(image_path: str | Path) -> Path:
    """Validate a local image used as an edit or upscale source.

    This function ensures:
    1. The file exists
    2. It has a supported image extension

    Raises:
        ValidationError: If the file is missing or not a supported image
    """
    path = Path(image_path).expanduser().resolve()

    if not path.exists():
        raise ValidationError(f"Image not found: {image_path}")

    if path.suffix.lower() not in VALID_IMAGE_EXTENSIONS:
        raise ValidationError(
            f"Invalid image format: {path.suffix or '(none)'}. "
            f"Supported: {', '.join(VALID_IMAGE_EXTENSIONS)}"
        )

    return path


def validate_generation_model(model: str) -> str:
    """Check that ``model`` is a known generation model.

    Raises:
        ValidationError: With the list of available models
    """
    available = ", ".join(GENERATION_MODELS)
    try:
        config = get_model(model)
    except UnknownModel:
        raise ValidationError(f"Unknown model: {model}. Available: {available}") from None

    if config.type != "generation":
        raise ValidationError(f"{model} is not an image generation model. Available: {available}")
    return model


def validate_aspect(aspect: str) -> str:
    if aspect not in ASPECT_RATIOS:
        raise ValidationError(
            f"Invalid aspect ratio: {aspect}. Valid: {', '.join(ASPECT_RATIOS)}"
        )
    return aspect


def validate_resolution(resolution: str) -> str:
    if resolution not in RESOLUTIONS:
        raise ValidationError(
            f"Invalid resolution: {resolution}. Valid: {', '.join(RESOLUTIONS)}"
        )
    return resolution


def clamp_num_images(num: int) -> int:
    """Clamp the requested image count to 1-4."""
    return max(MIN_IMAGES, min(MAX_IMAGES, num))


def validate_action_flags(**flags: bool) -> str | None:
    """Ensure at most one action flag is set.

    Args:
        **flags: Action name to whether its flag was given

    Returns:
        The selected action name, or ``None``

    Raises:
        ValidationError: If more than one action was requested
    """
    selected = [name for name, enabled in flags.items() if enabled]
    if len(selected) > 1:
        options = ", ".join(f"--{name}" for name in selected)
        raise ValidationError(f"Only one of {options} can be used at a time")
    return selected[0] if selected else None


def parse_int_option(value: str | None, flag: str) -> int | None:
    """Parse an integer flag value.

    Args:
        value: Raw value as typed, or ``None`` when the flag was not given
        flag: Flag name used in the error message

    Raises:
        ValidationError: If the value is not an integer
    """
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid value for {flag}: {value} is not an integer") from None
