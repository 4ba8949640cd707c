"""Local image file helpers.

Small async utilities shared by the CLI and the wizard: downloading results,
encoding local files as data URLs for upload, best-effort resizing of edit
sources, probing dimensions and sizes for the summary line, and opening
results in the platform's default viewer.

Blocking work (file reads and writes, Pillow decoding) runs in a worker
thread via :func:`asyncio.to_thread` so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import sys
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from .errors import PersistenceError, TransportError, ValidationError

logger = logging.getLogger(__name__)

TEMP_PREFIX = "falcon-"
RESIZE_PREFIX = f"{TEMP_PREFIX}resize-"

_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


async def download_image(url: str, output_path: str | Path, client: httpx.AsyncClient | None = None) -> Path:
    """Download an image and save it to ``output_path``.

    Args:
        url: Image URL
        output_path: Destination file
        client: Client to reuse; a temporary one is created otherwise

    Returns:
        The destination path

    Raises:
        TransportError: If the request fails or returns a non-2xx status
        PersistenceError: If the image cannot be written to ``output_path``
    """
    output_path = Path(output_path)

    async def _fetch(http: httpx.AsyncClient) -> bytes:
        try:
            response = await http.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to download image: {e}") from e
        if response.is_error:
            raise TransportError(f"Failed to download image: {response.reason_phrase}")
        return response.content

    if client is None:
        async with httpx.AsyncClient(timeout=None) as http:
            content = await _fetch(http)
    else:
        content = await _fetch(client)

    try:
        await asyncio.to_thread(_write_bytes, output_path, content)
    except OSError as e:
        raise PersistenceError(f"Could not save image to {output_path}: {e}") from e
    logger.info(f"Downloaded {len(content)} bytes to {output_path}")
    return output_path


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def image_to_data_url(image_path: str | Path) -> str:
    """Encode a local image file as a base64 data URL.

    Raises:
        ValidationError: If the file does not exist
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise ValidationError(f"Image not found: {image_path}")

    data = await asyncio.to_thread(image_path.read_bytes)
    mime_type = _MIME_TYPES.get(image_path.suffix.lower(), "image/png")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _temp_dir() -> Path:
    return Path(tempfile.gettempdir())


def _resize_to_temp(image_path: Path, max_size: int) -> Path:
    with Image.open(image_path) as image:
        if max(image.size) <= max_size:
            return image_path
        image.thumbnail((max_size, max_size))
        temp_path = _temp_dir() / f"{RESIZE_PREFIX}{uuid.uuid4()}.png"
        image.save(temp_path, format="PNG")
    return temp_path


async def resize_image(image_path: str | Path, max_size: int = 1024) -> Path:
    """Shrink an image so its longest side is at most ``max_size``.

    This is best effort: if the image is already small enough, or cannot be
    decoded, the original path is returned unchanged.

    Returns:
        Path of a temporary resized copy, or the original path
    """
    image_path = Path(image_path)
    try:
        return await asyncio.to_thread(_resize_to_temp, image_path, max_size)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.warning(f"Could not resize {image_path}, using original: {e}")
        return image_path


def _read_dimensions(image_path: Path) -> tuple[int, int]:
    with Image.open(image_path) as image:
        return image.size


async def get_image_dimensions(image_path: str | Path) -> tuple[int, int] | None:
    """Return ``(width, height)`` of an image, or ``None`` if it cannot be read."""
    try:
        return await asyncio.to_thread(_read_dimensions, Path(image_path))
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.debug(f"Could not read dimensions of {image_path}: {e}")
        return None


def format_file_size(num_bytes: int) -> str:
    """Human-readable size: ``512B``, ``1.5KB``, ``2.3MB``."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    return f"{num_bytes / (1024 * 1024):.1f}MB"


async def get_file_size(file_path: str | Path) -> str:
    """Human-readable size of a file.

    Raises:
        PersistenceError: If the file cannot be inspected
    """
    try:
        stat = await asyncio.to_thread(os.stat, file_path)
    except OSError as e:
        raise PersistenceError(f"Could not read {file_path}: {e}") from e
    return format_file_size(stat.st_size)


def generate_filename(prefix: str = "fal") -> str:
    """Timestamped output filename such as ``fal-20250101120000.png``."""
    return f"{prefix}-{datetime.now().strftime('%Y%m%d%H%M%S')}.png"


async def open_image(image_path: str | Path) -> None:
    """Open an image with the platform's default viewer.

    The viewer is started detached; this does not wait for it to exit.

    Raises:
        ValidationError: If the file does not exist
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise ValidationError(f"Image not found: {image_path}")

    absolute_path = str(image_path.resolve())

    if sys.platform == "darwin":
        command = ["open", absolute_path]
    elif sys.platform.startswith("linux"):
        command = ["xdg-open", absolute_path]
    elif sys.platform == "win32":
        await asyncio.to_thread(os.startfile, absolute_path)  # type: ignore[attr-defined]
        return
    else:
        logger.info(f"No image viewer known for {sys.platform}")
        return

    try:
        await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.warning(f"Could not open {absolute_path}: {e}")


def is_temp_file(file_path: str | Path) -> bool:
    """Whether ``file_path`` is one of falcon's temporary files."""
    path = Path(file_path)
    return path.parent.resolve() == _temp_dir().resolve() and path.name.startswith(TEMP_PREFIX)


def delete_temp_file(file_path: str | Path) -> None:
    """Delete a file, but only if it is one of falcon's temporary files."""
    if not is_temp_file(file_path):
        logger.debug(f"Refusing to delete non-temporary file {file_path}")
        return

    try:
        Path(file_path).unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not delete temp file {file_path}: {e}")
