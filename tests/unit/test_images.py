"""Tests for falcon_cli.core.images: local image helpers."""

import os
import re
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from PIL import Image

from falcon_cli.core import images
from falcon_cli.core.errors import PersistenceError, TransportError, ValidationError
from falcon_cli.core.images import (
    delete_temp_file,
    download_image,
    format_file_size,
    generate_filename,
    get_file_size,
    get_image_dimensions,
    image_to_data_url,
    is_temp_file,
    open_image,
    resize_image,
)


class TestDataUrl:
    """Test image_to_data_url."""

    async def test_png(self, sample_image: Path):
        url = await image_to_data_url(sample_image)
        assert url.startswith("data:image/png;base64,")

    @pytest.mark.parametrize(
        "suffix,mime",
        [(".jpg", "image/jpeg"), (".JPEG", "image/jpeg"), (".webp", "image/webp"), (".gif", "image/png")],
    )
    async def test_mime_from_extension(self, temp_dir: Path, suffix, mime):
        path = temp_dir / f"image{suffix}"
        path.write_bytes(b"data")
        url = await image_to_data_url(path)
        assert url == f"data:{mime};base64,ZGF0YQ=="

    async def test_missing_file(self, temp_dir: Path):
        with pytest.raises(ValidationError, match="Image not found"):
            await image_to_data_url(temp_dir / "missing.png")


class TestResize:
    """Test resize_image and temp file cleanup."""

    async def test_large_image_shrunk_to_temp(self, temp_dir: Path, png_factory):
        source = temp_dir / "big.png"
        source.write_bytes(png_factory(2048, 1024))

        resized = await resize_image(source, max_size=1024)
        try:
            assert resized != source
            assert resized.name.startswith("falcon-resize-")
            assert is_temp_file(resized)
            with Image.open(resized) as image:
                assert image.size == (1024, 512)
        finally:
            delete_temp_file(resized)
        assert not resized.exists()

    async def test_small_image_unchanged(self, sample_image: Path):
        assert await resize_image(sample_image, max_size=1024) == sample_image

    async def test_undecodable_returns_original(self, temp_dir: Path):
        path = temp_dir / "broken.png"
        path.write_bytes(b"not an image")
        assert await resize_image(path) == path


class TestInspection:
    """Test dimension and size lookups."""

    async def test_dimensions(self, sample_image: Path):
        assert await get_image_dimensions(sample_image) == (32, 16)

    async def test_dimensions_of_garbage(self, temp_dir: Path):
        path = temp_dir / "garbage.png"
        path.write_bytes(b"\x00\x01")
        assert await get_image_dimensions(path) is None

    async def test_dimensions_of_missing_file(self, temp_dir: Path):
        assert await get_image_dimensions(temp_dir / "missing.png") is None

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0B"), (512, "512B"), (1536, "1.5KB"), (int(2.5 * 1024 * 1024), "2.5MB")],
    )
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected

    async def test_get_file_size(self, temp_dir: Path):
        path = temp_dir / "blob.bin"
        path.write_bytes(b"x" * 2048)
        assert await get_file_size(path) == "2.0KB"

    async def test_get_file_size_of_missing_file(self, temp_dir: Path):
        with pytest.raises(PersistenceError, match="Could not read"):
            await get_file_size(temp_dir / "missing.bin")

    def test_generate_filename(self):
        assert re.fullmatch(r"fal-\d{14}\.png", generate_filename())
        assert generate_filename("edit").startswith("edit-")


class TestDownload:
    """Test download_image."""

    async def test_writes_file(self, temp_dir: Path, png_bytes: bytes):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes))
        async with httpx.AsyncClient(transport=transport) as client:
            path = await download_image("https://cdn.fal.test/x.png", temp_dir / "out" / "x.png", client)
        assert path.read_bytes() == png_bytes

    async def test_error_status(self, temp_dir: Path):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportError, match="Failed to download"):
                await download_image("https://cdn.fal.test/x.png", temp_dir / "x.png", client)
        assert not (temp_dir / "x.png").exists()

    async def test_target_is_directory(self, temp_dir: Path, png_bytes: bytes):
        (temp_dir / "outdir").mkdir()
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(PersistenceError, match="Could not save image"):
                await download_image("https://cdn.fal.test/x.png", temp_dir / "outdir", client)


class TestTempFiles:
    """delete_temp_file only removes falcon's own temp files."""

    def test_refuses_non_temp_file(self, sample_image: Path):
        delete_temp_file(sample_image)
        assert sample_image.exists()

    def test_refuses_foreign_file_in_temp_dir(self):
        handle, name = tempfile.mkstemp(prefix="other-", suffix=".png")
        path = Path(name)
        try:
            os.close(handle)
            delete_temp_file(path)
            assert path.exists()
        finally:
            path.unlink(missing_ok=True)

    def test_deletes_falcon_temp_file(self):
        handle, name = tempfile.mkstemp(prefix="falcon-", suffix=".png")
        os.close(handle)
        delete_temp_file(name)
        assert not Path(name).exists()

    def test_missing_temp_file_is_fine(self):
        delete_temp_file(Path(tempfile.gettempdir()) / "falcon-gone.png")


class TestOpenImage:
    """Test open_image platform dispatch."""

    async def test_missing_file(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            await open_image(temp_dir / "missing.png")

    @pytest.mark.parametrize("platform,command", [("linux", "xdg-open"), ("darwin", "open")])
    async def test_uses_platform_opener(self, sample_image: Path, monkeypatch, platform, command):
        spawn = AsyncMock()
        monkeypatch.setattr(images.sys, "platform", platform)
        monkeypatch.setattr(images.asyncio, "create_subprocess_exec", spawn)

        await open_image(sample_image)

        args = spawn.call_args.args
        assert args == (command, str(sample_image.resolve()))

    async def test_opener_failure_is_logged(self, sample_image: Path, monkeypatch):
        monkeypatch.setattr(images.sys, "platform", "linux")
        monkeypatch.setattr(
            images.asyncio, "create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())
        )
        await open_image(sample_image)
