"""Shared pytest fixtures for falcon tests."""

import io
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest
from PIL import Image

from falcon_cli.api.gateway import FalGateway
from falcon_cli.core.models import FalconConfig, Generation
from falcon_cli.core.store import Store

TEST_KEY = "fal-test-key-0123456789"


def make_png(width: int = 32, height: int = 16, color: str = "red") -> bytes:
    """Encode a solid-colour PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeFal:
    """In-memory stand-in for the fal.ai run API and its image CDN.

    POST requests are recorded and answered with a configured payload (by
    default one image per requested ``num_images``). GET requests return PNG
    bytes, so downloads produce real images.
    """

    def __init__(self, image_bytes: bytes):
        self.image_bytes = image_bytes
        self.requests: list[dict[str, Any]] = []
        self.downloads: list[str] = []
        self.responses: dict[str, tuple[int, Any]] = {}
        self.download_status = 200
        self.transport = httpx.MockTransport(self.handle)

    def respond(self, path: str, payload: Any, status: int = 200) -> None:
        """Answer POSTs to ``path`` with ``payload``."""
        self.responses[path] = (status, payload)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.downloads.append(str(request.url))
            return httpx.Response(self.download_status, content=self.image_bytes)

        body = json.loads(request.content)
        self.requests.append({"path": request.url.path, "body": body, "headers": request.headers})

        if request.url.path in self.responses:
            status, payload = self.responses[request.url.path]
            if isinstance(payload, (bytes, str)):
                return httpx.Response(status, content=payload)
            return httpx.Response(status, json=payload)

        count = body.get("num_images", 1)
        images = [{"url": f"https://cdn.fal.test/result-{i}.png"} for i in range(count)]
        return httpx.Response(200, json={"images": images, "seed": 42})

    @property
    def last_body(self) -> dict[str, Any]:
        return self.requests[-1]["body"]

    @property
    def last_path(self) -> str:
        return self.requests[-1]["path"]


@pytest.fixture(autouse=True)
def no_fal_key(monkeypatch):
    """Keep a developer's FAL_KEY out of the tests."""
    monkeypatch.delenv("FAL_KEY", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def store(temp_dir: Path) -> Store:
    """Store rooted in a temporary falcon directory with a local override file."""
    return Store(temp_dir / ".falcon", local_config_path=temp_dir / ".falconrc")


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def sample_image(temp_dir: Path, png_bytes: bytes) -> Path:
    """A small PNG on disk."""
    path = temp_dir / "sample.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def fake_fal(png_bytes: bytes) -> FakeFal:
    return FakeFal(png_bytes)


@pytest.fixture
def gateway_factory(fake_fal: FakeFal) -> Callable[..., FalGateway]:
    """Build gateways that talk to ``fake_fal`` with a test key."""

    def factory(config: FalconConfig | None = None, api_key: str | None = TEST_KEY) -> FalGateway:
        return FalGateway(api_key=api_key, config=config, transport=fake_fal.transport)

    return factory


@pytest.fixture
def make_generation(temp_dir: Path) -> Callable[..., Generation]:
    """Factory for Generation records pointing at files in ``temp_dir``."""

    def factory(**overrides: Any) -> Generation:
        values: dict[str, Any] = {
            "prompt": "a red fox",
            "model": "banana",
            "aspect": "1:1",
            "resolution": "2K",
            "output": str(temp_dir / "fox.png"),
            "cost": 0.15,
        }
        values.update(overrides)
        return Generation(**values)

    return factory


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    """Build PNG bytes of a given size."""
    return make_png
