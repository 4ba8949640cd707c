"""Remote operations as complete, recorded workflows.

Each function here performs one user-level operation end to end:

1. prepare the input (resize and encode an edit source, encode an upscale
   source)
2. call the gateway
3. download every result image
4. record one :class:`~falcon_cli.core.models.Generation` per saved image

Both front-ends (the one-shot CLI and the interactive wizard) call these
functions, so neither depends on the other. Presentation (spinners, summary
lines, opening the result) stays in the front-ends.

Usage Example
-------------
    store = Store.from_settings(settings)
    async with FalGateway(config=store.load_config()) as gateway:
        result = await run_generate(gateway, store, prompt="a red fox", model="banana")
        for saved in result.images:
            print(saved.path, saved.dimensions, saved.size)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from .errors import InvalidModel, NoGenerationError, TransportError
from .images import (
    delete_temp_file,
    download_image,
    generate_filename,
    get_file_size,
    get_image_dimensions,
    image_to_data_url,
    resize_image,
)
from .models import Generation, History
from .registry import estimate_cost, get_model
from .store import Store

if TYPE_CHECKING:
    from falcon_cli.api.gateway import FalGateway
    from falcon_cli.api.models import FalResponse

logger = logging.getLogger(__name__)

OperationKind = Literal["generate", "edit", "variations", "upscale", "rmbg"]

EDIT_MAX_SIZE = 1024


@dataclass(frozen=True)
class SourceImage:
    """An existing image an operation works on.

    Attributes:
        path: Image file on disk
        prompt: Prompt that produced it (used to label derived generations)
        model: Model that produced it
        aspect: Aspect ratio it was generated with
        resolution: Resolution it was generated with
    """

    path: Path
    prompt: str = ""
    model: str | None = None
    aspect: str = "1:1"
    resolution: str = "1K"

    @classmethod
    def from_generation(cls, generation: Generation) -> "SourceImage":
        return cls(
            path=Path(generation.output),
            prompt=generation.prompt,
            model=generation.model,
            aspect=generation.aspect,
            resolution=generation.resolution,
        )


@dataclass(frozen=True)
class SavedImage:
    """A downloaded result image and its history record."""

    path: Path
    generation: Generation
    dimensions: tuple[int, int] | None = None
    size: str = "?"

    @property
    def dimensions_label(self) -> str:
        if self.dimensions is None:
            return "?"
        return f"{self.dimensions[0]}x{self.dimensions[1]}"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one operation.

    Attributes:
        kind: Which operation produced this result
        images: Saved images in the order the service returned them
        history: History document after the last generation was recorded
        seed: Seed reported by the service, if any
    """

    kind: OperationKind
    images: list[SavedImage] = field(default_factory=list)
    history: History | None = None
    seed: int | None = None

    @property
    def first(self) -> SavedImage | None:
        return self.images[0] if self.images else None

    @property
    def total_cost(self) -> float:
        return sum(saved.generation.cost for saved in self.images)


def require_last_generation(store: Store, message: str) -> Generation:
    """Return the newest generation or raise :class:`NoGenerationError`."""
    last = store.get_last_generation()
    if last is None:
        raise NoGenerationError(message)
    return last


def numbered_path(base: Path, index: int, count: int) -> Path:
    """Output path for image ``index`` (0-based) of ``count``."""
    if count <= 1:
        return base
    return base.with_name(f"{base.stem}-{index + 1}{base.suffix}")


def derived_path(source: Path, suffix: str) -> Path:
    """Output path next to ``source`` with a suffix, always as PNG."""
    return source.with_name(f"{source.stem}{suffix}.png")


async def _save_result(
    gateway: "FalGateway",
    response: "FalResponse",
    path: Path,
    index: int,
) -> tuple[Path, tuple[int, int] | None, str]:
    image = response.images[index]
    await download_image(image.url, path, client=gateway.client)
    dimensions = await get_image_dimensions(path)
    if dimensions is None and image.width and image.height:
        dimensions = (image.width, image.height)
    size = await get_file_size(path)
    return path, dimensions, size


def _require_images(response: "FalResponse") -> None:
    if not response.images:
        raise TransportError("The service returned no images")


async def run_generate(
    gateway: "FalGateway",
    store: Store,
    *,
    prompt: str,
    model: str,
    aspect: str = "1:1",
    resolution: str = "2K",
    num_images: int = 1,
    output_path: Path | None = None,
    edit_source: Path | None = None,
    transparent: bool = False,
    filename_prefix: str = "fal",
    kind: OperationKind = "generate",
) -> OperationResult:
    """Generate (or edit) images, download them and record them in history.

    Args:
        gateway: Remote API gateway
        store: History store
        prompt: Prompt, or edit instruction when ``edit_source`` is given
        model: Generation model id
        aspect: Aspect ratio
        resolution: Resolution
        num_images: Number of images to request
        output_path: Destination; numbered ``-1``, ``-2``... when several
        edit_source: Local image to edit
        transparent: Request a transparent background
        filename_prefix: Prefix for generated filenames when no output is given
        kind: Label for the result (``generate``, ``edit`` or ``variations``)

    Returns:
        The saved images and the updated history

    Raises:
        UnknownModel: If ``model`` is not registered
        InvalidModel: If ``model`` is a utility model
    """
    config = get_model(model)
    if config.type != "generation":
        raise InvalidModel(f"{model} is not an image generation model")

    edit_image: str | None = None
    if edit_source is not None:
        resized = await resize_image(edit_source, EDIT_MAX_SIZE)
        try:
            edit_image = await image_to_data_url(resized)
        finally:
            if resized != edit_source:
                delete_temp_file(resized)

    logger.info(f"Running {kind} with {model} ({aspect}, {resolution}, n={num_images})")
    response = await gateway.generate(
        prompt,
        model,
        aspect=aspect,
        resolution=resolution,
        num_images=num_images,
        edit_image=edit_image,
        transparent=transparent,
    )
    _require_images(response)

    base = Path(output_path) if output_path else Path(generate_filename(filename_prefix))
    count = len(response.images)
    saved: list[SavedImage] = []
    history: History | None = None

    for index in range(count):
        path, dimensions, size = await _save_result(
            gateway, response, numbered_path(base, index, count), index
        )
        generation = Generation(
            prompt=prompt,
            model=model,
            aspect=aspect,
            resolution=resolution,
            output=str(path.resolve()),
            cost=estimate_cost(model, resolution, 1),
            edited_from=str(Path(edit_source).resolve()) if edit_source else None,
        )
        history = store.add_generation(generation)
        saved.append(SavedImage(path, generation, dimensions, size))

    return OperationResult(kind=kind, images=saved, history=history, seed=response.seed)


async def run_variations(
    gateway: "FalGateway",
    store: Store,
    source: Generation,
    *,
    prompt: str | None = None,
    model: str | None = None,
    aspect: str | None = None,
    resolution: str | None = None,
    num_images: int = 4,
    output_path: Path | None = None,
) -> OperationResult:
    """Generate new images with the settings of an earlier generation.

    Any argument left as ``None`` is inherited from ``source``. When the
    source was produced by a utility model (an upscale, say) the model must
    be given explicitly.
    """
    return await run_generate(
        gateway,
        store,
        prompt=prompt or source.prompt,
        model=model or source.model,
        aspect=aspect or source.aspect,
        resolution=resolution or source.resolution,
        num_images=num_images,
        output_path=output_path,
        filename_prefix="var",
        kind="variations",
    )


async def run_upscale(
    gateway: "FalGateway",
    store: Store,
    source: SourceImage,
    *,
    model: str = "clarity",
    scale: int = 2,
    output_path: Path | None = None,
) -> OperationResult:
    """Upscale an image and record the result.

    The default output sits next to the source as ``<stem>-up<scale>x.png``.
    """
    image_url = await image_to_data_url(source.path)
    logger.info(f"Upscaling {source.path} {scale}x with {model}")
    response = await gateway.upscale(image_url, model=model, scale_factor=scale)
    _require_images(response)

    target = Path(output_path) if output_path else derived_path(source.path, f"-up{scale}x")
    path, dimensions, size = await _save_result(gateway, response, target, 0)

    label = f"[upscale {scale}x] {source.prompt}".rstrip()
    generation = Generation(
        prompt=label,
        model=model,
        aspect=source.aspect,
        resolution=source.resolution,
        output=str(path.resolve()),
        cost=estimate_cost(model),
        edited_from=str(source.path),
    )
    history = store.add_generation(generation)
    return OperationResult(
        kind="upscale",
        images=[SavedImage(path, generation, dimensions, size)],
        history=history,
        seed=response.seed,
    )


async def run_remove_background(
    gateway: "FalGateway",
    store: Store,
    source: SourceImage,
    *,
    model: str = "rmbg",
    output_path: Path | None = None,
) -> OperationResult:
    """Remove the background of an image and record the result.

    The default output sits next to the source as ``<stem>-nobg.png``.
    """
    image_url = await image_to_data_url(source.path)
    logger.info(f"Removing background from {source.path} with {model}")
    response = await gateway.remove_background(image_url, model=model)
    _require_images(response)

    target = Path(output_path) if output_path else derived_path(source.path, "-nobg")
    path, dimensions, size = await _save_result(gateway, response, target, 0)

    generation = Generation(
        prompt=f"[rmbg] {source.prompt}".rstrip(),
        model=model,
        aspect=source.aspect,
        resolution=source.resolution,
        output=str(path.resolve()),
        cost=estimate_cost(model),
        edited_from=str(source.path),
    )
    history = store.add_generation(generation)
    return OperationResult(
        kind="rmbg",
        images=[SavedImage(path, generation, dimensions, size)],
        history=history,
        seed=response.seed,
    )
