"""Static registry of the fal.ai models falcon can drive.

Each model is described by a :class:`ModelConfig`: the remote endpoint path,
whether it synthesises images (``generation``) or post-processes them
(``utility``), and a handful of capability flags. Request bodies are shaped
by branching on these flags (see :mod:`falcon_cli.api.gateway`), so adding
a model is a matter of adding a row to :data:`MODELS`.

Everything in this module is pure: no I/O, no mutable state.

Usage Example
-------------
    >>> from falcon_cli.core.registry import get_model, estimate_cost
    >>> get_model("banana").supports_resolution
    True
    >>> estimate_cost("banana", "4K", 2)
    0.6
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

from .errors import UnknownModel

ModelType = Literal["generation", "utility"]
UtilityKind = Literal["upscale", "background"]


@dataclass(frozen=True)
class ModelConfig:
    """Capabilities and pricing for one remote model.

    Attributes:
        name: Human-readable model name
        endpoint: Path under the API base URL (e.g. ``fal-ai/nano-banana-pro``)
        type: ``generation`` for image synthesis, ``utility`` for post-processing
        pricing: Pricing descriptor shown to the user
        supports_aspect: Accepts an ``aspect_ratio`` field
        supports_resolution: Accepts a ``resolution`` field
        supports_edit: Has an ``/edit`` endpoint variant
        supports_num_images: Accepts a ``num_images`` field
        utility_kind: For utility models, what kind of post-processing they do
        default_params: Extra body fields always sent to this model
    """

    name: str
    endpoint: str
    type: ModelType
    pricing: str
    supports_aspect: bool = False
    supports_resolution: bool = False
    supports_edit: bool = False
    supports_num_images: bool = False
    utility_kind: UtilityKind | None = None
    default_params: Mapping[str, Any] = field(default_factory=dict)


MODELS: Mapping[str, ModelConfig] = MappingProxyType(
    {
        # Generation models
        "gpt": ModelConfig(
            name="GPT Image 1.5",
            endpoint="fal-ai/gpt-image-1.5",
            type="generation",
            pricing="$0.01-$0.20/image",
            supports_edit=True,
            supports_num_images=True,
            # Uses image_size instead of aspect_ratio
            default_params=MappingProxyType({"quality": "high"}),
        ),
        "banana": ModelConfig(
            name="Nano Banana Pro",
            endpoint="fal-ai/nano-banana-pro",
            type="generation",
            pricing="$0.15-$0.30/image",
            supports_aspect=True,
            supports_resolution=True,
            supports_edit=True,
            supports_num_images=True,
        ),
        "gemini": ModelConfig(
            name="Gemini 2.5 Flash",
            endpoint="fal-ai/gemini-25-flash-image",
            type="generation",
            pricing="$0.039/image",
            supports_aspect=True,
            supports_edit=True,
            supports_num_images=True,
        ),
        "gemini3": ModelConfig(
            name="Gemini 3 Pro",
            endpoint="fal-ai/gemini-3-pro-image-preview",
            type="generation",
            pricing="$0.15-$0.30/image",
            supports_aspect=True,
            supports_resolution=True,
            supports_edit=True,
            supports_num_images=True,
        ),
        # Utility models
        "clarity": ModelConfig(
            name="Clarity Upscaler",
            endpoint="fal-ai/clarity-upscaler",
            type="utility",
            pricing="~$0.02/image",
            utility_kind="upscale",
        ),
        "crystal": ModelConfig(
            name="Crystal Upscaler",
            endpoint="clarityai/crystal-upscaler",
            type="utility",
            pricing="$0.016/megapixel",
            utility_kind="upscale",
        ),
        "rmbg": ModelConfig(
            name="BiRefNet (Background Removal)",
            endpoint="fal-ai/birefnet",
            type="utility",
            pricing="~$0.02/image",
            utility_kind="background",
        ),
        "bria": ModelConfig(
            name="Bria RMBG 2.0",
            endpoint="fal-ai/bria/background/remove",
            type="utility",
            pricing="$0.018/image",
            utility_kind="background",
        ),
    }
)

GENERATION_MODELS: list[str] = [key for key, m in MODELS.items() if m.type == "generation"]
UTILITY_MODELS: list[str] = [key for key, m in MODELS.items() if m.type == "utility"]
UPSCALE_MODELS: list[str] = [key for key, m in MODELS.items() if m.utility_kind == "upscale"]
BACKGROUND_MODELS: list[str] = [
    key for key, m in MODELS.items() if m.utility_kind == "background"
]

# Ordered by popularity: square first, then common ratios
ASPECT_RATIOS: list[str] = [
    "1:1",
    "4:3",
    "3:4",
    "16:9",
    "9:16",
    "3:2",
    "2:3",
    "4:5",
    "5:4",
    "21:9",
]

RESOLUTIONS: list[str] = ["1K", "2K", "4K"]

UPSCALE_FACTORS: list[int] = [2, 4, 6, 8]

PORTRAIT_SIZE = "1024x1536"
LANDSCAPE_SIZE = "1536x1024"
SQUARE_SIZE = "1024x1024"

_PORTRAIT_ASPECTS = frozenset({"9:16", "2:3", "4:5", "3:4"})
_LANDSCAPE_ASPECTS = frozenset({"16:9", "3:2", "5:4", "4:3", "21:9"})

# Flat per-image prices; None means "depends on resolution"
_BASE_COSTS: dict[str, float | None] = {
    "gpt": 0.13,  # high quality default
    "banana": None,
    "gemini3": None,
    "gemini": 0.039,
    "clarity": 0.02,
    "crystal": 0.02,
    "rmbg": 0.02,
    "bria": 0.02,
}


def get_model(model_id: str) -> ModelConfig:
    """Look up a model by its short id.

    Args:
        model_id: Registry key such as ``"banana"`` or ``"clarity"``

    Returns:
        The model's configuration

    Raises:
        UnknownModel: If the id is not in the registry
    """
    try:
        return MODELS[model_id]
    except KeyError:
        raise UnknownModel(model_id) from None


def model_display_name(model_id: str) -> str:
    """Human-readable name for a model id, or the id itself when unknown."""
    model = MODELS.get(model_id)
    return model.name if model else model_id


def aspect_to_size(aspect: str) -> str:
    """Map an aspect ratio to the nearest fixed image size.

    Used for models without arbitrary-aspect support, which only accept a
    small set of ``image_size`` strings.

    Args:
        aspect: Aspect ratio such as ``"9:16"``

    Returns:
        ``"1024x1536"`` for portrait-like ratios, ``"1536x1024"`` for
        landscape-like ratios, ``"1024x1024"`` otherwise
    """
    if aspect in _PORTRAIT_ASPECTS:
        return PORTRAIT_SIZE
    if aspect in _LANDSCAPE_ASPECTS:
        return LANDSCAPE_SIZE
    return SQUARE_SIZE


def estimate_cost(model_id: str, resolution: str | None = None, num_images: int = 1) -> float:
    """Estimate the cost in USD of a request.

    Args:
        model_id: Registry key of the model
        resolution: Requested resolution; only matters for resolution-priced models
        num_images: Number of images requested

    Returns:
        Estimated cost, or 0.0 for an unrecognised model id
    """
    if model_id not in MODELS:
        return 0.0

    base_cost = _BASE_COSTS.get(model_id, 0.1)
    if base_cost is None:
        base_cost = 0.3 if resolution == "4K" else 0.15

    return base_cost * num_images
