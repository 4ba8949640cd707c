"""Pydantic models for fal.ai responses.

The fal.ai run API answers every operation with the same success shape: a
list of images, optionally with the seed and the echoed prompt. Errors come
back as ``{"detail": ...}`` and are handled by the gateway before these
models are involved.

Models
------
FalImage
    One result image: URL plus optional dimensions and content type.
FalResponse
    Successful response body for generate, upscale and background removal.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FalImage(BaseModel):
    """A single image returned by the service.

    Attributes:
        url: Download URL (or data URL) of the image.
        width: Width in pixels, when reported.
        height: Height in pixels, when reported.
        content_type: MIME type, when reported.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., description="URL of the generated image.")
    width: int | None = Field(default=None, description="Image width in pixels.")
    height: int | None = Field(default=None, description="Image height in pixels.")
    content_type: str | None = Field(default=None, description="MIME type of the image.")


class FalResponse(BaseModel):
    """Successful response body.

    Upscalers and background removers answer with a single ``image`` object
    rather than an ``images`` list; both shapes are normalised to ``images``.

    Attributes:
        images: Result images, in the order returned.
        seed: Seed used by the model, when reported.
        prompt: The prompt echoed back, when reported.
    """

    model_config = ConfigDict(extra="ignore")

    images: list[FalImage] = Field(default_factory=list)
    seed: int | None = None
    prompt: str | None = None

    @field_validator("seed", mode="before")
    @classmethod
    def _coerce_seed(cls, value):
        # Some endpoints report very large or string seeds
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_payload(cls, payload: dict) -> "FalResponse":
        """Build a response from a decoded JSON body."""
        if "images" not in payload and isinstance(payload.get("image"), dict):
            payload = {**payload, "images": [payload["image"]]}
        return cls.model_validate(payload)

    @property
    def first_url(self) -> str | None:
        """URL of the first image, if any."""
        return self.images[0].url if self.images else None
