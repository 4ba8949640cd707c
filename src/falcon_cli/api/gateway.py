"""Async client for the fal.ai run API.

:class:`FalGateway` wraps the three remote operations falcon uses:

- **generate**: text-to-image, or image editing via the model's ``/edit``
  endpoint variant
- **upscale**: post-process an image with an upscaler model
- **remove_background**: post-process an image with a background remover

Each operation is a single POST with a JSON body and a ``Key`` authorization
header. There are no retries and no timeouts: a hung request hangs the
operation, and cancellation is not supported once a request is sent.

Request shaping
---------------
The body of a generate request depends on the model's capability flags in
:mod:`falcon_cli.core.registry`. Models without arbitrary-aspect support get
an ``image_size`` string derived from the aspect ratio; the other fields are
only sent to models that accept them.

Response handling
-----------------
- a body containing ``detail`` raises :class:`RemoteError` with that detail
- any other non-2xx status, undecodable body or network failure raises
  :class:`TransportError`
- anything else is validated into :class:`FalResponse`

API key resolution
------------------
Explicit key (constructor or :meth:`FalGateway.set_api_key`) first, then the
``FAL_KEY`` environment variable, then the ``apiKey`` stored in the user's
config. With none of them :class:`MissingCredential` is raised before any
request is made.

Usage Example
-------------
    async with FalGateway(config=store.load_config()) as gateway:
        result = await gateway.generate("a red fox", model="banana", aspect="1:1")
        print(result.images[0].url)
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from falcon_cli.core.config import DEFAULT_BASE_URL
from falcon_cli.core.errors import (
    InvalidModel,
    MissingCredential,
    RemoteError,
    TransportError,
    UnsupportedOperation,
)
from falcon_cli.core.models import FalconConfig
from falcon_cli.core.registry import MODELS, aspect_to_size, get_model

from .models import FalResponse

logger = logging.getLogger(__name__)

API_KEY_ENV = "FAL_KEY"


def resolve_api_key(explicit: str | None = None, config: FalconConfig | None = None) -> str:
    """Resolve the API key: explicit value, then ``FAL_KEY``, then config.

    Args:
        explicit: Key set in-process, if any
        config: Loaded user configuration, if any

    Returns:
        The API key

    Raises:
        MissingCredential: If no key is available from any source
    """
    if explicit:
        return explicit

    env_key = os.environ.get(API_KEY_ENV)
    if env_key:
        return env_key

    if config is not None and config.api_key:
        return config.api_key

    raise MissingCredential(
        f"{API_KEY_ENV} not found. Set {API_KEY_ENV} environment variable "
        "or add apiKey to ~/.falcon/config.json"
    )


class FalGateway:
    """Thin async wrapper around the fal.ai run endpoints.

    Attributes:
        base_url: API base URL (default ``https://fal.run``)
        config: User configuration, consulted for a stored API key
    """

    def __init__(
        self,
        api_key: str | None = None,
        config: FalconConfig | None = None,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the gateway.

        Args:
            api_key: Explicit API key (highest precedence)
            config: User configuration providing a fallback ``api_key``
            base_url: API base URL
            client: Existing client to reuse; the gateway will not close it
            transport: Transport for a gateway-owned client (tests use
                ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.config = config
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None, transport=transport)

    async def __aenter__(self) -> "FalGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if the gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        """The HTTP client, shared with image downloads."""
        return self._client

    def set_api_key(self, key: str) -> None:
        """Set the in-process API key, overriding environment and config."""
        self._api_key = key

    def get_api_key(self) -> str:
        """Resolve the API key for the next request."""
        return resolve_api_key(self._api_key, self.config)

    # -- Operations ---------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        model: str,
        aspect: str = "9:16",
        resolution: str = "2K",
        num_images: int = 1,
        edit_image: str | None = None,
        transparent: bool = False,
    ) -> FalResponse:
        """Generate (or edit) images.

        Args:
            prompt: Text prompt, or the edit instruction in edit mode
            model: Generation model id
            aspect: Aspect ratio
            resolution: Resolution, for models that accept one
            num_images: Number of images, for models that accept it
            edit_image: Source image URL or data URL; switches to edit mode
            transparent: Request a transparent PNG (models using ``image_size``)

        Returns:
            Parsed response with the result images

        Raises:
            UnknownModel: If the model id is not registered
            UnsupportedOperation: If ``edit_image`` is given for a model that
                cannot edit (raised before any network call)
        """
        config = get_model(model)
        endpoint = f"{self.base_url}/{config.endpoint}"
        body = build_generate_body(
            model,
            prompt,
            aspect=aspect,
            resolution=resolution,
            num_images=num_images,
            transparent=transparent,
        )

        if edit_image:
            if not config.supports_edit:
                raise UnsupportedOperation(f"Model {model} does not support image editing")
            endpoint = f"{endpoint}/edit"
            body["image_urls"] = [edit_image]

        return await self._post(endpoint, body)

    async def upscale(
        self,
        image_url: str,
        model: str = "clarity",
        scale_factor: int = 2,
        creativity: float = 0,
    ) -> FalResponse:
        """Upscale an image.

        ``scale_factor`` and ``creativity`` are only forwarded to models that
        accept them (currently the Crystal upscaler).

        Raises:
            InvalidModel: If ``model`` is not a utility model
        """
        config = MODELS.get(model)
        if config is None or config.type != "utility":
            raise InvalidModel(f"Invalid upscale model: {model}")

        body: dict[str, Any] = {"image_url": image_url}
        if model == "crystal":
            body["scale_factor"] = scale_factor
            body["creativity"] = creativity

        return await self._post(f"{self.base_url}/{config.endpoint}", body)

    async def remove_background(self, image_url: str, model: str = "rmbg") -> FalResponse:
        """Remove the background from an image.

        Raises:
            InvalidModel: If ``model`` is not a utility model
        """
        config = MODELS.get(model)
        if config is None or config.type != "utility":
            raise InvalidModel(f"Invalid background removal model: {model}")

        return await self._post(f"{self.base_url}/{config.endpoint}", {"image_url": image_url})

    # -- Transport ----------------------------------------------------------

    async def _post(self, url: str, body: dict[str, Any]) -> FalResponse:
        """POST a JSON body and map the response to a result or an error."""
        headers = {
            "Authorization": f"Key {self.get_api_key()}",
            "Content-Type": "application/json",
        }

        logger.info(f"POST {url}")
        logger.debug(f"Request fields: {sorted(body)}")

        try:
            response = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and "detail" in payload:
            detail = payload["detail"]
            logger.warning(f"Remote error from {url}: {detail}")
            raise RemoteError(detail if isinstance(detail, str) else str(detail))

        if response.is_error:
            raise TransportError(
                f"Request to {url} failed: {response.status_code} {response.reason_phrase}"
            )

        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected response from {url}")

        try:
            return FalResponse.from_payload(payload)
        except SchemaError as e:
            raise TransportError(f"Malformed response from {url}: {e}") from e


def build_generate_body(
    model: str,
    prompt: str,
    aspect: str = "9:16",
    resolution: str = "2K",
    num_images: int = 1,
    transparent: bool = False,
) -> dict[str, Any]:
    """Build the JSON body of a generate request from capability flags.

    Args:
        model: Generation model id
        prompt: Text prompt
        aspect: Aspect ratio
        resolution: Resolution
        num_images: Number of images
        transparent: Request a transparent background

    Returns:
        Request body (without edit fields)
    """
    config = get_model(model)
    body: dict[str, Any] = {"prompt": prompt}

    if not config.supports_aspect and config.default_params:
        # Fixed-size models take image_size instead of aspect_ratio
        body["image_size"] = aspect_to_size(aspect)
        body.update(config.default_params)
        if transparent:
            body["background"] = "transparent"
            body["output_format"] = "png"
    else:
        if config.supports_aspect:
            body["aspect_ratio"] = aspect
        if config.supports_resolution:
            body["resolution"] = resolution

    if config.supports_num_images:
        body["num_images"] = num_images

    return body
