"""Falcon - fal.ai HTTP layer.

This package contains the async gateway to the fal.ai run API and the
Pydantic models its responses are validated into.

Modules
-------
gateway
    :class:`FalGateway` with generate, upscale and remove_background, plus
    API key resolution and per-model request shaping.
models
    Pydantic models for fal.ai response validation.
"""
