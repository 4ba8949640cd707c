"""Falcon - command line and interactive terminal client for fal.ai image models."""

__version__ = "0.3.0"

from falcon_cli.core.config import FalconSettings, settings
from falcon_cli.core.errors import FalconError
from falcon_cli.core.registry import MODELS, estimate_cost, get_model
from falcon_cli.core.store import Store

__all__ = [
    "FalconError",
    "FalconSettings",
    "MODELS",
    "Store",
    "estimate_cost",
    "get_model",
    "settings",
]
