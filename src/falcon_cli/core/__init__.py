"""Core functionality shared by the CLI and the wizard.

This package provides everything falcon does that is not presentation:

- **registry**: Static table of fal.ai models, capability flags and pricing
- **config**: Process-level settings using Pydantic Settings
- **models**: Pydantic documents persisted on disk (config, history)
- **store**: Atomic, file-backed load/save of those documents
- **operations**: Generate, edit, vary, upscale and remove background as
  complete workflows (call, download, record)
- **images**: Local image file helpers (download, encode, resize, open)
- **presets**: Named aspect ratio / resolution bundles
- **errors**: The user-facing exception hierarchy

Architecture Overview
---------------------
The core package follows a layered architecture:

1. **Configuration Layer** (config.py):
   - Environment-based settings, all prefixed with FALCON_ in .env files
   - Decides where documents live, never holds document state

2. **Document Layer** (models.py, store.py):
   - config.json, optional .falconrc override, history.json
   - Every write is a temp file plus atomic rename

3. **Operation Layer** (operations.py):
   - Drives :class:`falcon_cli.api.gateway.FalGateway`
   - Downloads results and records one Generation per saved image

Usage Example
-------------
    from falcon_cli.core import Store, settings
    from falcon_cli.core.operations import run_generate

    store = Store.from_settings(settings)
    config = store.load_config()
"""

from falcon_cli.core.config import FalconSettings, settings
from falcon_cli.core.errors import FalconError
from falcon_cli.core.models import CostTotals, FalconConfig, Generation, History
from falcon_cli.core.registry import MODELS, ModelConfig, estimate_cost, get_model
from falcon_cli.core.store import Store

__all__ = [
    "CostTotals",
    "FalconConfig",
    "FalconError",
    "FalconSettings",
    "Generation",
    "History",
    "MODELS",
    "ModelConfig",
    "Store",
    "estimate_cost",
    "get_model",
    "settings",
]
