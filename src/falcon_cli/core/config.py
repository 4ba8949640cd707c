"""Environment configuration for falcon.

This module provides process-level settings using Pydantic Settings. These
are *not* the user's persisted preferences (default model, aspect ratio, ...):
those live in ``~/.falcon/config.json`` and are handled by
:mod:`falcon_cli.core.store`. The settings here decide *where* those files
live and how falcon talks to the network.

Environment Variable Loading
-----------------------------
Values are loaded in the following priority order:

1. Environment variables (``FALCON_*`` prefix, plus ``FAL_KEY``)
2. ``.env`` file in the current directory
3. Default values defined in :class:`FalconSettings`

Example .env file::

    FAL_KEY=your-fal-key
    FALCON_DIR=/home/me/.falcon
    FALCON_LOG_LEVEL=DEBUG

Global Settings Instance
------------------------
A global ``settings`` instance is created at import time. It holds no
document state, only paths and connection details, so it is safe to share.
Nothing is created on disk here; the store creates its directory lazily.

Usage Example
-------------
    from falcon_cli.core.config import settings

    print(settings.falcon_dir)
    print(settings.history_path)
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://fal.run"


class FalconSettings(BaseSettings):
    """Process-level settings for falcon.

    Attributes
    ----------
    falcon_dir : Path
        Directory holding ``config.json``, ``history.json`` and the wizard log
    local_config_path : Path
        Per-project override file, merged over the global config
    base_url : str
        Base URL of the fal.ai synchronous run API
    fal_key : str | None
        API key from the ``FAL_KEY`` environment variable
    history_limit : int
        Maximum number of generations kept in history
    log_level : str
        Logging level used when no ``--verbose`` flag is given

    Examples
    --------
        >>> custom = FalconSettings(falcon_dir="/tmp/falcon-test", _env_file=None)
        >>> custom.history_path
        PosixPath('/tmp/falcon-test/history.json')
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FALCON_",
        case_sensitive=False,
        extra="ignore",
    )

    falcon_dir: Path = Field(
        default=Path.home() / ".falcon",
        validation_alias=AliasChoices("FALCON_DIR", "falcon_dir"),
        description="Directory for config.json, history.json and logs",
    )
    local_config_path: Path = Field(
        default=Path(".falconrc"),
        validation_alias=AliasChoices("FALCON_LOCAL_CONFIG", "local_config_path"),
        description="Local override file merged over the global config",
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the fal.ai run API",
    )
    fal_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FAL_KEY", "fal_key"),
        description="API key (FAL_KEY environment variable)",
    )
    history_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Number of generations kept in history",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Default logging level",
    )

    @property
    def config_path(self) -> Path:
        """Path of the global config document."""
        return self.falcon_dir / "config.json"

    @property
    def history_path(self) -> Path:
        """Path of the history document."""
        return self.falcon_dir / "history.json"

    @property
    def log_path(self) -> Path:
        """Log file used by the interactive wizard."""
        return self.falcon_dir / "falcon.log"


# Global settings instance, loaded from FALCON_* variables and .env
settings = FalconSettings()
