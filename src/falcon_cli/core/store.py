"""File-backed config and history storage.

The store is deliberately simple:

- user configuration lives in ``config.json`` inside the falcon directory,
  optionally overridden field by field by a local ``.falconrc``
- the generation log and cost counters live in ``history.json``
- every document is read in full, changed in memory, and written back in full

Write discipline
----------------
Every write goes through :func:`atomic_write`: the new contents are written
to a uniquely named temporary file in the same directory (owner-only
permissions) and then renamed over the target. The rename is the only
visible change to the target, so an interrupted write never leaves a
half-written document behind.

Read discipline
---------------
Reads are forgiving. A missing file yields the default document; a file that
is not valid JSON (or does not match the schema) logs a warning and also
yields the default. Only write failures are fatal.

Concurrency
-----------
There is no locking. Two falcon processes appending to history at the same
time can race and the last writer wins. That is acceptable for a single-user
local tool.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError as SchemaError

from .config import FalconSettings
from .errors import PersistenceError, ValidationError
from .models import FalconConfig, Generation, History, today_string

logger = logging.getLogger(__name__)

DIR_MODE = 0o700
FILE_MODE = 0o600


def atomic_write(path: Path, data: str) -> None:
    """Write ``data`` to ``path`` via a temp file and rename.

    Args:
        path: Target file. Its directory must already exist.
        data: Full text contents of the new document.

    Raises:
        PersistenceError: If writing or renaming fails. The temporary file is
            removed on a best-effort basis and the original error is chained.
    """
    path = Path(path)
    temp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")

    try:
        fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    except OSError as e:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug(f"Could not remove temp file {temp_path}")
        raise PersistenceError(f"Failed to write {path}: {e}") from e


def _read_json(path: Path) -> Any | None:
    """Parse a JSON file, returning ``None`` when it is missing or malformed."""
    if not path.exists():
        return None

    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return None


class Store:
    """Load and save falcon's config and history documents.

    The store keeps no document state between calls: every method reads the
    current file, and every mutation writes the whole document back. Callers
    get plain model instances and pass them back explicitly.

    Attributes:
        falcon_dir: Directory holding ``config.json`` and ``history.json``
        local_config_path: Optional per-directory override file
        history_limit: Maximum number of generations kept
    """

    def __init__(
        self,
        falcon_dir: Path,
        local_config_path: Path | None = None,
        history_limit: int = 100,
    ) -> None:
        self.falcon_dir = Path(falcon_dir)
        self.local_config_path = Path(local_config_path) if local_config_path else None
        self.history_limit = history_limit

    @classmethod
    def from_settings(cls, settings: FalconSettings) -> "Store":
        """Build a store from environment settings."""
        return cls(
            falcon_dir=settings.falcon_dir,
            local_config_path=settings.local_config_path,
            history_limit=settings.history_limit,
        )

    @property
    def config_path(self) -> Path:
        return self.falcon_dir / "config.json"

    @property
    def history_path(self) -> Path:
        return self.falcon_dir / "history.json"

    def ensure_dir(self) -> None:
        """Create the falcon directory with owner-only permissions if needed.

        Raises:
            PersistenceError: If the directory cannot be created
        """
        if not self.falcon_dir.exists():
            try:
                self.falcon_dir.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)
            except OSError as e:
                raise PersistenceError(f"Could not create {self.falcon_dir}: {e}") from e
            logger.debug(f"Created {self.falcon_dir}")

    # -- Config -------------------------------------------------------------

    def load_config(self) -> FalconConfig:
        """Load the user config: defaults, then global file, then local override.

        Returns:
            Merged configuration. Layers that cannot be parsed are skipped
            with a warning.
        """
        self.ensure_dir()

        merged: dict[str, Any] = FalconConfig().model_dump(by_alias=True)
        layers = [self.config_path]
        if self.local_config_path is not None:
            layers.append(self.local_config_path)

        for layer in layers:
            data = _read_json(layer)
            if data is None:
                continue
            if not isinstance(data, dict):
                logger.warning(f"Ignoring {layer}: expected a JSON object")
                continue
            merged.update(self._normalise_keys(data))

        try:
            return FalconConfig.model_validate(merged)
        except SchemaError as e:
            logger.warning(f"Invalid configuration values, using defaults: {e}")
            return FalconConfig()

    def save_config(self, patch: dict[str, Any] | FalconConfig) -> FalconConfig:
        """Merge ``patch`` into the global config file and write it atomically.

        Args:
            patch: Either a full :class:`FalconConfig` or a partial mapping
                using snake_case or camelCase keys.

        Returns:
            The configuration that was written.
        """
        self.ensure_dir()

        if isinstance(patch, FalconConfig):
            patch = patch.model_dump(by_alias=True, exclude_none=True)

        existing = _read_json(self.config_path)
        if not isinstance(existing, dict):
            existing = FalconConfig().model_dump(by_alias=True, exclude_none=True)

        merged = {**self._normalise_keys(existing), **self._normalise_keys(patch)}
        try:
            config = FalconConfig.model_validate(merged)
        except SchemaError as e:
            raise ValidationError(f"Invalid configuration: {e}") from e

        atomic_write(self.config_path, config.to_json())
        logger.info(f"Saved configuration to {self.config_path}")
        return config

    @staticmethod
    def _normalise_keys(data: dict[str, Any]) -> dict[str, Any]:
        """Convert snake_case field names to their on-disk camelCase aliases."""
        aliases = {name: field.alias for name, field in FalconConfig.model_fields.items()}
        return {aliases.get(key, key): value for key, value in data.items()}

    # -- History ------------------------------------------------------------

    def load_history(self, today: str | None = None) -> History:
        """Load history, resetting session and daily costs on a new day.

        Args:
            today: Override for the current date (``YYYY-MM-DD``), for tests

        Returns:
            The history document. The all-time counter and the log itself
            are never touched by the rollover.
        """
        self.ensure_dir()
        today = today or today_string()

        data = _read_json(self.history_path)
        if data is None:
            return History(last_session_date=today)

        try:
            history = History.model_validate(data)
        except SchemaError as e:
            logger.warning(f"Failed to load history from {self.history_path}: {e}")
            logger.warning("Starting with empty history.")
            return History(last_session_date=today)

        if history.last_session_date != today:
            logger.debug(f"New day ({history.last_session_date} -> {today}), resetting costs")
            history.total_cost.session = 0.0
            history.total_cost.today = 0.0
            history.last_session_date = today

        return history

    def save_history(self, history: History) -> None:
        """Write the history document atomically."""
        self.ensure_dir()
        atomic_write(self.history_path, history.to_json())

    def add_generation(self, generation: Generation, today: str | None = None) -> History:
        """Append a generation and update the cost counters.

        Generations are appended at the end (oldest first on disk). When the
        log grows past ``history_limit`` the oldest entries are dropped.

        Args:
            generation: The new log entry
            today: Override for the current date, for tests

        Returns:
            The updated history, as written to disk
        """
        today = today or today_string()
        history = self.load_history(today=today)

        history.generations.append(generation)
        history.total_cost.session += generation.cost
        history.total_cost.today += generation.cost
        history.total_cost.all_time += generation.cost
        history.last_session_date = today

        overflow = len(history.generations) - self.history_limit
        if overflow > 0:
            del history.generations[:overflow]

        self.save_history(history)
        logger.info(f"Recorded generation {generation.id} (${generation.cost:.3f})")
        return history

    def get_last_generation(self) -> Generation | None:
        """Most recent generation, or ``None`` if there are none."""
        return self.load_history().last

    def recent_generations(self, limit: int | None = None) -> list[Generation]:
        """Generations newest-first, optionally truncated to ``limit``."""
        generations = self.load_history().newest_first()
        return generations[:limit] if limit is not None else generations
