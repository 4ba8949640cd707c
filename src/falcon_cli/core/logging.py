"""Logging setup for the two front-ends.

The CLI logs to stderr through rich so that log records and the result
summary never interleave on stdout. The wizard owns the whole terminal, so
it logs to a file in the falcon directory instead.
"""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | int = "WARNING", log_file: Path | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Logging level name or number
        log_file: Write records to this file instead of stderr
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
