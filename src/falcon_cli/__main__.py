"""Entry point for ``falcon`` and ``python -m falcon_cli``.

With arguments the one-shot CLI runs; with none the interactive wizard
starts.
"""

import asyncio
import sys

from falcon_cli.core.config import settings
from falcon_cli.core.logging import setup_logging
from falcon_cli.core.store import Store


def run_wizard() -> None:
    """Start the interactive wizard, logging to the falcon directory."""
    from falcon_cli.ui.app import WizardApp

    level = "DEBUG" if settings.log_level == "DEBUG" else "INFO"
    setup_logging(level, log_file=settings.log_path)

    store = Store.from_settings(settings)
    try:
        asyncio.run(WizardApp(store).run())
    except KeyboardInterrupt:
        pass


def main() -> None:
    if len(sys.argv) > 1:
        from falcon_cli.cli.main import app

        app()
    else:
        run_wizard()


if __name__ == "__main__":
    main()
