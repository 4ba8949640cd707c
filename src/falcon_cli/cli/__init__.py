"""One-shot command line interface (typer + rich)."""
