"""Tests for the ``falcon`` entry point dispatch."""

import sys

from falcon_cli import __main__ as entry
from falcon_cli.cli import main as cli_main


class TestMain:
    """Arguments select the CLI, no arguments the wizard."""

    def test_no_arguments_starts_wizard(self, monkeypatch):
        calls = []
        monkeypatch.setattr(sys, "argv", ["falcon"])
        monkeypatch.setattr(entry, "run_wizard", lambda: calls.append("wizard"))
        entry.main()
        assert calls == ["wizard"]

    def test_arguments_run_cli(self, monkeypatch):
        calls = []
        monkeypatch.setattr(sys, "argv", ["falcon", "a red fox"])
        monkeypatch.setattr(entry, "run_wizard", lambda: calls.append("wizard"))
        monkeypatch.setattr(cli_main, "app", lambda: calls.append("cli"))
        entry.main()
        assert calls == ["cli"]
