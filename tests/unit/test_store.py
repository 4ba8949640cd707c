"""Tests for falcon_cli.core.store: config and history persistence.

Tests cover:
- Atomic writes, including a crash between temp file and rename.
- Config loading: defaults, global file, local override, malformed files.
- Config saving: merging patches, rejecting invalid values.
- History: appending, the size cap, cost counters and day rollover.
"""

import json
import os
import stat
import sys

import pytest

from falcon_cli.core import store as store_module
from falcon_cli.core.errors import PersistenceError, ValidationError
from falcon_cli.core.models import FalconConfig, History
from falcon_cli.core.store import Store, atomic_write


class TestAtomicWrite:
    """Test atomic_write."""

    def test_writes_contents(self, temp_dir):
        target = temp_dir / "doc.json"
        atomic_write(target, '{"a": 1}')
        assert target.read_text() == '{"a": 1}'

    def test_no_temp_files_left(self, temp_dir):
        target = temp_dir / "doc.json"
        atomic_write(target, "first")
        atomic_write(target, "second")
        assert [p.name for p in temp_dir.iterdir()] == ["doc.json"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, temp_dir):
        target = temp_dir / "doc.json"
        atomic_write(target, "secret")
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failed_rename_leaves_target_untouched(self, temp_dir, monkeypatch):
        """A crash before the rename keeps the old document byte for byte."""
        target = temp_dir / "doc.json"
        target.write_text("original contents")
        before = target.read_bytes()

        def broken_replace(src, dst):
            raise OSError("disk on fire")

        monkeypatch.setattr(store_module.os, "replace", broken_replace)

        with pytest.raises(PersistenceError) as excinfo:
            atomic_write(target, "new contents")

        assert target.read_bytes() == before
        assert isinstance(excinfo.value.__cause__, OSError)
        assert [p.name for p in temp_dir.iterdir()] == ["doc.json"]

    def test_missing_directory_raises(self, temp_dir):
        with pytest.raises(PersistenceError):
            atomic_write(temp_dir / "missing" / "doc.json", "data")


class TestConfig:
    """Test config loading and saving."""

    def test_defaults_when_missing(self, store: Store):
        config = store.load_config()
        assert config == FalconConfig()
        assert config.default_model == "banana"
        assert config.open_after_generate is True

    def test_creates_falcon_dir(self, store: Store):
        store.load_config()
        assert store.falcon_dir.is_dir()

    def test_uncreatable_falcon_dir_raises(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        store = Store(blocker / ".falcon", local_config_path=temp_dir / ".falconrc")
        with pytest.raises(PersistenceError, match="Could not create"):
            store.load_config()

    def test_reads_camel_case_file(self, store: Store):
        store.ensure_dir()
        store.config_path.write_text(json.dumps({"defaultModel": "gpt", "apiKey": "k"}))
        config = store.load_config()
        assert config.default_model == "gpt"
        assert config.api_key == "k"

    def test_local_override_merges_field_by_field(self, store: Store, temp_dir):
        """.falconrc overrides only the fields it names."""
        store.save_config({"default_model": "gpt", "default_aspect": "16:9"})
        (temp_dir / ".falconrc").write_text(json.dumps({"defaultAspect": "9:16"}))

        config = store.load_config()
        assert config.default_model == "gpt"
        assert config.default_aspect == "9:16"

    def test_malformed_global_file_uses_defaults(self, store: Store):
        store.ensure_dir()
        store.config_path.write_text("{not json")
        assert store.load_config() == FalconConfig()

    def test_non_object_local_file_ignored(self, store: Store, temp_dir):
        store.save_config({"default_model": "gemini"})
        (temp_dir / ".falconrc").write_text("[1, 2, 3]")
        assert store.load_config().default_model == "gemini"

    def test_save_merges_patch(self, store: Store):
        store.save_config({"default_model": "gpt"})
        store.save_config({"upscaler": "crystal"})

        on_disk = json.loads(store.config_path.read_text())
        assert on_disk["defaultModel"] == "gpt"
        assert on_disk["upscaler"] == "crystal"

    def test_save_accepts_full_config(self, store: Store):
        saved = store.save_config(FalconConfig(default_resolution="4K"))
        assert saved.default_resolution == "4K"
        assert store.load_config().default_resolution == "4K"

    def test_save_rejects_invalid_values(self, store: Store):
        with pytest.raises(ValidationError, match="Invalid configuration"):
            store.save_config({"open_after_generate": "sometimes"})
        assert not store.config_path.exists()


class TestHistory:
    """Test the generation log and cost counters."""

    def test_empty_history(self, store: Store):
        history = store.load_history(today="2025-01-01")
        assert history.generations == []
        assert history.last_session_date == "2025-01-01"
        assert store.get_last_generation() is None

    def test_add_generation_updates_counters(self, store: Store, make_generation):
        history = store.add_generation(make_generation(cost=0.15), today="2025-01-01")

        assert len(history.generations) == 1
        assert history.total_cost.session == pytest.approx(0.15)
        assert history.total_cost.today == pytest.approx(0.15)
        assert history.total_cost.all_time == pytest.approx(0.15)

    def test_add_generation_persists(self, store: Store, make_generation):
        generation = make_generation(prompt="stored")
        store.add_generation(generation)

        data = json.loads(store.history_path.read_text())
        assert data["generations"][0]["prompt"] == "stored"
        assert "allTime" in data["totalCost"]
        assert store.get_last_generation() == generation

    def test_newest_last_on_disk_newest_first_for_display(self, store: Store, make_generation):
        for i in range(3):
            store.add_generation(make_generation(prompt=f"p{i}"))

        assert [g.prompt for g in store.load_history().generations] == ["p0", "p1", "p2"]
        assert [g.prompt for g in store.recent_generations()] == ["p2", "p1", "p0"]
        assert [g.prompt for g in store.recent_generations(limit=2)] == ["p2", "p1"]

    def test_cap_keeps_newest_hundred(self, store: Store, make_generation):
        """Appending 101 generations drops the oldest one."""
        for i in range(101):
            store.add_generation(make_generation(prompt=f"p{i}"), today="2025-01-01")

        history = store.load_history(today="2025-01-01")
        assert len(history.generations) == 100
        assert history.generations[0].prompt == "p1"
        assert history.generations[-1].prompt == "p100"

    def test_all_time_sums_across_days(self, store: Store, make_generation):
        costs = [0.15, 0.3, 0.039, 0.02]
        days = ["2025-01-01", "2025-01-01", "2025-01-02", "2025-01-03"]
        for cost, day in zip(costs, days):
            history = store.add_generation(make_generation(cost=cost), today=day)

        assert history.total_cost.all_time == pytest.approx(sum(costs))
        assert history.total_cost.today == pytest.approx(0.02)

    def test_day_rollover_resets_session_and_today(self, store: Store, make_generation):
        store.add_generation(make_generation(cost=0.15), today="2025-01-01")
        store.add_generation(make_generation(cost=0.3), today="2025-01-01")

        history = store.load_history(today="2025-01-02")
        assert history.total_cost.session == 0.0
        assert history.total_cost.today == 0.0
        assert history.total_cost.all_time == pytest.approx(0.45)
        assert len(history.generations) == 2
        assert history.last_session_date == "2025-01-02"

    def test_same_day_keeps_counters(self, store: Store, make_generation):
        store.add_generation(make_generation(cost=0.15), today="2025-01-01")
        history = store.load_history(today="2025-01-01")
        assert history.total_cost.session == pytest.approx(0.15)

    def test_malformed_history_starts_empty(self, store: Store):
        store.ensure_dir()
        store.history_path.write_text("garbage")
        assert store.load_history().generations == []

    def test_schema_mismatch_starts_empty(self, store: Store):
        store.ensure_dir()
        store.history_path.write_text(json.dumps({"generations": [{"prompt": 1}]}))
        assert store.load_history().generations == []

    def test_custom_history_limit(self, temp_dir, make_generation):
        small = Store(temp_dir / "small", history_limit=3)
        for i in range(5):
            small.add_generation(make_generation(prompt=f"p{i}"))
        assert [g.prompt for g in small.load_history().generations] == ["p2", "p3", "p4"]

    def test_save_history_roundtrip(self, store: Store, make_generation):
        history = History(generations=[make_generation()], last_session_date="2025-05-05")
        store.save_history(history)
        assert store.load_history(today="2025-05-05") == history

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_falcon_dir_permissions(self, store: Store):
        store.ensure_dir()
        assert stat.S_IMODE(os.stat(store.falcon_dir).st_mode) & 0o077 == 0
