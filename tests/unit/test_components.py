"""Tests for falcon_cli.ui.components: rendering wizard screens with rich."""

import io

import pytest
from rich.console import Console

from falcon_cli.core.models import CostTotals, FalconConfig
from falcon_cli.ui.components import (
    mask_api_key,
    option_label,
    render_screen,
    settings_value,
    truncate,
)
from falcon_cli.ui.models import Draft, Flow, Screen, WizardState


def render(state: WizardState) -> str:
    console = Console(file=io.StringIO(), width=100, color_system=None)
    console.print(render_screen(state))
    return console.file.getvalue()


class TestFormatting:
    """Small label helpers."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            (None, "not set"),
            ("", "not set"),
            ("short", "*****"),
            ("fal-0123456789abcdef", "fal-0123...cdef"),
        ],
    )
    def test_mask_api_key(self, key, expected):
        assert mask_api_key(key) == expected

    def test_truncate(self):
        assert truncate("a" * 10, 20) == "a" * 10
        assert truncate("a" * 60) == "a" * 47 + "..."

    def test_settings_value(self):
        config = FalconConfig(api_key="fal-0123456789abcdef", open_after_generate=False)
        assert settings_value(config, "api_key") == "fal-0123...cdef"
        assert settings_value(config, "open_after_generate") == "off"
        assert settings_value(config, "default_model") == "banana (Nano Banana Pro)"
        assert settings_value(config, "default_aspect") == "1:1"

    def test_scale_label(self):
        assert option_label(WizardState(screen=Screen.SCALE), 4) == "4x"


class TestRenderScreen:
    """Whole-screen rendering smoke tests."""

    def test_home(self):
        output = render(WizardState())
        assert "Generate a new image" in output
        assert "Session: $0.00 | Today: $0.00 | All time: $0.00" in output

    def test_footer_totals(self):
        output = render(WizardState(totals=CostTotals(session=0.3, today=1.25, all_time=12.5)))
        assert "Session: $0.30 | Today: $1.25 | All time: $12.50" in output

    def test_error_and_notice(self):
        output = render(WizardState(error="Prompt rejected", notice="Settings saved"))
        assert "Prompt rejected" in output
        assert "Settings saved" in output

    def test_confirm_shows_draft_and_cost(self):
        draft = Draft(prompt="a red fox", model="banana", resolution="4K", num_images=2)
        output = render(WizardState(screen=Screen.CONFIRM, draft=draft))
        assert "a red fox" in output
        assert "Nano Banana Pro" in output
        assert "(e resolution)" in output
        assert "$0.600" in output

    def test_prompt_with_markup_is_escaped(self):
        draft = Draft(prompt="[bold]literal[/bold]")
        output = render(WizardState(screen=Screen.CONFIRM, draft=draft))
        assert "[bold]literal[/bold]" in output

    def test_upscale_draft(self, make_generation):
        draft = Draft(flow=Flow.UPSCALE, scale=4, source=make_generation())
        output = render(WizardState(screen=Screen.CONFIRM, draft=draft))
        assert "4x" in output
        assert "Clarity Upscaler" in output

    def test_empty_gallery(self):
        output = render(WizardState(screen=Screen.GALLERY))
        assert "No generations yet" in output
        assert "Page 1/1" in output

    def test_settings_masks_key(self):
        config = FalconConfig(api_key="fal-0123456789abcdef")
        output = render(WizardState(screen=Screen.SETTINGS, config=config))
        assert "fal-0123...cdef" in output
        assert "0123456789abcdef" not in output
