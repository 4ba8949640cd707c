"""rich renderables for the wizard screens.

Everything here is a pure function of :class:`WizardState`; the driver
prints whatever :func:`render_screen` returns.
"""

from typing import Any

from rich.console import Group, RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from falcon_cli.core.models import CostTotals, FalconConfig, Generation
from falcon_cli.core.presets import PRESETS_BY_NAME
from falcon_cli.core.registry import MODELS, estimate_cost, model_display_name

from .input import options_for
from .models import Flow, Screen, WizardState
from .state import MANUAL, editable_fields, page_count

HOME_LABELS = {
    "generate": "Generate a new image",
    "edit": "Edit an image",
    "vary": "Variations of an image",
    "upscale": "Upscale an image",
    "rmbg": "Remove background",
    "gallery": "Browse history",
    "settings": "Settings",
    "quit": "Quit",
}

DONE_LABELS = {
    "open": "Open image",
    "edit": "Edit this image",
    "vary": "Variations",
    "upscale": "Upscale",
    "rmbg": "Remove background",
    "regenerate": "Regenerate",
    "new": "New prompt",
    "home": "Home",
}

SETTINGS_LABELS = {
    "default_model": "Default model",
    "default_aspect": "Default aspect",
    "default_resolution": "Default resolution",
    "upscaler": "Upscaler",
    "background_remover": "Background remover",
    "open_after_generate": "Open after generate",
    "api_key": "API key",
}

TITLES = {
    Screen.HOME: "falcon",
    Screen.PROMPT: "Prompt",
    Screen.PRESET: "Preset",
    Screen.MODEL: "Model",
    Screen.ASPECT: "Aspect ratio",
    Screen.RESOLUTION: "Resolution",
    Screen.SOURCE: "Choose an image",
    Screen.SCALE: "Upscale factor",
    Screen.CONFIRM: "Confirm",
    Screen.RUNNING: "Working",
    Screen.DONE: "Done",
    Screen.GALLERY: "Gallery",
    Screen.SETTINGS: "Settings",
    Screen.SAVING: "Saving",
}

FLOW_LABELS = {
    Flow.GENERATE: "Generate",
    Flow.EDIT: "Edit",
    Flow.VARIATIONS: "Variations",
    Flow.UPSCALE: "Upscale",
    Flow.RMBG: "Remove background",
}


def mask_api_key(key: str | None) -> str:
    """Show the first 8 and last 4 characters of a key."""
    if not key:
        return "not set"
    if len(key) <= 12:
        return "*" * len(key)
    return f"{key[:8]}...{key[-4:]}"


def truncate(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def generation_label(generation: Generation) -> str:
    return (
        f"{escape(truncate(generation.prompt))} "
        f"[dim]{escape(model_display_name(generation.model))} · {generation.timestamp[:16]}[/dim]"
    )


def settings_value(config: FalconConfig, field_name: str) -> str:
    value = getattr(config, field_name)
    if field_name == "api_key":
        return mask_api_key(value)
    if isinstance(value, bool):
        return "on" if value else "off"
    if value in MODELS:
        return f"{value} ({model_display_name(value)})"
    return str(value)


def option_label(state: WizardState, value: Any) -> str:
    """Display label of one menu entry."""
    screen = state.screen
    if isinstance(value, Generation):
        return generation_label(value)
    if screen == Screen.HOME:
        return HOME_LABELS.get(value, str(value))
    if screen == Screen.DONE:
        return DONE_LABELS.get(value, str(value))
    if screen == Screen.PRESET:
        if value == MANUAL:
            return "Manual (choose model, aspect and resolution)"
        return escape(PRESETS_BY_NAME[value].description)
    if screen == Screen.SCALE or (screen == Screen.CONFIRM and state.editing == "scale"):
        return f"{value}x"
    if screen == Screen.SETTINGS and state.editing is None:
        draft = state.settings_draft or state.config
        return f"{SETTINGS_LABELS[value]}: [cyan]{escape(settings_value(draft, value))}[/cyan]"
    if isinstance(value, str) and value in MODELS:
        model = MODELS[value]
        return f"{value} [dim]{escape(model.name)} · {escape(model.pricing)}[/dim]"
    return escape(str(value))


def render_menu(state: WizardState, options: list[Any]) -> Table:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold cyan")
    table.add_column()
    for index, value in enumerate(options, start=1):
        table.add_row(str(index), option_label(state, value))
    return table


def render_draft(state: WizardState) -> Table:
    """Summary of what will run, with editable fields marked."""
    draft = state.draft
    editable = editable_fields(draft)

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    def row(field_name: str, label: str, value: str) -> None:
        marker = " [yellow]*[/yellow]" if state.editing == field_name else ""
        hint = f" [dim](e {field_name})[/dim]" if field_name in editable else ""
        table.add_row(label, f"{value}{hint}{marker}")

    table.add_row("Operation", FLOW_LABELS[draft.flow])
    if draft.source is not None:
        table.add_row("Source", f"[dim]{escape(draft.source.output)}[/dim]")

    if draft.flow in (Flow.GENERATE, Flow.VARIATIONS, Flow.EDIT):
        row("prompt", "Prompt", f"[cyan]{escape(truncate(draft.prompt, 70))}[/cyan]")
        row("model", "Model", escape(model_display_name(draft.model)))
        model = MODELS.get(draft.model)
        if draft.flow != Flow.EDIT and model is not None:
            if model.supports_aspect or model.default_params:
                row("aspect", "Aspect", draft.aspect)
            if model.supports_resolution:
                row("resolution", "Resolution", draft.resolution)
            row("count", "Images", str(draft.num_images))
        if draft.preset:
            table.add_row("Preset", draft.preset)
        count = 1 if draft.flow == Flow.EDIT else draft.num_images
        cost = estimate_cost(draft.model, draft.resolution, count)
    elif draft.flow == Flow.UPSCALE:
        row("scale", "Scale", f"{draft.scale}x")
        table.add_row("Model", escape(model_display_name(state.config.upscaler)))
        cost = estimate_cost(state.config.upscaler)
    else:
        table.add_row("Model", escape(model_display_name(state.config.background_remover)))
        cost = estimate_cost(state.config.background_remover)

    table.add_row("Est. cost", f"[yellow]${cost:.3f}[/yellow]")
    return table


def render_result(state: WizardState) -> RenderableType:
    if state.result is not None:
        lines = [
            f"[green]✓ Saved: {escape(str(saved.path))}[/green] "
            f"[dim]({saved.dimensions_label}, {saved.size})[/dim]"
            for saved in state.result.images
        ]
        return Text.from_markup("\n".join(lines))
    if state.subject is not None:
        subject = state.subject
        return Text.from_markup(
            f"{generation_label(subject)}\n[dim]{escape(subject.output)}[/dim]"
        )
    return Text("")


def render_footer(totals: CostTotals) -> Text:
    return Text.from_markup(
        f"[dim]Session: ${totals.session:.2f} | Today: ${totals.today:.2f} | "
        f"All time: ${totals.all_time:.2f}[/dim]"
    )


def _hint(state: WizardState) -> str:
    screen = state.screen
    if screen == Screen.PROMPT:
        return "Type a prompt and press Enter · b to go back"
    if screen == Screen.CONFIRM:
        if state.editing:
            return f"New {state.editing} · b to cancel"
        return "Enter to run · e <field> to edit · n to cancel"
    if screen == Screen.GALLERY:
        return f"Page {state.page + 1}/{page_count(state.history)} · > next · < previous · b back"
    if screen == Screen.SETTINGS:
        if state.editing == "api_key":
            return "Paste a key and press Enter · b to cancel"
        if state.editing:
            return "Choose a value · b to cancel"
        return "Number to change · Enter to save · b to discard"
    if screen == Screen.HOME:
        return "Number to choose · q to quit"
    if screen in (Screen.RUNNING, Screen.SAVING):
        return ""
    return "Number to choose · b to go back"


def render_body(state: WizardState) -> RenderableType:
    screen = state.screen
    options = options_for(state)
    parts: list[RenderableType] = []

    if screen == Screen.PROMPT:
        label = "Describe the edit" if state.draft.flow == Flow.EDIT else "Describe the image"
        parts.append(Text(label))
        if state.draft.prompt:
            parts.append(Text.from_markup(f"[dim]Current: {escape(state.draft.prompt)}[/dim]"))
    elif screen == Screen.CONFIRM:
        parts.append(render_draft(state))
    elif screen == Screen.DONE:
        parts.append(render_result(state))
    elif screen == Screen.GALLERY and not state.history:
        parts.append(Text("No generations yet"))
    elif screen == Screen.RUNNING:
        parts.append(Text(f"{FLOW_LABELS[state.draft.flow]}..."))
    elif screen == Screen.SAVING:
        parts.append(Text("Saving settings..."))

    if options:
        parts.append(render_menu(state, options))
    return Group(*parts)


def render_screen(state: WizardState) -> RenderableType:
    """Full screen: title panel, body, messages and cost footer."""
    parts: list[RenderableType] = [
        Panel(render_body(state), title=TITLES.get(state.screen, ""), title_align="left")
    ]
    if state.error:
        parts.append(Text(state.error, style="red"))
    if state.notice:
        parts.append(Text(state.notice, style="green"))
    hint = _hint(state)
    if hint:
        parts.append(Text(hint, style="dim"))
    parts.append(render_footer(state.totals))
    return Group(*parts)


