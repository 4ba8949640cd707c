"""Pure state transitions for the interactive wizard.

:func:`transition` maps ``(state, event)`` to the next state. It performs no
I/O: loading history, running operations and saving settings are effects
that :class:`falcon_cli.ui.app.WizardApp` runs when a new screen is entered,
feeding their outcome back in as events.

Navigation rules
----------------
- forward movement happens only on an explicit Confirm, Choose or Submit
- Back pops the screen stack (HOME at the bottom); it is ignored while an
  operation or a save is in flight
- ``OperationFailed`` from any screen returns HOME with the message shown
- CONFIRM supports in-place editing: ``EditField`` marks a field, the next
  Choose or Submit updates the draft and clears the mark, Back just clears it
"""

import logging
from dataclasses import replace
from typing import Any

from falcon_cli.core.models import FalconConfig, Generation
from falcon_cli.core.operations import OperationResult
from falcon_cli.core.presets import PRESETS_BY_NAME, apply_preset
from falcon_cli.core.registry import (
    ASPECT_RATIOS,
    BACKGROUND_MODELS,
    GENERATION_MODELS,
    MODELS,
    RESOLUTIONS,
    UPSCALE_FACTORS,
    UPSCALE_MODELS,
)

from .models import (
    BUSY_SCREENS,
    Back,
    Choose,
    Confirm,
    Decline,
    Draft,
    EditField,
    Event,
    Flow,
    HistoryLoaded,
    OperationFailed,
    OperationSucceeded,
    PageChanged,
    Screen,
    Submit,
    WizardState,
)

logger = logging.getLogger(__name__)

GALLERY_PAGE_SIZE = 8
SOURCE_LIMIT = 9

HOME_OPTIONS = ["generate", "edit", "vary", "upscale", "rmbg", "gallery", "settings", "quit"]
DONE_OPTIONS = ["open", "edit", "vary", "upscale", "rmbg", "regenerate", "new", "home"]
MANUAL = "manual"

HOME_FLOWS = {
    "edit": Flow.EDIT,
    "vary": Flow.VARIATIONS,
    "upscale": Flow.UPSCALE,
    "rmbg": Flow.RMBG,
}

COUNT_OPTIONS = [1, 2, 3, 4]

# Settings fields that pick from a list, keyed by FalconConfig attribute
SETTINGS_SELECTS: dict[str, list[str]] = {
    "default_model": GENERATION_MODELS,
    "default_aspect": ASPECT_RATIOS,
    "default_resolution": RESOLUTIONS,
    "upscaler": UPSCALE_MODELS,
    "background_remover": BACKGROUND_MODELS,
}
SETTINGS_TOGGLES = ["open_after_generate"]
SETTINGS_TEXT = ["api_key"]
SETTINGS_FIELDS = [*SETTINGS_SELECTS, *SETTINGS_TOGGLES, *SETTINGS_TEXT]


# -- Helpers ----------------------------------------------------------------


def edit_models() -> list[str]:
    return [key for key in GENERATION_MODELS if MODELS[key].supports_edit]


def editable_fields(draft: Draft) -> list[str]:
    """Fields that can be changed in place on CONFIRM for this draft."""
    if draft.flow in (Flow.GENERATE, Flow.VARIATIONS):
        fields = ["prompt", "model"]
        model = MODELS.get(draft.model)
        if model is not None and model.supports_aspect:
            fields.append("aspect")
        if model is not None and model.supports_resolution:
            fields.append("resolution")
        fields.append("count")
        return fields
    if draft.flow == Flow.EDIT:
        return ["prompt", "model"]
    if draft.flow == Flow.UPSCALE:
        return ["scale"]
    return []


def field_options(draft: Draft, field_name: str) -> list[Any]:
    """Values offered while editing ``field_name`` on CONFIRM (empty = free text)."""
    if field_name == "model":
        return edit_models() if draft.flow == Flow.EDIT else list(GENERATION_MODELS)
    if field_name == "aspect":
        return list(ASPECT_RATIOS)
    if field_name == "resolution":
        return list(RESOLUTIONS)
    if field_name == "count":
        return list(COUNT_OPTIONS)
    if field_name == "scale":
        return list(UPSCALE_FACTORS)
    return []


def page_count(history: tuple[Generation, ...]) -> int:
    return max(1, -(-len(history) // GALLERY_PAGE_SIZE))


def gallery_page(state: WizardState) -> list[Generation]:
    start = state.page * GALLERY_PAGE_SIZE
    return list(state.history[start : start + GALLERY_PAGE_SIZE])


def draft_from_generation(generation: Generation, config: FalconConfig) -> Draft:
    """A generate draft that reproduces ``generation`` where possible.

    Utility results (upscales, background removals) fall back to the
    configured default model.
    """
    model = MODELS.get(generation.model)
    is_generation = model is not None and model.type == "generation"
    return Draft(
        flow=Flow.GENERATE,
        prompt=generation.prompt,
        model=generation.model if is_generation else config.default_model,
        aspect=generation.aspect,
        resolution=generation.resolution,
    )


def _draft_for_source(flow: Flow, source: Generation, config: FalconConfig) -> Draft:
    base = draft_from_generation(source, config)
    if flow == Flow.EDIT:
        model = base.model if base.model in edit_models() else config.default_model
        return replace(base, flow=flow, prompt="", model=model, source=source)
    if flow == Flow.VARIATIONS:
        return replace(base, flow=flow, num_images=4, source=source)
    return replace(base, flow=flow, source=source)


def _after_source(flow: Flow) -> Screen:
    if flow == Flow.EDIT:
        return Screen.PROMPT
    if flow == Flow.UPSCALE:
        return Screen.SCALE
    return Screen.CONFIRM


def _after_model(model_id: str) -> Screen:
    model = MODELS[model_id]
    if model.supports_aspect:
        return Screen.ASPECT
    if model.supports_resolution:
        return Screen.RESOLUTION
    return Screen.CONFIRM


def _go(state: WizardState, screen: Screen, **changes: Any) -> WizardState:
    """Move forward to ``screen``, remembering the current one for Back."""
    return replace(
        state,
        screen=screen,
        stack=state.stack + (state.screen,),
        editing=None,
        error=None,
        notice=None,
        **changes,
    )


def _home(state: WizardState, **changes: Any) -> WizardState:
    changes.setdefault("error", None)
    changes.setdefault("notice", None)
    return replace(
        state,
        screen=Screen.HOME,
        stack=(),
        editing=None,
        settings_draft=None,
        page=0,
        **changes,
    )


def _stay(state: WizardState, error: str | None = None, **changes: Any) -> WizardState:
    return replace(state, error=error, notice=None, **changes)


def _back(state: WizardState) -> WizardState:
    if state.screen in BUSY_SCREENS:
        return state
    if state.editing is not None:
        return replace(state, editing=None, error=None, notice=None)
    if state.screen == Screen.SETTINGS:
        return _home(state)
    if not state.stack:
        return _home(state)
    previous = state.stack[-1]
    if previous == Screen.HOME:
        return _home(state, draft=state.draft)
    return replace(
        state,
        screen=previous,
        stack=state.stack[:-1],
        editing=None,
        error=None,
        notice=None,
    )


# -- Per-screen handlers ----------------------------------------------------


def _on_home(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose):
        return state

    choice = event.value
    if choice == "quit":
        return replace(state, screen=Screen.EXIT)
    if choice == "generate":
        return _go(state, Screen.PROMPT, draft=Draft.from_config(state.config))
    if choice in HOME_FLOWS:
        draft = Draft.from_config(state.config, HOME_FLOWS[choice])
        return _go(state, Screen.SOURCE, draft=draft)
    if choice == "gallery":
        return _go(state, Screen.GALLERY, page=0)
    if choice == "settings":
        return _go(state, Screen.SETTINGS, settings_draft=state.config)
    return state


def _on_prompt(state: WizardState, event: Event) -> WizardState:
    if isinstance(event, Submit):
        text = event.text.strip()
    elif isinstance(event, Confirm):
        text = state.draft.prompt.strip()
    else:
        return state

    if not text:
        return _stay(state, "Prompt cannot be empty")

    draft = replace(state.draft, prompt=text)
    if draft.flow == Flow.EDIT:
        return _go(state, Screen.CONFIRM, draft=draft)
    return _go(state, Screen.PRESET, draft=draft)


def _on_preset(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose):
        return state
    if event.value == MANUAL:
        return _go(state, Screen.MODEL, draft=replace(state.draft, preset=None))

    preset = PRESETS_BY_NAME.get(event.value)
    if preset is None:
        return state
    aspect, resolution = apply_preset(preset, state.draft.aspect, state.draft.resolution)
    draft = replace(state.draft, preset=preset.name, aspect=aspect, resolution=resolution)
    return _go(state, Screen.CONFIRM, draft=draft)


def _on_model(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose) or event.value not in GENERATION_MODELS:
        return state
    draft = replace(state.draft, model=event.value)
    return _go(state, _after_model(event.value), draft=draft)


def _on_aspect(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose) or event.value not in ASPECT_RATIOS:
        return state
    draft = replace(state.draft, aspect=event.value)
    model = MODELS[draft.model]
    next_screen = Screen.RESOLUTION if model.supports_resolution else Screen.CONFIRM
    return _go(state, next_screen, draft=draft)


def _on_resolution(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose) or event.value not in RESOLUTIONS:
        return state
    return _go(state, Screen.CONFIRM, draft=replace(state.draft, resolution=event.value))


def _on_source(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose) or not isinstance(event.value, Generation):
        return state
    draft = _draft_for_source(state.draft.flow, event.value, state.config)
    return _go(state, _after_source(draft.flow), draft=draft)


def _on_scale(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose) or event.value not in UPSCALE_FACTORS:
        return state
    return _go(state, Screen.CONFIRM, draft=replace(state.draft, scale=event.value))


def _apply_field(draft: Draft, field_name: str, value: Any) -> Draft | str:
    """Set a CONFIRM field, or return an error message."""
    if field_name == "prompt":
        text = str(value).strip()
        if not text:
            return "Prompt cannot be empty"
        return replace(draft, prompt=text)

    options = field_options(draft, field_name)
    if value not in options:
        return f"Invalid {field_name}: {value}"
    if field_name == "model":
        return replace(draft, model=value, preset=None)
    if field_name == "aspect":
        return replace(draft, aspect=value, preset=None)
    if field_name == "resolution":
        return replace(draft, resolution=value, preset=None)
    if field_name == "count":
        return replace(draft, num_images=value)
    if field_name == "scale":
        return replace(draft, scale=value)
    return f"Unknown field: {field_name}"


def _on_confirm(state: WizardState, event: Event) -> WizardState:
    if state.editing is not None:
        if isinstance(event, (Choose, Submit)):
            value = event.value if isinstance(event, Choose) else event.text
            if state.editing == "count" and isinstance(value, str) and value.isdigit():
                value = int(value)
            updated = _apply_field(state.draft, state.editing, value)
            if isinstance(updated, str):
                return _stay(state, updated)
            return replace(state, draft=updated, editing=None, error=None, notice=None)
        return state

    if isinstance(event, Confirm):
        return _go(state, Screen.RUNNING, result=None)
    if isinstance(event, Decline):
        return _home(state)
    if isinstance(event, EditField):
        if event.field not in editable_fields(state.draft):
            return _stay(state, f"Cannot edit {event.field} here")
        return replace(state, editing=event.field, error=None, notice=None)
    return state


def _on_running(state: WizardState, event: Event) -> WizardState:
    if isinstance(event, OperationSucceeded) and isinstance(event.result, OperationResult):
        result = event.result
        subject = result.first.generation if result.first is not None else None
        history = result.history
        return replace(
            state,
            screen=Screen.DONE,
            stack=(),
            editing=None,
            result=result,
            subject=subject,
            totals=history.total_cost if history is not None else state.totals,
            error=None,
            notice=None,
        )
    return state


def _on_done(state: WizardState, event: Event) -> WizardState:
    if not isinstance(event, Choose):
        return state

    choice = event.value
    subject = state.subject
    if choice == "home":
        return _home(state)
    if choice == "new":
        return _go(state, Screen.PROMPT, draft=Draft.from_config(state.config))
    if choice == "regenerate":
        draft = state.draft
        if state.result is None and subject is not None:
            draft = draft_from_generation(subject, state.config)
        return _go(state, Screen.CONFIRM, draft=draft)
    if choice in HOME_FLOWS:
        if subject is None:
            return _stay(state, "No image to work on")
        draft = _draft_for_source(HOME_FLOWS[choice], subject, state.config)
        return _go(state, _after_source(draft.flow), draft=draft)
    # "open" is handled by the driver
    return state


def _on_gallery(state: WizardState, event: Event) -> WizardState:
    if isinstance(event, PageChanged):
        last_page = page_count(state.history) - 1
        page = min(max(state.page + event.delta, 0), last_page)
        return replace(state, page=page, error=None, notice=None)
    if isinstance(event, Choose) and isinstance(event.value, Generation):
        return _go(
            state,
            Screen.DONE,
            subject=event.value,
            result=None,
            draft=draft_from_generation(event.value, state.config),
        )
    return state


def _on_settings(state: WizardState, event: Event) -> WizardState:
    draft = state.settings_draft or state.config

    if state.editing is not None:
        field_name = state.editing
        if field_name in SETTINGS_TEXT and isinstance(event, Submit):
            value = event.text.strip() or None
        elif field_name in SETTINGS_SELECTS and isinstance(event, Choose):
            if event.value not in SETTINGS_SELECTS[field_name]:
                return _stay(state, f"Invalid value: {event.value}")
            value = event.value
        else:
            return state
        updated = draft.model_copy(update={field_name: value})
        return replace(state, settings_draft=updated, editing=None, error=None, notice=None)

    if isinstance(event, Choose) and event.value in SETTINGS_FIELDS:
        if event.value in SETTINGS_TOGGLES:
            current = getattr(draft, event.value)
            updated = draft.model_copy(update={event.value: not current})
            return replace(state, settings_draft=updated, error=None, notice=None)
        return replace(state, editing=event.value, settings_draft=draft, error=None, notice=None)
    if isinstance(event, Confirm):
        return _go(state, Screen.SAVING, settings_draft=draft)
    return state


def _on_saving(state: WizardState, event: Event) -> WizardState:
    if isinstance(event, OperationSucceeded) and isinstance(event.result, FalconConfig):
        return _home(state, config=event.result, notice="Settings saved")
    return state


_HANDLERS = {
    Screen.HOME: _on_home,
    Screen.PROMPT: _on_prompt,
    Screen.PRESET: _on_preset,
    Screen.MODEL: _on_model,
    Screen.ASPECT: _on_aspect,
    Screen.RESOLUTION: _on_resolution,
    Screen.SOURCE: _on_source,
    Screen.SCALE: _on_scale,
    Screen.CONFIRM: _on_confirm,
    Screen.RUNNING: _on_running,
    Screen.DONE: _on_done,
    Screen.GALLERY: _on_gallery,
    Screen.SETTINGS: _on_settings,
    Screen.SAVING: _on_saving,
}


def transition(state: WizardState, event: Event) -> WizardState:
    """Compute the next wizard state.

    Args:
        state: Current state
        event: User input or effect outcome

    Returns:
        The next state. Events that make no sense on the current screen
        return ``state`` unchanged.
    """
    if state.screen == Screen.EXIT:
        return state

    if isinstance(event, HistoryLoaded):
        return replace(state, history=tuple(event.generations), totals=event.totals)

    if isinstance(event, OperationFailed):
        return _home(state, error=event.message)

    if isinstance(event, Back):
        return _back(state)

    handler = _HANDLERS.get(state.screen)
    if handler is None:
        return state
    return handler(state, event)
