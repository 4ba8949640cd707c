"""Line-based input parsing for the wizard.

One line of input becomes at most one event. Numbered menus are driven by
:func:`options_for`, which lists the values a screen offers; typing ``3``
chooses the third. Typing an option's name (``banana``, ``16:9``) works too.

Shortcuts
---------
=============  ==========================================
blank line     Confirm (prompt, confirmation and settings)
b, back, esc   Back
n, no          Decline (confirmation screen)
y, yes         Confirm (confirmation screen)
q, quit        Quit (home screen)
e <field>      Edit a field in place (confirmation screen)
>, <           Next / previous page (gallery)
=============  ==========================================
"""

from typing import Any

from falcon_cli.core.presets import PRESETS
from falcon_cli.core.registry import ASPECT_RATIOS, GENERATION_MODELS, RESOLUTIONS, UPSCALE_FACTORS

from .models import (
    Back,
    Choose,
    Confirm,
    Decline,
    EditField,
    Event,
    PageChanged,
    Screen,
    Submit,
    WizardState,
)
from .state import (
    DONE_OPTIONS,
    HOME_OPTIONS,
    MANUAL,
    SETTINGS_FIELDS,
    SETTINGS_SELECTS,
    SETTINGS_TEXT,
    SOURCE_LIMIT,
    field_options,
    gallery_page,
)

BACK_WORDS = frozenset({"b", "back", "esc"})
DECLINE_WORDS = frozenset({"n", "no"})
ACCEPT_WORDS = frozenset({"y", "yes"})
QUIT_WORDS = frozenset({"q", "quit"})


def options_for(state: WizardState) -> list[Any]:
    """Values offered as a numbered menu on the current screen."""
    screen = state.screen

    if screen == Screen.CONFIRM:
        return field_options(state.draft, state.editing) if state.editing else []
    if screen == Screen.SETTINGS:
        if state.editing in SETTINGS_SELECTS:
            return list(SETTINGS_SELECTS[state.editing])
        if state.editing in SETTINGS_TEXT:
            return []
        return list(SETTINGS_FIELDS)

    if screen == Screen.HOME:
        return list(HOME_OPTIONS)
    if screen == Screen.PRESET:
        return [preset.name for preset in PRESETS] + [MANUAL]
    if screen == Screen.MODEL:
        return list(GENERATION_MODELS)
    if screen == Screen.ASPECT:
        return list(ASPECT_RATIOS)
    if screen == Screen.RESOLUTION:
        return list(RESOLUTIONS)
    if screen == Screen.SCALE:
        return list(UPSCALE_FACTORS)
    if screen == Screen.SOURCE:
        return list(state.history[:SOURCE_LIMIT])
    if screen == Screen.DONE:
        return list(DONE_OPTIONS)
    if screen == Screen.GALLERY:
        return gallery_page(state)
    return []


def is_text_entry(state: WizardState) -> bool:
    """Whether free text on this screen is submitted as-is."""
    if state.screen == Screen.PROMPT:
        return True
    if state.screen == Screen.CONFIRM and state.editing == "prompt":
        return True
    return state.screen == Screen.SETTINGS and state.editing in SETTINGS_TEXT


def _match_option(text: str, options: list[Any]) -> Any:
    if text.isdigit():
        index = int(text)
        # Integer menus (scale, count) match the typed value before its position
        if options and all(type(option) is int for option in options) and index in options:
            return index
        if 1 <= index <= len(options):
            return options[index - 1]
    lowered = text.lower()
    for option in options:
        if isinstance(option, (str, int)) and str(option).lower() == lowered:
            return option
    return None


def parse_input(state: WizardState, raw: str, options: list[Any] | None = None) -> Event | None:
    """Turn one line of input into an event.

    Args:
        state: Current wizard state
        raw: The line as typed
        options: Menu values (default: :func:`options_for`)

    Returns:
        The event, or ``None`` when the input means nothing on this screen
    """
    if options is None:
        options = options_for(state)

    text = raw.strip()
    lowered = text.lower()
    screen = state.screen
    text_entry = is_text_entry(state)

    if not text:
        if screen == Screen.PROMPT:
            return Confirm()
        if screen in (Screen.CONFIRM, Screen.SETTINGS) and state.editing is None:
            return Confirm()
        return None

    if lowered in BACK_WORDS:
        return Back()

    if screen == Screen.HOME and lowered in QUIT_WORDS:
        return Choose("quit")

    if screen == Screen.CONFIRM and state.editing is None:
        if lowered in DECLINE_WORDS:
            return Decline()
        if lowered in ACCEPT_WORDS:
            return Confirm()
        if lowered.startswith("e "):
            return EditField(lowered[2:].strip())

    if screen == Screen.GALLERY and text in (">", "<"):
        return PageChanged(1 if text == ">" else -1)

    if options:
        choice = _match_option(text, options)
        if choice is not None:
            return Choose(choice)

    if text_entry:
        return Submit(text)

    return None
