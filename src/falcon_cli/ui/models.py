"""Data models for the interactive wizard.

The wizard is a small state machine. Its whole state is one immutable
:class:`WizardState`; user input and operation outcomes are turned into
event objects and fed to :func:`falcon_cli.ui.state.transition`, which
returns the next state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from falcon_cli.core.models import CostTotals, FalconConfig, Generation
from falcon_cli.core.operations import OperationResult


class Screen(str, Enum):
    """Every screen the wizard can show."""

    HOME = "home"
    PROMPT = "prompt"
    PRESET = "preset"
    MODEL = "model"
    ASPECT = "aspect"
    RESOLUTION = "resolution"
    SOURCE = "source"
    SCALE = "scale"
    CONFIRM = "confirm"
    RUNNING = "running"
    DONE = "done"
    GALLERY = "gallery"
    SETTINGS = "settings"
    SAVING = "saving"
    EXIT = "exit"


class Flow(str, Enum):
    """The operation a draft will run."""

    GENERATE = "generate"
    EDIT = "edit"
    VARIATIONS = "variations"
    UPSCALE = "upscale"
    RMBG = "rmbg"


# Screens that take free text rather than a numbered choice
TEXT_SCREENS = frozenset({Screen.PROMPT})

# Screens on which Back does nothing (an operation or a save is in flight)
BUSY_SCREENS = frozenset({Screen.RUNNING, Screen.SAVING})


# -- Events -----------------------------------------------------------------


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Choose:
    value: Any


@dataclass(frozen=True)
class Submit:
    text: str


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Decline:
    pass


@dataclass(frozen=True)
class EditField:
    field: str


@dataclass(frozen=True)
class OperationSucceeded:
    """An effect finished; ``result`` is an OperationResult or a saved config."""

    result: Any


@dataclass(frozen=True)
class OperationFailed:
    message: str


@dataclass(frozen=True)
class PageChanged:
    delta: int


@dataclass(frozen=True)
class HistoryLoaded:
    """Fresh history snapshot from the store (newest first)."""

    generations: tuple[Generation, ...]
    totals: CostTotals


Event = Union[
    Back,
    Choose,
    Submit,
    Confirm,
    Decline,
    EditField,
    OperationSucceeded,
    OperationFailed,
    PageChanged,
    HistoryLoaded,
]


# -- State ------------------------------------------------------------------


@dataclass(frozen=True)
class Draft:
    """The operation being assembled across screens.

    Attributes:
        flow: Which operation will run on CONFIRM
        prompt: Prompt, or the edit instruction for the edit flow
        preset: Name of the preset applied, if any
        model: Generation model id
        aspect: Aspect ratio
        resolution: Resolution
        num_images: Images to request (generate and variations flows)
        scale: Upscale factor (upscale flow)
        source: Existing generation the operation works on
    """

    flow: Flow = Flow.GENERATE
    prompt: str = ""
    preset: str | None = None
    model: str = "banana"
    aspect: str = "1:1"
    resolution: str = "2K"
    num_images: int = 1
    scale: int = 2
    source: Generation | None = None

    @classmethod
    def from_config(cls, config: FalconConfig, flow: Flow = Flow.GENERATE) -> "Draft":
        return cls(
            flow=flow,
            model=config.default_model,
            aspect=config.default_aspect,
            resolution=config.default_resolution,
        )


@dataclass(frozen=True)
class WizardState:
    """Complete, immutable wizard state.

    Attributes:
        screen: Screen currently shown
        draft: Operation being assembled
        stack: Screens to return to on Back (most recent last)
        editing: Field being edited in place on CONFIRM or SETTINGS
        config: Loaded user configuration
        settings_draft: Unsaved copy of the configuration on SETTINGS
        history: Generations, newest first
        totals: Running cost counters
        page: Gallery page (0-based)
        subject: Generation shown on DONE, target of follow-up operations
        result: Outcome of the operation that led to DONE, if any
        error: Message from the last failure, shown once
        notice: Informational message, shown once
    """

    screen: Screen = Screen.HOME
    draft: Draft = field(default_factory=Draft)
    stack: tuple[Screen, ...] = ()
    editing: str | None = None
    config: FalconConfig = field(default_factory=FalconConfig)
    settings_draft: FalconConfig | None = None
    history: tuple[Generation, ...] = ()
    totals: CostTotals = field(default_factory=CostTotals)
    page: int = 0
    subject: Generation | None = None
    result: OperationResult | None = None
    error: str | None = None
    notice: str | None = None
