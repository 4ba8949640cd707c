"""Pydantic models for the documents falcon persists.

These models define the JSON shape of ``config.json``, ``.falconrc`` and
``history.json``. Field names are snake_case in Python and camelCase on
disk, so files written by earlier versions of the tool keep loading.

Models
------
FalconConfig
    User preferences: default model, aspect ratio, resolution, post-processing
    models, auto-open flag and an optional stored API key.
Generation
    One recorded successful remote operation. Immutable once created.
CostTotals
    Running session / today / all-time cost counters.
History
    Ordered list of generations (oldest first) plus the cost counters.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def today_string() -> str:
    """Current calendar day as ``YYYY-MM-DD``."""
    return date.today().isoformat()


def generate_id() -> str:
    """Unique id for a new generation."""
    return str(uuid.uuid4())


class _Document(BaseModel):
    """Shared serialisation settings: camelCase on disk, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json(self) -> str:
        """Serialise with on-disk aliases, pretty-printed."""
        return self.model_dump_json(by_alias=True, indent=2, exclude_none=True)


class FalconConfig(_Document):
    """User configuration.

    Attributes:
        api_key: Optional stored fal.ai key (lowest precedence)
        default_model: Generation model used when none is given
        default_aspect: Aspect ratio used when none is given
        default_resolution: Resolution used when none is given
        open_after_generate: Open results in the system viewer
        upscaler: Utility model used for upscaling
        background_remover: Utility model used for background removal
    """

    api_key: str | None = None
    default_model: str = "banana"
    default_aspect: str = "1:1"
    default_resolution: str = "2K"
    open_after_generate: bool = True
    upscaler: str = "clarity"
    background_remover: str = "rmbg"


class Generation(_Document):
    """A single recorded generation.

    Generations are created once per successful remote operation (including
    edits, upscales and background removals) and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    prompt: str
    model: str
    aspect: str
    resolution: str
    output: str
    cost: float
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    edited_from: str | None = None


class CostTotals(_Document):
    """Running cost counters in USD."""

    session: float = 0.0
    today: float = 0.0
    all_time: float = 0.0


class History(_Document):
    """Generation log plus running cost counters.

    Generations are stored oldest-first so that appending is cheap; callers
    reverse the list when displaying it.
    """

    generations: list[Generation] = Field(default_factory=list)
    total_cost: CostTotals = Field(default_factory=CostTotals)
    last_session_date: str = Field(default_factory=today_string)

    @property
    def last(self) -> Generation | None:
        """Most recent generation, or ``None`` when the log is empty."""
        return self.generations[-1] if self.generations else None

    def newest_first(self) -> list[Generation]:
        """Generations in display order."""
        return list(reversed(self.generations))
