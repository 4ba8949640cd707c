"""Named aspect/resolution presets.

A preset bundles an aspect ratio and, optionally, a resolution that suit a
common destination (an eBook cover, an Instagram story, a phone wallpaper).
Presets are listed in priority order: when several CLI preset flags are
given, the first one in :data:`PRESETS` wins.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Preset:
    """A named aspect ratio / resolution bundle."""

    name: str
    aspect: str
    resolution: str | None
    group: str
    description: str


# Priority order matters: earlier presets win when several are requested
PRESETS: list[Preset] = [
    # Kindle/eBook cover: 1600x2560 recommended, 2:3 is closest (1600x2400)
    Preset("cover", "2:3", "2K", "Format", "Kindle/eBook cover: 2:3, 2K"),
    Preset("story", "9:16", None, "Social Media", "Instagram/TikTok Story: 9:16"),
    Preset("reel", "9:16", None, "Social Media", "Instagram Reel: 9:16"),
    Preset("feed", "4:5", None, "Social Media", "Instagram Feed portrait: 4:5"),
    # 1200x630 is ~1.91:1, 16:9 is closest
    Preset("og", "16:9", None, "Social Media", "Open Graph / social share: 16:9"),
    Preset("wallpaper", "9:16", "2K", "Devices", "iPhone wallpaper: 9:16, 2K"),
    Preset("ultra", "21:9", "2K", "Cinematic", "Ultra-wide banner: 21:9, 2K"),
    Preset("wide", "21:9", None, "Cinematic", "Cinematic wide: 21:9"),
    Preset("square", "1:1", None, "Format", "Square: 1:1"),
    Preset("landscape", "16:9", None, "Format", "Landscape: 16:9"),
    Preset("portrait", "2:3", None, "Format", "Portrait: 2:3"),
]

PRESETS_BY_NAME: dict[str, Preset] = {preset.name: preset for preset in PRESETS}


def select_preset(names: set[str] | list[str]) -> Preset | None:
    """Return the highest-priority preset among ``names``, if any."""
    requested = set(names)
    for preset in PRESETS:
        if preset.name in requested:
            return preset
    return None


def apply_preset(preset: Preset | None, aspect: str, resolution: str) -> tuple[str, str]:
    """Apply a preset to the given aspect and resolution.

    Args:
        preset: Preset to apply, or ``None`` to leave values unchanged
        aspect: Current aspect ratio
        resolution: Current resolution

    Returns:
        Tuple of (aspect, resolution) after the preset
    """
    if preset is None:
        return aspect, resolution
    return preset.aspect, preset.resolution or resolution
