"""Human-readable catalog of the tweak categories."""

import typing as t
from pathlib import Path

from ..session import Tweak

DESCRIPTIONS: t.Dict[Tweak, str] = {
    Tweak.FOOTNOTE: "Lock screen footnote text",
    Tweak.STATUS_BAR: "Status bar overrides (carrier, time, battery)",
    Tweak.SPRINGBOARD_OPTIONS: "SpringBoard behaviour options",
    Tweak.SKIP_SETUP: "Skip setup assistant panes after restore",
    Tweak.THEMES: "Applied icon theme",
    Tweak.DYNAMIC_ISLAND: "Dynamic Island device subtype",
    Tweak.INTERNAL_OPTIONS: "Internal debugging preferences",
}


def describe(tweak: Tweak) -> str:
    return DESCRIPTIONS.get(tweak, "")


def available_tweaks(workspace: t.Optional[Path] = None) -> t.List[t.Tuple[Tweak, bool]]:
    """Every tweak with whether its files exist in ``workspace``."""
    return [
        (tweak, workspace is not None and (workspace / tweak.value).is_dir())
        for tweak in Tweak
    ]
