from __future__ import annotations
from dataclasses import dataclass, fields

import numpy as np

from gridsim.constants import RED_ZONE_YARD, SHORT_YTG, THIRD_AND_LONG_YTG
from gridsim.plays import DefenseCall, PlayRequest, PlayType


@dataclass(frozen=True, slots=True)
class Modifiers:
    """Additive adjustments to the resolver's base odds and yardage."""

    success: float = 0.0
    sack: float = 0.0
    run_yards: float = 0.0
    pass_yards: float = 0.0
    big_play: float = 0.0
    interception: float = 0.0

    def __add__(self, other: "Modifiers") -> "Modifiers":
        return Modifiers(**{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)})


NO_MODIFIERS = Modifiers()

DEFENSE_CALL_MODIFIERS = {
    DefenseCall.MAN: NO_MODIFIERS,
    DefenseCall.ZONE: Modifiers(pass_yards=-3, run_yards=-1, big_play=-0.05, interception=0.02),
    DefenseCall.BLITZ: Modifiers(sack=0.10, run_yards=2, pass_yards=-2, big_play=0.10),
}


def situational(request: PlayRequest) -> Modifiers:
    """Down, distance, field position and fatigue adjustments for one snap."""
    success = 0.0
    sack = 0.0
    big_play = 0.0
    if request.distance <= SHORT_YTG and request.play_type is PlayType.RUN_INSIDE:
        success += 0.05
    if request.down == 3 and request.distance >= THIRD_AND_LONG_YTG and request.play_type.is_pass:
        sack += 0.02
    if request.yard_line >= RED_ZONE_YARD:
        # compressed field
        big_play -= 0.05
    success -= 0.1 * float(np.clip(request.fatigue, 0.0, 1.0))
    return Modifiers(success=success, sack=sack, big_play=big_play)


def momentum_shift(shift: float) -> Modifiers:
    """Explicit momentum input; zero unless the caller opts in."""
    return Modifiers(success=shift)


def for_request(request: PlayRequest, extra: Modifiers | None = None) -> Modifiers:
    mods = DEFENSE_CALL_MODIFIERS[request.defense_call] + situational(request)
    return mods + extra if extra is not None else mods
