from __future__ import annotations
from dataclasses import dataclass

from gridsim.constants import (
    BIG_PLAY_YARDS, MOMENTUM_MAX, MOMENTUM_MIN, MOMENTUM_NEUTRAL, TOUCHDOWN_POINTS,
)
from gridsim.plays import PlayOutcome, PlayResult, TAKEAWAYS
from gridsim.state import Side


@dataclass(frozen=True, slots=True)
class MomentumState:
    value: float = MOMENTUM_NEUTRAL   # 0 = away dominance, 100 = home dominance
    streak: int = 0                   # > 0 home-favoured run, < 0 away-favoured run

    @property
    def favored(self) -> Side | None:
        if self.value == MOMENTUM_NEUTRAL:
            return None
        return Side.HOME if self.value > MOMENTUM_NEUTRAL else Side.AWAY


def swing(outcome: PlayOutcome) -> float:
    """Momentum change from the offense's point of view."""
    r = outcome.result
    if outcome.is_try:
        return float(outcome.points)
    if outcome.points == TOUCHDOWN_POINTS:
        # pick-six counts against the offense
        return -20.0 if r in TAKEAWAYS else 15.0
    if r is PlayResult.SAFETY:
        return -20.0
    if r in TAKEAWAYS:
        return -20.0
    if r is PlayResult.SACK:
        return -10.0
    if r in (PlayResult.FIELD_GOAL_MISSED, PlayResult.TURNOVER_ON_DOWNS):
        return -10.0
    if r is PlayResult.FIELD_GOAL_GOOD:
        return 5.0
    if r is PlayResult.INCOMPLETE:
        return -1.0
    if r in (PlayResult.RUSH, PlayResult.COMPLETE, PlayResult.FUMBLE_RECOVERED):
        if outcome.yards >= BIG_PLAY_YARDS:
            return 10.0
        if outcome.yards >= BIG_PLAY_YARDS // 2:
            return 5.0
        if outcome.yards < 0:
            return -2.0
        return 2.0 if outcome.first_down else 0.0
    return 0.0


def update(momentum: MomentumState, outcome: PlayOutcome, *, offense: Side) -> MomentumState:
    delta = swing(outcome)
    home_delta = delta if offense is Side.HOME else -delta
    value = min(MOMENTUM_MAX, max(MOMENTUM_MIN, momentum.value + home_delta))
    if home_delta == 0:
        streak = momentum.streak
    else:
        step = 1 if home_delta > 0 else -1
        same_side = momentum.streak * step > 0
        streak = momentum.streak + step if same_side else step
    return MomentumState(value=value, streak=streak)


def momentum_modifier(momentum: MomentumState, offense: Side, weight: float = 1.0) -> float:
    """Success-odds shift for the offense, at most +/-0.05 at weight 1."""
    shift = (momentum.value - MOMENTUM_NEUTRAL) / 1000.0 * weight
    return shift if offense is Side.HOME else -shift
