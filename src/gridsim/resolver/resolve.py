from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from gridsim.config import ResolverCfg, RulesCfg
from gridsim.constants import (
    EXTRA_POINT_POINTS, FIELD_GOAL_POINTS, KICK_SECONDS, KNEEL_SECONDS, LIVE_BALL_SECONDS,
    MAX_DOWN, MAX_YARDLINE, PLAY_SECONDS, SAFETY_POINTS, SPIKE_SECONDS, TOUCHDOWN_POINTS,
    TWO_POINT_POINTS,
)
from gridsim.errors import InvalidPlayRequest
from gridsim.plays import (
    DOWN_CONSUMING, PlayOutcome, PlayRequest, PlayResult, PlayType, TeamCapability,
)
from gridsim.resolver import knobs
from gridsim.resolver.knobs import Modifiers
from gridsim.rules.legality import illegal_reason, kick_distance

logger = logging.getLogger(__name__)

# complete bonus, yard bonus, interception chance, big-play chance
PASS_DEPTH = {
    PlayType.PASS_SHORT: (0.15, -2, 0.01, 0.05),
    PlayType.PASS_MEDIUM: (0.0, 0, 0.03, 0.15),
    PlayType.PASS_LONG: (-0.15, 10, 0.07, 0.25),
}
# yard bonus, big-play variance
RUN_STYLE = {
    PlayType.RUN_INSIDE: (1, 0.5),
    PlayType.RUN_OUTSIDE: (-1, 1.5),
}


def _pick(rng: np.random.Generator, ids: Sequence[str]) -> Optional[str]:
    if not ids:
        return None
    return ids[int(rng.integers(len(ids)))]


@dataclass
class _Draft:
    result: PlayResult
    yards: int = 0
    completed: bool = False
    change_possession: bool = False
    points: int = 0
    scoring_team: Optional[str] = None
    stop_clock: bool = False
    kick: bool = False
    first_down: bool = False
    passer: Optional[str] = None
    rusher: Optional[str] = None
    receiver: Optional[str] = None
    kicker: Optional[str] = None
    defender: Optional[str] = None
    description: str = ""


class PlayResolver:
    """Turns a play request into an outcome. Holds configuration only."""

    def __init__(self, config: ResolverCfg | None = None, rules: RulesCfg | None = None):
        self.config = config or ResolverCfg()
        self.rules = rules or RulesCfg()

    def validate(self, offense: TeamCapability, defense: TeamCapability, request: PlayRequest) -> None:
        """Raise InvalidPlayRequest when the play type is illegal for the situation."""
        if request.offense != offense.team_id or request.defense != defense.team_id:
            raise InvalidPlayRequest(
                f"request teams {request.offense}/{request.defense} do not match "
                f"{offense.team_id}/{defense.team_id}"
            )
        if request.offense == request.defense:
            raise InvalidPlayRequest("offense and defense must differ")
        if not 1 <= request.down <= MAX_DOWN:
            raise InvalidPlayRequest(f"down out of range: {request.down}")
        if not 0 < request.yard_line < MAX_YARDLINE:
            raise InvalidPlayRequest(f"yard line out of range: {request.yard_line}")
        if not 1 <= request.distance <= MAX_YARDLINE - request.yard_line:
            raise InvalidPlayRequest(f"distance out of range: {request.distance}")
        if request.timeout is not None and request.timeout not in (request.offense, request.defense):
            raise InvalidPlayRequest(f"timeout by unknown team {request.timeout}")

        reason = illegal_reason(
            request.play_type,
            down=request.down,
            yard_line=request.yard_line,
            quarter=request.quarter,
            clock=request.clock,
            margin=request.score_margin,
            is_try=request.is_try,
            max_field_goal_distance=self.rules.max_field_goal_distance,
        )
        if reason is not None:
            raise InvalidPlayRequest(reason)

    def resolve(
        self,
        offense: TeamCapability,
        defense: TeamCapability,
        request: PlayRequest,
        rng: np.random.Generator,
        modifiers: Modifiers | None = None,
    ) -> PlayOutcome:
        self.validate(offense, defense, request)
        mods = knobs.for_request(request, modifiers)
        success = float(np.clip(0.5 + (offense.offense - defense.defense) / 100 + mods.success, 0.3, 0.7))
        pt = request.play_type

        if pt.is_try:
            draft = self._conversion(offense, defense, request, rng)
        elif pt is PlayType.PUNT:
            draft = self._punt(offense, request, rng)
        elif pt is PlayType.FIELD_GOAL:
            draft = self._field_goal(offense, request, rng)
        elif pt is PlayType.KNEEL:
            draft = _Draft(PlayResult.KNEEL, yards=-1 if request.yard_line > 1 else 0,
                           rusher=offense.quarterback, description="QB kneels")
        elif pt is PlayType.SPIKE:
            draft = _Draft(PlayResult.INCOMPLETE, stop_clock=True, passer=offense.quarterback,
                           description="QB spikes the ball")
        elif rng.random() < self.config.penalty_rate:
            draft = self._penalty(request, rng)
        elif pt.is_run:
            draft = self._run(offense, defense, request, rng, mods, success)
        else:
            draft = self._pass(offense, defense, request, rng, mods, success)

        outcome = self._finish(draft, request, rng)
        logger.debug("resolved %s -> %s (%+d yds)", pt.value, outcome.result.value, outcome.yards)
        return outcome

    def _run(self, offense, defense, request, rng, mods: Modifiers, success: float) -> _Draft:
        bonus, variance = RUN_STYLE[request.play_type]
        rusher = offense.rushers[0] if offense.rushers else offense.quarterback
        if rng.random() < success:
            yards = int(round(rng.uniform(2, 8) + bonus + mods.run_yards))
            if rng.random() < 0.1 * variance + mods.big_play:
                yards = int(rng.integers(10, 26))
        else:
            yards = int(rng.integers(-2, 4))
            if rng.random() < mods.sack * 0.5:
                yards -= 2
        draft = _Draft(PlayResult.RUSH, yards=yards, rusher=rusher, defender=_pick(rng, defense.defenders))
        draft.description = f"{rusher or 'RB'} run for {yards} yards"
        if 0 < request.yard_line + yards < MAX_YARDLINE:
            self._maybe_fumble(draft, rng)
        return draft

    def _pass(self, offense, defense, request, rng, mods: Modifiers, success: float) -> _Draft:
        complete_bonus, yard_bonus, int_chance, big_chance = PASS_DEPTH[request.play_type]
        passer = offense.quarterback
        receiver = _pick(rng, offense.receivers)
        yl = request.yard_line

        if rng.random() < 0.05 + mods.sack:
            yards = -int(rng.integers(5, 11))
            return _Draft(PlayResult.SACK, yards=yards, passer=passer,
                          defender=_pick(rng, defense.defenders),
                          description=f"{passer or 'QB'} sacked for {yards} yards")

        if rng.random() >= success + complete_bonus:
            return _Draft(PlayResult.INCOMPLETE, stop_clock=True, passer=passer, receiver=receiver,
                          defender=_pick(rng, defense.defenders),
                          description=f"pass incomplete to {receiver or 'receiver'}")

        yards = max(1, int(round(rng.uniform(5, 15) + yard_bonus + mods.pass_yards)))
        if rng.random() < big_chance + mods.big_play:
            yards = int(rng.integers(20, 51))

        if rng.random() < int_chance + mods.interception:
            return self._interception(defense, request, rng, passer, receiver)

        draft = _Draft(PlayResult.COMPLETE, yards=yards, completed=True, passer=passer,
                       receiver=receiver, defender=_pick(rng, defense.defenders),
                       description=f"{passer or 'QB'} pass to {receiver or 'receiver'} for {yards} yards")
        if 0 < yl + yards < MAX_YARDLINE:
            self._maybe_fumble(draft, rng, scale=0.5)
        return draft

    def _interception(self, defense, request, rng, passer, receiver) -> _Draft:
        yl = request.yard_line
        catch_spot = min(MAX_YARDLINE, yl + int(rng.integers(5, 26)))
        draft = _Draft(PlayResult.INTERCEPTION, change_possession=True, stop_clock=True,
                       passer=passer, receiver=receiver, defender=_pick(rng, defense.defenders))
        if catch_spot >= MAX_YARDLINE:
            # picked off in the end zone, downed for a touchback
            draft.yards = MAX_YARDLINE - yl
            draft.description = "intercepted in the end zone"
            return draft
        returned = int(rng.integers(0, 31))
        if catch_spot - returned <= 0:
            draft.yards = -yl
            draft.points = TOUCHDOWN_POINTS
            draft.scoring_team = request.defense
            draft.description = "intercepted and returned for a touchdown"
        else:
            draft.yards = catch_spot - returned - yl
            draft.description = f"intercepted, returned {returned} yards"
        return draft

    def _maybe_fumble(self, draft: _Draft, rng, scale: float = 1.0) -> None:
        if rng.random() >= self.config.fumble_rate * scale:
            return
        if rng.random() < 0.5:
            draft.result = PlayResult.FUMBLE_LOST
            draft.change_possession = True
            draft.stop_clock = True
            draft.description += ", fumble lost"
        else:
            draft.result = PlayResult.FUMBLE_RECOVERED
            draft.description += ", fumble recovered by the offense"

    def _penalty(self, request: PlayRequest, rng) -> _Draft:
        yl = request.yard_line
        if rng.random() < 0.5:
            yards = -min(10, yl // 2)
            desc = f"offensive penalty, {-yards} yards"
        else:
            yards = min(5, (MAX_YARDLINE - yl) // 2)
            desc = f"defensive penalty, {yards} yards"
        return _Draft(PlayResult.PENALTY, yards=yards, stop_clock=True, description=desc,
                      first_down=yards >= request.distance)

    def _punt(self, offense, request, rng) -> _Draft:
        yards = int(rng.integers(35, 51))
        draft = _Draft(PlayResult.PUNT, yards=yards, kick=True, change_possession=True,
                       kicker=offense.kicker, description=f"punt {yards} yards")
        if request.yard_line + yards >= MAX_YARDLINE:
            draft.result = PlayResult.TOUCHBACK
            draft.yards = MAX_YARDLINE - request.yard_line
            draft.description = "punt into the end zone, touchback"
        return draft

    def _field_goal(self, offense, request, rng) -> _Draft:
        los = MAX_YARDLINE - request.yard_line
        chance = float(np.clip(0.9 - (los - 20) / 30, 0.3, 0.95)) * float(np.clip(offense.kicking / 85, 0.6, 1.1))
        dist = kick_distance(request.yard_line)
        if rng.random() < min(chance, 0.99):
            return _Draft(PlayResult.FIELD_GOAL_GOOD, kick=True, change_possession=True,
                          points=FIELD_GOAL_POINTS, scoring_team=request.offense,
                          kicker=offense.kicker, description=f"{dist}-yard field goal is good")
        return _Draft(PlayResult.FIELD_GOAL_MISSED, kick=True, change_possession=True,
                      kicker=offense.kicker, description=f"{dist}-yard field goal is no good")

    def _conversion(self, offense, defense, request, rng) -> _Draft:
        if request.play_type is PlayType.EXTRA_POINT:
            chance = min(0.99, 0.94 + (offense.kicking - 70) * 0.002)
            points, who = EXTRA_POINT_POINTS, dict(kicker=offense.kicker)
        else:
            chance = float(np.clip(0.48 + (offense.offense - defense.defense) / 200, 0.3, 0.65))
            points, who = TWO_POINT_POINTS, dict(passer=offense.quarterback,
                                                 receiver=_pick(rng, offense.receivers))
        label = request.play_type.value.replace("_", " ")
        if rng.random() < chance:
            return _Draft(PlayResult.CONVERSION_GOOD, change_possession=True, points=points,
                          scoring_team=request.offense, description=f"{label} good", **who)
        return _Draft(PlayResult.CONVERSION_FAILED, change_possession=True,
                      description=f"{label} failed", **who)

    def _finish(self, draft: _Draft, request: PlayRequest, rng) -> PlayOutcome:
        yl = request.yard_line
        offensive_snap = draft.result in DOWN_CONSUMING
        if offensive_snap:
            end = yl + draft.yards
            if end >= MAX_YARDLINE:
                draft.yards = MAX_YARDLINE - yl
                draft.result = PlayResult.TOUCHDOWN
                draft.points = TOUCHDOWN_POINTS
                draft.scoring_team = request.offense
                draft.stop_clock = True
                draft.description += ", touchdown"
            elif end <= 0:
                draft.yards = -yl
                draft.result = PlayResult.SAFETY
                draft.points = SAFETY_POINTS
                draft.scoring_team = request.defense
                draft.change_possession = True
                draft.stop_clock = True
                draft.description += ", safety"
            elif draft.yards >= request.distance and draft.result is not PlayResult.INCOMPLETE:
                draft.first_down = True
            elif request.down == MAX_DOWN:
                draft.result = PlayResult.TURNOVER_ON_DOWNS
                draft.change_possession = True
                draft.stop_clock = True
                draft.description += ", turnover on downs"

        clock, runoff = self._clock(draft, request, rng)
        return PlayOutcome(
            play_type=request.play_type,
            result=draft.result,
            yards=draft.yards,
            clock_elapsed=clock,
            runoff=runoff,
            offense=request.offense,
            defense=request.defense,
            down=request.down,
            distance=request.distance,
            yard_line=yl,
            is_try=request.is_try,
            points=draft.points,
            scoring_team=draft.scoring_team,
            change_possession=draft.change_possession,
            completed=draft.completed,
            first_down=draft.first_down,
            timeout=request.timeout,
            passer=draft.passer,
            rusher=draft.rusher,
            receiver=draft.receiver,
            kicker=draft.kicker,
            defender=draft.defender,
            description=draft.description,
        )

    def _clock(self, draft: _Draft, request: PlayRequest, rng) -> tuple[int, int]:
        """Return (seconds elapsed, part of it that a timeout would save)."""
        if request.is_try:
            return 0, 0
        if request.play_type is PlayType.SPIKE:
            return SPIKE_SECONDS, 0
        if request.play_type is PlayType.KNEEL:
            return KNEEL_SECONDS, KNEEL_SECONDS - 2
        if draft.kick:
            return int(rng.integers(KICK_SECONDS[0], KICK_SECONDS[1] + 1)), 0
        lo, hi = PLAY_SECONDS[request.tempo.value]
        total = int(rng.integers(lo, hi + 1))
        live = min(total, int(rng.integers(LIVE_BALL_SECONDS[0], LIVE_BALL_SECONDS[1] + 1)))
        if draft.stop_clock or draft.change_possession:
            return live, 0
        return total, total - live


def resolve(
    offense: TeamCapability,
    defense: TeamCapability,
    request: PlayRequest,
    rng: np.random.Generator,
    modifiers: Modifiers | None = None,
    *,
    config: ResolverCfg | None = None,
    rules: RulesCfg | None = None,
) -> PlayOutcome:
    return PlayResolver(config, rules).resolve(offense, defense, request, rng, modifiers)
