from __future__ import annotations
import logging
from dataclasses import replace

import numpy as np

from gridsim.config import OvertimeMode, RulesCfg
from gridsim.constants import (
    FIRST_AND_TEN_YTG, MAX_DOWN, MAX_YARDLINE, MISSED_FG_MIN_SPOT, OVERTIME_TIMEOUTS,
    REGULATION_QUARTERS, TOUCHDOWN_POINTS, TRY_YARDLINE, TWO_MINUTE_WARNING_S,
)
from gridsim.errors import ConfigurationError, IllegalTransition, InvalidPlayRequest
from gridsim.plays import DOWN_CONSUMING, PLAY_TYPES, PlayOutcome, PlayRequest, PlayResult
from gridsim.rules.legality import illegal_reason
from gridsim.state import GameState, Side

logger = logging.getLogger(__name__)

HALFTIME_AFTER = 2
TWO_MINUTE_QUARTERS = (2, REGULATION_QUARTERS)
# outcome fields that must match the state the outcome was resolved against
CONTEXT_FIELDS = ("down", "distance", "yard_line")
# request field -> state attribute it must agree with
REQUEST_CONTEXT = {
    "offense": "offense", "defense": "defense", "down": "down", "distance": "distance",
    "yard_line": "yard_line", "quarter": "quarter", "clock": "clock",
    "score_margin": "margin", "is_try": "pending_try",
}


def first_down_distance(yard_line: int) -> int:
    return min(FIRST_AND_TEN_YTG, MAX_YARDLINE - yard_line)


class RulesFSM:
    """Drive and clock state machine. Every transition returns a new GameState."""

    def __init__(self, rules: RulesCfg | None = None):
        self.rules = rules or RulesCfg()

    def kickoff_state(self, home: str, away: str, opening_receiver: Side = Side.HOME) -> GameState:
        r = self.rules
        s = GameState(
            home=home, away=away, quarter=1, clock=r.quarter_length,
            possession=opening_receiver, down=1,
            distance=first_down_distance(r.touchback_spot), yard_line=r.touchback_spot,
            home_timeouts=r.timeouts_per_half, away_timeouts=r.timeouts_per_half,
            opening_receiver=opening_receiver,
        )
        self.validate_state(s)
        return s

    def validate_state(self, s: GameState) -> None:
        """Reject a seeded state that no sequence of plays could have produced."""
        problems = []
        if not s.home or not s.away or s.home == s.away:
            problems.append("home and away must be distinct team ids")
        if s.quarter < 1:
            problems.append(f"quarter {s.quarter}")
        if s.is_overtime and (self.rules.overtime_mode is OvertimeMode.NONE or s.ot_first_drive is None):
            problems.append("overtime state without overtime configured")
        if not 0 <= s.clock <= self._period_length(s.quarter):
            problems.append(f"clock {s.clock}")
        if not 1 <= s.down <= MAX_DOWN:
            problems.append(f"down {s.down}")
        if not 0 < s.yard_line < MAX_YARDLINE:
            problems.append(f"yard line {s.yard_line}")
        if not 1 <= s.distance <= MAX_YARDLINE - s.yard_line:
            problems.append(f"distance {s.distance}")
        if s.home_score < 0 or s.away_score < 0:
            problems.append("negative score")
        if not (0 <= s.home_timeouts <= 3 and 0 <= s.away_timeouts <= 3):
            problems.append("timeouts must be within 0..3")
        if s.drive_id < 1 or s.play_index < 0:
            problems.append("drive id and play index must be positive")
        if s.is_final:
            problems.append("cannot start from a final state")
        if problems:
            raise ConfigurationError("invalid game state: " + "; ".join(problems))

    def legal_actions(self, s: GameState) -> dict[str, np.ndarray]:
        mask_pt = np.zeros(len(PLAY_TYPES), dtype=bool)
        if s.is_final:
            return {"play_type": mask_pt}
        for i, pt in enumerate(PLAY_TYPES):
            mask_pt[i] = illegal_reason(
                pt, down=s.down, yard_line=s.yard_line, quarter=s.quarter, clock=s.clock,
                margin=s.margin, is_try=s.pending_try,
                max_field_goal_distance=self.rules.max_field_goal_distance,
            ) is None
        return {"play_type": mask_pt}

    def check_request(self, s: GameState, request: PlayRequest) -> None:
        """State-dependent request checks the pure resolver cannot make.

        A request built for another situation raises IllegalTransition; the
        resolver judges legality from the request alone, so its context has to
        be the live one.
        """
        if s.is_final:
            raise InvalidPlayRequest("the game is over")
        stale = [
            f"{field}={getattr(request, field)} (state {getattr(s, attr)})"
            for field, attr in REQUEST_CONTEXT.items()
            if getattr(request, field) != getattr(s, attr)
        ]
        if stale:
            raise IllegalTransition("request built for a different state: " + ", ".join(stale))
        if request.timeout is not None:
            try:
                side = s.side_of(request.timeout)
            except KeyError:
                raise InvalidPlayRequest(f"timeout by unknown team {request.timeout}") from None
            if s.timeouts_for(side) == 0:
                raise InvalidPlayRequest(f"{request.timeout} has no timeouts left")

    def settle(self, s: GameState, outcome: PlayOutcome) -> PlayOutcome:
        """Turn a failed fourth-down snap into a turnover on downs."""
        if (
            not s.pending_try
            and s.down == MAX_DOWN
            and outcome.result in DOWN_CONSUMING
            and outcome.yards < s.distance
            and not outcome.scoring_play
            and not outcome.change_possession
        ):
            return replace(outcome, result=PlayResult.TURNOVER_ON_DOWNS, change_possession=True,
                           first_down=False)
        return outcome

    def apply(self, s: GameState, outcome: PlayOutcome) -> GameState:
        if s.is_final:
            raise IllegalTransition("the game is over")
        self._check_context(s, outcome)
        outcome = self.settle(s, outcome)

        ns = self._tick(s, outcome)
        if outcome.scoring_play:
            ns = self._add_points(ns, outcome)

        if s.pending_try:
            ns = self._kickoff(ns, receiver=s.possession.other)
        elif outcome.points == TOUCHDOWN_POINTS:
            ns = self._set_up_try(ns, outcome)
        elif outcome.result in (PlayResult.SAFETY, PlayResult.FIELD_GOAL_GOOD):
            ns = self._kickoff(ns, receiver=s.possession.other)
        elif outcome.change_possession:
            ns = self._turnover(ns, outcome)
        else:
            ns = self._advance(ns, outcome)

        if ns.is_overtime:
            ns = self._overtime_walk_off(s, ns, outcome)
        if not ns.is_final and ns.clock == 0 and not ns.pending_try:
            ns = self._end_period(ns, fresh_drive=ns.drive_id != s.drive_id)
        logger.debug(
            "play %d: %s -> Q%d %d:%02d %s %d&%d at %d, %d-%d%s",
            ns.play_index, outcome.result.value, ns.quarter, ns.clock // 60, ns.clock % 60,
            ns.possession.value, ns.down, ns.distance, ns.yard_line, ns.home_score,
            ns.away_score, " FINAL" if ns.is_final else "",
        )
        return ns

    def _check_context(self, s: GameState, outcome: PlayOutcome) -> None:
        stale = [
            f"{name}={getattr(outcome, name)} (state {getattr(s, name)})"
            for name in CONTEXT_FIELDS
            if getattr(outcome, name) != getattr(s, name)
        ]
        if outcome.offense != s.offense or outcome.defense != s.defense:
            stale.append(f"teams {outcome.offense}/{outcome.defense} (state {s.offense}/{s.defense})")
        if outcome.is_try != s.pending_try:
            stale.append(f"is_try={outcome.is_try} (state {s.pending_try})")
        if stale:
            raise IllegalTransition("outcome computed against a different state: " + ", ".join(stale))
        if outcome.scoring_play and outcome.scoring_team not in (s.home, s.away):
            raise IllegalTransition(f"points credited to unknown team {outcome.scoring_team}")

    def _tick(self, s: GameState, outcome: PlayOutcome) -> GameState:
        elapsed = outcome.clock_elapsed
        home_to, away_to = s.home_timeouts, s.away_timeouts
        if outcome.timeout is not None:
            try:
                side = s.side_of(outcome.timeout)
            except KeyError:
                raise IllegalTransition(f"timeout by unknown team {outcome.timeout}") from None
            if s.timeouts_for(side) == 0:
                raise IllegalTransition(f"{outcome.timeout} has no timeouts left")
            elapsed -= outcome.runoff
            if side is Side.HOME:
                home_to -= 1
            else:
                away_to -= 1
        clock = max(0, s.clock - max(0, elapsed))
        if (
            self.rules.two_minute_warning
            and s.quarter in TWO_MINUTE_QUARTERS
            and s.clock > TWO_MINUTE_WARNING_S > clock
        ):
            clock = TWO_MINUTE_WARNING_S
        return replace(s, clock=clock, home_timeouts=home_to, away_timeouts=away_to,
                       play_index=s.play_index + 1)

    def _add_points(self, s: GameState, outcome: PlayOutcome) -> GameState:
        if outcome.scoring_team == s.home:
            return replace(s, home_score=s.home_score + outcome.points)
        return replace(s, away_score=s.away_score + outcome.points)

    def _new_possession(self, s: GameState, receiver: Side, spot: int, reuse_drive: bool = False) -> GameState:
        return replace(
            s, possession=receiver, down=1, distance=first_down_distance(spot), yard_line=spot,
            drive_id=s.drive_id if reuse_drive else s.drive_id + 1, pending_try=False,
        )

    def _kickoff(self, s: GameState, receiver: Side, reuse_drive: bool = False) -> GameState:
        return self._new_possession(s, receiver, self.rules.touchback_spot, reuse_drive)

    def _set_up_try(self, s: GameState, outcome: PlayOutcome) -> GameState:
        scorer = s.side_of(outcome.scoring_team)
        drive_id = s.drive_id
        if scorer is not s.possession:
            if not outcome.change_possession:
                raise IllegalTransition("defensive touchdown without a change of possession")
            drive_id += 1
        return replace(
            s, possession=scorer, down=1, distance=MAX_YARDLINE - TRY_YARDLINE,
            yard_line=TRY_YARDLINE, drive_id=drive_id, pending_try=True,
        )

    def _turnover(self, s: GameState, outcome: PlayOutcome) -> GameState:
        end = outcome.yard_line + outcome.yards
        if outcome.result is PlayResult.TOUCHBACK or end >= MAX_YARDLINE:
            spot = self.rules.touchback_spot
        elif outcome.result is PlayResult.FIELD_GOAL_MISSED:
            spot = max(MAX_YARDLINE - outcome.yard_line, MISSED_FG_MIN_SPOT)
        elif end <= 0:
            raise IllegalTransition(f"ball dead at {end} behind the goal line without a safety")
        else:
            spot = MAX_YARDLINE - end
        return self._new_possession(s, s.possession.other, spot)

    def _advance(self, s: GameState, outcome: PlayOutcome) -> GameState:
        if outcome.result not in DOWN_CONSUMING and outcome.result is not PlayResult.PENALTY:
            raise IllegalTransition(f"{outcome.result.value} must change possession")
        end = outcome.yard_line + outcome.yards
        if not 0 < end < MAX_YARDLINE:
            raise IllegalTransition(f"ball spotted at {end} without a score")
        if outcome.yards >= outcome.distance:
            return replace(s, down=1, distance=first_down_distance(end), yard_line=end)
        down = s.down if outcome.result is PlayResult.PENALTY else s.down + 1
        distance = min(outcome.distance - outcome.yards, MAX_YARDLINE - end)
        return replace(s, down=down, distance=distance, yard_line=end)

    def _overtime_walk_off(self, before: GameState, s: GameState, outcome: PlayOutcome) -> GameState:
        if s.is_final or s.winner is None:
            return s
        mode = self.rules.overtime_mode
        if mode is OvertimeMode.SUDDEN_DEATH:
            ends = outcome.scoring_play
        elif outcome.scoring_play:
            # first possession: only a touchdown or safety ends it
            first_drive = before.drive_id == before.ot_first_drive
            ends = not first_drive or outcome.points == TOUCHDOWN_POINTS or outcome.result is PlayResult.SAFETY
        else:
            # both teams have had the ball
            ends = s.drive_id != before.drive_id and s.drive_id >= (s.ot_first_drive or 0) + 2
        if ends:
            logger.info("overtime ends: %s wins %d-%d", s.winner.value, s.home_score, s.away_score)
            return replace(s, is_final=True, pending_try=False)
        return s

    def _period_length(self, quarter: int) -> int:
        return self.rules.quarter_length if quarter <= REGULATION_QUARTERS else self.rules.overtime_length

    def _end_period(self, s: GameState, fresh_drive: bool = False) -> GameState:
        """Advance past a period whose clock has run out.

        `fresh_drive` means the last play already handed the ball over, so a
        halftime or overtime kickoff replaces that snap-less drive instead of
        opening another one.
        """
        q = s.quarter
        r = self.rules
        if q < REGULATION_QUARTERS and q != HALFTIME_AFTER:
            return replace(s, quarter=q + 1, clock=r.quarter_length)
        if q == HALFTIME_AFTER:
            ns = replace(s, quarter=q + 1, clock=r.quarter_length,
                         home_timeouts=r.timeouts_per_half, away_timeouts=r.timeouts_per_half)
            return self._kickoff(ns, receiver=s.opening_receiver.other, reuse_drive=fresh_drive)
        if s.winner is not None:
            return replace(s, is_final=True)
        if r.overtime_mode is OvertimeMode.NONE or q - REGULATION_QUARTERS >= r.overtime_periods:
            logger.info("game ends tied %d-%d", s.home_score, s.away_score)
            return replace(s, is_final=True)
        timeouts = min(OVERTIME_TIMEOUTS, r.timeouts_per_half)
        ns = replace(s, quarter=q + 1, clock=r.overtime_length,
                     home_timeouts=timeouts, away_timeouts=timeouts)
        ns = self._kickoff(ns, receiver=r.overtime_receiver or s.opening_receiver, reuse_drive=fresh_drive)
        return replace(ns, ot_first_drive=ns.drive_id)
