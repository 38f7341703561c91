from __future__ import annotations
import logging

import numpy as np

from gridsim.calling.constrained import apply_masks, masked_probs
from gridsim.constants import (
    KNEEL_WINDOW_S, MAX_DOWN, REGULATION_QUARTERS, THIRD_AND_LONG_YTG, TWO_MINUTE_WARNING_S,
)
from gridsim.plays import PLAY_TYPES, DefenseCall, PlayRequest, PlayType, Tempo
from gridsim.rules.fsm import RulesFSM
from gridsim.state import GameState

logger = logging.getLogger(__name__)

PT_INDEX = {pt: i for i, pt in enumerate(PLAY_TYPES)}
DEFENSE_CALLS = tuple(DefenseCall)

# pass share by down, then depth and run-style splits within a family
PASS_SHARE = {1: 0.6, 2: 0.6, 3: 0.7}
PASS_DEPTH_SPLIT = {PlayType.PASS_SHORT: 0.3, PlayType.PASS_MEDIUM: 0.4, PlayType.PASS_LONG: 0.3}
RUN_STYLE_SPLIT = {PlayType.RUN_INSIDE: 0.6, PlayType.RUN_OUTSIDE: 0.4}

GO_FOR_IT_MAX_YTG = 3
FG_MIN_YARDLINE = 62
PUNT_MAX_YARDLINE = 50
TWO_POINT_MARGINS = (-2, -5, 1)
LATE_GAME_S = 300


def _weights(pass_share: float) -> np.ndarray:
    w = np.zeros(len(PLAY_TYPES))
    for pt, share in PASS_DEPTH_SPLIT.items():
        w[PT_INDEX[pt]] = pass_share * share
    for pt, share in RUN_STYLE_SPLIT.items():
        w[PT_INDEX[pt]] = (1.0 - pass_share) * share
    return w


def _only(pt: PlayType) -> np.ndarray:
    w = np.zeros(len(PLAY_TYPES))
    w[PT_INDEX[pt]] = 1.0
    return w


class DefaultPlayCaller:
    """Callable `state -> PlayRequest` with its own random stream."""

    def __init__(self, fsm: RulesFSM, rng: np.random.Generator, blitz_rate: float = 0.15, zone_rate: float = 0.35):
        self.fsm = fsm
        self.rng = rng
        self.defense_call_p = np.array([1.0 - blitz_rate - zone_rate, zone_rate, blitz_rate])

    def __call__(self, s: GameState) -> PlayRequest:
        weights = self.play_weights(s)
        with np.errstate(divide="ignore"):
            logits = {"play_type": np.log(weights)}
        masked = apply_masks(logits, self.fsm.legal_actions(s))["play_type"]
        if not np.isfinite(masked).any():
            # situational weights ruled out every legal option; pick any legal play
            masked = apply_masks({"play_type": np.zeros(len(PLAY_TYPES))}, self.fsm.legal_actions(s))["play_type"]
        probs = masked_probs(masked)
        play_type = PLAY_TYPES[int(self.rng.choice(len(PLAY_TYPES), p=probs))]
        return PlayRequest.for_state(
            s,
            play_type,
            defense_call=DEFENSE_CALLS[int(self.rng.choice(len(DEFENSE_CALLS), p=self.defense_call_p))],
            tempo=self.tempo(s),
            timeout=self.timeout(s, play_type),
        )

    def play_weights(self, s: GameState) -> np.ndarray:
        late = s.clock <= KNEEL_WINDOW_S and (s.quarter >= REGULATION_QUARTERS or s.quarter == 2)
        if s.pending_try:
            return _only(PlayType.TWO_POINT if self._go_for_two(s) else PlayType.EXTRA_POINT)
        if late and s.margin > 0 and s.quarter >= REGULATION_QUARTERS:
            return _only(PlayType.KNEEL)
        if s.down == MAX_DOWN:
            return self._fourth_down(s)
        w = _weights(PASS_SHARE.get(s.down, 0.6))
        if s.down == 3 and s.distance >= THIRD_AND_LONG_YTG:
            w = _weights(0.85)
        if late and s.margin < 0:
            w = _weights(0.9)
            if s.clock <= 30:
                w[PT_INDEX[PlayType.SPIKE]] = 0.1
        return w

    def _fourth_down(self, s: GameState) -> np.ndarray:
        trailing_late = s.quarter >= REGULATION_QUARTERS and s.margin < 0 and s.clock <= LATE_GAME_S
        if s.yard_line >= FG_MIN_YARDLINE and not (trailing_late and s.margin < -3):
            return _only(PlayType.FIELD_GOAL)
        if trailing_late or (s.distance <= GO_FOR_IT_MAX_YTG and s.yard_line >= PUNT_MAX_YARDLINE):
            return _weights(0.5)
        return _only(PlayType.PUNT)

    def _go_for_two(self, s: GameState) -> bool:
        late = s.quarter >= REGULATION_QUARTERS and s.clock <= LATE_GAME_S
        if late and s.margin in TWO_POINT_MARGINS:
            return True
        return bool(self.rng.random() < 0.05)

    def tempo(self, s: GameState) -> Tempo:
        half_ending = s.quarter in (2, REGULATION_QUARTERS) and s.clock <= TWO_MINUTE_WARNING_S
        if half_ending and s.margin < 0:
            return Tempo.HURRY_UP
        if s.quarter >= REGULATION_QUARTERS and s.margin > 0:
            return Tempo.SLOW
        return Tempo.NORMAL

    def timeout(self, s: GameState, play_type: PlayType):
        """Team id to charge a timeout after the snap, or None."""
        if s.pending_try or play_type in (PlayType.KNEEL, PlayType.SPIKE) or s.margin == 0:
            return None
        if s.quarter != REGULATION_QUARTERS or s.clock > TWO_MINUTE_WARNING_S:
            return None
        trailing = s.possession if s.margin < 0 else s.possession.other
        if s.timeouts_for(trailing) == 0:
            return None
        return s.team_id(trailing)
