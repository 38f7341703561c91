from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gridsim.constants import MAX_YARDLINE, REGULATION_QUARTERS


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"

    @property
    def other(self) -> "Side":
        return Side.AWAY if self is Side.HOME else Side.HOME


@dataclass(frozen=True, slots=True)
class GameState:
    home: str
    away: str
    quarter: int            # 1..4, 5+ = overtime periods
    clock: int              # seconds left in the period
    possession: Side
    down: int               # 1..4
    distance: int           # 1..(100 - yard_line)
    yard_line: int          # 0..100 from the possessing team's own goal line
    home_score: int = 0
    away_score: int = 0
    home_timeouts: int = 3
    away_timeouts: int = 3
    drive_id: int = 1       # increments on every new drive
    play_index: int = 0     # number of plays applied so far
    opening_receiver: Side = Side.HOME
    pending_try: bool = False
    ot_first_drive: Optional[int] = None
    is_final: bool = False

    @property
    def offense(self) -> str:
        return self.team_id(self.possession)

    @property
    def defense(self) -> str:
        return self.team_id(self.possession.other)

    @property
    def score(self) -> tuple[int, int]:
        return self.home_score, self.away_score

    @property
    def margin(self) -> int:
        """Score difference from the possessing team's point of view."""
        return self.score_for(self.possession) - self.score_for(self.possession.other)

    @property
    def is_overtime(self) -> bool:
        return self.quarter > REGULATION_QUARTERS

    @property
    def goal_to_go(self) -> bool:
        return self.distance >= MAX_YARDLINE - self.yard_line

    @property
    def winner(self) -> Optional[Side]:
        if self.home_score == self.away_score:
            return None
        return Side.HOME if self.home_score > self.away_score else Side.AWAY

    def team_id(self, side: Side) -> str:
        return self.home if side is Side.HOME else self.away

    def side_of(self, team_id: str) -> Side:
        if team_id == self.home:
            return Side.HOME
        if team_id == self.away:
            return Side.AWAY
        raise KeyError(team_id)

    def score_for(self, side: Side) -> int:
        return self.home_score if side is Side.HOME else self.away_score

    def timeouts_for(self, side: Side) -> int:
        return self.home_timeouts if side is Side.HOME else self.away_timeouts
