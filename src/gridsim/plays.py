from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from gridsim.errors import InvalidPlayRequest
from gridsim.state import GameState


class PlayType(str, Enum):
    PASS_SHORT = "pass_short"
    PASS_MEDIUM = "pass_medium"
    PASS_LONG = "pass_long"
    RUN_INSIDE = "run_inside"
    RUN_OUTSIDE = "run_outside"
    PUNT = "punt"
    FIELD_GOAL = "field_goal"
    KNEEL = "kneel"
    SPIKE = "spike"
    EXTRA_POINT = "extra_point"
    TWO_POINT = "two_point"

    @property
    def is_pass(self) -> bool:
        return self.value.startswith("pass_")

    @property
    def is_run(self) -> bool:
        return self.value.startswith("run_")

    @property
    def is_try(self) -> bool:
        return self in (PlayType.EXTRA_POINT, PlayType.TWO_POINT)


PLAY_TYPES = tuple(PlayType)


class PlayResult(str, Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    RUSH = "rush"
    KNEEL = "kneel"
    SACK = "sack"
    INTERCEPTION = "interception"
    FUMBLE_LOST = "fumble_lost"
    FUMBLE_RECOVERED = "fumble_recovered"
    TOUCHDOWN = "touchdown"
    SAFETY = "safety"
    TURNOVER_ON_DOWNS = "turnover_on_downs"
    FIELD_GOAL_GOOD = "field_goal_good"
    FIELD_GOAL_MISSED = "field_goal_missed"
    PUNT = "punt"
    TOUCHBACK = "touchback"
    PENALTY = "penalty"
    CONVERSION_GOOD = "conversion_good"
    CONVERSION_FAILED = "conversion_failed"


TAKEAWAYS = frozenset({PlayResult.INTERCEPTION, PlayResult.FUMBLE_LOST})
# scrimmage results that use up a down unless they convert
DOWN_CONSUMING = frozenset({
    PlayResult.RUSH, PlayResult.COMPLETE, PlayResult.INCOMPLETE, PlayResult.SACK,
    PlayResult.FUMBLE_RECOVERED, PlayResult.KNEEL,
})


class DefenseCall(str, Enum):
    MAN = "man"
    ZONE = "zone"
    BLITZ = "blitz"


class Tempo(str, Enum):
    NORMAL = "normal"
    HURRY_UP = "hurry_up"
    SLOW = "slow"


OFFENSE_POSITIONS = ("QB", "RB", "WR", "TE", "OL")
DEFENSE_POSITIONS = ("DL", "LB", "CB", "S")
DEFAULT_RATING = 70.0


@dataclass(frozen=True, slots=True)
class Player:
    id: str
    name: str
    position: str
    overall: int = 50


@dataclass(frozen=True, slots=True)
class TeamCapability:
    """Ratings and key personnel the resolver draws on for one team."""

    team_id: str
    offense: float = DEFAULT_RATING
    defense: float = DEFAULT_RATING
    kicking: float = DEFAULT_RATING
    quarterback: Optional[str] = None
    rushers: tuple[str, ...] = ()
    receivers: tuple[str, ...] = ()
    kicker: Optional[str] = None
    defenders: tuple[str, ...] = ()

    @classmethod
    def from_roster(cls, team_id: str, players: Iterable[Player]) -> "TeamCapability":
        roster = sorted(players, key=lambda p: p.overall, reverse=True)

        def group_mean(positions: tuple[str, ...]) -> float:
            ovr = [p.overall for p in roster if p.position in positions]
            return float(np.mean(ovr)) if ovr else DEFAULT_RATING

        def ids(*positions: str) -> tuple[str, ...]:
            return tuple(p.id for p in roster if p.position in positions)

        qbs = ids("QB")
        kickers = [p for p in roster if p.position == "K"]
        return cls(
            team_id=team_id,
            offense=group_mean(OFFENSE_POSITIONS),
            defense=group_mean(DEFENSE_POSITIONS),
            kicking=float(kickers[0].overall) if kickers else DEFAULT_RATING,
            quarterback=qbs[0] if qbs else None,
            rushers=ids("RB") or qbs[:1],
            receivers=ids("WR", "TE"),
            kicker=kickers[0].id if kickers else None,
            defenders=ids(*DEFENSE_POSITIONS),
        )


def _coerce(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidPlayRequest(f"unknown {what}: {value!r}") from None


@dataclass(frozen=True, slots=True)
class PlayRequest:
    offense: str
    defense: str
    play_type: PlayType
    down: int
    distance: int
    yard_line: int
    quarter: int = 1
    clock: int = 900
    score_margin: int = 0   # offense score minus defense score
    is_try: bool = False
    defense_call: DefenseCall = DefenseCall.MAN
    tempo: Tempo = Tempo.NORMAL
    timeout: Optional[str] = None   # team id calling a timeout after the snap
    fatigue: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "play_type", _coerce(PlayType, self.play_type, "play type"))
        object.__setattr__(self, "defense_call", _coerce(DefenseCall, self.defense_call, "defense call"))
        object.__setattr__(self, "tempo", _coerce(Tempo, self.tempo, "tempo"))

    @classmethod
    def for_state(cls, state: GameState, play_type: PlayType | str, **kw) -> "PlayRequest":
        return cls(
            offense=state.offense,
            defense=state.defense,
            play_type=play_type,
            down=state.down,
            distance=state.distance,
            yard_line=state.yard_line,
            quarter=state.quarter,
            clock=state.clock,
            score_margin=state.margin,
            is_try=state.pending_try,
            **kw,
        )


@dataclass(frozen=True, slots=True)
class PlayOutcome:
    play_type: PlayType
    result: PlayResult
    yards: int
    clock_elapsed: int
    offense: str
    defense: str
    down: int
    distance: int
    yard_line: int
    is_try: bool = False
    runoff: int = 0
    points: int = 0
    scoring_team: Optional[str] = None
    change_possession: bool = False
    completed: bool = False
    first_down: bool = False
    timeout: Optional[str] = None
    passer: Optional[str] = None
    rusher: Optional[str] = None
    receiver: Optional[str] = None
    kicker: Optional[str] = None
    defender: Optional[str] = None
    description: str = ""

    @property
    def scoring_play(self) -> bool:
        return self.points > 0
