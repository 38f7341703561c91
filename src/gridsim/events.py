from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar, Iterator, Optional

from gridsim.momentum import MomentumState
from gridsim.plays import PlayOutcome
from gridsim.state import GameState, Side
from gridsim.stats.boxscore import DriveSummary

Listener = Callable[["GameEvent"], None]


@dataclass(frozen=True, slots=True)
class GameEvent:
    kind: ClassVar[str] = "event"

    seq: int
    play_index: int

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass(frozen=True, slots=True)
class GameStarted(GameEvent):
    kind: ClassVar[str] = "game_started"

    state: GameState


@dataclass(frozen=True, slots=True)
class PlayApplied(GameEvent):
    kind: ClassVar[str] = "play_applied"

    outcome: PlayOutcome
    state: GameState
    momentum: MomentumState


@dataclass(frozen=True, slots=True)
class QuarterChanged(GameEvent):
    kind: ClassVar[str] = "quarter_changed"

    from_quarter: int
    to_quarter: int
    state: GameState


@dataclass(frozen=True, slots=True)
class TwoMinuteWarning(GameEvent):
    kind: ClassVar[str] = "two_minute_warning"

    quarter: int


@dataclass(frozen=True, slots=True)
class ScoreChanged(GameEvent):
    kind: ClassVar[str] = "score_changed"

    team: str
    points: int
    home_score: int
    away_score: int


@dataclass(frozen=True, slots=True)
class DriveEnded(GameEvent):
    kind: ClassVar[str] = "drive_ended"

    drive: DriveSummary


@dataclass(frozen=True, slots=True)
class PlayRejected(GameEvent):
    kind: ClassVar[str] = "play_rejected"

    error: str
    reason: str


@dataclass(frozen=True, slots=True)
class GameEnded(GameEvent):
    kind: ClassVar[str] = "game_ended"

    home_score: int
    away_score: int
    winner: Optional[Side]
    state: GameState


class EventLog:
    """Ordered, append-only store of GameEvents with synchronous listeners."""

    def __init__(self) -> None:
        self._events: list[GameEvent] = []
        self._listeners: list[Listener] = []

    def record(self, event_cls: type[GameEvent], play_index: int, **fields: Any) -> GameEvent:
        event = event_cls(seq=len(self._events), play_index=play_index, **fields)
        self._events.append(event)
        return event

    def notify(self, events: list[GameEvent]) -> None:
        for event in events:
            for listener in list(self._listeners):
                listener(event)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def since(self, seq: int) -> list[GameEvent]:
        return self._events[seq:]

    @property
    def events(self) -> tuple[GameEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[GameEvent]:
        return iter(list(self._events))
