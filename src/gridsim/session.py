from __future__ import annotations
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional, Union

import numpy as np

from gridsim import momentum as momentum_mod
from gridsim.calling.default_caller import DefaultPlayCaller
from gridsim.config import GameConfig
from gridsim.constants import TWO_MINUTE_WARNING_S
from gridsim.errors import ConfigurationError, GridsimError, IllegalTransition
from gridsim.events import (
    DriveEnded, EventLog, GameEnded, GameEvent, GameStarted, PlayApplied, PlayRejected,
    QuarterChanged, ScoreChanged, TwoMinuteWarning,
)
from gridsim.momentum import MomentumState
from gridsim.plays import PlayOutcome, PlayRequest, PlayType, TeamCapability
from gridsim.resolver import knobs
from gridsim.resolver.resolve import PlayResolver
from gridsim.rules.fsm import TWO_MINUTE_QUARTERS, RulesFSM
from gridsim.state import GameState, Side
from gridsim.stats.boxscore import Boxscore, DriveResult

logger = logging.getLogger(__name__)

PlayCaller = Callable[[GameState], Union[PlayRequest, PlayType, str]]
DEFAULT_MAX_PLAYS = 1000


@dataclass(frozen=True)
class StepResult:
    state: GameState
    events: tuple[GameEvent, ...]
    momentum: MomentumState
    boxscore: dict[str, Any]    # Boxscore.to_record() as of this step


class GameSessionController:
    def __init__(
        self,
        home: TeamCapability,
        away: TeamCapability,
        config: GameConfig | None = None,
        seed: int | None = None,
    ):
        if home.team_id == away.team_id:
            raise ConfigurationError(f"home and away share team id {home.team_id!r}")
        self.home = home
        self.away = away
        self.config = config or GameConfig()
        self.seed = self.config.seed if seed is None else seed
        # separate streams so a custom play caller cannot shift play outcomes
        play_seq, caller_seq = np.random.SeedSequence(self.seed).spawn(2)
        self.rng = np.random.default_rng(play_seq)
        self._caller_rng = np.random.default_rng(caller_seq)

        self.fsm = RulesFSM(self.config.rules)
        self.resolver = PlayResolver(self.config.resolver, self.config.rules)
        self._teams = {home.team_id: home, away.team_id: away}
        self._state: Optional[GameState] = None
        self._momentum = MomentumState()
        self._boxscore = Boxscore(home.team_id, away.team_id)
        self._log = EventLog()

    # ------------------------------------------------------------------ views

    @property
    def state(self) -> GameState:
        if self._state is None:
            raise GridsimError("the game has not started")
        return self._state

    @property
    def momentum(self) -> MomentumState:
        return self._momentum

    @property
    def boxscore(self) -> Boxscore:
        return self._boxscore

    @property
    def events(self) -> EventLog:
        return self._log

    @property
    def started(self) -> bool:
        return self._state is not None

    # ------------------------------------------------------------------ lifecycle

    def start_game(self, opening_receiver: Side = Side.HOME, initial_state: GameState | None = None) -> StepResult:
        if self._state is not None:
            raise GridsimError("the game has already started")
        if initial_state is None:
            state = self.fsm.kickoff_state(self.home.team_id, self.away.team_id, Side(opening_receiver))
        else:
            if (initial_state.home, initial_state.away) != (self.home.team_id, self.away.team_id):
                raise ConfigurationError(
                    f"initial state teams {initial_state.home}/{initial_state.away} do not match "
                    f"{self.home.team_id}/{self.away.team_id}"
                )
            self.fsm.validate_state(initial_state)
            state = initial_state

        self._state = state
        self._boxscore.start_period(state.quarter)
        self._boxscore.open_drive(state)
        event = self._log.record(GameStarted, state.play_index, state=state)
        logger.info("game started: %s at %s, seed %d, %s receives", self.away.team_id, self.home.team_id,
                    self.seed, state.possession.value)
        self._log.notify([event])
        return self._result((event,))

    def request(self, play_type: PlayType | str, **kw: Any) -> PlayRequest:
        """Build a request for the current situation."""
        return PlayRequest.for_state(self.state, play_type, **kw)

    def advance_play(self, request: PlayRequest) -> StepResult:
        """Resolve and apply one play.

        InvalidPlayRequest propagates with the state untouched. A stale request
        or an outcome the rules engine refuses leaves the state as it was and is
        reported as a PlayRejected event.
        """
        before = self.state
        try:
            self.fsm.check_request(before, request)
        except IllegalTransition as e:
            return self._reject(before, e)
        offense, defense = self._teams[request.offense], self._teams[request.defense]

        outcome = self.resolver.resolve(offense, defense, request, self.rng, self._modifiers(before))
        try:
            outcome = self.fsm.settle(before, outcome)
            after = self.fsm.apply(before, outcome)
        except IllegalTransition as e:
            return self._reject(before, e)

        self._boxscore.fold(self._boxscore.current_drive, before, outcome, after)
        self._momentum = momentum_mod.update(self._momentum, outcome, offense=before.possession)
        self._state = after
        events = self._emit(before, after, outcome)
        self._log.notify(events)
        return self._result(tuple(events))

    def advance_to_end(self, play_caller: PlayCaller | None = None, max_plays: int = DEFAULT_MAX_PLAYS) -> list[GameEvent]:
        """Run plays until the game is final; returns the events produced."""
        return self._run(play_caller, max_plays, lambda s: s.is_final, "game not final")

    def advance_drive(self, play_caller: PlayCaller | None = None, max_plays: int = DEFAULT_MAX_PLAYS) -> list[GameEvent]:
        """Run plays until the current drive ends or the game is final."""
        if not self.started:
            self.start_game()
        drive_id = self.state.drive_id
        return self._run(play_caller, max_plays, lambda s: s.is_final or s.drive_id != drive_id,
                         f"drive {drive_id} not over")

    # ------------------------------------------------------------------ output

    def snapshot(self) -> dict[str, Any]:
        s = self.state
        return {
            "state": asdict(s),
            "score": {"home": s.home_score, "away": s.away_score},
            "momentum": asdict(self._momentum),
            "drive": asdict(self._boxscore.current_drive) if self._boxscore.current_drive else None,
            "events": len(self._log),
        }

    def final_record(self) -> dict[str, Any]:
        s = self.state
        if not s.is_final:
            raise GridsimError("the game is not over")
        winner = s.winner
        return {
            "home": s.home,
            "away": s.away,
            "seed": self.seed,
            "home_score": s.home_score,
            "away_score": s.away_score,
            "winner": s.team_id(winner) if winner else None,
            "overtime": s.is_overtime,
            "plays": s.play_index,
            "line_score": {side.value: line for side, line in self._boxscore.line_score.items()},
            "boxscore": self._boxscore.to_record(),
            "momentum": asdict(self._momentum),
            "state": asdict(s),
        }

    # ------------------------------------------------------------------ internals

    def _modifiers(self, s: GameState) -> Optional[knobs.Modifiers]:
        cfg = self.config.resolver
        if not cfg.momentum_affects_odds or s.pending_try:
            return None
        shift = momentum_mod.momentum_modifier(self._momentum, s.possession, cfg.momentum_weight)
        return knobs.momentum_shift(shift)

    def _run(
        self,
        play_caller: PlayCaller | None,
        max_plays: int,
        done: Callable[[GameState], bool],
        what: str,
    ) -> list[GameEvent]:
        if not self.started:
            self.start_game()
        caller = play_caller or DefaultPlayCaller(self.fsm, self._caller_rng)
        first = len(self._log)
        snaps = 0
        while not done(self.state):
            if snaps >= max_plays:
                raise RuntimeError(f"{what} after {max_plays} plays")
            call = caller(self.state)
            request = call if isinstance(call, PlayRequest) else self.request(call)
            self.advance_play(request)
            snaps += 1
        return self._log.since(first)

    def _reject(self, before: GameState, e: IllegalTransition) -> StepResult:
        logger.warning("play %d rejected: %s", before.play_index, e)
        event = self._log.record(PlayRejected, before.play_index, error=type(e).__name__, reason=str(e))
        self._log.notify([event])
        return self._result((event,))

    def _result(self, events: tuple[GameEvent, ...]) -> StepResult:
        return StepResult(state=self.state, events=events, momentum=self._momentum,
                          boxscore=self._boxscore.to_record())

    def _emit(self, before: GameState, after: GameState, outcome: PlayOutcome) -> list[GameEvent]:
        idx = after.play_index
        rec = self._log.record
        events = [rec(PlayApplied, idx, outcome=outcome, state=after, momentum=self._momentum)]

        if outcome.scoring_play:
            events.append(rec(ScoreChanged, idx, team=outcome.scoring_team, points=outcome.points,
                              home_score=after.home_score, away_score=after.away_score))
        if (
            self.config.rules.two_minute_warning
            and before.quarter in TWO_MINUTE_QUARTERS
            and after.quarter == before.quarter
            and before.clock > TWO_MINUTE_WARNING_S >= after.clock
        ):
            events.append(rec(TwoMinuteWarning, idx, quarter=after.quarter))

        if after.drive_id != before.drive_id:
            events.append(rec(DriveEnded, idx, drive=self._boxscore.seal_drive(DriveResult.END_OF_HALF)))
            self._boxscore.open_drive(after)
        if after.quarter != before.quarter:
            self._boxscore.start_period(after.quarter)
            events.append(rec(QuarterChanged, idx, from_quarter=before.quarter, to_quarter=after.quarter,
                              state=after))
            logger.info("start of %s: %d-%d", f"Q{after.quarter}" if not after.is_overtime else "overtime",
                        after.home_score, after.away_score)
        if after.is_final:
            events.append(rec(DriveEnded, idx, drive=self._boxscore.seal_drive(DriveResult.END_OF_GAME)))
            events.append(rec(GameEnded, idx, home_score=after.home_score, away_score=after.away_score,
                              winner=after.winner, state=after))
            logger.info("final: %s %d - %s %d after %d plays", after.home, after.home_score,
                        after.away, after.away_score, after.play_index)
        return events
