from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import pandas as pd

from gridsim.config import GameConfig
from gridsim.events import GameEvent, PlayApplied
from gridsim.plays import TeamCapability
from gridsim.session import GameSessionController
from gridsim.state import Side

logger = logging.getLogger(__name__)

PLAY_COLUMNS = [
    "game", "play_index", "quarter", "clock", "offense", "down", "distance", "yard_line",
    "play_type", "result", "yards", "points", "first_down", "change_possession",
    "home_score", "away_score", "momentum",
]


@dataclass(frozen=True)
class Matchup:
    home: TeamCapability
    away: TeamCapability
    seed: int
    opening_receiver: Side = Side.HOME


@dataclass
class GameRun:
    matchup: Matchup
    record: dict[str, Any]
    events: list[GameEvent]


def play_game(matchup: Matchup, config: GameConfig | None = None, max_plays: int = 1000) -> GameRun:
    ctl = GameSessionController(matchup.home, matchup.away, config=config, seed=matchup.seed)
    events = [ctl.start_game(matchup.opening_receiver).events[0]]
    events += ctl.advance_to_end(max_plays=max_plays)
    return GameRun(matchup=matchup, record=ctl.final_record(), events=events)


def simulate_slate(
    matchups: Sequence[Matchup],
    config: GameConfig | None = None,
    workers: int = 1,
    max_plays: int = 1000,
) -> list[GameRun]:
    """Play every matchup to completion; results keep the input order.

    Each game gets its own controller, so games never share mutable state
    and the outcome of a game depends only on its seed.
    """
    start = time.time()
    if workers > 1 and len(matchups) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(play_game, m, config, max_plays) for m in matchups]
            runs = [f.result() for f in futures]
    else:
        runs = [play_game(m, config, max_plays) for m in matchups]
    logger.info("simulated %d games in %.2f s (%d workers)", len(runs), time.time() - start, workers)
    return runs


def plays_frame(events: Iterable[GameEvent], game: Optional[int] = None) -> pd.DataFrame:
    rows = []
    for e in events:
        if not isinstance(e, PlayApplied):
            continue
        o, s = e.outcome, e.state
        rows.append({
            "game": game,
            "play_index": e.play_index,
            "quarter": s.quarter,
            "clock": s.clock,
            "offense": o.offense,
            "down": o.down,
            "distance": o.distance,
            "yard_line": o.yard_line,
            "play_type": o.play_type.value,
            "result": o.result.value,
            "yards": o.yards,
            "points": o.points,
            "first_down": o.first_down,
            "change_possession": o.change_possession,
            "home_score": s.home_score,
            "away_score": s.away_score,
            "momentum": e.momentum.value,
        })
    return pd.DataFrame(rows, columns=PLAY_COLUMNS)


def slate_plays_frame(runs: Sequence[GameRun]) -> pd.DataFrame:
    frames = [plays_frame(r.events, game=i) for i, r in enumerate(runs)]
    if not frames:
        return pd.DataFrame(columns=PLAY_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def summary_frame(records: Iterable[dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for r in records:
        teams = r["boxscore"]["teams"]
        rows.append({
            "home": r["home"],
            "away": r["away"],
            "seed": r["seed"],
            "home_score": r["home_score"],
            "away_score": r["away_score"],
            "winner": r["winner"],
            "overtime": r["overtime"],
            "plays": r["plays"],
            "drives": len(r["boxscore"]["drives"]),
            "home_yards": teams["home"]["total_yards"],
            "away_yards": teams["away"]["total_yards"],
            "home_turnovers": teams["home"]["turnovers"],
            "away_turnovers": teams["away"]["turnovers"],
        })
    return pd.DataFrame(rows)
