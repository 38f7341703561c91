from __future__ import annotations
import logging
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from gridsim.constants import REGULATION_QUARTERS, TOUCHDOWN_POINTS
from gridsim.plays import PlayOutcome, PlayResult, PlayType, TAKEAWAYS
from gridsim.state import GameState, Side

logger = logging.getLogger(__name__)


class DriveResult(str, Enum):
    SCORE = "score"
    PUNT = "punt"
    TURNOVER = "turnover"
    DOWNS = "downs"
    MISSED_FIELD_GOAL = "missed_field_goal"
    SAFETY = "safety"
    END_OF_HALF = "end_of_half"
    END_OF_GAME = "end_of_game"


# results whose yardage belongs to the kicking or returning team, not the drive
NON_DRIVE_YARDS = frozenset({
    PlayResult.PUNT, PlayResult.TOUCHBACK, PlayResult.FIELD_GOAL_GOOD,
    PlayResult.FIELD_GOAL_MISSED, *TAKEAWAYS,
})

DRIVE_ENDINGS = {
    PlayResult.FIELD_GOAL_GOOD: DriveResult.SCORE,
    PlayResult.FIELD_GOAL_MISSED: DriveResult.MISSED_FIELD_GOAL,
    PlayResult.PUNT: DriveResult.PUNT,
    PlayResult.TOUCHBACK: DriveResult.PUNT,
    PlayResult.INTERCEPTION: DriveResult.TURNOVER,
    PlayResult.FUMBLE_LOST: DriveResult.TURNOVER,
    PlayResult.TURNOVER_ON_DOWNS: DriveResult.DOWNS,
    PlayResult.SAFETY: DriveResult.SAFETY,
}


@dataclass(frozen=True, slots=True)
class DriveSummary:
    drive_id: int
    team: str
    side: Side
    start_yard_line: int
    start_quarter: int
    start_clock: int
    plays: int = 0
    yards: int = 0
    elapsed: int = 0
    end_yard_line: Optional[int] = None
    result: Optional[DriveResult] = None
    sealed: bool = False


@dataclass(slots=True)
class BoxscoreEntry:
    player_id: str
    team: str
    # passing
    pass_att: int = 0
    pass_comp: int = 0
    pass_yds: int = 0
    pass_td: int = 0
    pass_int: int = 0
    sacked: int = 0
    sack_yds: int = 0
    # rushing
    rush_att: int = 0
    rush_yds: int = 0
    rush_td: int = 0
    fumbles_lost: int = 0
    # receiving
    targets: int = 0
    rec: int = 0
    rec_yds: int = 0
    rec_td: int = 0
    # kicking and punting
    xp_att: int = 0
    xp_made: int = 0
    fg_att: int = 0
    fg_made: int = 0
    two_pt_made: int = 0
    punts: int = 0
    punt_yds: int = 0
    # defense
    tackles: int = 0
    sacks: int = 0
    interceptions: int = 0
    def_td: int = 0


@dataclass(slots=True)
class TeamTotals:
    team: str
    points: int = 0
    plays: int = 0
    total_yards: int = 0
    pass_yards: int = 0
    rush_yards: int = 0
    first_downs: int = 0
    sacks: int = 0
    turnovers: int = 0
    penalties: int = 0
    penalty_yards: int = 0
    time_of_possession: int = 0
    line_score: list[int] = field(default_factory=lambda: [0] * REGULATION_QUARTERS)


def _is_sack(outcome: PlayOutcome) -> bool:
    # a sack can still end as a safety or a turnover on downs
    return (
        outcome.play_type.is_pass
        and not outcome.completed
        and outcome.yards < 0
        and outcome.result in (PlayResult.SACK, PlayResult.SAFETY, PlayResult.TURNOVER_ON_DOWNS)
    )


class Boxscore:
    def __init__(self, home: str, away: str):
        self.home = home
        self.away = away
        self._teams = {Side.HOME: TeamTotals(home), Side.AWAY: TeamTotals(away)}
        self._entries: dict[str, BoxscoreEntry] = {}
        self._drives: list[DriveSummary] = []
        self._last_folded = -1

    # ------------------------------------------------------------------ drives

    @property
    def drives(self) -> tuple[DriveSummary, ...]:
        return tuple(self._drives)

    @property
    def current_drive(self) -> Optional[DriveSummary]:
        if self._drives and not self._drives[-1].sealed:
            return self._drives[-1]
        return None

    def open_drive(self, state: GameState) -> DriveSummary:
        if self.current_drive is not None:
            raise ValueError(f"drive {self.current_drive.drive_id} is still open")
        drive = DriveSummary(
            drive_id=state.drive_id, team=state.offense, side=state.possession,
            start_yard_line=state.yard_line, start_quarter=state.quarter, start_clock=state.clock,
            end_yard_line=state.yard_line,
        )
        self._drives.append(drive)
        return drive

    def seal_drive(self, default: DriveResult) -> DriveSummary:
        """Close the open drive, keeping a result set by its last play if any."""
        drive = self.current_drive
        if drive is None:
            raise ValueError("no open drive to seal")
        drive = replace(drive, result=drive.result or default, sealed=True)
        self._drives[-1] = drive
        logger.debug("drive %d sealed: %s, %d plays %d yds", drive.drive_id, drive.result.value,
                     drive.plays, drive.yards)
        return drive

    # ------------------------------------------------------------------ lookups

    def team(self, side: Side) -> TeamTotals:
        return self._teams[side]

    @property
    def entries(self) -> dict[str, BoxscoreEntry]:
        return dict(self._entries)

    @property
    def line_score(self) -> dict[Side, list[int]]:
        return {side: list(t.line_score) for side, t in self._teams.items()}

    def start_period(self, quarter: int) -> None:
        """Grow the line score so it has a column for `quarter`."""
        for t in self._teams.values():
            while len(t.line_score) < quarter:
                t.line_score.append(0)

    def entry(self, player_id: str, team: str) -> BoxscoreEntry:
        e = self._entries.get(player_id)
        if e is None:
            e = self._entries[player_id] = BoxscoreEntry(player_id, team)
        return e

    # ------------------------------------------------------------------ folding

    def fold(
        self, drive: DriveSummary, before: GameState, outcome: PlayOutcome, after: GameState | None = None,
    ) -> "Boxscore":
        """Add one applied play.

        `before` is the state the play was snapped from. Pass `after`, the state
        the rules engine produced, so clock time is charged as actually run off
        (the two-minute warning stops the clock short of the full elapsed time).
        """
        if before.play_index <= self._last_folded:
            raise ValueError(f"play {before.play_index} already folded")
        current = self.current_drive
        if current is None or current.drive_id != drive.drive_id:
            raise ValueError(f"drive {drive.drive_id} is not the open drive")
        self._last_folded = before.play_index

        off_side = before.possession
        off, dfn = self._teams[off_side], self._teams[off_side.other]
        elapsed = self._elapsed(before, outcome, after)
        off.time_of_possession += elapsed

        if outcome.scoring_play:
            scorer = self._teams[before.side_of(outcome.scoring_team)]
            scorer.points += outcome.points
            self.start_period(before.quarter)
            scorer.line_score[before.quarter - 1] += outcome.points

        if outcome.is_try:
            self._fold_try(before, outcome)
            if current.result is None:
                self._drives[-1] = replace(current, result=DriveResult.SCORE)
            return self

        self._fold_players(before, outcome, off, dfn)
        self._fold_drive(current, before, outcome, elapsed)
        return self

    def _elapsed(self, before: GameState, outcome: PlayOutcome, after: GameState | None) -> int:
        if after is not None and after.quarter == before.quarter:
            return before.clock - after.clock
        spent = outcome.clock_elapsed - (outcome.runoff if outcome.timeout else 0)
        return min(before.clock, max(0, spent))

    def _fold_try(self, before: GameState, outcome: PlayOutcome) -> None:
        good = outcome.result is PlayResult.CONVERSION_GOOD
        team = before.offense
        if outcome.play_type is PlayType.EXTRA_POINT:
            if outcome.kicker:
                k = self.entry(outcome.kicker, team)
                k.xp_att += 1
                k.xp_made += int(good)
        elif good:
            scorer = outcome.receiver or outcome.passer or outcome.rusher
            if scorer:
                self.entry(scorer, team).two_pt_made += 1

    def _fold_players(self, before: GameState, outcome: PlayOutcome, off: TeamTotals, dfn: TeamTotals) -> None:
        r, pt, yards = outcome.result, outcome.play_type, outcome.yards
        team, opp = before.offense, before.defense
        touchdown = r is PlayResult.TOUCHDOWN
        defender = self.entry(outcome.defender, opp) if outcome.defender else None

        if r is PlayResult.PENALTY:
            guilty = off if yards < 0 else dfn
            guilty.penalties += 1
            guilty.penalty_yards += abs(yards)
            off.first_downs += int(outcome.first_down)
            return

        if pt in (PlayType.PUNT, PlayType.FIELD_GOAL):
            if outcome.kicker:
                k = self.entry(outcome.kicker, team)
                if pt is PlayType.PUNT:
                    k.punts += 1
                    k.punt_yds += yards
                else:
                    k.fg_att += 1
                    k.fg_made += int(r is PlayResult.FIELD_GOAL_GOOD)
            return

        off.plays += 1
        off.first_downs += int(outcome.first_down)
        if r in TAKEAWAYS:
            off.turnovers += 1

        if _is_sack(outcome):
            if outcome.passer:
                qb = self.entry(outcome.passer, team)
                qb.sacked += 1
                qb.sack_yds -= yards
            if defender:
                defender.sacks += 1
            dfn.sacks += 1
            off.pass_yards += yards
            off.total_yards += yards
        elif pt.is_pass or pt is PlayType.SPIKE:
            qb = self.entry(outcome.passer, team) if outcome.passer else None
            wr = self.entry(outcome.receiver, team) if outcome.receiver else None
            if qb:
                qb.pass_att += 1
            if wr and pt is not PlayType.SPIKE:
                wr.targets += 1
            if outcome.completed:
                off.pass_yards += yards
                off.total_yards += yards
                if qb:
                    qb.pass_comp += 1
                    qb.pass_yds += yards
                    qb.pass_td += int(touchdown)
                if wr:
                    wr.rec += 1
                    wr.rec_yds += yards
                    wr.rec_td += int(touchdown)
                    wr.fumbles_lost += int(r is PlayResult.FUMBLE_LOST)
                if defender and not touchdown:
                    defender.tackles += 1
            elif r is PlayResult.INTERCEPTION:
                if qb:
                    qb.pass_int += 1
                if defender:
                    defender.interceptions += 1
                    defender.def_td += int(outcome.points == TOUCHDOWN_POINTS)
        else:
            off.rush_yards += yards
            off.total_yards += yards
            if outcome.rusher:
                rb = self.entry(outcome.rusher, team)
                rb.rush_att += 1
                rb.rush_yds += yards
                rb.rush_td += int(touchdown)
                rb.fumbles_lost += int(r is PlayResult.FUMBLE_LOST)
            if defender and not touchdown:
                defender.tackles += 1

    def _fold_drive(self, drive: DriveSummary, before: GameState, outcome: PlayOutcome, elapsed: int) -> None:
        r = outcome.result
        defensive_score = outcome.scoring_play and outcome.scoring_team != before.offense
        gained = 0 if r in NON_DRIVE_YARDS or (defensive_score and r is not PlayResult.SAFETY) else outcome.yards
        result = drive.result
        if result is None:
            # a return touchdown also ends the drive as a score
            if outcome.points == TOUCHDOWN_POINTS:
                result = DriveResult.SCORE
            else:
                result = DRIVE_ENDINGS.get(r)
        self._drives[-1] = replace(
            drive,
            plays=drive.plays + 1,
            yards=drive.yards + gained,
            elapsed=drive.elapsed + elapsed,
            end_yard_line=before.yard_line + gained,
            result=result,
        )

    # ------------------------------------------------------------------ output

    def to_record(self) -> dict[str, Any]:
        return {
            "teams": {side.value: asdict(t) for side, t in self._teams.items()},
            "players": {pid: asdict(e) for pid, e in self._entries.items()},
            "drives": [
                {**asdict(d), "side": d.side.value, "result": d.result.value if d.result else None}
                for d in self._drives
            ],
        }


def fold(
    boxscore: Boxscore, drive: DriveSummary, before: GameState, outcome: PlayOutcome, after: GameState | None = None,
) -> Boxscore:
    return boxscore.fold(drive, before, outcome, after)
