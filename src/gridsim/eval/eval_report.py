from __future__ import annotations
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from gridsim.eval.slate import GameRun, slate_plays_frame, summary_frame
from gridsim.plays import PLAY_TYPES

PT_ORDER = [pt.value for pt in PLAY_TYPES]
PASS_TYPES = [pt.value for pt in PLAY_TYPES if pt.is_pass]
SCRIMMAGE_TYPES = PASS_TYPES + [pt.value for pt in PLAY_TYPES if pt.is_run]


def situational_slice(df: pd.DataFrame, down: int, ytg_min: int, ytg_max: int) -> pd.DataFrame:
    m = (df["down"] == down) & (df["distance"].between(ytg_min, ytg_max, inclusive="both"))
    return df.loc[m & df["play_type"].isin(SCRIMMAGE_TYPES)].copy()


def pass_rate(df: pd.DataFrame) -> float:
    if len(df) == 0:
        return np.nan
    return float(df["play_type"].isin(PASS_TYPES).mean())


def yard_stats(x: pd.Series) -> dict[str, float]:
    x = x.dropna()
    if len(x) == 0:
        return dict(n=0, mean=np.nan, std=np.nan, p10=np.nan, p50=np.nan, p90=np.nan)
    return dict(n=len(x), mean=x.mean(), std=x.std(), p10=x.quantile(.1), p50=x.quantile(.5), p90=x.quantile(.9))


def result_table(plays: pd.DataFrame) -> pd.DataFrame:
    return plays["result"].value_counts(normalize=True).rename("share").round(3).to_frame()


def write_report(runs: Sequence[GameRun], out: str | Path) -> Path:
    """Write a markdown summary of a simulated slate and return its path."""
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    plays = slate_plays_frame(runs)
    games = summary_frame(r.record for r in runs)

    # 1) play-type distribution
    dist_tbl = plays["play_type"].value_counts(normalize=True).reindex(PT_ORDER).fillna(0).round(3).to_frame("share")

    # 2) situational pass rates: 1st & 10, 3rd & 7+
    sit_tbl = pd.DataFrame({
        "situation": ["1st & 10", "3rd & 7+"],
        "pass_rate": [pass_rate(situational_slice(plays, 1, 10, 10)), pass_rate(situational_slice(plays, 3, 7, 99))],
    }).round(3)

    # 3) yards per scrimmage play
    scrimmage = plays.loc[plays["play_type"].isin(SCRIMMAGE_TYPES), "yards"].clip(-10, 80)
    ystats = pd.Series(yard_stats(scrimmage), name="yards").round(2).to_frame()

    with open(out, "w") as f:
        f.write("# Simulation Evaluation Report\n\n")
        f.write(f"- Games: **{len(games):,}**, plays: **{len(plays):,}**\n")
        if len(games):
            total = games["home_score"] + games["away_score"]
            f.write(f"- Points per game: {total.mean():.1f} (home win rate {(games['home_score'] > games['away_score']).mean():.3f})\n")
            f.write(f"- Overtime games: {int(games['overtime'].sum())}, ties: {int((games['home_score'] == games['away_score']).sum())}\n")
        f.write("\n")

        f.write("## Play-type distribution\n\n")
        f.write(dist_tbl.to_string() + "\n\n")

        f.write("## Situational pass rates\n\n")
        f.write(sit_tbl.to_string(index=False) + "\n\n")

        f.write("## Yards/Play (Run+Pass, clipped [-10,80])\n\n")
        f.write(ystats.to_string() + "\n\n")

        if len(plays):
            f.write("## Play results\n\n")
            f.write(result_table(plays).to_string() + "\n\n")

        f.write("## Games\n\n")
        f.write((games.to_string(index=False) if len(games) else "_no games_") + "\n")
    return out
