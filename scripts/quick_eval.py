from __future__ import annotations

import argparse
import logging
import sys

from gridsim.config import GameConfig, load_config
from gridsim.eval.eval_report import write_report
from gridsim.eval.slate import Matchup, simulate_slate, summary_frame
from gridsim.plays import TeamCapability
from gridsim.state import Side

logger = logging.getLogger("quick_eval")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default="configs/default.yaml")
    ap.add_argument("--n_games", type=int, default=50)
    ap.add_argument("--workers", type=int, default=4)
    ap.add_argument("--home_rating", type=float, default=75.0)
    ap.add_argument("--away_rating", type=float, default=70.0)
    ap.add_argument("--out", default="runs/report.md")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_config(args.config) if args.config else GameConfig()

    home = TeamCapability("HOME", offense=args.home_rating, defense=args.home_rating,
                          quarterback="home-qb", rushers=("home-rb",), receivers=("home-wr1", "home-wr2", "home-te"),
                          kicker="home-k", defenders=("home-lb", "home-cb", "home-s"))
    away = TeamCapability("AWAY", offense=args.away_rating, defense=args.away_rating,
                          quarterback="away-qb", rushers=("away-rb",), receivers=("away-wr1", "away-wr2", "away-te"),
                          kicker="away-k", defenders=("away-lb", "away-cb", "away-s"))
    matchups = [
        Matchup(home, away, seed=cfg.seed + g, opening_receiver=Side.HOME if g % 2 == 0 else Side.AWAY)
        for g in range(args.n_games)
    ]
    runs = simulate_slate(matchups, config=cfg, workers=args.workers)

    games = summary_frame(r.record for r in runs)
    print("\n== Quick Eval ==\n")
    print(games[["home_score", "away_score", "overtime", "plays", "drives"]].describe().round(2).to_string())
    print("\nWrote", write_report(runs, args.out))


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        logger.exception("quick_eval error: %s", e)
        sys.exit(1)
