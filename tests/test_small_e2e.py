import numpy as np

from conftest import make_team
from gridsim.plays import PLAY_TYPES, PlayRequest
from gridsim.resolver.resolve import PlayResolver
from gridsim.rules.fsm import RulesFSM


def test_e2e_random_policy_invariants():
    rng = np.random.default_rng(0)
    fsm = RulesFSM()
    resolver = PlayResolver()
    teams = {"A": make_team("A"), "B": make_team("B")}
    s = fsm.kickoff_state("A", "B")
    for _ in range(400):
        if s.is_final:
            break
        masks = fsm.legal_actions(s)
        assert masks["play_type"].any()
        legal = np.flatnonzero(masks["play_type"])
        pt = PLAY_TYPES[int(rng.choice(legal))]
        req = PlayRequest.for_state(s, pt)
        out = resolver.resolve(teams[s.offense], teams[s.defense], req, rng)
        ns = fsm.apply(s, out)
        assert 0 < ns.yard_line < 100
        assert ns.clock >= 0
        assert 1 <= ns.down <= 4
        assert ns.home_score >= s.home_score and ns.away_score >= s.away_score
        s = ns
    assert s.is_final
