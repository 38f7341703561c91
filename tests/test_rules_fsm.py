from dataclasses import replace

import pytest

from conftest import outcome_for
from gridsim.config import OvertimeMode, RulesCfg
from gridsim.errors import ConfigurationError, IllegalTransition, InvalidPlayRequest
from gridsim.plays import PLAY_TYPES, PlayRequest, PlayResult, PlayType
from gridsim.rules.fsm import RulesFSM
from gridsim.state import Side


@pytest.fixture
def fsm():
    return RulesFSM()


@pytest.fixture
def kickoff(fsm):
    return fsm.kickoff_state("A", "B")


def legal(fsm, s):
    return {PLAY_TYPES[i] for i, ok in enumerate(fsm.legal_actions(s)["play_type"]) if ok}


def test_kickoff_state(kickoff):
    assert kickoff.offense == "A" and kickoff.possession is Side.HOME
    assert (kickoff.quarter, kickoff.clock) == (1, 900)
    assert (kickoff.down, kickoff.distance, kickoff.yard_line) == (1, 10, 25)
    assert kickoff.drive_id == 1 and kickoff.play_index == 0


def test_first_down_resets_chains(fsm, kickoff):
    ns = fsm.apply(kickoff, outcome_for(kickoff, PlayResult.RUSH, 12, clock=30))
    assert (ns.down, ns.distance, ns.yard_line) == (1, 10, 37)
    assert ns.clock == 870
    assert ns.play_index == 1


def test_short_gain_uses_a_down(fsm, kickoff):
    ns = fsm.apply(kickoff, outcome_for(kickoff, PlayResult.RUSH, 3, clock=30))
    assert (ns.down, ns.distance, ns.yard_line) == (2, 7, 28)


def test_distance_capped_at_goal_line(fsm, kickoff):
    s = replace(kickoff, yard_line=88, distance=10)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 10, clock=30))
    assert (ns.down, ns.distance, ns.yard_line) == (1, 2, 98)
    assert ns.goal_to_go
    ns = fsm.apply(ns, outcome_for(ns, PlayResult.RUSH, -3, clock=30))
    assert (ns.down, ns.distance, ns.yard_line) == (2, 5, 95)


def test_fourth_down_failure_is_turnover_on_downs(fsm, kickoff):
    # 4th and 2 at the defense's 35, one yard gained
    s = replace(kickoff, down=4, distance=2, yard_line=65)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 1, clock=30))
    assert ns.possession is Side.AWAY
    assert (ns.down, ns.distance, ns.yard_line) == (1, 10, 34)
    assert ns.drive_id == s.drive_id + 1


def test_settle_marks_turnover_on_downs(fsm, kickoff):
    s = replace(kickoff, down=4, distance=2, yard_line=65)
    settled = fsm.settle(s, outcome_for(s, PlayResult.INCOMPLETE, 0))
    assert settled.result is PlayResult.TURNOVER_ON_DOWNS
    assert settled.change_possession


def test_clock_never_negative(fsm, kickoff):
    s = replace(kickoff, clock=5)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3, clock=30))
    assert ns.clock >= 0
    assert ns.quarter == 2 and ns.clock == 900
    # first quarter break keeps the ball and the chains
    assert ns.possession is Side.HOME and (ns.down, ns.yard_line) == (2, 28)


def test_halftime_kicks_off_to_other_team(fsm, kickoff):
    s = replace(kickoff, quarter=2, clock=10, home_timeouts=1, away_timeouts=0)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3, clock=20))
    assert ns.quarter == 3 and ns.clock == 900
    assert ns.possession is Side.AWAY
    assert (ns.down, ns.distance, ns.yard_line) == (1, 10, 25)
    assert (ns.home_timeouts, ns.away_timeouts) == (3, 3)
    assert ns.drive_id == s.drive_id + 1


def test_halftime_after_turnover_opens_a_single_drive(fsm, kickoff):
    s = replace(kickoff, quarter=2, clock=10, yard_line=40)
    out = outcome_for(s, PlayResult.FUMBLE_LOST, 5, clock=10, change_possession=True)
    ns = fsm.apply(s, out)
    assert ns.quarter == 3
    assert ns.drive_id == s.drive_id + 1


def test_two_minute_warning_stops_clock(fsm, kickoff):
    s = replace(kickoff, quarter=4, clock=130)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3, clock=30))
    assert ns.clock == 120
    q1 = replace(kickoff, clock=130)
    assert fsm.apply(q1, outcome_for(q1, PlayResult.RUSH, 3, clock=30)).clock == 100


def test_end_of_regulation_is_final_when_scores_differ(fsm, kickoff):
    s = replace(kickoff, quarter=4, clock=3, possession=Side.AWAY, yard_line=50, home_score=10, away_score=7)
    ns = fsm.apply(s, outcome_for(s, PlayResult.COMPLETE, 10, clock=3, play_type=PlayType.PASS_SHORT,
                                  completed=True, first_down=True))
    assert ns.clock == 0
    assert ns.quarter == 4
    assert ns.is_final
    assert ns.winner is Side.HOME


def test_tied_regulation_goes_to_overtime(fsm, kickoff):
    s = replace(kickoff, quarter=4, clock=3, possession=Side.AWAY, yard_line=50, home_score=7, away_score=7)
    ns = fsm.apply(s, outcome_for(s, PlayResult.COMPLETE, 10, clock=3, completed=True))
    assert not ns.is_final
    assert ns.quarter == 5 and ns.is_overtime
    assert ns.clock == 600
    assert ns.possession is Side.HOME  # opening receiver
    assert (ns.home_timeouts, ns.away_timeouts) == (2, 2)
    assert ns.ot_first_drive == ns.drive_id == s.drive_id + 1


def test_tie_is_final_without_overtime(kickoff):
    fsm = RulesFSM(RulesCfg(overtime_mode=OvertimeMode.NONE))
    s = replace(kickoff, quarter=4, clock=3, home_score=7, away_score=7)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 2, clock=5))
    assert ns.is_final and ns.winner is None


def test_sudden_death_field_goal_ends_game(fsm, kickoff):
    s = replace(kickoff, quarter=5, clock=500, yard_line=70, home_score=7, away_score=7,
                drive_id=3, ot_first_drive=3)
    ns = fsm.apply(s, outcome_for(s, PlayResult.FIELD_GOAL_GOOD, 0, clock=5, play_type=PlayType.FIELD_GOAL,
                                  points=3, scoring_team="A", change_possession=True))
    assert ns.is_final
    assert ns.score == (10, 7)


def test_timed_period_first_possession_field_goal_continues(kickoff):
    fsm = RulesFSM(RulesCfg(overtime_mode=OvertimeMode.TIMED_PERIOD))
    s = replace(kickoff, quarter=5, clock=500, yard_line=70, home_score=7, away_score=7,
                drive_id=3, ot_first_drive=3)
    ns = fsm.apply(s, outcome_for(s, PlayResult.FIELD_GOAL_GOOD, 0, clock=5, play_type=PlayType.FIELD_GOAL,
                                  points=3, scoring_team="A", change_possession=True))
    assert not ns.is_final
    assert ns.possession is Side.AWAY and ns.drive_id == 4

    # the other team punts it away: both have had the ball, home leads
    s2 = replace(ns, down=4)
    end = fsm.apply(s2, outcome_for(s2, PlayResult.PUNT, 40, clock=6, play_type=PlayType.PUNT,
                                    change_possession=True))
    assert end.is_final
    assert end.winner is Side.HOME


def test_stale_outcome_raises(fsm, kickoff):
    out = outcome_for(kickoff, PlayResult.RUSH, 3, clock=30)
    ns = fsm.apply(kickoff, out)
    with pytest.raises(IllegalTransition):
        fsm.apply(ns, out)


def test_apply_after_final_raises(fsm, kickoff):
    s = replace(kickoff, is_final=True)
    with pytest.raises(IllegalTransition):
        fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3))


def test_ball_dead_behind_goal_line_without_score_raises(fsm, kickoff):
    s = replace(kickoff, yard_line=3)
    with pytest.raises(IllegalTransition):
        fsm.apply(s, outcome_for(s, PlayResult.RUSH, -5, clock=30))


def test_safety_gives_points_and_ball_to_defense(fsm, kickoff):
    s = replace(kickoff, yard_line=2)
    out = outcome_for(s, PlayResult.SAFETY, -2, clock=6, points=2, scoring_team="B", change_possession=True)
    ns = fsm.apply(s, out)
    assert ns.score == (0, 2)
    assert ns.possession is Side.AWAY and ns.yard_line == 25
    assert ns.drive_id == s.drive_id + 1


def test_punt_spots_and_touchbacks(fsm, kickoff):
    s = replace(kickoff, down=4, yard_line=30)
    ns = fsm.apply(s, outcome_for(s, PlayResult.PUNT, 40, clock=6, play_type=PlayType.PUNT,
                                  change_possession=True))
    assert ns.possession is Side.AWAY and ns.yard_line == 30

    s = replace(kickoff, down=4, yard_line=60)
    ns = fsm.apply(s, outcome_for(s, PlayResult.TOUCHBACK, 40, clock=6, play_type=PlayType.PUNT,
                                  change_possession=True))
    assert ns.yard_line == 25


def test_missed_field_goal_spot_never_inside_twenty(fsm, kickoff):
    s = replace(kickoff, down=4, yard_line=90)
    ns = fsm.apply(s, outcome_for(s, PlayResult.FIELD_GOAL_MISSED, 0, clock=5, play_type=PlayType.FIELD_GOAL,
                                  change_possession=True))
    assert ns.yard_line == 20
    s = replace(kickoff, down=4, yard_line=60)
    ns = fsm.apply(s, outcome_for(s, PlayResult.FIELD_GOAL_MISSED, 0, clock=5, play_type=PlayType.FIELD_GOAL,
                                  change_possession=True))
    assert ns.yard_line == 40


def test_touchdown_then_extra_point_then_kickoff(fsm, kickoff):
    s = replace(kickoff, yard_line=95, distance=5)
    ns = fsm.apply(s, outcome_for(s, PlayResult.TOUCHDOWN, 5, clock=6, points=6, scoring_team="A"))
    assert ns.score == (6, 0)
    assert ns.pending_try and ns.possession is Side.HOME
    assert (ns.yard_line, ns.distance) == (98, 2)
    assert ns.drive_id == s.drive_id
    assert legal(fsm, ns) == {PlayType.EXTRA_POINT, PlayType.TWO_POINT}

    xp = outcome_for(ns, PlayResult.CONVERSION_GOOD, 0, play_type=PlayType.EXTRA_POINT, points=1,
                     scoring_team="A", change_possession=True)
    after = fsm.apply(ns, xp)
    assert after.score == (7, 0)
    assert not after.pending_try
    assert after.possession is Side.AWAY and after.yard_line == 25
    assert after.clock == ns.clock
    assert after.drive_id == ns.drive_id + 1


def test_touchdown_at_end_of_half_still_gets_try(fsm, kickoff):
    s = replace(kickoff, quarter=2, clock=4, yard_line=95, distance=5)
    ns = fsm.apply(s, outcome_for(s, PlayResult.TOUCHDOWN, 5, clock=6, points=6, scoring_team="A"))
    assert ns.clock == 0 and ns.quarter == 2 and ns.pending_try
    after = fsm.apply(ns, outcome_for(ns, PlayResult.CONVERSION_FAILED, 0, play_type=PlayType.EXTRA_POINT,
                                      change_possession=True))
    assert after.quarter == 3
    assert after.possession is Side.AWAY
    # the halftime kickoff replaces the post-score kickoff
    assert after.drive_id == s.drive_id + 1


def test_interception_return_touchdown_flips_possession(fsm, kickoff):
    s = replace(kickoff, yard_line=20)
    out = outcome_for(s, PlayResult.INTERCEPTION, -20, clock=8, play_type=PlayType.PASS_LONG,
                      points=6, scoring_team="B", change_possession=True)
    ns = fsm.apply(s, out)
    assert ns.score == (0, 6)
    assert ns.possession is Side.AWAY and ns.pending_try
    assert ns.drive_id == s.drive_id + 1


def test_timeout_removes_runoff(fsm, kickoff):
    s = replace(kickoff, quarter=4, clock=600)
    ns = fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3, clock=30, runoff=25, timeout="B"))
    assert ns.clock == 595
    assert (ns.home_timeouts, ns.away_timeouts) == (3, 2)


@pytest.mark.parametrize("field,value", [
    ("quarter", 4), ("clock", 60), ("score_margin", 7), ("down", 3), ("is_try", True), ("offense", "B"),
])
def test_request_context_must_match_state(fsm, kickoff, field, value):
    fsm.check_request(kickoff, PlayRequest.for_state(kickoff, PlayType.RUN_INSIDE))
    req = replace(PlayRequest.for_state(kickoff, PlayType.KNEEL), **{field: value})
    with pytest.raises(IllegalTransition, match=field):
        fsm.check_request(kickoff, req)


def test_timeout_without_any_left(fsm, kickoff):
    s = replace(kickoff, away_timeouts=0)
    req = PlayRequest.for_state(s, PlayType.RUN_INSIDE, timeout="B")
    with pytest.raises(InvalidPlayRequest):
        fsm.check_request(s, req)
    with pytest.raises(IllegalTransition):
        fsm.apply(s, outcome_for(s, PlayResult.RUSH, 3, clock=30, timeout="B"))


def test_legal_actions_masks(fsm, kickoff):
    allowed = legal(fsm, kickoff)
    assert PlayType.FIELD_GOAL not in allowed      # 92-yard attempt
    assert PlayType.KNEEL not in allowed           # no lead
    assert not allowed & {PlayType.EXTRA_POINT, PlayType.TWO_POINT}
    assert {PlayType.RUN_INSIDE, PlayType.PASS_SHORT, PlayType.PUNT} <= allowed

    late = replace(kickoff, quarter=4, clock=90, down=4, yard_line=70, home_score=3)
    allowed = legal(fsm, late)
    assert {PlayType.KNEEL, PlayType.FIELD_GOAL} <= allowed
    assert PlayType.SPIKE not in allowed

    assert not fsm.legal_actions(replace(kickoff, is_final=True))["play_type"].any()


def test_validate_state_rejects_impossible_states(fsm, kickoff):
    with pytest.raises(ConfigurationError):
        fsm.validate_state(replace(kickoff, down=5))
    with pytest.raises(ConfigurationError):
        fsm.validate_state(replace(kickoff, yard_line=80, distance=30))
    with pytest.raises(ConfigurationError):
        fsm.validate_state(replace(kickoff, quarter=5))
