import pytest

from gridsim.plays import PlayOutcome, PlayType, TeamCapability


def make_team(team_id: str, rating: float = 70.0) -> TeamCapability:
    p = team_id.lower()
    return TeamCapability(
        team_id, offense=rating, defense=rating, kicking=rating,
        quarterback=f"{p}-qb", rushers=(f"{p}-rb",), receivers=(f"{p}-wr1", f"{p}-wr2"),
        kicker=f"{p}-k", defenders=(f"{p}-lb", f"{p}-cb"),
    )


def outcome_for(s, result, yards=0, clock=0, **kw) -> PlayOutcome:
    """Hand-built outcome computed against state `s`."""
    fields = dict(
        play_type=PlayType.RUN_INSIDE, result=result, yards=yards, clock_elapsed=clock,
        offense=s.offense, defense=s.defense, down=s.down, distance=s.distance,
        yard_line=s.yard_line, is_try=s.pending_try,
    )
    fields.update(kw)
    return PlayOutcome(**fields)


@pytest.fixture
def home_team():
    return make_team("HOM", 72.0)


@pytest.fixture
def away_team():
    return make_team("AWY", 68.0)
