# tests/test_assignment_service.py

import pytest
from sqlalchemy.exc import SQLAlchemyError

import assignment
from errors import (
    ConstraintViolationError,
    InvalidInputError,
    JudgeNotFoundError,
    NoJudgesError,
    NoTeamsError,
    RoundNotFoundError,
)
from extensions import db
from models import Role


@pytest.fixture
def round_(make_criterion, make_round):
    return make_round([make_criterion('Innovation')])


def _usernames(team):
    return sorted(j.username for j in team.assigned_judges)


def test_assign_round_robin_over_participating_teams(round_, make_team, make_judge):
    teams = [make_team(n) for n in range(1, 7)]
    make_judge('amy')
    make_judge('ben')

    result = assignment.assign_judges(round_.id)

    assert result['round_id'] == round_.id
    assert [_usernames(t) for t in teams] == [['amy'], ['ben']] * 3
    assert result['stats']['teams_with_judges'] == 6
    assert result['stats']['average_judges_per_team'] == 1.0
    workload = {w['username']: w['team_count'] for w in result['stats']['judge_workload']}
    assert workload == {'amy': 3, 'ben': 3}


def test_assign_replaces_previous_edges(round_, make_team, make_judge):
    team = make_team(1)
    judges = [make_judge(name) for name in ('amy', 'ben', 'cat')]
    team.assigned_judges = judges
    other = make_team(2)

    assignment.assign_judges(round_.id)

    # 3 judges over 2 teams: two each, cursor continues into the second team
    assert _usernames(team) == ['amy', 'ben']
    assert _usernames(other) == ['amy', 'cat']


def test_assign_skips_inactive_judges_and_benched_teams(round_, make_team, make_judge):
    playing = make_team(1)
    benched = make_team(2, is_participating=False)
    make_judge('amy')
    make_judge('zed', is_active=False)

    assignment.assign_judges(round_.id)

    assert _usernames(playing) == ['amy']
    assert benched.assigned_judges == []


def test_assign_without_judges_keeps_existing_edges(round_, make_team, make_judge):
    team = make_team(1)
    judge = make_judge('amy')
    team.assigned_judges = [judge]
    judge.is_active = False

    with pytest.raises(NoJudgesError):
        assignment.assign_judges(round_.id)

    assert _usernames(team) == ['amy']


def test_assign_without_teams(round_, make_judge):
    make_judge('amy')
    with pytest.raises(NoTeamsError):
        assignment.assign_judges(round_.id)


def test_assign_unknown_round(app):
    with pytest.raises(RoundNotFoundError):
        assignment.assign_judges('missing')


def test_optimize_balances_and_is_idempotent(round_, make_team, make_judge):
    teams = [make_team(n) for n in range(1, 5)]
    amy = make_judge('amy')
    make_judge('ben')
    for team in teams:
        team.assigned_judges = [amy]

    first = assignment.optimize_assignments(round_.id)
    second = assignment.optimize_assignments(round_.id)

    workload = {w['username']: w['team_count'] for w in first['stats']['judge_workload']}
    assert workload == {'amy': 2, 'ben': 2}
    assert first['message'] == 'Assignments optimized with 2 changes'
    assert second['changes'] == []
    assert second['message'] == 'Assignments are already balanced'


def test_assignment_stats(round_, make_team, make_judge):
    team = make_team(1, name='Alpha')
    amy = make_judge('amy')
    make_judge('ben')
    team.assigned_judges = [amy]

    stats = assignment.get_assignment_stats(round_.id)

    assert stats['total_teams'] == 1
    assert stats['total_judges'] == 2
    assert stats['judge_workload'][0] == {
        'judge_id': amy.id,
        'team_count': 1,
        'username': 'amy',
        'teams': [{'id': team.id, 'name': 'Alpha', 'number': 1}],
    }
    assert stats['judge_workload'][1]['team_count'] == 0


def test_manual_assign_limits(make_team, make_judge, make_user):
    team = make_team(1)
    judges = [make_judge(name) for name in ('amy', 'ben', 'cat', 'dan')]

    for judge in judges[:3]:
        assignment.assign_judge(team.id, judge.id)

    with pytest.raises(ConstraintViolationError):
        assignment.assign_judge(team.id, judges[0].id)
    with pytest.raises(ConstraintViolationError):
        assignment.assign_judge(team.id, judges[3].id)

    admin = make_user('boss', Role.ADMIN)
    with pytest.raises(InvalidInputError):
        assignment.assign_judge(team.id, admin.id)
    with pytest.raises(JudgeNotFoundError):
        assignment.assign_judge(team.id, 'missing')


def test_manual_unassign(make_team, make_judge):
    team = make_team(1)
    amy = make_judge('amy')
    assignment.assign_judge(team.id, amy.id)

    assignment.unassign_judge(team.id, amy.id)

    assert team.assigned_judges == []
    assert assignment.teams_for_judge(amy.id) == []


def test_failed_commit_leaves_every_team_unchanged(round_, make_team, make_judge, monkeypatch):
    teams = [make_team(n) for n in range(1, 4)]
    amy = make_judge('amy')
    make_judge('ben')
    make_judge('cat')
    for team in teams:
        team.assigned_judges = [amy]
    db.session.commit()

    def failing_commit():
        raise SQLAlchemyError('database unavailable')

    monkeypatch.setattr(db.session, 'commit', failing_commit)

    with pytest.raises(SQLAlchemyError):
        assignment.assign_judges(round_.id)
    with pytest.raises(SQLAlchemyError):
        assignment.optimize_assignments(round_.id)

    db.session.expire_all()
    assert [_usernames(t) for t in teams] == [['amy'], ['amy'], ['amy']]
