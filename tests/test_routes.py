# tests/test_routes.py
"""
API tests through the Flask test client: auth and role checks, the JSON
envelope and a full assign -> score -> close -> winner flow.
"""

import pytest

from extensions import db
from models import Criterion, Round, Team


def _members(number):
    return [
        {'name': f'Student {i}', 'student_number': f'{number:02d}{i:06d}',
         'email': f's{number}{i}@uni.example.com', 'role': 'leader' if i == 0 else 'member'}
        for i in range(3)
    ]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json()['success'] is True


def test_login_and_me(client, login, make_judge):
    judge = make_judge('amy')

    login(judge)
    response = client.get('/api/auth/me')

    assert response.status_code == 200
    assert response.get_json()['data']['user']['username'] == 'amy'


def test_login_with_bad_code(client):
    response = client.post('/api/auth/login', json={'code': 'nope'})
    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'message': 'Invalid access code'}


def test_requests_without_session_are_rejected(client):
    response = client.get('/api/results/winner')
    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_judges_cannot_use_admin_endpoints(client, login, make_judge):
    login(make_judge('amy'))
    response = client.get('/api/admin/users')
    assert response.status_code == 403


def test_logout_clears_session(client, login, admin):
    login(admin)
    client.post('/api/auth/logout')
    assert client.get('/api/auth/me').status_code == 401


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------

def test_admin_creates_team_with_members(client, login, admin):
    login(admin)

    response = client.post('/api/admin/teams', json={
        'name': 'Alpha', 'number': 1, 'project_title': 'Food Finder', 'members': _members(1),
    })

    assert response.status_code == 201
    team = response.get_json()['data']['team']
    assert team['member_count'] == 3
    assert team['members'][0]['role'] == 'leader'


def test_team_validation_errors(client, login, admin):
    login(admin)

    too_small = client.post('/api/admin/teams', json={
        'name': 'Alpha', 'number': 1, 'project_title': 'Food Finder', 'members': _members(1)[:2],
    })
    bad_number = client.post('/api/admin/teams', json={
        'name': 'Alpha', 'number': 16, 'project_title': 'Food Finder', 'members': _members(1),
    })

    assert too_small.status_code == 400
    assert bad_number.status_code == 400


def test_duplicate_team_number_is_a_conflict(client, login, admin, make_team):
    make_team(1)
    login(admin)

    response = client.post('/api/admin/teams', json={
        'name': 'Other', 'number': 1, 'project_title': 'Food Finder', 'members': _members(1),
    })

    assert response.status_code == 409


def test_round_creation_checks_dates_and_criteria(client, login, admin, make_criterion):
    active = make_criterion('Innovation')
    inactive = make_criterion('Legacy', is_active=False)
    login(admin)

    backwards = client.post('/api/admin/rounds', json={
        'name': 'Final', 'criteria': [active.id],
        'start_date': '2025-03-02T10:00:00', 'end_date': '2025-03-01T10:00:00',
    })
    with_inactive = client.post('/api/admin/rounds', json={
        'name': 'Final', 'criteria': [active.id, inactive.id],
        'start_date': '2025-03-01T10:00:00', 'end_date': '2025-03-02T10:00:00',
    })
    created = client.post('/api/admin/rounds', json={
        'name': 'Final', 'criteria': [active.id],
        'start_date': '2025-03-01T10:00:00', 'end_date': '2025-03-02T10:00:00',
    })

    assert backwards.status_code == 400
    assert with_inactive.status_code == 400
    assert created.status_code == 201
    assert db.session.get(Criterion, active.id).usage_count == 1


def test_criterion_in_use_cannot_be_deleted(client, login, admin, make_criterion, make_round):
    criterion = make_criterion('Innovation')
    round_ = make_round([criterion])
    login(admin)

    refused = client.delete(f'/api/admin/criteria/{criterion.id}')
    client.delete(f'/api/admin/rounds/{round_.id}')
    deleted = client.delete(f'/api/admin/criteria/{criterion.id}')

    assert refused.status_code == 400
    assert deleted.status_code == 200
    assert db.session.get(Criterion, criterion.id) is None


def test_round_close_and_reopen(client, login, admin, make_criterion, make_round):
    round_ = make_round([make_criterion('Innovation')])
    login(admin)

    assert client.put(f'/api/admin/rounds/{round_.id}/close').status_code == 200
    assert client.put(f'/api/admin/rounds/{round_.id}/close').status_code == 400
    assert client.put(f'/api/admin/rounds/{round_.id}/reopen').status_code == 200
    assert db.session.get(Round, round_.id).is_open is True


def test_manual_judge_assignment_endpoint(client, login, admin, make_team, make_judge):
    team = make_team(1)
    judge = make_judge('amy')
    login(admin)

    first = client.put(f'/api/admin/teams/{team.id}/assign-judge', json={'judge_id': judge.id})
    again = client.put(f'/api/admin/teams/{team.id}/assign-judge', json={'judge_id': judge.id})

    assert first.status_code == 200
    assert again.status_code == 400
    assert again.get_json()['message'] == 'Judge is already assigned to this team'


def test_unknown_round_is_404(client, login, admin):
    login(admin)
    response = client.get('/api/assignment/stats?round_id=missing')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'message': 'Round missing not found'}


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

def test_assign_score_close_and_winner(client, login, admin, make_team, make_judge, make_criterion, make_round):
    criterion = make_criterion('Innovation', max_score=50)
    round_ = make_round([criterion])
    alpha, beta = make_team(1, name='Alpha'), make_team(2, name='Beta')
    amy, ben = make_judge('amy'), make_judge('ben')

    login(admin)
    assigned = client.post('/api/assignment/assign', json={'round_id': round_.id})
    assert assigned.status_code == 200
    # 2 judges over 2 teams: Alpha gets amy, Beta gets ben
    assert [a['judges'][0]['username'] for a in assigned.get_json()['data']['assignments']] == ['amy', 'ben']

    for judge, team, value in ((amy, alpha, 30), (ben, beta, 45)):
        login(judge)
        created = client.post('/api/scores', json={
            'team_id': team.id, 'round_id': round_.id, 'criterion_id': criterion.id, 'value': value,
        })
        assert created.status_code == 201
        score_id = created.get_json()['data']['score']['id']
        assert client.put(f'/api/scores/{score_id}/submit').status_code == 200

    login(amy)
    forbidden = client.post('/api/scores', json={
        'team_id': beta.id, 'round_id': round_.id, 'criterion_id': criterion.id, 'value': 10,
    })
    too_high = client.post('/api/scores', json={
        'team_id': alpha.id, 'round_id': round_.id, 'criterion_id': criterion.id, 'value': 51,
    })
    assert forbidden.status_code == 403
    assert too_high.status_code == 400

    login(admin)
    assert client.put(f'/api/admin/rounds/{round_.id}/close').status_code == 200
    winner = client.get('/api/results/winner')

    assert winner.status_code == 200
    data = winner.get_json()['data']
    assert data['winner']['team_name'] == 'Beta'
    assert data['winner']['average_score'] == pytest.approx(90.0)
    assert [r['position'] for r in data['rankings']] == [1, 2]

    summary = client.get(f'/api/scores/summary/{alpha.id}?round_id={round_.id}').get_json()['data']['summary']
    assert summary['average_score'] == pytest.approx(60.0)


def test_score_update_with_stale_version(client, login, make_team, make_judge, make_criterion, make_round):
    criterion = make_criterion('Innovation', max_score=50)
    round_ = make_round([criterion])
    team = make_team(1)
    judge = make_judge('amy')
    team.assigned_judges = [judge]
    db.session.commit()
    login(judge)

    created = client.post('/api/scores', json={
        'team_id': team.id, 'round_id': round_.id, 'criterion_id': criterion.id, 'value': 20,
    }).get_json()['data']['score']
    updated = client.put(f'/api/scores/{created["id"]}', json={'value': 25, 'version': 1})
    stale = client.put(f'/api/scores/{created["id"]}', json={'value': 30, 'version': 1})

    assert updated.status_code == 200
    assert updated.get_json()['data']['score']['previous_score'] == 20.0
    assert stale.status_code == 409


def test_dashboard_branches_by_role(client, login, admin, make_judge, make_team):
    judge = make_judge('amy')
    team = make_team(1)
    team.assigned_judges = [judge]
    db.session.commit()

    login(admin)
    admin_view = client.get('/api/dashboard').get_json()['data']
    login(judge)
    judge_view = client.get('/api/dashboard').get_json()['data']

    assert admin_view['counts']['judges'] == 1
    assert [t['id'] for t in judge_view['teams']] == [team.id]
    assert judge_view['user']['role'] == 'judge'


def test_non_finite_score_is_a_bad_request(client, login, make_team, make_judge, make_criterion, make_round):
    criterion = make_criterion('Innovation', max_score=50)
    round_ = make_round([criterion])
    team = make_team(1)
    judge = make_judge('amy')
    team.assigned_judges = [judge]
    db.session.commit()
    login(judge)

    body = (f'{{"team_id": "{team.id}", "round_id": "{round_.id}", '
            f'"criterion_id": "{criterion.id}", "value": NaN}}')
    response = client.post('/api/scores', data=body, content_type='application/json')

    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_round_dates_with_and_without_offset(client, login, admin, make_criterion):
    criterion = make_criterion('Innovation')
    login(admin)

    created = client.post('/api/admin/rounds', json={
        'name': 'Final', 'criteria': [criterion.id],
        'start_date': '2025-03-01T10:00:00+02:00', 'end_date': '2025-03-01T09:00:00',
    })
    backwards = client.post('/api/admin/rounds', json={
        'name': 'Final', 'criteria': [criterion.id],
        'start_date': '2025-03-01T10:00:00+00:00', 'end_date': '2025-03-01T09:00:00',
    })

    assert created.status_code == 201
    assert created.get_json()['data']['round']['start_date'] == '2025-03-01T08:00:00'
    assert backwards.status_code == 400
