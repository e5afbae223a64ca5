# tests/conftest.py

"""
Pytest fixtures shared by the service and API tests.

Every test gets a fresh in-memory SQLite database. The make_* fixtures are
small factories so tests only spell out the fields they care about.
"""

from datetime import datetime, timedelta
from itertools import count

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from models import Criterion, Member, Role, Round, Score, Team, User


# =============================================================================
# APP / CLIENT
# =============================================================================

@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Logs the test client in as ``user`` using the access code."""
    def _login(user):
        response = client.post('/api/auth/login', json={'code': user.code})
        assert response.status_code == 200, response.get_json()
        return response
    return _login


# =============================================================================
# FACTORIES
# =============================================================================

_codes = count(100000)


@pytest.fixture
def make_user(app):
    def _make(username, role=Role.JUDGE, is_active=True, **fields):
        user = User(code=str(next(_codes)), username=username, email=f'{username}@example.com',
                    role=Role(role).value, is_active=is_active, **fields)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_judge(make_user):
    def _make(username, **fields):
        return make_user(username, Role.JUDGE, **fields)
    return _make


@pytest.fixture
def admin(make_user):
    return make_user('admin', Role.ADMIN)


@pytest.fixture
def make_team(app):
    def _make(number, name=None, is_participating=True, members=0):
        name = name or f'Team {number}'
        team = Team(
            number=number,
            name=name,
            project_title=f'{name} project',
            is_participating=is_participating,
            members=[
                Member(position=i, name=f'Student {i}', student_number=f'{number:02d}{i:06d}',
                       email=f's{number}{i}@uni.example.com', role='leader' if i == 0 else 'member')
                for i in range(members)
            ],
        )
        db.session.add(team)
        db.session.commit()
        return team
    return _make


@pytest.fixture
def make_criterion(app):
    def _make(name, max_score=50, weight=1.0, is_active=True):
        criterion = Criterion(name=name, description=f'{name} of the project', max_score=max_score,
                              weight=weight, marking_guide=f'0-{max_score}', is_active=is_active)
        db.session.add(criterion)
        db.session.commit()
        return criterion
    return _make


@pytest.fixture
def make_round(app):
    def _make(criteria, name='Round', is_open=True, is_active=True, ends_days_ago=0):
        end = datetime.utcnow() - timedelta(days=ends_days_ago)
        round_ = Round(name=name, start_date=end - timedelta(days=1), end_date=end,
                       is_open=is_open, is_active=is_active)
        round_.criteria = list(criteria)
        db.session.add(round_)
        db.session.commit()
        return round_
    return _make


@pytest.fixture
def add_score(app):
    """Stores a score row directly, bypassing the judge/round checks."""
    def _add(judge, team, round_, criterion, value, submitted=True):
        score = Score(judge_id=judge.id, team_id=team.id, round_id=round_.id,
                      criterion_id=criterion.id, value=value, is_submitted=submitted,
                      submitted_at=datetime.utcnow() if submitted else None)
        db.session.add(score)
        db.session.commit()
        return score
    return _add
