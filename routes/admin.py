# routes/admin.py

import logging
import re
from datetime import datetime, timezone

from flask import Blueprint
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

import assignment
from errors import (
    ConflictError,
    CriterionNotFoundError,
    InvalidInputError,
    RoundNotFoundError,
    TeamNotFoundError,
    UserNotFoundError,
)
from extensions import db
from models import Criterion, Member, Role, Round, Score, Team, User
from routes import api_response, json_body, require_fields
from routes.auth import admin_required, current_user

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[a-zA-Z]{2,}$')
STUDENT_NUMBER_RE = re.compile(r'^\d{8}$')
USERNAME_RE = re.compile(r'^[a-zA-Z0-9_]{3,30}$')


def _commit(duplicate_message):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(duplicate_message)


def _get_or_raise(model, object_id, error):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise error(object_id)
    return obj


def _parse_date(value, field):
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f'{field} must be an ISO 8601 date')
    # Dates are stored as naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# --- Users ---

def _apply_user_fields(user, data):
    if 'username' in data:
        if not USERNAME_RE.match(data['username'] or ''):
            raise InvalidInputError('Username must be 3-30 letters, numbers or underscores')
        user.username = data['username']
    if 'email' in data:
        if not EMAIL_RE.match(data['email'] or ''):
            raise InvalidInputError('Please enter a valid email')
        user.email = data['email'].lower()
    if 'role' in data:
        try:
            user.role = Role(data['role']).value
        except ValueError:
            raise InvalidInputError('Role must be admin or judge')

    judge_info = data.get('judge_info') or {}
    if user.is_judge:
        user.company = judge_info.get('company', user.company)
        user.position = judge_info.get('position', user.position)
        experience = judge_info.get('experience', user.experience)
        if experience is not None and not (isinstance(experience, int) and 0 <= experience <= 50):
            raise InvalidInputError('Experience must be between 0 and 50 years')
        user.experience = experience
    else:
        user.company = user.position = user.experience = None


@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return api_response({'users': [u.to_dict() for u in users]})


@admin_bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = json_body()
    require_fields(data, 'code', 'username', 'email')

    user = User(code=data['code'], role=Role.JUDGE.value)
    _apply_user_fields(user, data)
    db.session.add(user)
    _commit('User with this code, username or email already exists')
    logger.info('User %s created with role %s', user.username, user.role)
    return api_response({'user': user.to_dict()}, f'User {user.username} created', 201)


@admin_bp.route('/users/<user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    user = _get_or_raise(User, user_id, UserNotFoundError)
    _apply_user_fields(user, json_body())
    _commit('Username or email already in use')
    return api_response({'user': user.to_dict()}, 'User updated')


@admin_bp.route('/users/<user_id>/status', methods=['PUT'])
@admin_required
def set_user_status(user_id):
    data = json_body()
    if not isinstance(data.get('is_active'), bool):
        raise InvalidInputError('is_active must be true or false')
    if user_id == current_user().id and not data['is_active']:
        raise InvalidInputError('You cannot deactivate your own account')

    user = _get_or_raise(User, user_id, UserNotFoundError)
    user.is_active = data['is_active']
    db.session.commit()
    return api_response({'user': user.to_dict()}, 'User status updated')


@admin_bp.route('/users/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    if user_id == current_user().id:
        raise InvalidInputError('You cannot delete your own account')

    user = _get_or_raise(User, user_id, UserNotFoundError)
    db.session.delete(user)
    _commit('User is still referenced by other records')
    return api_response(message='User deleted')


@admin_bp.route('/users/stats')
@admin_required
def user_stats():
    rows = db.session.query(
        User.role,
        func.count(User.id),
        func.sum(case((User.is_active.is_(True), 1), else_=0))
    ).group_by(User.role).all()
    stats = {role: {'total': total, 'active': int(active or 0)} for role, total, active in rows}
    return api_response({'stats': stats})


# --- Teams ---

def _build_members(raw_members):
    if not isinstance(raw_members, list) or not 3 <= len(raw_members) <= 4:
        raise InvalidInputError('Teams must contain 3 to 4 members')

    members = []
    seen_numbers = set()
    for index, raw in enumerate(raw_members):
        if not isinstance(raw, dict):
            raise InvalidInputError('Each member must be an object')
        name = (raw.get('name') or '').strip()
        student_number = str(raw.get('student_number') or '')
        email = (raw.get('email') or '').lower()
        role = raw.get('role', 'member')

        if not 2 <= len(name) <= 100:
            raise InvalidInputError('Member name must be 2-100 characters')
        if not STUDENT_NUMBER_RE.match(student_number):
            raise InvalidInputError('Student number must be 8 digits')
        if student_number in seen_numbers:
            raise InvalidInputError(f'Student number {student_number} appears twice in the team')
        if not EMAIL_RE.match(email):
            raise InvalidInputError('Please enter a valid member email')
        if role not in ('leader', 'member'):
            raise InvalidInputError('Member role must be leader or member')

        seen_numbers.add(student_number)
        members.append(Member(position=index, name=name, student_number=student_number,
                              email=email, role=role))
    return members


def _apply_team_fields(team, data):
    if 'name' in data:
        if not 3 <= len((data['name'] or '').strip()) <= 100:
            raise InvalidInputError('Team name must be 3-100 characters')
        team.name = data['name'].strip()
    if 'number' in data:
        if not isinstance(data['number'], int) or not 1 <= data['number'] <= 15:
            raise InvalidInputError('Team number must be between 1 and 15')
        team.number = data['number']
    if 'project_title' in data:
        if not 3 <= len((data['project_title'] or '').strip()) <= 200:
            raise InvalidInputError('Project title must be 3-200 characters')
        team.project_title = data['project_title'].strip()
    if 'project_description' in data:
        team.project_description = data['project_description']
    if 'members' in data:
        members = _build_members(data['members'])
        if team.id is not None:
            # Old rows go first so student numbers can be reused
            team.members = []
            db.session.flush()
        team.members = members


@admin_bp.route('/teams', methods=['GET'])
@admin_required
def list_teams():
    teams = Team.query.options(joinedload(Team.members)).order_by(Team.number).all()
    return api_response({'teams': [t.to_dict() for t in teams]})


@admin_bp.route('/teams', methods=['POST'])
@admin_required
def create_team():
    data = json_body()
    require_fields(data, 'name', 'number', 'project_title', 'members')

    team = Team(created_by_id=current_user().id)
    _apply_team_fields(team, data)
    db.session.add(team)
    _commit('A team with this name or number already exists')
    logger.info('Team #%s %s created', team.number, team.name)
    return api_response({'team': team.to_dict()}, 'Team created', 201)


@admin_bp.route('/teams/<team_id>', methods=['GET'])
@admin_required
def get_team(team_id):
    team = _get_or_raise(Team, team_id, TeamNotFoundError)
    return api_response({'team': team.to_dict()})


@admin_bp.route('/teams/<team_id>', methods=['PUT'])
@admin_required
def update_team(team_id):
    team = _get_or_raise(Team, team_id, TeamNotFoundError)
    _apply_team_fields(team, json_body())
    _commit('A team with this name or number already exists')
    return api_response({'team': team.to_dict()}, 'Team updated')


@admin_bp.route('/teams/<team_id>', methods=['DELETE'])
@admin_required
def delete_team(team_id):
    team = _get_or_raise(Team, team_id, TeamNotFoundError)
    db.session.delete(team)
    db.session.commit()
    return api_response(message='Team deleted')


@admin_bp.route('/teams/<team_id>/assign-judge', methods=['PUT'])
@admin_required
def assign_team_judge(team_id):
    data = json_body()
    require_fields(data, 'judge_id')
    team = assignment.assign_judge(team_id, data['judge_id'])
    return api_response({'team': team.to_dict()}, 'Judge assigned')


@admin_bp.route('/teams/<team_id>/unassign-judge', methods=['PUT'])
@admin_required
def unassign_team_judge(team_id):
    data = json_body()
    require_fields(data, 'judge_id')
    team = assignment.unassign_judge(team_id, data['judge_id'])
    return api_response({'team': team.to_dict()}, 'Judge unassigned')


@admin_bp.route('/teams/<team_id>/participation', methods=['PUT'])
@admin_required
def set_team_participation(team_id):
    data = json_body()
    if not isinstance(data.get('is_participating'), bool):
        raise InvalidInputError('is_participating must be true or false')

    team = _get_or_raise(Team, team_id, TeamNotFoundError)
    team.is_participating = data['is_participating']
    db.session.commit()
    return api_response({'team': team.to_dict()}, 'Participation updated')


@admin_bp.route('/teams/stats')
@admin_required
def team_stats():
    teams = Team.query.options(joinedload(Team.members)).all()
    total_members = sum(t.member_count for t in teams)
    return api_response({'stats': {
        'total_teams': len(teams),
        'participating_teams': sum(1 for t in teams if t.is_participating),
        'total_members': total_members,
        'average_members': round(total_members / len(teams), 2) if teams else 0,
    }})


# --- Criteria ---

def _apply_criterion_fields(criterion, data):
    if 'name' in data:
        if not 3 <= len((data['name'] or '').strip()) <= 100:
            raise InvalidInputError('Criterion name must be 3-100 characters')
        criterion.name = data['name'].strip()
    if 'description' in data:
        if not 10 <= len((data['description'] or '').strip()) <= 500:
            raise InvalidInputError('Description must be 10-500 characters')
        criterion.description = data['description'].strip()
    if 'max_score' in data:
        if not isinstance(data['max_score'], int) or not 1 <= data['max_score'] <= 100:
            raise InvalidInputError('Max score must be an integer between 1 and 100')
        criterion.max_score = data['max_score']
    if 'weight' in data:
        weight = data['weight']
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not 0 <= weight <= 1:
            raise InvalidInputError('Weight must be between 0 and 1')
        criterion.weight = float(weight)
    if 'marking_guide' in data:
        if not data['marking_guide'] or len(data['marking_guide']) > 2000:
            raise InvalidInputError('Marking guide is required (max 2000 characters)')
        criterion.marking_guide = data['marking_guide']


@admin_bp.route('/criteria', methods=['GET'])
@admin_required
def list_criteria():
    criteria = Criterion.query.order_by(Criterion.name).all()
    return api_response({'criteria': [c.to_dict() for c in criteria]})


@admin_bp.route('/criteria', methods=['POST'])
@admin_required
def create_criterion():
    data = json_body()
    require_fields(data, 'name', 'description', 'max_score', 'marking_guide')

    criterion = Criterion(weight=1.0, created_by_id=current_user().id)
    _apply_criterion_fields(criterion, data)
    db.session.add(criterion)
    _commit('A criterion with this name already exists')
    return api_response({'criterion': criterion.to_dict()}, f'Criterion "{criterion.name}" created', 201)


@admin_bp.route('/criteria/<criterion_id>', methods=['PUT'])
@admin_required
def update_criterion(criterion_id):
    criterion = _get_or_raise(Criterion, criterion_id, CriterionNotFoundError)
    _apply_criterion_fields(criterion, json_body())
    _commit('A criterion with this name already exists')
    return api_response({'criterion': criterion.to_dict()}, 'Criterion updated')


@admin_bp.route('/criteria/<criterion_id>/status', methods=['PUT'])
@admin_required
def set_criterion_status(criterion_id):
    data = json_body()
    if not isinstance(data.get('is_active'), bool):
        raise InvalidInputError('is_active must be true or false')

    criterion = _get_or_raise(Criterion, criterion_id, CriterionNotFoundError)
    criterion.is_active = data['is_active']
    db.session.commit()
    return api_response({'criterion': criterion.to_dict()}, 'Criterion status updated')


@admin_bp.route('/criteria/<criterion_id>', methods=['DELETE'])
@admin_required
def delete_criterion(criterion_id):
    criterion = _get_or_raise(Criterion, criterion_id, CriterionNotFoundError)

    # Criteria that already carry scores or belong to a round stay
    if Score.query.filter_by(criterion_id=criterion_id).first():
        raise InvalidInputError(f'Criterion "{criterion.name}" already has scores')
    if criterion.usage_count > 0:
        raise InvalidInputError(f'Criterion "{criterion.name}" is used by {criterion.usage_count} rounds')

    db.session.delete(criterion)
    db.session.commit()
    return api_response(message=f'Criterion "{criterion.name}" deleted')


@admin_bp.route('/criteria/most-used')
@admin_required
def most_used_criteria():
    criteria = Criterion.query.filter_by(is_active=True).all()
    criteria.sort(key=lambda c: c.usage_count, reverse=True)
    return api_response({'most_used': [c.to_dict() for c in criteria[:10]]})


@admin_bp.route('/criteria/stats')
@admin_required
def criteria_stats():
    criteria = Criterion.query.all()
    return api_response({'stats': {
        'total_criteria': len(criteria),
        'active_criteria': sum(1 for c in criteria if c.is_active),
        'average_max_score': round(sum(c.max_score for c in criteria) / len(criteria), 2) if criteria else 0,
        'total_usage': sum(c.usage_count for c in criteria),
    }})


# --- Rounds ---

def _active_criteria(criterion_ids):
    if not isinstance(criterion_ids, list) or not criterion_ids:
        raise InvalidInputError('A round needs at least one criterion')
    found = {c.id: c for c in Criterion.query.filter(
        Criterion.id.in_(criterion_ids), Criterion.is_active.is_(True)
    )}
    if len(found) != len(set(criterion_ids)):
        raise InvalidInputError('One or more criteria are invalid or inactive')
    # Keep the order the admin picked, ignoring repeats
    return [found[c] for c in dict.fromkeys(criterion_ids)]


def _apply_round_fields(round_, data):
    if 'name' in data:
        if not 3 <= len((data['name'] or '').strip()) <= 100:
            raise InvalidInputError('Round name must be 3-100 characters')
        round_.name = data['name'].strip()
    if 'description' in data:
        round_.description = data['description']
    if 'start_date' in data:
        round_.start_date = _parse_date(data['start_date'], 'start_date')
    if 'end_date' in data:
        round_.end_date = _parse_date(data['end_date'], 'end_date')
    if round_.end_date <= round_.start_date:
        raise InvalidInputError('End date must be after start date')
    if 'is_active' in data:
        round_.is_active = bool(data['is_active'])
    if 'criteria' in data:
        round_.criteria = _active_criteria(data['criteria'])


@admin_bp.route('/rounds', methods=['GET'])
@admin_required
def list_rounds():
    rounds = Round.query.order_by(Round.start_date.desc()).all()
    return api_response({'rounds': [r.to_dict(with_stats=True) for r in rounds]})


@admin_bp.route('/rounds', methods=['POST'])
@admin_required
def create_round():
    data = json_body()
    require_fields(data, 'name', 'criteria', 'start_date', 'end_date')

    round_ = Round(created_by_id=current_user().id)
    _apply_round_fields(round_, data)
    db.session.add(round_)
    db.session.commit()
    logger.info('Round %s created with %d criteria', round_.name, len(round_.criteria))
    return api_response({'round': round_.to_dict()}, 'Round created', 201)


@admin_bp.route('/rounds/<round_id>', methods=['GET'])
@admin_required
def get_round(round_id):
    round_ = _get_or_raise(Round, round_id, RoundNotFoundError)
    return api_response({'round': round_.to_dict(with_stats=True)})


@admin_bp.route('/rounds/<round_id>', methods=['PUT'])
@admin_required
def update_round(round_id):
    round_ = _get_or_raise(Round, round_id, RoundNotFoundError)
    _apply_round_fields(round_, json_body())
    db.session.commit()
    return api_response({'round': round_.to_dict()}, 'Round updated')


@admin_bp.route('/rounds/<round_id>/close', methods=['PUT'])
@admin_required
def close_round(round_id):
    round_ = _get_or_raise(Round, round_id, RoundNotFoundError)
    if not round_.is_open:
        raise InvalidInputError('Round is already closed')
    round_.is_open = False
    db.session.commit()
    logger.info('Round %s closed for scoring', round_.name)
    return api_response({'round': round_.to_dict()}, 'Round closed')


@admin_bp.route('/rounds/<round_id>/reopen', methods=['PUT'])
@admin_required
def reopen_round(round_id):
    round_ = _get_or_raise(Round, round_id, RoundNotFoundError)
    if round_.is_open:
        raise InvalidInputError('Round is already open')
    round_.is_open = True
    db.session.commit()
    return api_response({'round': round_.to_dict()}, 'Round reopened')


@admin_bp.route('/rounds/<round_id>', methods=['DELETE'])
@admin_required
def delete_round(round_id):
    round_ = _get_or_raise(Round, round_id, RoundNotFoundError)
    db.session.delete(round_)
    db.session.commit()
    return api_response(message='Round deleted')


@admin_bp.route('/rounds/stats')
@admin_required
def round_stats():
    rounds = Round.query.all()
    completion = [r.completion_percentage for r in rounds]
    return api_response({'stats': {
        'total_rounds': len(rounds),
        'active_rounds': sum(1 for r in rounds if r.is_active),
        'open_rounds': sum(1 for r in rounds if r.is_open),
        'average_completion': round(sum(completion) / len(completion), 2) if completion else 0,
    }})
