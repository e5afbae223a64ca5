# routes/assignment.py

from flask import Blueprint, request

import assignment
from errors import InvalidInputError
from routes import api_response, json_body, require_fields
from routes.auth import admin_required, current_user, judge_required

assignment_bp = Blueprint('assignment', __name__, url_prefix='/api/assignment')


@assignment_bp.route('/assign', methods=['POST'])
@admin_required
def assign():
    data = json_body()
    require_fields(data, 'round_id')
    result = assignment.assign_judges(data['round_id'])
    return api_response(result, 'Judges assigned successfully')


@assignment_bp.route('/optimize', methods=['POST'])
@admin_required
def optimize():
    data = json_body()
    require_fields(data, 'round_id')
    result = assignment.optimize_assignments(data['round_id'])
    return api_response(result, result['message'])


@assignment_bp.route('/stats')
@admin_required
def stats():
    round_id = request.args.get('round_id')
    if not round_id:
        raise InvalidInputError('round_id is required')
    return api_response({'stats': assignment.get_assignment_stats(round_id)})


@assignment_bp.route('/my-teams')
@judge_required
def my_teams():
    teams = assignment.teams_for_judge(current_user().id)
    return api_response({'teams': [t.to_dict() for t in teams]})
