# routes/scores.py

from flask import Blueprint, current_app, request

import aggregation
import score_store
from errors import InvalidInputError
from routes import api_response, json_body, page_args, require_fields
from routes.auth import admin_required, current_user, judge_required, login_required

scores_bp = Blueprint('scores', __name__, url_prefix='/api/scores')


@scores_bp.route('', methods=['POST'])
@judge_required
def submit_score():
    data = json_body()
    require_fields(data, 'team_id', 'round_id', 'criterion_id')
    if 'value' not in data:
        raise InvalidInputError('Missing required fields: value')

    score, created = score_store.record_score(
        current_user(), data['team_id'], data['round_id'], data['criterion_id'],
        data['value'], data.get('comments')
    )
    if created:
        return api_response({'score': score.to_dict()}, 'Score submitted', 201)
    return api_response({'score': score.to_dict()}, 'Score updated')


@scores_bp.route('/<score_id>', methods=['PUT'])
@judge_required
def update_score(score_id):
    data = json_body()
    if 'value' not in data:
        raise InvalidInputError('Missing required fields: value')

    score = score_store.update_score(
        score_id, current_user(), data['value'],
        comments=data.get('comments'),
        expected_version=data.get('version')
    )
    return api_response({'score': score.to_dict()}, 'Score updated')


@scores_bp.route('/<score_id>/submit', methods=['PUT'])
@judge_required
def finalize_score(score_id):
    score = score_store.finalize_score(score_id, current_user())
    return api_response({'score': score.to_dict()}, 'Score finalized')


@scores_bp.route('/my-scores')
@judge_required
def my_scores():
    page, limit = page_args(current_app.config['DEFAULT_PAGE_SIZE'])
    data = score_store.judge_scores(current_user().id, request.args.get('round_id'), page, limit)
    return api_response(data)


@scores_bp.route('/team/<team_id>')
@login_required
def team_scores(team_id):
    round_id = request.args.get('round_id')
    if not round_id:
        raise InvalidInputError('round_id is required')

    user = current_user()
    scores = score_store.team_scores(team_id, round_id)
    if user.is_judge:
        # Judges only ever see their own marks
        scores = [s for s in scores if s.judge_id == user.id]
    return api_response({'scores': [s.to_dict() for s in scores]})


@scores_bp.route('/summary/<team_id>')
@login_required
def team_summary(team_id):
    round_id = request.args.get('round_id')
    if not round_id:
        raise InvalidInputError('round_id is required')
    return api_response({'summary': aggregation.team_score_summary(team_id, round_id)})


@scores_bp.route('/round/<round_id>')
@admin_required
def round_scores(round_id):
    page, limit = page_args(current_app.config['DEFAULT_PAGE_SIZE'])
    return api_response(score_store.round_scores(round_id, page, limit))


@scores_bp.route('/stats')
@admin_required
def stats():
    return api_response({'stats': score_store.score_stats()})


@scores_bp.route('/leaderboard')
@login_required
def leaderboard():
    return api_response(aggregation.leaderboard(request.args.get('round_id')))
