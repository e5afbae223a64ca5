# routes/results.py
# Winner, analytics and report views. All of them are read-only.

from flask import Blueprint, request

import aggregation
import analytics
from routes import api_response
from routes.auth import admin_required, login_required

results_bp = Blueprint('results', __name__, url_prefix='/api/results')


@results_bp.route('/winner')
@login_required
def winner():
    return api_response(aggregation.calculate_winner(request.args.get('round_id')))


@results_bp.route('/ranking')
@login_required
def ranking():
    return api_response(analytics.ranking_table(request.args.get('round_id')))


@results_bp.route('/analytics/<round_id>')
@admin_required
def detailed(round_id):
    return api_response(aggregation.detailed_analytics(round_id))


@results_bp.route('/report/<round_id>')
@admin_required
def report(round_id):
    return api_response(analytics.round_report(round_id))


@results_bp.route('/timeline/<round_id>')
@admin_required
def timeline(round_id):
    interval = request.args.get('interval', 'day')
    return api_response(analytics.submission_timeline(round_id, interval))


@results_bp.route('/workload/<round_id>')
@admin_required
def workload(round_id):
    return api_response({'judges': analytics.judge_workload(round_id)})
