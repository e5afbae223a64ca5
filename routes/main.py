# routes/main.py

from flask import Blueprint
from sqlalchemy.orm import joinedload

import assignment
from models import Criterion, Role, Round, Score, Team, User
from routes import api_response
from routes.auth import current_user, login_required

main_bp = Blueprint('main', __name__, url_prefix='/api')


def _judge_dashboard(user):
    teams = assignment.teams_for_judge(user.id)
    open_rounds = Round.query.filter_by(is_active=True, is_open=True).order_by(Round.start_date).all()

    # --- Progress per open round: submitted marks out of teams x criteria ---
    progress = []
    for round_ in open_rounds:
        expected = len(teams) * len(round_.criteria)
        submitted = Score.query.filter_by(
            judge_id=user.id, round_id=round_.id, is_submitted=True
        ).count()
        progress.append({
            'round': {'id': round_.id, 'name': round_.name},
            'expected_scores': expected,
            'submitted_scores': submitted,
            'percent': round(submitted / expected * 100) if expected else 0,
        })

    recent = Score.query.filter_by(judge_id=user.id).options(
        joinedload(Score.team),
        joinedload(Score.criterion)
    ).order_by(Score.updated_at.desc()).limit(5).all()

    return {
        'teams': [t.to_dict(with_members=False) for t in teams],
        'open_rounds': [r.to_dict() for r in open_rounds],
        'progress': progress,
        'recent_scores': [s.to_dict() for s in recent],
    }


def _admin_dashboard():
    rounds = Round.query.filter_by(is_active=True).order_by(Round.start_date.desc()).all()
    return {
        'counts': {
            'judges': User.query.filter_by(role=Role.JUDGE.value, is_active=True).count(),
            'teams': Team.query.filter_by(is_participating=True).count(),
            'criteria': Criterion.query.filter_by(is_active=True).count(),
            'rounds': len(rounds),
            'submitted_scores': Score.query.filter_by(is_submitted=True).count(),
        },
        'rounds': [r.to_dict(with_stats=True) for r in rounds],
    }


@main_bp.route('/dashboard')
@login_required
def dashboard():
    user = current_user()
    if user.is_admin:
        data = _admin_dashboard()
    else:
        data = _judge_dashboard(user)
    data['user'] = user.to_dict()
    return api_response(data)
