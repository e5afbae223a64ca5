# score_store.py
# One Score per (judge, team, round, criterion): upsert by key, versioned
# modifications and the bulk reads the aggregation code relies on.

import logging
import math
from datetime import datetime
from numbers import Real

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    RoundClosedError,
    RoundNotFoundError,
    ScoreNotFoundError,
    TeamNotFoundError,
)
from extensions import db
from models import Criterion, Round, Score, Team

logger = logging.getLogger(__name__)


def _validate_value(value, criterion):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidInputError('Score must be a number')
    if not math.isfinite(value):
        raise InvalidInputError('Score must be a finite number')
    if value < 0:
        raise InvalidInputError('Score cannot be negative')
    if value > criterion.max_score:
        raise InvalidInputError(f'Score cannot exceed {criterion.max_score} for this criterion')
    return float(value)


def _open_round(round_id):
    round_ = db.session.get(Round, round_id)
    if round_ is None:
        raise RoundNotFoundError(round_id)
    if not round_.is_open:
        raise RoundClosedError()
    return round_


def get_score(score_id):
    score = db.session.get(Score, score_id)
    if score is None:
        raise ScoreNotFoundError(score_id)
    return score


def _key_filter(judge_id, team_id, round_id, criterion_id):
    return Score.query.filter_by(judge_id=judge_id, team_id=team_id,
                                 round_id=round_id, criterion_id=criterion_id)


def record_score(judge, team_id, round_id, criterion_id, value, comments=None):
    """
    Creates the judge's score for this key, or modifies it in place if it
    already exists. Returns ``(score, created)``.
    """
    team = db.session.get(Team, team_id)
    if team is None:
        raise TeamNotFoundError(team_id)
    if judge.id not in team.judge_ids:
        raise ForbiddenError('You are not assigned to this team')

    round_ = _open_round(round_id)
    if not round_.has_criterion(criterion_id):
        raise InvalidInputError('Criterion is not part of this round')

    criterion = db.session.get(Criterion, criterion_id)
    if criterion is None or not criterion.is_active:
        raise InvalidInputError('Invalid or inactive criterion')
    value = _validate_value(value, criterion)

    existing = _key_filter(judge.id, team_id, round_id, criterion_id).first()
    if existing is not None:
        return modify_score(existing, value, comments), False

    score = Score(judge_id=judge.id, team_id=team_id, round_id=round_id,
                  criterion_id=criterion_id, value=value, comments=comments)
    db.session.add(score)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _key_filter(judge.id, team_id, round_id, criterion_id).first()
        if existing is None:
            # Not a lost race on the key: some other constraint failed
            raise
        # A concurrent request created the same key first: update that row instead
        return modify_score(existing, value, comments), False

    logger.info('Score created: judge=%s team=%s criterion=%s value=%s',
                judge.username, team.name, criterion.name, value)
    return score, True


def modify_score(score, value, comments=None, expected_version=None):
    """
    Compare-and-swap update: the row is only written if its version is still
    the one we read. previous_score takes the committed value being replaced
    and the score goes back to draft until it is submitted again.
    """
    if expected_version is not None and expected_version != score.version:
        raise ConflictError(f'Score version is {score.version}, expected {expected_version}')

    values = {
        Score.previous_score: Score.value,
        Score.value: value,
        Score.version: Score.version + 1,
        Score.is_submitted: False,
        Score.submitted_at: None,
        Score.updated_at: datetime.utcnow(),
    }
    if comments is not None:
        values[Score.comments] = comments

    updated = Score.query.filter_by(id=score.id, version=score.version).update(
        values, synchronize_session=False
    )
    if updated == 0:
        db.session.rollback()
        logger.warning('Version conflict on score %s (version %s)', score.id, score.version)
        raise ConflictError()

    db.session.commit()
    db.session.refresh(score)
    logger.info('Score %s modified: %s -> %s (version %s)',
                score.id, score.previous_score, score.value, score.version)
    return score


def _owned_score(score_id, judge):
    score = get_score(score_id)
    if score.judge_id != judge.id:
        raise ForbiddenError('You can only change your own scores')
    return score


def update_score(score_id, judge, value, comments=None, expected_version=None):
    score = _owned_score(score_id, judge)
    _open_round(score.round_id)
    value = _validate_value(value, score.criterion)
    return modify_score(score, value, comments, expected_version)


def finalize_score(score_id, judge):
    score = _owned_score(score_id, judge)
    _open_round(score.round_id)

    score.is_submitted = True
    if score.submitted_at is None:
        score.submitted_at = datetime.utcnow()
    db.session.commit()
    return score


# --- Reads ---

def team_scores(team_id, round_id):
    return Score.query.filter_by(team_id=team_id, round_id=round_id).options(
        joinedload(Score.judge),
        joinedload(Score.criterion)
    ).order_by(Score.created_at.desc()).all()


def submitted_scores(round_id, team_id=None):
    """Submitted scores only; these are the ones that count in aggregates."""
    query = Score.query.filter(Score.round_id == round_id, Score.is_submitted.is_(True))
    if team_id is not None:
        query = query.filter(Score.team_id == team_id)
    return query.options(
        joinedload(Score.criterion),
        joinedload(Score.team),
        joinedload(Score.judge)
    ).order_by(Score.created_at, Score.id).all()


def all_submitted_scores():
    return Score.query.filter(Score.is_submitted.is_(True)).options(
        joinedload(Score.criterion),
        joinedload(Score.team),
        joinedload(Score.round)
    ).order_by(Score.created_at, Score.id).all()


def _paginated(query, page, limit):
    pagination = query.order_by(Score.created_at.desc()).paginate(page=page, per_page=limit, error_out=False)
    return {
        'scores': [s.to_dict() for s in pagination.items],
        'pagination': {
            'current': pagination.page,
            'pages': pagination.pages,
            'total': pagination.total,
            'limit': limit,
        },
    }


def judge_scores(judge_id, round_id=None, page=1, limit=10):
    query = Score.query.filter_by(judge_id=judge_id)
    if round_id:
        query = query.filter_by(round_id=round_id)
    return _paginated(query, page, limit)


def round_scores(round_id, page=1, limit=10):
    return _paginated(Score.query.filter_by(round_id=round_id), page, limit)


def score_stats():
    row = db.session.query(
        func.count(Score.id),
        func.sum(case((Score.is_submitted.is_(True), 1), else_=0)),
        func.avg(Score.value),
        func.max(Score.value),
        func.min(Score.value),
    ).one()
    total, submitted, average, highest, lowest = row
    return {
        'total_scores': total or 0,
        'submitted_scores': int(submitted or 0),
        'average_score': round(average, 2) if average is not None else 0,
        'max_score': highest or 0,
        'min_score': lowest or 0,
    }
