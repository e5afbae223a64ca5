# aggregation.py
# Folds judges' submitted scores into team summaries, round rankings,
# the winner, per-round analytics and the cross-round leaderboard.

import logging

from errors import NoClosedRoundError, NoTeamsError, RoundNotFoundError, TeamNotFoundError
from extensions import db
from models import Round, Team
import score_store

logger = logging.getLogger(__name__)

# (label, inclusive lower bound); the last band takes everything below 50
SCORE_BANDS = (
    ('90-100', 90),
    ('80-89', 80),
    ('70-79', 70),
    ('60-69', 60),
    ('50-59', 50),
    ('0-49', None),
)


def _mean(values):
    return sum(values) / len(values) if values else 0


def score_distribution(entries):
    """Buckets ``(label, value)`` pairs into the fixed score bands."""
    ranges = [{'range': name, 'count': 0, 'teams': []} for name, _ in SCORE_BANDS]
    total = 0
    for label, value in entries:
        for bucket, (_, floor) in zip(ranges, SCORE_BANDS):
            if floor is None or value >= floor:
                bucket['count'] += 1
                bucket['teams'].append(label)
                break
        total += 1
    return {'ranges': ranges, 'total_teams': total}


def summarize_scores(scores):
    """
    Summary of one team's submitted scores in one round.

    Scores are grouped by criterion and averaged across the judges who scored
    it; criteria nobody has scored yet are left out rather than counted as 0.
    ``average_score`` is the percentage total_score / max_possible_score and
    ``weighted_score`` the weight-adjusted percentage.
    """
    groups = {}
    for score in scores:
        groups.setdefault(score.criterion_id, []).append(score)

    total_score = 0
    max_possible_score = 0
    weighted = 0
    weights = 0
    criteria_scores = []

    for criterion_id, group in groups.items():
        criterion = group[0].criterion
        average = _mean([s.value for s in group])
        criteria_scores.append({
            'criterion_id': criterion_id,
            'criterion_name': criterion.name,
            'average_score': average,
            'max_score': criterion.max_score,
            'weight': criterion.weight,
            'judge_count': len(group),
        })
        total_score += average
        max_possible_score += criterion.max_score
        weighted += average / criterion.max_score * criterion.weight
        weights += criterion.weight

    return {
        'total_score': total_score,
        'max_possible_score': max_possible_score,
        'average_score': total_score / max_possible_score * 100 if max_possible_score > 0 else 0,
        'weighted_score': weighted / weights * 100 if weights > 0 else 0,
        'judge_count': len({s.judge_id for s in scores}),
        'criteria_scores': criteria_scores,
    }


def _get_round(round_id):
    round_ = db.session.get(Round, round_id) if round_id else None
    if round_ is None:
        raise RoundNotFoundError(round_id)
    return round_


def _resolve_round(round_id=None):
    if round_id:
        return _get_round(round_id)

    # Latest round that has been closed for scoring
    round_ = Round.query.filter_by(is_active=True, is_open=False).order_by(Round.end_date.desc()).first()
    if round_ is None:
        raise NoClosedRoundError()
    return round_


def team_score_summary(team_id, round_id):
    round_ = _get_round(round_id)
    team = db.session.get(Team, team_id)
    if team is None:
        raise TeamNotFoundError(team_id)

    summary = summarize_scores(score_store.submitted_scores(round_.id, team_id=team.id))
    summary['team_id'] = team.id
    summary['round_id'] = round_.id
    return summary


def calculate_winner(round_id=None):
    round_ = _resolve_round(round_id)

    teams = Team.query.filter_by(is_participating=True).order_by(Team.number).all()
    if not teams:
        raise NoTeamsError()

    scores_by_team = {}
    for score in score_store.submitted_scores(round_.id):
        scores_by_team.setdefault(score.team_id, []).append(score)

    team_scores = []
    for team in teams:
        summary = summarize_scores(scores_by_team.get(team.id, []))
        if summary['judge_count'] == 0:
            continue  # never evaluated
        team_scores.append({
            'team_id': team.id,
            'team_name': team.name,
            'team_number': team.number,
            'members': [m.to_dict() for m in team.members],
            **summary,
        })

    # Stable sort: equal scores keep team-number order
    team_scores.sort(key=lambda t: t['average_score'], reverse=True)
    rankings = [{'position': position, **entry} for position, entry in enumerate(team_scores, start=1)]
    averages = [entry['average_score'] for entry in team_scores]

    results = {
        'round': {
            'id': round_.id,
            'name': round_.name,
            'description': round_.description,
            'end_date': round_.end_date.isoformat(),
        },
        'total_teams': len(teams),
        'evaluated_teams': len(team_scores),
        'winner': rankings[0] if rankings else None,
        'rankings': rankings,
        'statistics': {
            'highest_score': max(averages) if averages else 0,
            'lowest_score': min(averages) if averages else 0,
            'average_score': _mean(averages),
            'score_distribution': score_distribution(
                (entry['team_name'], entry['average_score']) for entry in team_scores
            ),
        },
    }

    if rankings:
        logger.info('Round %s winner: %s (%.2f%%)', round_.name,
                    rankings[0]['team_name'], rankings[0]['average_score'])
    else:
        logger.info('Round %s has no evaluated teams', round_.name)
    return results


def detailed_analytics(round_id):
    round_ = _get_round(round_id)
    scores = score_store.submitted_scores(round_.id)

    criteria_analytics = {}
    for criterion in round_.criteria:
        entries = [(s.team.name, s.value) for s in scores if s.criterion_id == criterion.id]
        values = [value for _, value in entries]
        criteria_analytics[criterion.name] = {
            'criterion_id': criterion.id,
            'max_score': criterion.max_score,
            'weight': criterion.weight,
            'total_evaluations': len(values),
            'average_score': _mean(values),
            'highest_score': max(values) if values else 0,
            'lowest_score': min(values) if values else 0,
            'score_distribution': score_distribution(entries),
        }

    scores_by_judge = {}
    for score in scores:
        scores_by_judge.setdefault(score.judge_id, []).append(score)

    judge_analytics = {}
    for judge_id, judge_scores in scores_by_judge.items():
        values = [s.value for s in judge_scores]
        judge_analytics[judge_id] = {
            'username': judge_scores[0].judge.username,
            'total_evaluations': len(values),
            'average_score': _mean(values),
            'score_range': {'highest': max(values), 'lowest': min(values)},
            'teams_evaluated': len({s.team_id for s in judge_scores}),
        }

    return {
        'round': {
            'id': round_.id,
            'name': round_.name,
            'criteria': [
                {'id': c.id, 'name': c.name, 'max_score': c.max_score, 'weight': c.weight}
                for c in round_.criteria
            ],
        },
        'criteria_analytics': criteria_analytics,
        'judge_analytics': judge_analytics,
        'overall_stats': {
            'total_scores': len(scores),
            'total_teams': len({s.team_id for s in scores}),
            'total_judges': len({s.judge_id for s in scores}),
        },
    }


def leaderboard(round_id=None):
    """
    Weighted standings over every round (or a single one). Each criterion
    contributes its judge average as a fraction of max_score times its
    weight; a team's average_score is that sum over the sum of weights, as
    a percentage.
    """
    if round_id:
        scores = score_store.submitted_scores(_get_round(round_id).id)
    else:
        scores = score_store.all_submitted_scores()

    teams = {}
    for score in scores:
        entry = teams.setdefault(score.team_id, {'team': score.team, 'rounds': {}})
        by_criterion = entry['rounds'].setdefault(score.round_id, {})
        by_criterion.setdefault(score.criterion_id, []).append(score)

    board = []
    for entry in sorted(teams.values(), key=lambda e: e['team'].number):
        total = 0
        possible = 0
        rounds = []
        for entry_round_id, by_criterion in entry['rounds'].items():
            round_score = 0
            round_possible = 0
            for group in by_criterion.values():
                criterion = group[0].criterion
                round_score += _mean([s.value for s in group]) / criterion.max_score * criterion.weight
                round_possible += criterion.weight
            rounds.append({
                'round_id': entry_round_id,
                'round_score': round(round_score, 4),
                'round_possible_score': round_possible,
            })
            total += round_score
            possible += round_possible

        team = entry['team']
        board.append({
            'team': {'id': team.id, 'name': team.name, 'number': team.number},
            'total_score': round(total, 2),
            'average_score': round(total / possible * 100, 2) if possible > 0 else 0,
            'round_count': len(rounds),
            'rounds': rounds,
        })

    board.sort(key=lambda e: e['average_score'], reverse=True)
    for rank, entry in enumerate(board, start=1):
        entry['rank'] = rank

    return {
        'leaderboard': board,
        'total_teams': len(board),
        'round_id': round_id or 'all',
    }
