# analytics.py
# Presentation shapes for the results pages. Everything here is built from
# what aggregation.py and assignment.py return; no score is re-aggregated.

from errors import InvalidInputError, NoTeamsError
import aggregation
import assignment
import score_store

TIMELINE_FORMATS = {
    'hour': '%Y-%m-%d %H:00',
    'day': '%Y-%m-%d',
}


def _ranking_rows(results):
    columns = []
    rows = []
    for entry in results['rankings']:
        criteria = {}
        for item in entry['criteria_scores']:
            name = item['criterion_name']
            if name not in columns:
                columns.append(name)
            criteria[name] = round(item['average_score'], 2)
        rows.append({
            'position': entry['position'],
            'team_id': entry['team_id'],
            'team_number': entry['team_number'],
            'team_name': entry['team_name'],
            'average_score': round(entry['average_score'], 2),
            'weighted_score': round(entry['weighted_score'], 2),
            'total_score': round(entry['total_score'], 2),
            'max_possible_score': entry['max_possible_score'],
            'judge_count': entry['judge_count'],
            'criteria': criteria,
        })
    return columns, rows


def ranking_table(round_id=None):
    results = aggregation.calculate_winner(round_id)
    columns, rows = _ranking_rows(results)
    return {'round': results['round'], 'columns': columns, 'rows': rows}


def criteria_performance(round_id, analytics=None):
    """Criteria of a round, strongest first by share of their max score."""
    if analytics is None:
        analytics = aggregation.detailed_analytics(round_id)

    items = []
    for name, data in analytics['criteria_analytics'].items():
        max_score = data['max_score']
        items.append({
            'name': name,
            'criterion_id': data['criterion_id'],
            'evaluations': data['total_evaluations'],
            'average_score': round(data['average_score'], 2),
            'highest_score': data['highest_score'],
            'lowest_score': data['lowest_score'],
            'percent_of_max': round(data['average_score'] / max_score * 100, 1) if max_score else 0,
            'distribution': data['score_distribution']['ranges'],
        })
    items.sort(key=lambda item: item['percent_of_max'], reverse=True)
    return items


def judge_workload(round_id, analytics=None):
    """Assigned teams per judge next to what each judge has actually scored."""
    stats = assignment.get_assignment_stats(round_id)
    if analytics is None:
        analytics = aggregation.detailed_analytics(round_id)
    judged = analytics['judge_analytics']

    rows = []
    for entry in stats['judge_workload']:
        done = judged.get(entry['judge_id'], {})
        assigned = entry['team_count']
        evaluated = done.get('teams_evaluated', 0)
        rows.append({
            'judge_id': entry['judge_id'],
            'username': entry['username'],
            'assigned_teams': assigned,
            'teams': entry['teams'],
            'teams_evaluated': evaluated,
            'total_evaluations': done.get('total_evaluations', 0),
            'average_score_given': round(done['average_score'], 2) if done else None,
            'progress': min(100, round(evaluated / assigned * 100)) if assigned else 0,
        })
    return rows


def submission_timeline(round_id, interval='day'):
    if interval not in TIMELINE_FORMATS:
        raise InvalidInputError(f'Interval must be one of: {", ".join(TIMELINE_FORMATS)}')

    round_ = assignment.get_round(round_id)
    fmt = TIMELINE_FORMATS[interval]

    counts = {}
    for score in score_store.submitted_scores(round_.id):
        if score.submitted_at is None:
            continue
        key = score.submitted_at.strftime(fmt)
        counts[key] = counts.get(key, 0) + 1

    buckets = []
    running = 0
    for key in sorted(counts):
        running += counts[key]
        buckets.append({'bucket': key, 'count': counts[key], 'cumulative': running})

    return {'round_id': round_.id, 'interval': interval, 'buckets': buckets}


def round_report(round_id):
    analytics = aggregation.detailed_analytics(round_id)

    try:
        results = aggregation.calculate_winner(round_id)
    except NoTeamsError:
        results = None

    report = {
        'round': analytics['round'],
        'overall': analytics['overall_stats'],
        'criteria': criteria_performance(round_id, analytics=analytics),
        'judges': judge_workload(round_id, analytics=analytics),
        'winner': None,
        'statistics': None,
        'ranking': {'columns': [], 'rows': []},
    }
    if results is not None:
        columns, rows = _ranking_rows(results)
        report['winner'] = rows[0] if rows else None
        report['statistics'] = results['statistics']
        report['ranking'] = {'columns': columns, 'rows': rows}
    return report
