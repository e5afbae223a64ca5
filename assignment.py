# assignment.py
# Distributes active judges over participating teams.
#
# The plan_* functions are pure and work on ordered id lists; the service
# functions below them load models, validate, and write every team in a
# single transaction.

import logging
import math
import threading

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from errors import (
    ConstraintViolationError,
    InvalidInputError,
    JudgeNotFoundError,
    NoJudgesError,
    NoTeamsError,
    RoundNotFoundError,
    TeamNotFoundError,
)
from extensions import db
from models import Role, Round, Team, User

logger = logging.getLogger(__name__)

MAX_JUDGES_PER_TEAM = 3

# Judge sets live on Team records and are shared by every round, so all
# assignment writes (assign, optimize, manual edits) go through one lock.
_assignment_lock = threading.Lock()


# --- Planning ---

def plan_assignment(team_ids, judge_ids, max_per_team=MAX_JUDGES_PER_TEAM):
    """
    Round-robin assignment. Every team takes the next ``judges_per_team``
    judges from a cursor that wraps around the judge list, so judges are
    reused when there are fewer of them than team slots.

    This is a deterministic heuristic, not an optimal solver: the only hard
    rules are "at most max_per_team judges per team" and "judges spread
    roughly evenly by count".
    """
    if not team_ids:
        raise NoTeamsError()
    if not judge_ids:
        raise NoJudgesError()

    judges_per_team = min(max_per_team, math.ceil(len(judge_ids) / len(team_ids)))

    plan = {}
    cursor = 0
    for team_id in team_ids:
        chosen = []
        for _ in range(judges_per_team):
            chosen.append(judge_ids[cursor])
            cursor = (cursor + 1) % len(judge_ids)
        plan[team_id] = chosen
    return plan


def judge_loads(plan, judge_ids):
    loads = {judge_id: 0 for judge_id in judge_ids}
    for judges in plan.values():
        for judge_id in judges:
            if judge_id in loads:
                loads[judge_id] += 1
    return loads


def load_variance(loads):
    if not loads:
        return 0.0
    values = list(loads.values())
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _move_edge(plan, team_ids, busiest, idlest):
    for team_id in team_ids:
        judges = plan[team_id]
        if busiest in judges and idlest not in judges:
            judges[judges.index(busiest)] = idlest
            return {'action': 'move', 'team_id': team_id,
                    'from_judge_id': busiest, 'to_judge_id': idlest}
    return None


def _add_edge(plan, team_ids, idlest, loads, max_per_team):
    candidates = [t for t in team_ids if len(plan[t]) < max_per_team and idlest not in plan[t]]
    if not candidates:
        return None

    after = dict(loads)
    after[idlest] += 1
    # Only accept an addition that makes the workload strictly more even
    if load_variance(after) >= load_variance(loads) - 1e-9:
        return None

    target = min(candidates, key=lambda t: len(plan[t]))
    plan[target].append(idlest)
    return {'action': 'add', 'team_id': target, 'to_judge_id': idlest}


def plan_rebalance(current, team_ids, judge_ids, max_per_team=MAX_JUDGES_PER_TEAM):
    """
    Evens out judge workload without clearing the existing assignment.

    While the busiest and idlest judge differ by more than one team, hand one
    of the busiest judge's teams over to the idlest judge; when no such team
    exists, add the idlest judge to the emptiest team that still has room.
    Every change strictly lowers the load variance and no team goes above
    ``max_per_team``. Iterations are capped at len(teams) * len(judges).

    Returns ``(plan, changes)``.
    """
    if not team_ids:
        raise NoTeamsError()
    if not judge_ids:
        raise NoJudgesError()

    plan = {team_id: list(current.get(team_id, [])) for team_id in team_ids}
    changes = []

    for _ in range(len(team_ids) * len(judge_ids)):
        loads = judge_loads(plan, judge_ids)
        busiest = max(judge_ids, key=lambda j: loads[j])
        idlest = min(judge_ids, key=lambda j: loads[j])
        if loads[busiest] - loads[idlest] <= 1:
            break

        change = _move_edge(plan, team_ids, busiest, idlest)
        if change is None:
            change = _add_edge(plan, team_ids, idlest, loads, max_per_team)
        if change is None:
            break
        changes.append(change)

    return plan, changes


def assignment_stats(plan, judge_ids):
    """Counts for an assignment; ``plan`` maps team id -> judge ids."""
    total_teams = len(plan)
    teams_with_judges = sum(1 for judges in plan.values() if judges)
    total_edges = sum(len(judges) for judges in plan.values())

    workload = []
    for judge_id in judge_ids:
        teams = [team_id for team_id, judges in plan.items() if judge_id in judges]
        workload.append({'judge_id': judge_id, 'team_count': len(teams), 'team_ids': teams})

    return {
        'total_teams': total_teams,
        'total_judges': len(judge_ids),
        'teams_with_judges': teams_with_judges,
        'average_judges_per_team': round(total_edges / total_teams, 2) if total_teams else 0,
        'judge_workload': workload,
    }


# --- Service layer ---

def _max_per_team():
    return current_app.config.get('MAX_JUDGES_PER_TEAM', MAX_JUDGES_PER_TEAM)


def get_round(round_id):
    round_ = db.session.get(Round, round_id) if round_id else None
    if round_ is None:
        raise RoundNotFoundError(round_id)
    return round_


def participating_teams():
    return Team.query.filter_by(is_participating=True).order_by(Team.number).all()


def active_judges():
    return User.query.filter_by(role=Role.JUDGE.value, is_active=True).order_by(User.username).all()


def teams_for_judge(judge_id):
    return Team.query.filter(
        Team.is_participating.is_(True),
        Team.assigned_judges.any(User.id == judge_id)
    ).order_by(Team.number).all()


def _serialize_assignments(teams):
    return [
        {
            'team_id': team.id,
            'team_number': team.number,
            'team_name': team.name,
            'judges': [{'id': j.id, 'username': j.username} for j in team.assigned_judges],
        }
        for team in teams
    ]


def build_stats(teams, judges):
    plan = {team.id: team.judge_ids for team in teams}
    stats = assignment_stats(plan, [judge.id for judge in judges])

    teams_by_id = {team.id: team for team in teams}
    usernames = {judge.id: judge.username for judge in judges}
    for entry in stats['judge_workload']:
        entry['username'] = usernames[entry['judge_id']]
        entry['teams'] = [
            {'id': team_id, 'name': teams_by_id[team_id].name, 'number': teams_by_id[team_id].number}
            for team_id in entry.pop('team_ids')
        ]
    return stats


def _apply_plan(teams, plan, judges_by_id):
    """Writes every team's judge set in one commit, or none of them."""
    try:
        for team in teams:
            team.assigned_judges = [judges_by_id[judge_id] for judge_id in plan[team.id]]
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Failed to persist judge assignment for %d teams', len(teams))
        raise


def assign_judges(round_id):
    with _assignment_lock:
        round_ = get_round(round_id)
        teams = participating_teams()
        judges = active_judges()

        plan = plan_assignment([t.id for t in teams], [j.id for j in judges], _max_per_team())
        _apply_plan(teams, plan, {j.id: j for j in judges})

        logger.info('Assigned %d judges to %d teams for round %s', len(judges), len(teams), round_.id)
        return {
            'round_id': round_.id,
            'assignments': _serialize_assignments(teams),
            'stats': build_stats(teams, judges),
        }


def optimize_assignments(round_id):
    with _assignment_lock:
        round_ = get_round(round_id)
        teams = participating_teams()
        judges = active_judges()

        current = {team.id: team.judge_ids for team in teams}
        plan, changes = plan_rebalance(current, [t.id for t in teams], [j.id for j in judges], _max_per_team())

        if changes:
            # Teams may still hold judges that have since been deactivated
            known = {j.id: j for team in teams for j in team.assigned_judges}
            known.update({j.id: j for j in judges})
            _apply_plan(teams, plan, known)
            message = f'Assignments optimized with {len(changes)} changes'
        else:
            message = 'Assignments are already balanced'

        logger.info('Optimize for round %s: %s', round_.id, message)
        return {
            'round_id': round_.id,
            'assignments': _serialize_assignments(teams),
            'stats': build_stats(teams, judges),
            'changes': changes,
            'message': message,
        }


def get_assignment_stats(round_id):
    get_round(round_id)
    return build_stats(participating_teams(), active_judges())


def assign_judge(team_id, judge_id):
    with _assignment_lock:
        team = db.session.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError(team_id)
        judge = db.session.get(User, judge_id)
        if judge is None:
            raise JudgeNotFoundError(judge_id)
        if not judge.is_judge or not judge.is_active:
            raise InvalidInputError('Invalid judge ID or judge is not active')

        if judge_id in team.judge_ids:
            raise ConstraintViolationError('Judge is already assigned to this team')
        if len(team.assigned_judges) >= _max_per_team():
            raise ConstraintViolationError(f'Team cannot have more than {_max_per_team()} judges')

        team.assigned_judges.append(judge)
        db.session.commit()
        logger.info('Judge %s assigned to team %s', judge.username, team.name)
        return team


def unassign_judge(team_id, judge_id):
    with _assignment_lock:
        team = db.session.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError(team_id)

        team.assigned_judges = [j for j in team.assigned_judges if j.id != judge_id]
        db.session.commit()
        logger.info('Judge %s unassigned from team %s', judge_id, team.name)
        return team
