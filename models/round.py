# models/round.py

from datetime import datetime

from extensions import db
from sqlalchemy import CheckConstraint, distinct, func
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list

from .user import new_id


class RoundCriterion(db.Model):
    """Ordered link between a round and one of its criteria."""
    __tablename__ = 'round_criteria'
    round_id = db.Column(db.String(32), db.ForeignKey('rounds.id', ondelete='CASCADE'), primary_key=True)
    criterion_id = db.Column(db.String(32), db.ForeignKey('criteria.id', ondelete='CASCADE'), primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    criterion = db.relationship('Criterion', backref=db.backref('round_links', lazy=True))

    def __init__(self, criterion=None, **kwargs):
        super().__init__(criterion=criterion, **kwargs)


class Round(db.Model):
    __tablename__ = 'rounds'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_open = db.Column(db.Boolean, nullable=False, default=True, index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    created_by_id = db.Column(db.String(32), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    criterion_links = db.relationship(
        'RoundCriterion',
        backref='round',
        order_by='RoundCriterion.position',
        collection_class=ordering_list('position'),
        cascade="all, delete-orphan"
    )
    # round.criteria = [c1, c2] rewrites the links in the given order
    criteria = association_proxy('criterion_links', 'criterion')

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="check_round_dates"),
    )

    # --- Values derived on read instead of stored counters ---

    @property
    def total_teams(self):
        from .team import Team
        return Team.query.filter_by(is_participating=True).count()

    @property
    def completed_evaluations(self):
        from .score import Score
        return db.session.query(func.count(distinct(Score.team_id))).filter(
            Score.round_id == self.id,
            Score.is_submitted.is_(True)
        ).scalar() or 0

    @property
    def completion_percentage(self):
        total = self.total_teams
        if total == 0:
            return 0
        return round(self.completed_evaluations / total * 100)

    @property
    def total_possible_score(self):
        return sum(c.max_score for c in self.criteria)

    def has_criterion(self, criterion_id):
        return any(link.criterion_id == criterion_id for link in self.criterion_links)

    def to_dict(self, with_stats=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'criteria': [
                {'id': c.id, 'name': c.name, 'max_score': c.max_score, 'weight': c.weight}
                for c in self.criteria
            ],
            'is_active': self.is_active,
            'is_open': self.is_open,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'total_possible_score': self.total_possible_score,
        }
        if with_stats:
            data['total_teams'] = self.total_teams
            data['completed_evaluations'] = self.completed_evaluations
            data['completion_percentage'] = self.completion_percentage
        return data
