# models/score.py

from datetime import datetime

from extensions import db
from sqlalchemy import CheckConstraint

from .user import new_id


class Score(db.Model):
    __tablename__ = 'scores'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    judge_id = db.Column(db.String(32), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False)
    round_id = db.Column(db.String(32), db.ForeignKey('rounds.id', ondelete='CASCADE'), nullable=False)
    criterion_id = db.Column(db.String(32), db.ForeignKey('criteria.id', ondelete='CASCADE'), nullable=False)
    value = db.Column(db.Float, nullable=False)
    comments = db.Column(db.String(1000), nullable=True)

    is_submitted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    submitted_at = db.Column(db.DateTime, nullable=True)

    # Audit trail: bumped by every modification, previous_score keeps the value it replaced
    version = db.Column(db.Integer, nullable=False, default=1)
    previous_score = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    judge = db.relationship('User', backref=db.backref('scores', lazy=True, cascade="all, delete-orphan"))
    team = db.relationship('Team', backref=db.backref('scores', lazy=True, cascade="all, delete-orphan"))
    round = db.relationship('Round', backref=db.backref('scores', lazy=True, cascade="all, delete-orphan"))
    criterion = db.relationship('Criterion')

    __table_args__ = (
        db.UniqueConstraint('judge_id', 'team_id', 'round_id', 'criterion_id', name='unique_score'),
        db.Index('ix_scores_team_round', 'team_id', 'round_id'),
        db.Index('ix_scores_judge_round', 'judge_id', 'round_id'),
        CheckConstraint("value >= 0", name="check_score"),
        CheckConstraint("version >= 1", name="check_score_version"),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'judge_id': self.judge_id,
            'team': {'id': self.team.id, 'name': self.team.name, 'number': self.team.number},
            'round_id': self.round_id,
            'criterion': {
                'id': self.criterion.id,
                'name': self.criterion.name,
                'max_score': self.criterion.max_score,
                'weight': self.criterion.weight,
            },
            'value': self.value,
            'comments': self.comments,
            'is_submitted': self.is_submitted,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'version': self.version,
            'previous_score': self.previous_score,
        }
