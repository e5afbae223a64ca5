# models/criterion.py

from datetime import datetime

from extensions import db
from sqlalchemy import CheckConstraint

from .user import new_id


class Criterion(db.Model):
    __tablename__ = 'criteria'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500), nullable=False)
    max_score = db.Column(db.Integer, nullable=False)
    weight = db.Column(db.Float, nullable=False, default=1.0)
    marking_guide = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by_id = db.Column(db.String(32), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("max_score BETWEEN 1 AND 100", name="check_max_score"),
        CheckConstraint("weight >= 0 AND weight <= 1", name="check_weight"),
    )

    @property
    def usage_count(self):
        # One link per round using this criterion (round_links is a backref from RoundCriterion)
        return len(self.round_links)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'max_score': self.max_score,
            'weight': self.weight,
            'marking_guide': self.marking_guide,
            'is_active': self.is_active,
            'usage_count': self.usage_count,
        }
