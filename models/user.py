# models/user.py

import enum
import uuid
from datetime import datetime

from extensions import db
from sqlalchemy import CheckConstraint


def new_id():
    return uuid.uuid4().hex


class Role(str, enum.Enum):
    ADMIN = 'admin'
    JUDGE = 'judge'


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    code = db.Column(db.String(12), unique=True, nullable=False)  # access code used to log in
    username = db.Column(db.String(30), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String, nullable=False, default=Role.JUDGE.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Judge profile
    company = db.Column(db.String(100), nullable=True)
    position = db.Column(db.String(100), nullable=True)
    experience = db.Column(db.Integer, nullable=True)

    last_login = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'judge')", name="check_role"),
        CheckConstraint("experience IS NULL OR experience BETWEEN 0 AND 50", name="check_experience"),
    )

    @property
    def is_judge(self):
        return self.role == Role.JUDGE.value

    @property
    def is_admin(self):
        return self.role == Role.ADMIN.value

    def to_dict(self):
        data = {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'is_active': self.is_active,
            'last_login': self.last_login.isoformat() if self.last_login else None,
        }
        if self.is_judge:
            data['judge_info'] = {
                'company': self.company,
                'position': self.position,
                'experience': self.experience,
            }
        return data
