# models/team.py

from datetime import datetime

from extensions import db
from sqlalchemy import CheckConstraint, UniqueConstraint

from .user import new_id

# Assignment edges: which judges evaluate which team
team_judges = db.Table('team_judges',
    db.Column('team_id', db.String(32), db.ForeignKey('teams.id', ondelete='CASCADE'), primary_key=True),
    db.Column('judge_id', db.String(32), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
)


class Team(db.Model):
    __tablename__ = 'teams'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    number = db.Column(db.Integer, unique=True, nullable=False)
    name = db.Column(db.String(100), unique=True, nullable=False)
    project_title = db.Column(db.String(200), nullable=False)
    project_description = db.Column(db.Text, nullable=True)
    is_participating = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by_id = db.Column(db.String(32), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    members = db.relationship('Member', backref='team', order_by='Member.position',
                              cascade="all, delete-orphan")
    assigned_judges = db.relationship(
        'User',
        secondary=team_judges,
        backref=db.backref('assigned_teams', lazy=True),
        lazy='select'
    )

    __table_args__ = (
        CheckConstraint("number BETWEEN 1 AND 15", name="check_team_number"),
    )

    @property
    def team_leader(self):
        for member in self.members:
            if member.role == 'leader':
                return member
        return self.members[0] if self.members else None

    @property
    def member_count(self):
        return len(self.members)

    @property
    def judge_ids(self):
        return [judge.id for judge in self.assigned_judges]

    def to_dict(self, with_members=True):
        data = {
            'id': self.id,
            'number': self.number,
            'name': self.name,
            'project_title': self.project_title,
            'project_description': self.project_description,
            'is_participating': self.is_participating,
            'assigned_judges': [
                {'id': j.id, 'username': j.username, 'email': j.email}
                for j in sorted(self.assigned_judges, key=lambda j: j.username)
            ],
            'member_count': self.member_count,
        }
        if with_members:
            data['members'] = [m.to_dict() for m in self.members]
        return data


class Member(db.Model):
    __tablename__ = 'members'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)
    student_number = db.Column(db.String(8), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(10), nullable=False, default='member')

    __table_args__ = (
        UniqueConstraint('team_id', 'student_number', name='unique_team_student'),
        CheckConstraint("role IN ('leader', 'member')", name="check_member_role"),
    )

    def to_dict(self):
        return {
            'name': self.name,
            'student_number': self.student_number,
            'email': self.email,
            'role': self.role,
        }
