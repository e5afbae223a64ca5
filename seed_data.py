# seed_data.py
# Demo data: one admin, five judges, six teams, four criteria and two rounds.
# Run with `python seed_data.py` or `flask --app app seed`.

import logging
from datetime import datetime, timedelta

from extensions import db
from models import Criterion, Member, Role, Round, Score, Team, User

logger = logging.getLogger(__name__)

JUDGES = [
    ('200001', 'alice_judge', 'Acme Labs', 'CTO', 12),
    ('200002', 'bob_judge', 'Northwind', 'Lead Engineer', 8),
    ('200003', 'carol_judge', 'Globex', 'Product Manager', 6),
    ('200004', 'dave_judge', 'Initech', 'Architect', 15),
    ('200005', 'erin_judge', 'Umbrella', 'Researcher', 4),
]

TEAMS = [
    (1, 'Byte Me', 'Campus Food Finder'),
    (2, 'Null Pointers', 'Study Group Matcher'),
    (3, 'Stack Smashers', 'Accessible Maps'),
    (4, 'Off By One', 'Energy Usage Tracker'),
    (5, 'Segfault Squad', 'Lab Booking System'),
    (6, 'Merge Conflict', 'Peer Tutoring Hub'),
]

CRITERIA = [
    ('Innovation', 'Originality of the idea and the approach taken', 25, 1.0),
    ('Technical Quality', 'Soundness of the architecture and the code', 30, 1.0),
    ('Presentation', 'Clarity of the pitch and the live demo', 20, 0.5),
    ('Impact', 'Usefulness of the project for its target users', 25, 0.8),
]


def clear_data():
    # Reverse dependency order
    db.session.query(Score).delete()
    for team in Team.query.all():
        team.assigned_judges = []
    db.session.query(Member).delete()
    db.session.query(Team).delete()
    for round_ in Round.query.all():
        db.session.delete(round_)
    db.session.query(Criterion).delete()
    db.session.query(User).delete()
    db.session.commit()


def seed_demo_data():
    clear_data()
    logger.info('Old data cleared')

    try:
        admin = User(code='000001', username='admin', email='admin@example.com', role=Role.ADMIN.value)
        db.session.add(admin)
        judges = [
            User(code=code, username=username, email=f'{username}@example.com', role=Role.JUDGE.value,
                 company=company, position=position, experience=experience)
            for code, username, company, position, experience in JUDGES
        ]
        db.session.add_all(judges)
        db.session.flush()

        for number, name, title in TEAMS:
            members = [
                Member(position=i, name=f'{name} Student {i + 1}',
                       student_number=f'{number:02d}{i:06d}',
                       email=f'team{number}.student{i + 1}@uni.example.com',
                       role='leader' if i == 0 else 'member')
                for i in range(3 + number % 2)
            ]
            db.session.add(Team(number=number, name=name, project_title=title,
                                project_description=f'{title} built by {name}',
                                members=members, created_by_id=admin.id))

        criteria = [
            Criterion(name=name, description=description, max_score=max_score, weight=weight,
                      marking_guide=f'Score 0-{max_score}. {description}.', created_by_id=admin.id)
            for name, description, max_score, weight in CRITERIA
        ]
        db.session.add_all(criteria)

        now = datetime.utcnow()
        first = Round(name='Preliminary Round', description='Initial project demos',
                      start_date=now - timedelta(days=7), end_date=now - timedelta(days=5),
                      is_open=False, created_by_id=admin.id)
        first.criteria = criteria[:3]
        final = Round(name='Final Round', description='Final pitches',
                      start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
                      created_by_id=admin.id)
        final.criteria = criteria
        db.session.add_all([first, final])
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Seeding failed')
        raise

    logger.info('Seeded %d judges, %d teams, %d criteria and 2 rounds',
                len(judges), len(TEAMS), len(criteria))


if __name__ == '__main__':
    from app import create_app

    app = create_app()
    with app.app_context():
        db.create_all()
        seed_demo_data()
