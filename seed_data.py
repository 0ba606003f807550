"""
seed_data.py - Populate Database with Demo Data
Creates sample students sharing a program (so the leaderboard has content),
each with a grading scale, semesters and graded modules.

Usage: flask --app app seed-demo [--reset]
   or: python seed_data.py
"""

import random
from datetime import date
from decimal import Decimal

from flask import current_app
from extensions import db
from models import User, Profile, GradingScaleEntry, Semester, Module

DEMO_PASSWORD = 'student123'

DEMO_STUDENTS = [
    {
        'email': 'nimali.perera@unitrack.edu',
        'full_name': 'Nimali Perera',
        'registration_number': 'CS/2022/001',
        'institution': 'University of Colombo',
        'program': 'BSc Computer Science',
        'start_year': 2022,
        'end_year': 2026
    },
    {
        'email': 'kasun.silva@unitrack.edu',
        'full_name': 'Kasun Silva',
        'registration_number': 'CS/2022/002',
        'institution': 'University of Colombo',
        'program': 'BSc Computer Science',
        'start_year': 2022,
        'end_year': 2026
    },
    {
        'email': 'amaya.fernando@unitrack.edu',
        'full_name': 'Amaya Fernando',
        'registration_number': 'CS/2022/003',
        'institution': 'University of Colombo',
        'program': 'BSc Computer Science',
        'start_year': 2022,
        'end_year': 2026
    },
    {
        'email': 'ravi.kumar@unitrack.edu',
        'full_name': 'Ravi Kumar',
        'registration_number': 'EE/2022/001',
        'institution': 'University of Colombo',
        'program': 'BSc Electrical Engineering',
        'start_year': 2022,
        'end_year': 2026
    }
]

# (semester name, academic year, start, end, modules)
# modules: (code, name, credit hours, module type)
DEMO_SEMESTERS = [
    ('Semester 1', '2022/2023', date(2022, 9, 1), date(2023, 1, 31), [
        ('CS1012', 'Programming Fundamentals', 3, 'compulsory'),
        ('MA1014', 'Discrete Mathematics', 4, 'compulsory'),
        ('EN1001', 'Academic English', 2, 'optional'),
    ]),
    ('Semester 2', '2022/2023', date(2023, 2, 15), date(2023, 7, 15), [
        ('CS1022', 'Data Structures', 3, 'compulsory'),
        ('CS1034', 'Computer Architecture', 4, 'compulsory'),
        ('MG1002', 'Principles of Management', 2, 'elective'),
    ]),
]


def seed_demo_data(seed=42):
    """
    Create demo students and their academic records

    Must run inside an application context with tables created.

    Args:
        seed: Random seed so grades are reproducible

    Returns:
        dict: Counts of created users, semesters and modules
    """
    rng = random.Random(seed)
    scale = current_app.config['DEFAULT_GRADING_SCALE']
    # Demo grades range from A+ to C
    grade_pool = [label for label, _, _, _ in scale[:8]]

    summary = {'users': 0, 'semesters': 0, 'modules': 0, 'skipped': 0}

    for data in DEMO_STUDENTS:
        if User.query.filter_by(email=data['email']).first():
            current_app.logger.info('Demo user %s already exists, skipping', data['email'])
            summary['skipped'] += 1
            continue

        user = User(email=data['email'])
        user.set_password(DEMO_PASSWORD)
        profile_data = {key: value for key, value in data.items() if key != 'email'}
        user.profile = Profile(**profile_data)
        db.session.add(user)
        db.session.flush()  # Get user.id

        for label, points, low, high in scale:
            db.session.add(GradingScaleEntry(
                user_id=user.id,
                label=label,
                point_value=Decimal(points),
                min_percentage=Decimal(low),
                max_percentage=Decimal(high)
            ))

        for index, (name, year, start, end, modules) in enumerate(DEMO_SEMESTERS):
            semester = Semester(
                user_id=user.id,
                name=name,
                academic_year=year,
                start_date=start,
                end_date=end,
                is_current=index == len(DEMO_SEMESTERS) - 1
            )
            db.session.add(semester)
            db.session.flush()  # Get semester.id
            summary['semesters'] += 1

            for code, module_name, credits, module_type in modules:
                db.session.add(Module(
                    user_id=user.id,
                    semester_id=semester.id,
                    code=code,
                    name=module_name,
                    credit_hours=credits,
                    grade=rng.choice(grade_pool),
                    module_type=module_type,
                    attempt_type='first_attempt'
                ))
                summary['modules'] += 1

        summary['users'] += 1

    db.session.commit()
    current_app.logger.info('Seeded demo data: %s', summary)
    return summary


if __name__ == '__main__':
    from app import create_app

    app = create_app('development')
    with app.app_context():
        db.create_all()
        result = seed_demo_data()
        print(f"Created {result['users']} users, {result['semesters']} semesters "
              f"and {result['modules']} modules.")
        print(f"Login with any demo email and password: {DEMO_PASSWORD}")
