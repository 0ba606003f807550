"""Shared fixtures: an isolated app per test and helpers to create records."""

from decimal import Decimal

import pytest

from app import create_app
from extensions import db
from models import User, Profile, GradingScaleEntry, Semester, Module

PASSWORD = 'secret123'

SIMPLE_SCALE = {'A': '4.00', 'B': '3.00', 'C': '2.00', 'F': '0.00'}


class RecordFactory:
    """Creates rows through the models. Needs an active app context."""

    def user(self, email='student@example.com', registration_number='REG/001',
             full_name='Test Student', institution='Test University',
             program='BSc Computer Science', scale=SIMPLE_SCALE):
        user = User(email=email)
        user.set_password(PASSWORD)
        user.profile = Profile(
            full_name=full_name,
            registration_number=registration_number,
            institution=institution,
            program=program,
            start_year=2022,
            end_year=2026
        )
        db.session.add(user)
        db.session.flush()

        for label, points in (scale or {}).items():
            db.session.add(GradingScaleEntry(user_id=user.id, label=label, point_value=Decimal(points)))

        db.session.commit()
        return user

    def semester(self, user, name='Semester 1', academic_year='2024/2025', is_current=False):
        semester = Semester(user_id=user.id, name=name, academic_year=academic_year)
        semester.save(make_current=is_current)
        return semester

    def module(self, semester, code='CS101', credit_hours=3, grade='A',
               attempt_type='first_attempt', module_type='compulsory'):
        module = Module(
            user_id=semester.user_id,
            semester_id=semester.id,
            code=code,
            name=f'{code} Module',
            credit_hours=credit_hours,
            grade=grade,
            module_type=module_type,
            attempt_type=attempt_type
        )
        db.session.add(module)
        db.session.commit()
        return module


@pytest.fixture
def app():
    """Fresh application with an empty in-memory database"""
    app = create_app('testing')
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Active app context for tests that talk to the models directly"""
    with app.app_context():
        yield


@pytest.fixture
def records():
    return RecordFactory()


@pytest.fixture
def login(client):
    """Log the test client in as the given user"""
    def _login(email='student@example.com', password=PASSWORD):
        return client.post('/auth/login', data={'email': email, 'password': password})
    return _login
