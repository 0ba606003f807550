"""Tests for the JSON API."""

import pytest
from sqlalchemy.exc import ProgrammingError

from extensions import db
from models import Semester


@pytest.fixture
def api_student(app, records, login):
    """Logged-in student with two semesters; returns their ids"""
    with app.app_context():
        user = records.user(full_name='Api Student')
        first = records.semester(user, 'Semester 1')
        records.module(first, 'CS101', credit_hours=3, grade='A')
        records.module(first, 'CS102', credit_hours=4, grade='B')
        second = records.semester(user, 'Semester 2', is_current=True)
        records.module(second, 'CS201', credit_hours=2, grade='C')

        peer = records.user('peer@example.com', 'REG/002', full_name='Peer Student')
        records.module(records.semester(peer), 'CS101', credit_hours=3, grade='A')

        ids = {'first': first.id, 'second': second.id}
    login()
    return ids


class TestAuthentication:
    """API endpoints answer 401 JSON instead of redirecting."""

    @pytest.mark.parametrize('path', ['/api/gpa', '/api/grading-scale', '/api/semesters', '/api/leaderboard'])
    def test_requires_login(self, client, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.get_json() == {
            'success': False, 'error': 'Authentication required', 'kind': 'unauthenticated'
        }


class TestGpaEndpoint:
    """Tests for /api/gpa."""

    def test_cumulative(self, client, api_student):
        data = client.get('/api/gpa').get_json()
        assert data == {'success': True, 'semester_id': None, 'gpa': '3.11'}

    def test_single_semester(self, client, api_student):
        data = client.get(f"/api/gpa?semester_id={api_student['first']}").get_json()
        assert data['gpa'] == '3.43'
        assert data['semester_id'] == api_student['first']

    def test_unknown_semester(self, client, api_student):
        response = client.get('/api/gpa?semester_id=9999')
        assert response.status_code == 404
        assert response.get_json()['kind'] == 'not_found'

    def test_other_students_semester(self, app, client, api_student):
        with app.app_context():
            foreign_id = Semester.query.filter(
                Semester.id.notin_([api_student['first'], api_student['second']])
            ).first().id

        response = client.get(f'/api/gpa?semester_id={foreign_id}')
        assert response.status_code == 403
        assert response.get_json() == {
            'success': False,
            'error': 'You do not have access to this record.',
            'kind': 'unauthorized'
        }


class TestGradingScaleEndpoint:
    """Tests for /api/grading-scale."""

    def test_lists_scale(self, client, api_student):
        data = client.get('/api/grading-scale').get_json()
        assert data['success'] is True
        assert data['count'] == 4
        assert data['grading_scale'][0] == {
            'label': 'A', 'point_value': '4.00', 'min_percentage': None, 'max_percentage': None
        }
        assert [e['label'] for e in data['grading_scale']] == ['A', 'B', 'C', 'F']


class TestSemestersEndpoint:
    """Tests for /api/semesters."""

    def test_lists_semesters_newest_first(self, client, api_student):
        data = client.get('/api/semesters').get_json()

        assert data['count'] == 2
        newest, oldest = data['semesters']
        assert newest['name'] == 'Semester 2'
        assert newest['is_current'] is True
        assert newest['gpa'] == '2.00'
        assert oldest['is_current'] is False
        assert oldest['gpa'] == '3.43'
        assert oldest['credits'] == 7
        assert oldest['module_count'] == 2


class TestLeaderboardEndpoint:
    """Tests for /api/leaderboard."""

    def test_own_cohort(self, client, api_student):
        data = client.get('/api/leaderboard').get_json()

        assert data['total'] == 2
        assert data['page'] == 1
        assert [(e['rank'], e['full_name'], e['gpa']) for e in data['entries']] == [
            (1, 'Peer Student', '4.00'), (2, 'Api Student', '3.11')
        ]
        assert [e['is_me'] for e in data['entries']] == [False, True]

    def test_other_cohort_is_unauthorized(self, client, api_student):
        response = client.get('/api/leaderboard?program=BA%20History')
        assert response.status_code == 403
        assert response.get_json()['kind'] == 'unauthorized'

    def test_explicit_own_cohort_is_allowed(self, client, api_student):
        response = client.get('/api/leaderboard?institution=Test%20University&program=BSc%20Computer%20Science')
        assert response.status_code == 200


class TestStoreUnavailable:
    """Database failures surface as 503 store_unavailable."""

    def test_missing_tables(self, app, client, api_student):
        with app.app_context():
            db.session.execute(db.text('DROP TABLE module'))
            db.session.commit()

        response = client.get('/api/gpa')
        assert response.status_code == 503
        assert response.get_json()['kind'] == 'store_unavailable'

    @pytest.fixture
    def failing_read(self, monkeypatch):
        def calculate_gpa(user, semester_id=None):
            raise ProgrammingError('SELECT module.grade FROM module', {}, Exception('no such column'))

        monkeypatch.setattr('models.User.calculate_gpa', calculate_gpa)

    def test_failed_read(self, client, api_student, failing_read):
        response = client.get('/api/gpa')
        assert response.status_code == 503
        assert response.get_json() == {
            'success': False,
            'error': 'The record store is unavailable. Please try again.',
            'kind': 'store_unavailable'
        }

    def test_failed_read_html(self, client, api_student, failing_read):
        assert client.get('/student/dashboard').status_code == 503
