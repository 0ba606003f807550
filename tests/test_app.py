"""Tests for the application factory, configuration and error pages."""

import logging
from datetime import date

import pytest

from app import create_app
from config import Config, ProductionConfig


class TestConfig:
    """Tests for configuration helpers."""

    @pytest.mark.parametrize('today, expected', [
        (date(2025, 8, 1), '2025/2026'),
        (date(2025, 12, 31), '2025/2026'),
        (date(2026, 1, 15), '2025/2026'),
        (date(2026, 7, 31), '2025/2026'),
    ])
    def test_auto_academic_year(self, today, expected):
        assert Config.auto_academic_year(today) == expected

    def test_default_scale_is_highest_first(self):
        points = [float(points) for _, points, _, _ in Config.DEFAULT_GRADING_SCALE]
        assert points == sorted(points, reverse=True)

    def test_production_requires_secret_key(self, monkeypatch):
        monkeypatch.delenv('SECRET_KEY', raising=False)
        with pytest.raises(ValueError):
            ProductionConfig.init_app(None)


class TestCreateApp:
    """Tests for create_app()."""

    def test_testing_config(self, app):
        assert app.config['TESTING'] is True
        assert app.config['SQLALCHEMY_DATABASE_URI'] == 'sqlite:///:memory:'
        assert app.logger.level == logging.WARNING

    def test_blueprints_registered(self, app):
        assert {'auth', 'student', 'leaderboard', 'transcript', 'api'} <= set(app.blueprints)

    def test_log_level_from_config(self, monkeypatch):
        monkeypatch.setattr('config.TestingConfig.LOG_LEVEL', 'ERROR')
        app = create_app('testing')
        assert app.logger.level == logging.ERROR


class TestErrorPages:
    """Tests for the HTML error handlers."""

    def test_404_page(self, client):
        response = client.get('/no-such-page')
        assert response.status_code == 404
        assert b'Page not found' in response.data

    def test_api_404_is_json(self, client):
        response = client.get('/api/no-such-endpoint')
        assert response.status_code == 404
        assert response.get_json()['success'] is False
