"""
app.py - Application Factory
Entry point for the UniTrack Flask application.
Uses the Application Factory pattern for modularity and testing.
"""

import logging

import click
from flask import Flask, render_template, redirect, url_for, request, jsonify, flash
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from config import config
from errors import RecordError, StoreUnavailable
from extensions import db, migrate, login_manager, bcrypt


def create_app(config_name='development'):
    """
    Application Factory Function

    Args:
        config_name (str): Configuration to use ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration from config.py based on environment
    config_class = config[config_name]
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)

    # Configure Flask-Login
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'info'

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login session management"""
        from models import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        """JSON 401 for the API, login redirect for pages"""
        if request.blueprint == 'api':
            return jsonify({'success': False, 'error': 'Authentication required', 'kind': 'unauthenticated'}), 401
        flash(login_manager.login_message, login_manager.login_message_category)
        return redirect(url_for(login_manager.login_view, next=request.path))

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # Import models so Flask-Migrate can detect them
    with app.app_context():
        import models  # noqa: F401

    app.logger.info('UniTrack started with %s configuration', config_name)
    return app


def configure_logging(app):
    """
    Set the Flask logger level from LOG_LEVEL
    """
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    app.logger.setLevel(level)


def register_blueprints(app):
    """
    Register all application blueprints (modular route handlers)
    """
    from blueprints.auth.routes import auth_bp
    from blueprints.student.routes import student_bp
    from blueprints.leaderboard.routes import leaderboard_bp
    from blueprints.transcript.routes import transcript_bp
    from blueprints.api.routes import api_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(student_bp, url_prefix='/student')
    app.register_blueprint(leaderboard_bp, url_prefix='/leaderboard')
    app.register_blueprint(transcript_bp, url_prefix='/transcript')
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.route('/')
    def index():
        """Landing page; signed-in students go straight to the dashboard"""
        if current_user.is_authenticated:
            return redirect(url_for('student.dashboard'))
        return render_template('index.html')


def register_error_handlers(app):
    """
    Register custom error handlers for common HTTP errors and store failures
    """
    def wants_json():
        # Unrouted /api/ URLs have no blueprint
        return request.blueprint == 'api' or request.path.startswith('/api/')

    @app.errorhandler(RecordError)
    def record_error(error):
        db.session.rollback()
        app.logger.warning('%s: %s (%s %s)', error.kind, error.message, request.method, request.path)
        if wants_json():
            return jsonify(error.to_dict()), error.status_code
        return render_template('errors/error.html', error=error), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def database_unavailable(error):
        app.logger.error('Database error: %s', error)
        return record_error(StoreUnavailable())

    @app.errorhandler(404)
    def not_found(error):
        if wants_json():
            return jsonify({'success': False, 'error': 'Not found', 'kind': 'not_found'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()  # Rollback any failed database transactions
        if wants_json():
            return jsonify({'success': False, 'error': 'Internal server error', 'kind': 'internal'}), 500
        return render_template('errors/500.html'), 500

    @app.errorhandler(403)
    def forbidden(error):
        if wants_json():
            return jsonify({'success': False, 'error': 'Forbidden', 'kind': 'unauthorized'}), 403
        return render_template('errors/403.html'), 403


def register_commands(app):
    """
    Flask CLI commands: flask seed-demo
    """
    @app.cli.command('seed-demo')
    @click.option('--reset', is_flag=True, help='Drop and recreate all tables first.')
    def seed_demo(reset):
        """Populate the database with demo students and records."""
        from seed_data import seed_demo_data

        if reset:
            db.drop_all()
        db.create_all()
        summary = seed_demo_data()
        click.echo(f"Created {summary['users']} users, {summary['semesters']} semesters "
                   f"and {summary['modules']} modules.")


# Run the application
if __name__ == '__main__':
    app = create_app('development')

    app.run(
        host='0.0.0.0',
        port=5000,
        debug=True
    )
