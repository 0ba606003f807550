"""
blueprints/auth/routes.py - Authentication Blueprint
Handles signup (account + academic profile), login and logout.
"""

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app
from flask_login import login_user, logout_user, login_required, current_user
from extensions import db
from errors import ValidationFailed, RecordError
from models import User, Profile, commit_changes

# Create blueprint
auth_bp = Blueprint('auth', __name__)


def _safe_next(next_page):
    """Only follow relative redirects inside this site"""
    if next_page and next_page.startswith('/') and not next_page.startswith('//'):
        return next_page
    return None


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    """
    Signup page
    Creates the login account and the academic profile in one transaction
    """
    if current_user.is_authenticated:
        return redirect(url_for('student.dashboard'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')
        confirm_password = request.form.get('confirm_password', '')

        try:
            # Validate account fields
            if not email or '@' not in email:
                raise ValidationFailed('Please enter a valid email address.')

            min_length = current_app.config['MIN_PASSWORD_LENGTH']
            if len(password) < min_length:
                raise ValidationFailed(f'Password must be at least {min_length} characters long.')

            if password != confirm_password:
                raise ValidationFailed('Passwords do not match.')

            if User.query.filter_by(email=email).first():
                raise ValidationFailed('An account with this email already exists.')

            # Validate profile before anything is added to the session
            profile = Profile()
            profile.update_from(request.form)

            user = User(email=email)
            user.set_password(password)
            profile.user = user

            db.session.add(user)
            commit_changes()

        except RecordError as e:
            flash(e.message, 'danger')
            return render_template('auth/register.html', form=request.form), e.status_code

        current_app.logger.info('Registered user %s (%s)', user.id, profile.registration_number)
        login_user(user)
        flash(f'Welcome, {profile.full_name}! Start by setting up your grading scale.', 'success')
        return redirect(url_for('student.grading_scale'))

    # GET request - show signup form
    return render_template('auth/register.html', form={})


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """
    Login page
    Uses email for authentication
    """
    # If already logged in, redirect to dashboard
    if current_user.is_authenticated:
        return redirect(url_for('student.dashboard'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        # Validate input
        if not email or not password:
            flash('Please enter both email and password.', 'danger')
            return render_template('auth/login.html', email=email), 400

        user = User.query.filter_by(email=email).first()

        if user is None or not user.check_password(password):
            current_app.logger.info('Failed login for %s', email)
            flash('Invalid email or password.', 'danger')
            return render_template('auth/login.html', email=email), 401

        # Login successful
        login_user(user, remember=bool(request.form.get('remember')))
        name = user.profile.full_name if user.profile else user.email
        flash(f'Welcome back, {name}!', 'success')

        # Redirect to requested page or dashboard
        next_page = _safe_next(request.args.get('next'))
        return redirect(next_page) if next_page else redirect(url_for('student.dashboard'))

    # GET request - show login form
    return render_template('auth/login.html', email='')


@auth_bp.route('/logout')
@login_required
def logout():
    """
    Logout current user
    """
    logout_user()
    flash('You have been logged out successfully.', 'success')
    return redirect(url_for('index'))
