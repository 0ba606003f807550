"""
blueprints/student/routes.py - Student Blueprint
Handles the student's own records: dashboard, grading scale, semesters,
modules and profile. Every query is scoped to current_user.
"""

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required, current_user
from config import Config
from extensions import db
from errors import RecordError, ValidationFailed
from gpa import compute_gpa
from models import (
    Semester, Module, GradingScaleEntry, MODULE_TYPES, ATTEMPT_TYPES,
    MODULE_TYPE_LABELS, ATTEMPT_TYPE_LABELS, commit_changes, get_owned_or_404
)

# Initialize the blueprint for student-related routes
student_bp = Blueprint('student', __name__)


def _summarize_semesters(user):
    """
    Semesters (newest first) with their GPA and credit totals
    Uses one grading-scale read for all semesters
    """
    grade_points = user.get_grade_point_map()
    return [
        {
            'semester': semester,
            'gpa': compute_gpa(semester.modules, grade_points),
            'credits': semester.total_credits
        }
        for semester in user.get_semesters()
    ], grade_points


@student_bp.route('/dashboard')
@login_required
def dashboard():
    """
    Renders the Student Dashboard page.
    Current-semester GPA, cumulative GPA and every semester with its modules.
    """
    semester_rows, grade_points = _summarize_semesters(current_user)

    current_row = next((row for row in semester_rows if row['semester'].is_current), None)
    current_gpa = current_row['gpa'] if current_row else None
    cumulative_gpa = current_user.calculate_gpa()

    total_credits = sum(row['credits'] for row in semester_rows)
    module_count = sum(len(row['semester'].modules) for row in semester_rows)

    return render_template(
        'student/dashboard.html',
        profile=current_user.profile,
        semester_rows=semester_rows,
        grade_points=grade_points,
        current_row=current_row,
        current_gpa=current_gpa,
        cumulative_gpa=cumulative_gpa,
        total_credits=total_credits,
        module_count=module_count,
        has_grading_scale=bool(grade_points)
    )


# ============================================================================
# GRADING SCALE
# ============================================================================

@student_bp.route('/grading-scale', methods=['GET', 'POST'])
@login_required
def grading_scale():
    """
    View and replace the grade-label -> grade-point mapping.
    First visit is pre-filled with the default scale.
    """
    if request.method == 'POST':
        try:
            rows = GradingScaleEntry.parse_rows(
                request.form.getlist('label'),
                request.form.getlist('point_value'),
                request.form.getlist('min_percentage'),
                request.form.getlist('max_percentage')
            )
            GradingScaleEntry.replace_for_user(current_user, rows)
        except RecordError as e:
            flash(e.message, 'danger')
            return redirect(url_for('student.grading_scale'))

        current_app.logger.info('User %s saved a grading scale with %d grades', current_user.id, len(rows))
        flash('Grading scale saved successfully!', 'success')
        return redirect(url_for('student.dashboard'))

    entries = current_user.get_grading_scale()
    if entries:
        rows = [
            {
                'label': e.label,
                'point_value': f'{e.point_value:.2f}',
                'min_percentage': '' if e.min_percentage is None else f'{e.min_percentage.normalize():f}',
                'max_percentage': '' if e.max_percentage is None else f'{e.max_percentage.normalize():f}'
            }
            for e in entries
        ]
    else:
        rows = [
            {'label': label, 'point_value': points, 'min_percentage': low, 'max_percentage': high}
            for label, points, low, high in current_app.config['DEFAULT_GRADING_SCALE']
        ]

    return render_template(
        'student/grading_scale.html',
        rows=rows,
        is_setup=not entries,
        blank_rows=3
    )


# ============================================================================
# SEMESTERS
# ============================================================================

@student_bp.route('/semesters/new', methods=['GET', 'POST'])
@login_required
def add_semester():
    """
    Add a semester; optionally make it the current one
    """
    if request.method == 'POST':
        semester = Semester(user_id=current_user.id)
        try:
            semester.update_from(request.form)
            semester.save(make_current=bool(request.form.get('is_current')))
        except RecordError as e:
            flash(e.message, 'danger')
            return render_template('student/semester_form.html', semester=None, form=request.form), e.status_code

        current_app.logger.info('User %s added semester %s', current_user.id, semester.id)
        flash(f'Semester "{semester.display_name}" added successfully!', 'success')
        return redirect(url_for('student.dashboard'))

    form = {'academic_year': Config.auto_academic_year()}
    return render_template('student/semester_form.html', semester=None, form=form)


@student_bp.route('/semesters/<int:semester_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_semester(semester_id):
    """
    Edit a semester owned by the current user
    """
    semester = get_owned_or_404(Semester, semester_id, current_user)

    if request.method == 'POST':
        try:
            semester.update_from(request.form)
            semester.save(make_current=bool(request.form.get('is_current')))
        except RecordError as e:
            flash(e.message, 'danger')
            return render_template('student/semester_form.html', semester=semester, form=request.form), e.status_code

        flash(f'Semester "{semester.display_name}" updated.', 'success')
        return redirect(url_for('student.dashboard'))

    form = {
        'name': semester.name,
        'academic_year': semester.academic_year,
        'start_date': semester.start_date.isoformat() if semester.start_date else '',
        'end_date': semester.end_date.isoformat() if semester.end_date else '',
        'is_current': 'on' if semester.is_current else ''
    }
    return render_template('student/semester_form.html', semester=semester, form=form)


@student_bp.route('/semesters/<int:semester_id>/set-current', methods=['POST'])
@login_required
def set_current_semester(semester_id):
    """
    Mark a semester as the current one (clears every other)
    """
    semester = get_owned_or_404(Semester, semester_id, current_user)

    try:
        semester.save(make_current=True)
        flash(f'"{semester.display_name}" is now your current semester.', 'success')
    except RecordError as e:
        flash(e.message, 'danger')

    return redirect(url_for('student.dashboard'))


@student_bp.route('/semesters/<int:semester_id>/delete', methods=['POST'])
@login_required
def delete_semester(semester_id):
    """
    Delete a semester and all of its modules
    """
    semester = get_owned_or_404(Semester, semester_id, current_user)
    name = semester.display_name
    module_count = len(semester.modules)

    try:
        semester.delete()
        current_app.logger.info(
            'User %s deleted semester %s with %d modules', current_user.id, semester_id, module_count
        )
        flash(f'Semester "{name}" and its {module_count} modules deleted successfully.', 'success')
    except RecordError as e:
        flash(f'Error deleting semester: {e.message}', 'danger')

    return redirect(url_for('student.dashboard'))


# ============================================================================
# MODULES
# ============================================================================

def _render_module_form(semester, module, form, status=200):
    grade_labels = [entry.label for entry in current_user.get_grading_scale()]
    return render_template(
        'student/module_form.html',
        semester=semester,
        module=module,
        form=form,
        grade_labels=grade_labels,
        module_types=[(value, MODULE_TYPE_LABELS[value]) for value in MODULE_TYPES],
        attempt_types=[(value, ATTEMPT_TYPE_LABELS[value]) for value in ATTEMPT_TYPES]
    ), status


def _warn_if_unmapped(module):
    if module.grade not in current_user.get_grade_point_map():
        flash(f'Grade "{module.grade}" is not in your grading scale, '
              f'so {module.code} will not count toward your GPA.', 'warning')


@student_bp.route('/semesters/<int:semester_id>/modules/new', methods=['GET', 'POST'])
@login_required
def add_module(semester_id):
    """
    Add a module to one of the current user's semesters
    """
    semester = get_owned_or_404(Semester, semester_id, current_user)

    if request.method == 'POST':
        module = Module(user_id=current_user.id, semester_id=semester.id)
        try:
            module.update_from(request.form)
            db.session.add(module)
            commit_changes()
        except RecordError as e:
            flash(e.message, 'danger')
            return _render_module_form(semester, None, request.form, e.status_code)

        current_app.logger.info('User %s added module %s to semester %s', current_user.id, module.code, semester.id)
        flash(f'Module "{module.code}" added successfully!', 'success')
        _warn_if_unmapped(module)
        return redirect(url_for('student.dashboard'))

    if not current_user.has_grading_scale():
        flash('Set up your grading scale first so your grades can be counted.', 'info')

    return _render_module_form(semester, None, {'module_type': 'compulsory', 'attempt_type': 'first_attempt'})


@student_bp.route('/modules/<int:module_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_module(module_id):
    """
    Edit a module owned by the current user
    """
    module = get_owned_or_404(Module, module_id, current_user)

    if request.method == 'POST':
        try:
            module.update_from(request.form)
            commit_changes()
        except RecordError as e:
            flash(e.message, 'danger')
            return _render_module_form(module.semester, module, request.form, e.status_code)

        flash(f'Module "{module.code}" updated.', 'success')
        _warn_if_unmapped(module)
        return redirect(url_for('student.dashboard'))

    form = {
        'code': module.code,
        'name': module.name,
        'credit_hours': module.credit_hours,
        'grade': module.grade,
        'module_type': module.module_type,
        'attempt_type': module.attempt_type
    }
    return _render_module_form(module.semester, module, form)


@student_bp.route('/modules/<int:module_id>/delete', methods=['POST'])
@login_required
def delete_module(module_id):
    """
    Delete a module
    """
    module = get_owned_or_404(Module, module_id, current_user)
    code = module.code

    try:
        db.session.delete(module)
        commit_changes()
        flash(f'Module "{code}" deleted successfully.', 'success')
    except RecordError as e:
        flash(f'Error deleting module: {e.message}', 'danger')

    return redirect(url_for('student.dashboard'))


# ============================================================================
# PROFILE
# ============================================================================

@student_bp.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    """
    Renders the Profile page and applies profile updates.
    """
    student = current_user.profile

    if request.method == 'POST':
        try:
            student.update_from(request.form)
            commit_changes()
        except RecordError as e:
            flash(e.message, 'danger')
            return render_template('student/profile.html', profile=student, form=request.form), e.status_code

        flash('Profile updated successfully!', 'success')
        return redirect(url_for('student.profile'))

    form = {
        'full_name': student.full_name,
        'institution': student.institution,
        'program': student.program,
        'registration_number': student.registration_number,
        'phone_number': student.phone_number or '',
        'start_year': student.start_year,
        'end_year': student.end_year
    }
    return render_template('student/profile.html', profile=student, form=form)


@student_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    """
    Change the current user's password
    """
    current_password = request.form.get('current_password', '')
    new_password = request.form.get('new_password', '')
    confirm_password = request.form.get('confirm_password', '')

    try:
        # Validation
        if not all([current_password, new_password, confirm_password]):
            raise ValidationFailed('All fields are required.')

        if new_password != confirm_password:
            raise ValidationFailed('New passwords do not match.')

        min_length = current_app.config['MIN_PASSWORD_LENGTH']
        if len(new_password) < min_length:
            raise ValidationFailed(f'Password must be at least {min_length} characters long.')

        if not current_user.check_password(current_password):
            raise ValidationFailed('Current password is incorrect.')

        current_user.set_password(new_password)
        commit_changes()
        flash('Password updated successfully!', 'success')

    except RecordError as e:
        flash(e.message, 'danger')

    return redirect(url_for('student.profile'))
