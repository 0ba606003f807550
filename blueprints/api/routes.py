"""
blueprints/api/routes.py - JSON API Blueprint
Read endpoints for GPA, grading scale, semesters and the leaderboard.
Errors come back as {'success': False, 'error': ..., 'kind': ...}.
"""

from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from errors import Unauthorized
from gpa import compute_gpa
from models import Semester, build_leaderboard, get_owned_or_404

api_bp = Blueprint('api', __name__)


def _gpa(value):
    """Decimal GPA as a fixed 2-place string"""
    return f'{value:.2f}'


@api_bp.route('/gpa')
@login_required
def gpa():
    """
    GPA of the current user
    ?semester_id= restricts it to one semester, otherwise cumulative
    """
    semester_id = request.args.get('semester_id', type=int)
    if semester_id is not None:
        get_owned_or_404(Semester, semester_id, current_user)

    return jsonify({
        'success': True,
        'semester_id': semester_id,
        'gpa': _gpa(current_user.calculate_gpa(semester_id))
    })


@api_bp.route('/grading-scale')
@login_required
def grading_scale():
    """The current user's grading scale, highest grade point first"""
    entries = [
        {
            'label': entry.label,
            'point_value': f'{entry.point_value:.2f}',
            'min_percentage': None if entry.min_percentage is None else f'{entry.min_percentage:.2f}',
            'max_percentage': None if entry.max_percentage is None else f'{entry.max_percentage:.2f}'
        }
        for entry in current_user.get_grading_scale()
    ]
    return jsonify({'success': True, 'grading_scale': entries, 'count': len(entries)})


@api_bp.route('/semesters')
@login_required
def semesters():
    """Semesters, newest first, with GPA and credit totals"""
    grade_points = current_user.get_grade_point_map()
    data = []
    for semester in current_user.get_semesters():
        data.append({
            'id': semester.id,
            'name': semester.name,
            'academic_year': semester.academic_year,
            'start_date': semester.start_date.isoformat() if semester.start_date else None,
            'end_date': semester.end_date.isoformat() if semester.end_date else None,
            'is_current': semester.is_current,
            'module_count': len(semester.modules),
            'credits': semester.total_credits,
            'gpa': _gpa(compute_gpa(semester.modules, grade_points))
        })
    return jsonify({'success': True, 'semesters': data, 'count': len(data)})


@api_bp.route('/leaderboard')
@login_required
def leaderboard():
    """
    Leaderboard of the viewer's institution and program
    Only the viewer's own cohort may be requested.
    """
    profile = current_user.profile
    institution = request.args.get('institution', profile.institution)
    program = request.args.get('program', profile.program)

    if (institution, program) != (profile.institution, profile.program):
        raise Unauthorized('You can only view the leaderboard of your own institution and program.')

    board = build_leaderboard(
        institution, program,
        page=request.args.get('page', 1, type=int),
        per_page=current_app.config['LEADERBOARD_PER_PAGE']
    )

    return jsonify({
        'success': True,
        'institution': institution,
        'program': program,
        'page': board['page'],
        'total_pages': board['total_pages'],
        'total': board['total'],
        'entries': [
            {
                'rank': entry['rank'],
                'full_name': entry['full_name'],
                'registration_number': entry['registration_number'],
                'gpa': _gpa(entry['gpa']),
                'is_me': entry['user_id'] == current_user.id
            }
            for entry in board['entries']
        ]
    })
