"""
blueprints/transcript/routes.py - Transcript Blueprint
Printable academic transcript and CSV download.
"""

import csv
import io
from datetime import datetime

from flask import Blueprint, render_template, make_response
from flask_login import login_required, current_user
from werkzeug.utils import secure_filename
from gpa import compute_gpa, total_credit_hours

transcript_bp = Blueprint('transcript', __name__)


def build_transcript(user):
    """
    Assemble everything the transcript shows

    Semesters are listed oldest first. Each module carries the grade point
    looked up in the user's scale (None when the grade is not mapped).

    Returns:
        dict: profile, semesters, cumulative_gpa, total_credits,
              grading_scale, generated_at
    """
    scale = user.get_grading_scale()
    grade_points = {entry.label: entry.point_value for entry in scale}

    semesters = []
    all_modules = []
    for semester in user.get_semesters(newest_first=False):
        modules = semester.modules
        all_modules.extend(modules)
        semesters.append({
            'semester': semester,
            'modules': [
                {'module': module, 'grade_point': grade_points.get(module.grade)}
                for module in modules
            ],
            'gpa': compute_gpa(modules, grade_points),
            'credits': total_credit_hours(modules)
        })

    return {
        'profile': user.profile,
        'semesters': semesters,
        'cumulative_gpa': compute_gpa(all_modules, grade_points),
        'total_credits': total_credit_hours(all_modules),
        'grading_scale': scale,
        'generated_at': datetime.utcnow()
    }


@transcript_bp.route('/')
@login_required
def view():
    """
    Printable transcript (use the browser's print / save as PDF)
    """
    transcript = build_transcript(current_user)
    return render_template('transcript/transcript.html', transcript=transcript)


@transcript_bp.route('/export.csv')
@login_required
def export_csv():
    """Export the transcript as CSV, one row per module"""
    transcript = build_transcript(current_user)
    profile = transcript['profile']

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['Student', profile.full_name])
    writer.writerow(['Registration Number', profile.registration_number])
    writer.writerow(['Institution', profile.institution])
    writer.writerow(['Program', profile.program])
    writer.writerow([])
    writer.writerow([
        'Semester', 'Academic Year', 'Module Code', 'Module Name', 'Type',
        'Attempt', 'Credit Hours', 'Grade', 'Grade Point'
    ])

    for row in transcript['semesters']:
        semester = row['semester']
        for item in row['modules']:
            module = item['module']
            grade_point = item['grade_point']
            writer.writerow([
                semester.name,
                semester.academic_year,
                module.code,
                module.name,
                module.module_type_label,
                module.attempt_type_label,
                module.credit_hours,
                module.grade,
                '' if grade_point is None else f'{grade_point:.2f}'
            ])
        writer.writerow([semester.name, semester.academic_year, '', 'Semester GPA', '', '', row['credits'], '', f"{row['gpa']:.2f}"])

    writer.writerow([])
    writer.writerow(['Cumulative GPA', f"{transcript['cumulative_gpa']:.2f}"])
    writer.writerow(['Total Credit Hours', transcript['total_credits']])

    filename = secure_filename(f"{profile.registration_number}_transcript.csv")
    response = make_response(output.getvalue())
    response.headers['Content-Disposition'] = f'attachment; filename={filename}'
    response.headers['Content-Type'] = 'text/csv'

    return response
