"""
blueprints/leaderboard/routes.py - Leaderboard Blueprint
Ranks students of the viewer's institution and program by cumulative GPA.
"""

from flask import Blueprint, render_template, request, current_app
from flask_login import login_required, current_user
from models import build_leaderboard

leaderboard_bp = Blueprint('leaderboard', __name__)


def page_window(page, total_pages):
    """
    Page numbers to show in the pager, with '...' gaps
    """
    if total_pages <= 7:
        return list(range(1, total_pages + 1))
    if page <= 4:
        return list(range(1, 6)) + ['...', total_pages]
    if page >= total_pages - 3:
        return [1, '...'] + list(range(total_pages - 4, total_pages + 1))
    return [1, '...'] + list(range(page - 1, page + 2)) + ['...', total_pages]


@leaderboard_bp.route('/')
@login_required
def index():
    """
    Leaderboard page
    Supports ?page= for pagination over the fully ranked list.
    """
    profile = current_user.profile
    page = request.args.get('page', 1, type=int)
    per_page = current_app.config['LEADERBOARD_PER_PAGE']

    board = build_leaderboard(profile.institution, profile.program, page=page, per_page=per_page)

    return render_template(
        'leaderboard/leaderboard.html',
        profile=profile,
        board=board,
        page_range=page_window(board['page'], board['total_pages']),
        has_prev=board['page'] > 1,
        has_next=board['page'] < board['total_pages']
    )
