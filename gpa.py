"""
gpa.py - GPA Aggregation
Credit-weighted GPA computation and leaderboard ranking.
Pure functions over rows that were already fetched, so they can be used
by models, routes and tests without touching the database.
"""

from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP


DROPPED = 'dropped'
TWO_PLACES = Decimal('0.01')
ZERO_GPA = Decimal('0.00')

# Lightweight row shape accepted by compute_gpa (ORM objects work too)
GradedModule = namedtuple('GradedModule', ['credit_hours', 'grade', 'attempt_type'])


def to_decimal(value):
    """Convert a grade-point value to Decimal without binary float artifacts"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_gpa(modules, grade_points):
    """
    Calculate a credit-weighted GPA

    Args:
        modules: Iterable of objects with credit_hours, grade and attempt_type
        grade_points: Dict mapping grade label -> grade-point value

    Returns:
        Decimal: GPA rounded half away from zero to 2 places.
        Exactly 0.00 when no module carries resolvable credit hours.
    """
    total_points = Decimal('0')
    total_credits = 0

    for module in modules:
        # Dropped attempts count for nothing, in either direction
        if module.attempt_type == DROPPED:
            continue

        point_value = grade_points.get(module.grade)
        if point_value is None:
            # Unmapped grade labels are tolerated and skipped
            continue

        total_points += to_decimal(point_value) * module.credit_hours
        total_credits += module.credit_hours

    if total_credits == 0:
        return ZERO_GPA

    return (total_points / total_credits).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def total_credit_hours(modules):
    """Sum credit hours of all modules that were not dropped"""
    return sum(m.credit_hours for m in modules if m.attempt_type != DROPPED)


def rank_by_gpa(entries):
    """
    Sort leaderboard entries and assign ranks

    Entries are dicts with at least 'gpa', 'full_name' and
    'registration_number'. Sorted by GPA descending, then name and
    registration number ascending. Equal GPAs share a rank (1, 2, 2, 4).

    Args:
        entries: List of entry dicts

    Returns:
        list: New list of the same dicts, each with a 'rank' key
    """
    ordered = sorted(
        entries,
        key=lambda e: (-e['gpa'], e['full_name'].lower(), e['registration_number'])
    )

    previous_gpa = None
    rank = 0
    for position, entry in enumerate(ordered, start=1):
        if entry['gpa'] != previous_gpa:
            rank = position
            previous_gpa = entry['gpa']
        entry['rank'] = rank

    return ordered


def paginate(items, page, per_page):
    """
    Slice an already sorted list into a page

    Returns:
        tuple: (page_items, total_pages, page) with page clamped to range
    """
    total_pages = max(1, (len(items) + per_page - 1) // per_page)  # Ceiling division
    page = min(max(page, 1), total_pages)
    start_idx = (page - 1) * per_page
    return items[start_idx:start_idx + per_page], total_pages, page
