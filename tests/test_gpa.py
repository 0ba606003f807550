"""Tests for the pure GPA aggregation and ranking helpers."""

from decimal import Decimal

import pytest

from gpa import GradedModule, compute_gpa, total_credit_hours, rank_by_gpa, paginate

SCALE = {
    'A+': Decimal('4.00'),
    'A': Decimal('4.00'),
    'A-': Decimal('3.70'),
    'B+': Decimal('3.30'),
    'B': Decimal('3.00'),
    'C': Decimal('2.00'),
}


def mod(credit_hours, grade, attempt_type='first_attempt'):
    return GradedModule(credit_hours, grade, attempt_type)


class TestComputeGpa:
    """Tests for the credit-weighted GPA."""

    def test_weighted_average(self):
        """3cr A- (3.7) + 4cr B+ (3.3) = 24.3 / 7 -> 3.47."""
        assert compute_gpa([mod(3, 'A-'), mod(4, 'B+')], SCALE) == Decimal('3.47')

    def test_mixed_grades_rounded_half_up(self):
        """3cr A + 4cr B = 24 / 7 = 3.428... -> 3.43."""
        assert compute_gpa([mod(3, 'A'), mod(4, 'B')], SCALE) == Decimal('3.43')

    def test_single_module(self):
        assert compute_gpa([mod(3, 'A+')], SCALE) == Decimal('4.00')

    def test_no_modules_is_zero(self):
        assert compute_gpa([], SCALE) == Decimal('0.00')

    def test_all_dropped_is_zero(self):
        modules = [mod(3, 'A', 'dropped'), mod(4, 'B', 'dropped')]
        assert compute_gpa(modules, SCALE) == Decimal('0.00')

    def test_empty_scale_is_zero(self):
        assert compute_gpa([mod(3, 'A'), mod(2, 'B')], {}) == Decimal('0.00')

    def test_dropped_module_does_not_change_gpa(self):
        base = [mod(3, 'A'), mod(4, 'B')]
        with_dropped = base + [mod(6, 'C', 'dropped')]
        assert compute_gpa(with_dropped, SCALE) == compute_gpa(base, SCALE)

    def test_unmapped_grade_is_skipped(self):
        base = [mod(3, 'A'), mod(4, 'B')]
        with_unmapped = base + [mod(5, 'Z')]
        assert compute_gpa(with_unmapped, SCALE) == compute_gpa(base, SCALE)

    def test_repeat_attempt_counts(self):
        modules = [mod(3, 'A'), mod(3, 'C', 'repeat')]
        assert compute_gpa(modules, SCALE) == Decimal('3.00')

    def test_order_does_not_matter(self):
        modules = [mod(3, 'A'), mod(4, 'B'), mod(2, 'C'), mod(1, 'A-')]
        assert compute_gpa(modules, SCALE) == compute_gpa(list(reversed(modules)), SCALE)

    def test_rounds_half_up(self):
        """1cr 3.32 + 1cr 3.33 = 3.325 -> 3.33, where banker's rounding gives 3.32."""
        scale = {'X': Decimal('3.32'), 'Y': Decimal('3.33')}
        assert compute_gpa([mod(1, 'X'), mod(1, 'Y')], scale) == Decimal('3.33')

    def test_rounds_two_point_five_up(self):
        """1cr 2.00 + 1cr 2.01 = 2.005 -> 2.01."""
        scale = {'X': Decimal('2.00'), 'Y': Decimal('2.01')}
        assert compute_gpa([mod(1, 'X'), mod(1, 'Y')], scale) == Decimal('2.01')

    def test_float_grade_points_are_exact(self):
        """Float inputs go through str() so 0.1-style artifacts do not leak."""
        scale = {'A': 4.0, 'B': 3.3}
        assert compute_gpa([mod(1, 'A'), mod(1, 'B')], scale) == Decimal('3.65')

    def test_result_has_two_places(self):
        result = compute_gpa([mod(3, 'A')], SCALE)
        assert result.as_tuple().exponent == -2


class TestTotalCreditHours:
    """Tests for credit totals."""

    def test_excludes_dropped(self):
        modules = [mod(3, 'A'), mod(4, 'B', 'dropped'), mod(2, 'Z')]
        assert total_credit_hours(modules) == 5

    def test_empty(self):
        assert total_credit_hours([]) == 0


def entry(name, gpa, reg=None):
    return {'full_name': name, 'gpa': Decimal(gpa), 'registration_number': reg or name.upper()}


class TestRankByGpa:
    """Tests for leaderboard ordering and ranks."""

    def test_sorted_by_gpa_descending(self):
        ranked = rank_by_gpa([entry('Cara', '2.10'), entry('Ann', '3.95'), entry('Ben', '3.80')])
        assert [e['gpa'] for e in ranked] == [Decimal('3.95'), Decimal('3.80'), Decimal('2.10')]
        assert [e['rank'] for e in ranked] == [1, 2, 3]

    def test_ties_share_rank_and_skip(self):
        ranked = rank_by_gpa([
            entry('Dan', '3.00'), entry('Ann', '3.50'), entry('Ben', '3.00'), entry('Cara', '2.00')
        ])
        assert [(e['full_name'], e['rank']) for e in ranked] == [
            ('Ann', 1), ('Ben', 2), ('Dan', 2), ('Cara', 4)
        ]

    def test_ties_broken_by_name_then_registration(self):
        ranked = rank_by_gpa([
            entry('sam', '3.00', 'R2'), entry('Sam', '3.00', 'R1'), entry('Alex', '3.00', 'R9')
        ])
        assert [e['registration_number'] for e in ranked] == ['R9', 'R1', 'R2']

    def test_empty(self):
        assert rank_by_gpa([]) == []


class TestPaginate:
    """Tests for slicing ranked lists."""

    def test_first_page(self):
        items, total_pages, page = paginate(list(range(25)), 1, 10)
        assert items == list(range(10))
        assert total_pages == 3
        assert page == 1

    def test_last_partial_page(self):
        items, total_pages, page = paginate(list(range(25)), 3, 10)
        assert items == [20, 21, 22, 23, 24]

    @pytest.mark.parametrize('requested, expected', [(0, 1), (-3, 1), (99, 3)])
    def test_page_is_clamped(self, requested, expected):
        _, _, page = paginate(list(range(25)), requested, 10)
        assert page == expected

    def test_empty_list_has_one_page(self):
        items, total_pages, page = paginate([], 1, 10)
        assert items == []
        assert total_pages == 1
        assert page == 1
