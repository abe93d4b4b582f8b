import pytest

from grading import calculate_grade, calculate_total, calculate_percentage, GRADE_BANDS, LOWEST_GRADE


@pytest.mark.parametrize("marks, expected", [
    (100, "A1"),
    (90, "A1"),
    (89.9, "A2"),
    (80, "A2"),
    (79.5, "B1"),
    (70, "B1"),
    (60, "B2"),
    (59.99, "C1"),
    (50, "C1"),
    (40, "C2"),
    (39.9, "D"),
    (30, "D"),
    (29.9, "E"),
    (0, "E"),
    (-5, "E"),
])
def test_calculate_grade_bands(marks, expected):
    assert calculate_grade(marks) == expected


def test_calculate_grade_never_improves_as_marks_drop():
    ranking = [grade for _, grade in GRADE_BANDS] + [LOWEST_GRADE]
    previous_rank = 0
    marks = 100.0
    while marks >= 0:
        rank = ranking.index(calculate_grade(marks))
        assert rank >= previous_rank
        previous_rank = rank
        marks -= 0.25


def test_percentage_for_two_subjects():
    assert calculate_total([80, 60]) == 140
    assert calculate_percentage([80, 60]) == 70.0


def test_percentage_rounds_to_two_decimals():
    assert calculate_percentage([66, 67, 67.5]) == 66.83


def test_percentage_without_subjects_is_zero():
    assert calculate_percentage([]) == 0
    assert calculate_total([]) == 0
