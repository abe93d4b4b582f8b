GRADE_BANDS = [
    (90, 'A1'),
    (80, 'A2'),
    (70, 'B1'),
    (60, 'B2'),
    (50, 'C1'),
    (40, 'C2'),
    (30, 'D'),
]
LOWEST_GRADE = 'E'
MAX_MARKS_PER_SUBJECT = 100


def calculate_grade(marks):
    """Map a numeric mark to its letter grade band."""
    for threshold, grade in GRADE_BANDS:
        if marks >= threshold:
            return grade
    return LOWEST_GRADE


def calculate_total(marks_list):
    return sum(float(marks) for marks in marks_list)


def calculate_percentage(marks_list):
    """
    Percentage over all subjects, each out of 100 marks.
    Returns 0 when there are no subjects.
    """
    marks_list = list(marks_list)
    if not marks_list:
        return 0
    total = calculate_total(marks_list)
    return round(total / (len(marks_list) * MAX_MARKS_PER_SUBJECT) * 100, 2)
