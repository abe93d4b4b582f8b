from database import get_db_connection
from werkzeug.security import check_password_hash
from grading import calculate_grade, calculate_total, calculate_percentage
import sqlite3


class User:
    def __init__(self, id, email, password, role, name):
        self.id = id
        self.email = email
        self.password = password
        self.role = role
        self.name = name

    @staticmethod
    def _from_row(user):
        return User(
            id=user['id'],
            email=user['email'],
            password=user['password'],
            role=user['role'],
            name=user['name']
        )

    @staticmethod
    def get_by_email(email):
        conn = get_db_connection()
        user = conn.execute(
            'SELECT * FROM users WHERE email = ?', (email,)
        ).fetchone()
        conn.close()

        if user:
            return User._from_row(user)
        return None

    @staticmethod
    def get_by_id(user_id):
        conn = get_db_connection()
        user = conn.execute(
            'SELECT * FROM users WHERE id = ?', (user_id,)
        ).fetchone()
        conn.close()

        if user:
            return User._from_row(user)
        return None

    def verify_password(self, password):
        return check_password_hash(self.password, password)


class Class:
    @staticmethod
    def create_class(name):
        name = (name or '').strip()
        if not name:
            return None, "Class name is required"

        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute('INSERT INTO classes (name) VALUES (?)', (name,))
            class_id = cursor.lastrowid
            conn.commit()
            conn.close()
            return class_id, "Class created successfully"
        except sqlite3.IntegrityError:
            conn.close()
            return None, f"Class '{name}' already exists"

    @staticmethod
    def delete_class(class_id):
        """Delete a class; its students, results and access logs go with it."""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM classes WHERE id = ?', (class_id,))

            if cursor.rowcount == 0:
                conn.close()
                return False, "Class not found"

            conn.commit()
            conn.close()
            return True, "Class deleted successfully"
        except sqlite3.Error as e:
            conn.rollback()
            conn.close()
            return False, f"Error deleting class: {str(e)}"

    @staticmethod
    def get_all_classes():
        conn = get_db_connection()
        classes = conn.execute('SELECT * FROM classes ORDER BY name').fetchall()
        conn.close()
        return classes

    @staticmethod
    def get_class_by_id(class_id):
        conn = get_db_connection()
        class_data = conn.execute(
            'SELECT * FROM classes WHERE id = ?', (class_id,)
        ).fetchone()
        conn.close()
        return class_data


class Subject:
    @staticmethod
    def upsert(name):
        conn = get_db_connection()
        try:
            conn.execute(
                'INSERT INTO subjects (name) VALUES (?) ON CONFLICT(name) DO NOTHING',
                (name,)
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def get_by_names(names):
        """Map each existing subject name to its id."""
        names = list(names)
        if not names:
            return {}
        placeholders = ', '.join('?' for _ in names)
        conn = get_db_connection()
        subjects = conn.execute(
            f'SELECT id, name FROM subjects WHERE name IN ({placeholders})', names
        ).fetchall()
        conn.close()
        return {subject['name']: subject['id'] for subject in subjects}


class Student:
    @staticmethod
    def upsert(admission_no, name, class_id):
        """Create the student or rename it; (admission_no, class_id) is the identity."""
        conn = get_db_connection()
        try:
            conn.execute('''
                INSERT INTO students (admission_no, name, class_id)
                VALUES (?, ?, ?)
                ON CONFLICT(admission_no, class_id) DO UPDATE SET name = excluded.name
            ''', (admission_no, name, class_id))
            conn.commit()
            student = conn.execute(
                'SELECT id FROM students WHERE admission_no = ? AND class_id = ?',
                (admission_no, class_id)
            ).fetchone()
        finally:
            conn.close()
        return student['id']

    @staticmethod
    def lookup(class_id, admission_no):
        """
        Find the single student with this admission number in this class.
        Returns None when nothing or more than one row matches.
        """
        conn = get_db_connection()
        students = conn.execute('''
            SELECT id, name, admission_no, class_id
            FROM students
            WHERE admission_no = ? AND class_id = ?
            LIMIT 2
        ''', (admission_no, class_id)).fetchall()
        conn.close()

        if len(students) != 1:
            return None
        return students[0]

    @staticmethod
    def get_all_with_results():
        conn = get_db_connection()
        students = conn.execute('''
            SELECT s.id, s.admission_no, s.name, s.class_id, c.name as class_name
            FROM students s
            JOIN classes c ON s.class_id = c.id
            ORDER BY s.admission_no
        ''').fetchall()
        results = conn.execute('''
            SELECT r.id, r.student_id, r.marks, r.grade, sub.name as subject_name
            FROM results r
            JOIN subjects sub ON r.subject_id = sub.id
            ORDER BY sub.name
        ''').fetchall()
        conn.close()

        directory = []
        by_id = {}
        for student in students:
            entry = dict(student)
            entry['results'] = []
            by_id[entry['id']] = entry
            directory.append(entry)

        for result in results:
            entry = by_id.get(result['student_id'])
            if entry is not None:
                entry['results'].append({
                    'id': result['id'],
                    'subject_name': result['subject_name'],
                    'marks': result['marks'],
                    'grade': result['grade']
                })
        return directory


def filter_students(students, query):
    """Case-insensitive substring match over student name and admission number."""
    query = (query or '').strip().lower()
    if not query:
        return list(students)
    return [
        student for student in students
        if query in str(student['name']).lower()
        or query in str(student['admission_no']).lower()
    ]


class Result:
    @staticmethod
    def upsert(student_id, subject_id, marks):
        """Write marks for one (student, subject) pair, grading them on the way in."""
        grade = calculate_grade(marks)
        conn = get_db_connection()
        try:
            conn.execute('''
                INSERT INTO results (student_id, subject_id, marks, grade)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(student_id, subject_id)
                DO UPDATE SET marks = excluded.marks, grade = excluded.grade
            ''', (student_id, subject_id, marks, grade))
            conn.commit()
        finally:
            conn.close()
        return grade

    @staticmethod
    def get_student_results(student_id):
        conn = get_db_connection()
        results = conn.execute('''
            SELECT r.id, r.marks, r.grade, s.name as subject_name
            FROM results r
            JOIN subjects s ON r.subject_id = s.id
            WHERE r.student_id = ?
            ORDER BY s.name
        ''', (student_id,)).fetchall()
        conn.close()
        return results

    @staticmethod
    def get_result_card(student_id):
        conn = get_db_connection()
        student = conn.execute('''
            SELECT s.id, s.admission_no, s.name, c.name as class_name
            FROM students s
            JOIN classes c ON s.class_id = c.id
            WHERE s.id = ?
        ''', (student_id,)).fetchone()
        conn.close()

        if not student:
            return None

        results = Result.get_student_results(student_id)
        marks = [result['marks'] for result in results]
        return {
            'student': dict(student),
            'results': [dict(result) for result in results],
            'total': calculate_total(marks),
            'percentage': calculate_percentage(marks)
        }


class AccessLog:
    @staticmethod
    def record(student_id):
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                'INSERT INTO access_logs (student_id) VALUES (?)', (student_id,)
            )
            log_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        return log_id
