from flask_login import UserMixin
from models import User


class LoginUser(UserMixin):
    def __init__(self, user_id, email, role, name):
        self.id = user_id
        self.email = email
        self.role = role
        self.name = name

    @staticmethod
    def from_user(user):
        return LoginUser(user.id, user.email, user.role, user.name)

    @staticmethod
    def get(user_id):
        user = User.get_by_id(user_id)
        if user:
            return LoginUser.from_user(user)
        return None


class StudentSession:
    """
    The student a visitor looked up, kept for the rest of their browsing session.
    It only identifies whose result card to show; it is not a login.
    """

    STUDENT_ID_KEY = 'student_id'
    STUDENT_NAME_KEY = 'student_name'

    def __init__(self, student_id, student_name):
        self.student_id = student_id
        self.student_name = student_name

    @classmethod
    def from_session(cls, session):
        student_id = session.get(cls.STUDENT_ID_KEY)
        if student_id is None:
            return None
        return cls(student_id, session.get(cls.STUDENT_NAME_KEY, ''))

    def save(self, session):
        session[self.STUDENT_ID_KEY] = self.student_id
        session[self.STUDENT_NAME_KEY] = self.student_name

    @classmethod
    def clear(cls, session):
        session.pop(cls.STUDENT_ID_KEY, None)
        session.pop(cls.STUDENT_NAME_KEY, None)
