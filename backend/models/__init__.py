# models/__init__.py
from .user import User
from .student import Student
from .teacher import Teacher, TeacherCourse
from .course import CourseCategory, Course, ClassSchedule
from .enrollment import Enrollment
from .payment import Payment
from .grade import Score, Attendance
from .feedback import CourseFeedback
from .upload import Upload
from .session import UserSession, EmailVerificationCode

__all__ = [
    'User', 'Student', 'Teacher', 'TeacherCourse',
    'CourseCategory', 'Course', 'ClassSchedule',
    'Enrollment', 'Payment', 'Score', 'Attendance',
    'CourseFeedback', 'Upload', 'UserSession', 'EmailVerificationCode',
]
