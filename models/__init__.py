"""
Database models package for the Campus Portal
"""

from .user import User, StudentProfile, LecturerProfile
from .academic import Course, Enrollment, AcademicRecord
from .assignments import Assignment, Submission
from .quizzes import Quiz, QuizQuestion, QuizAttempt, QuizAnswer
from .finance import Fee, Payment
from .communication import Announcement, Notification, Message
from .library import Book, Borrowing
from .self_service import CertificateRequest, ClearanceRequest, IdCardRequest
from .admissions import Programme, Application
from .system import ActivityLog, SystemSetting, CourseRegistrationPeriod
from .attendance import Attendance
from .schedule import TimetableEntry, AcademicEvent

__all__ = [
    'User', 'StudentProfile', 'LecturerProfile',
    'Course', 'Enrollment', 'AcademicRecord',
    'Assignment', 'Submission',
    'Quiz', 'QuizQuestion', 'QuizAttempt', 'QuizAnswer',
    'Fee', 'Payment',
    'Announcement', 'Notification', 'Message',
    'Book', 'Borrowing',
    'CertificateRequest', 'ClearanceRequest', 'IdCardRequest',
    'Programme', 'Application',
    'ActivityLog', 'SystemSetting', 'CourseRegistrationPeriod',
    'Attendance', 'TimetableEntry', 'AcademicEvent',
]
