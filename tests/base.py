"""
Shared fixtures for the Campus Portal test suite
"""

import unittest
from datetime import datetime, timedelta
from decimal import Decimal

from app import create_app
from config import TestingConfig
from database import db
from models.academic import Course, Enrollment, AcademicRecord, COURSE_APPROVED
from models.finance import Fee
from models.library import Book
from models.system import CourseRegistrationPeriod
from models.user import User, StudentProfile, LecturerProfile, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from services.settings_service import SettingsService

DEFAULT_PASSWORD = 'password123'

class CampusPortalTestCase(unittest.TestCase):
    """Fresh in-memory database and a test client for every test"""

    def setUp(self):
        self.app = create_app(TestingConfig)
        self.app_context = self.app.app_context()
        self.app_context.push()
        self.client = self.app.test_client()
        self._counter = 0

        self.admin = User.query.filter_by(role=ROLE_ADMIN).first()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    # Factories

    def _next(self):
        self._counter += 1
        return self._counter

    def make_admin(self, name='Second Admin', email=None):
        user = User(email=email or f'admin{self._next()}@university.edu', name=name, role=ROLE_ADMIN)
        user.set_password(DEFAULT_PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    def make_lecturer(self, name='Jane Lecturer', email=None, department='Computing'):
        n = self._next()
        user = User(email=email or f'lecturer{n}@university.edu', name=name, role=ROLE_LECTURER)
        user.set_password(DEFAULT_PASSWORD)
        user.lecturer_profile = LecturerProfile(staff_number=f'LEC-T{n:03d}', department=department)
        db.session.add(user)
        db.session.commit()
        return user

    def make_student(self, name='John Student', email=None, programme='Bachelor of Science (Computer Science)'):
        n = self._next()
        user = User(email=email or f'student{n}@university.edu', name=name, role=ROLE_STUDENT)
        user.set_password(DEFAULT_PASSWORD)
        user.student_profile = StudentProfile(student_number=f'STU-T{n:03d}', programme=programme)
        db.session.add(user)
        db.session.commit()
        return user

    def make_course(self, lecturer, code=None, credits=3, status=COURSE_APPROVED, is_active=True, title=None):
        n = self._next()
        course = Course(
            code=code or f'CS{100 + n}',
            title=title or f'Course {n}',
            credits=credits,
            lecturer_id=lecturer.id,
            status=status,
            is_active=is_active,
        )
        db.session.add(course)
        db.session.commit()
        return course

    def enroll(self, student, course):
        academic_year, semester = SettingsService.current_term()
        enrollment = Enrollment(student_id=student.id, course_id=course.id,
                                academic_year=academic_year, semester=semester)
        db.session.add(enrollment)
        db.session.add(AcademicRecord(student_id=student.id, course_id=course.id,
                                      academic_year=academic_year, semester=semester))
        db.session.commit()
        return enrollment

    def make_fee(self, student, amount='1000.00', fee_type='TUITION', due_in_days=30):
        fee = Fee(
            student_id=student.id,
            fee_type=fee_type,
            amount=Decimal(amount),
            amount_paid=Decimal('0'),
            due_date=datetime.utcnow() + timedelta(days=due_in_days),
        )
        db.session.add(fee)
        db.session.commit()
        return fee

    def make_book(self, title='Clean Code', copies=2, isbn=None):
        n = self._next()
        book = Book(title=title, author='Robert Martin', isbn=isbn or f'978000000{n:04d}',
                    total_copies=copies, available_copies=copies, category='Software')
        db.session.add(book)
        db.session.commit()
        return book

    def open_registration_period(self, **overrides):
        academic_year, semester = SettingsService.current_term()
        now = datetime.utcnow()
        fields = dict(
            name='Registration Window',
            academic_year=academic_year,
            semester=semester,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=7),
            is_active=True,
        )
        fields.update(overrides)
        period = CourseRegistrationPeriod(**fields)
        db.session.add(period)
        db.session.commit()
        return period

    # Client helpers

    def login_as(self, user, password=DEFAULT_PASSWORD):
        if user.role == ROLE_ADMIN and user.email == self.app.config['DEFAULT_ADMIN_EMAIL']:
            password = self.app.config['DEFAULT_ADMIN_PASSWORD']
        response = self.client.post('/api/auth/login', json={'email': user.email, 'password': password})
        self.assertEqual(response.status_code, 200, response.get_json())
        return response

    def logout(self):
        self.client.post('/api/auth/logout')

    def assertError(self, response, status_code):
        self.assertEqual(response.status_code, status_code, response.get_json())
        body = response.get_json()
        self.assertFalse(body['success'])
        self.assertIn('error', body)
        return body

    def assertSuccess(self, response, status_code=200):
        self.assertEqual(response.status_code, status_code, response.get_json())
        body = response.get_json()
        self.assertTrue(body['success'])
        return body
