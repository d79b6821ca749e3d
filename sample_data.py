#!/usr/bin/env python3
"""
Sample data generator for the Campus Portal
Creates lecturers, students, courses, enrollments, fees and library books for demos
"""

from datetime import datetime, timedelta

from app import create_app
from database import db
from models.academic import Course, Enrollment, AcademicRecord, COURSE_APPROVED
from models.communication import Announcement
from models.library import Book
from models.system import CourseRegistrationPeriod
from models.user import User, StudentProfile, LecturerProfile, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from services.finance_service import FeeService
from services.settings_service import SettingsService

SAMPLE_PASSWORD = 'password123'

LECTURERS = [
    {'name': 'Dr. John Smith', 'email': 'john.smith@university.edu', 'staff_number': 'LEC001', 'department': 'Computing'},
    {'name': 'Prof. Sarah Johnson', 'email': 'sarah.johnson@university.edu', 'staff_number': 'LEC002', 'department': 'Business'},
]

STUDENTS = [
    {'name': 'Alice Johnson', 'email': 'alice@student.edu', 'programme': 'Bachelor of Science (Computer Science)'},
    {'name': 'Bob Smith', 'email': 'bob@student.edu', 'programme': 'Bachelor of Science (Computer Science)'},
    {'name': 'Eve Davis', 'email': 'eve@student.edu', 'programme': 'Bachelor of Science (Information Technology)'},
    {'name': 'Grace Lee', 'email': 'grace@student.edu', 'programme': 'Bachelor of Arts (Business Administration)'},
]

# (code, title, credits, lecturer index)
COURSES = [
    ('CS101', 'Python Programming', 3, 0),
    ('CS102', 'Data Structures', 3, 0),
    ('CS201', 'Database Management', 4, 0),
    ('BA101', 'Principles of Management', 3, 1),
]

BOOKS = [
    {'title': 'Clean Code', 'author': 'Robert C. Martin', 'isbn': '9780132350884', 'category': 'Software', 'total_copies': 3},
    {'title': 'Introduction to Algorithms', 'author': 'Cormen et al.', 'isbn': '9780262046305', 'category': 'Computing', 'total_copies': 2},
    {'title': 'Principles of Marketing', 'author': 'Philip Kotler', 'isbn': '9780135766699', 'category': 'Business', 'total_copies': 2},
]

def _user(name, email, role):
    user = User(email=email, name=name, role=role)
    user.set_password(SAMPLE_PASSWORD)
    db.session.add(user)
    return user

def create_sample_data():
    """Create sample data for the system"""
    app = create_app()

    with app.app_context():
        if User.query.filter(User.role != ROLE_ADMIN).first():
            print("Sample data already present, nothing to do")
            return

        print("Creating sample data...")
        admin = User.query.filter_by(role=ROLE_ADMIN).first()
        academic_year, semester = SettingsService.current_term()

        lecturers = []
        for data in LECTURERS:
            lecturer = _user(data['name'], data['email'], ROLE_LECTURER)
            lecturer.lecturer_profile = LecturerProfile(staff_number=data['staff_number'],
                                                        department=data['department'])
            lecturers.append(lecturer)
        db.session.commit()
        print(f"✓ Created {len(lecturers)} lecturers (password: {SAMPLE_PASSWORD})")

        students = []
        for data in STUDENTS:
            student = _user(data['name'], data['email'], ROLE_STUDENT)
            student.student_profile = StudentProfile(student_number=StudentProfile.next_student_number(),
                                                     programme=data['programme'])
            db.session.flush()
            students.append(student)
        db.session.commit()
        print(f"✓ Created {len(students)} students (password: {SAMPLE_PASSWORD})")

        courses = []
        for code, title, credits, lecturer_index in COURSES:
            course = Course(code=code, title=title, credits=credits, lecturer_id=lecturers[lecturer_index].id,
                            department=lecturers[lecturer_index].lecturer_profile.department,
                            status=COURSE_APPROVED, is_active=True, approved_by=admin.id,
                            approved_at=datetime.utcnow())
            db.session.add(course)
            courses.append(course)
        db.session.commit()
        print(f"✓ Created {len(courses)} approved courses")

        # Computing students take the first two courses, the business student takes BA101
        pairs = [(student, course) for student in students[:3] for course in courses[:2]]
        pairs.append((students[3], courses[3]))
        for student, course in pairs:
            db.session.add(Enrollment(student_id=student.id, course_id=course.id,
                                      academic_year=academic_year, semester=semester))
            db.session.add(AcademicRecord(student_id=student.id, course_id=course.id,
                                          academic_year=academic_year, semester=semester))
        db.session.commit()
        print(f"✓ Created {len(pairs)} enrollments for {semester} {academic_year}")

        for student in students:
            FeeService.generate_programme_fees(student.id, None, admin.id)
        print(f"✓ Generated programme fees for {len(students)} students")

        for data in BOOKS:
            db.session.add(Book(available_copies=data['total_copies'], **data))

        now = datetime.utcnow()
        db.session.add(CourseRegistrationPeriod(
            name=f'{semester} {academic_year} Registration',
            academic_year=academic_year,
            semester=semester,
            start_date=now,
            end_date=now + timedelta(days=14),
            is_active=True,
        ))
        db.session.add(Announcement(title='Welcome to the new semester',
                                    content='Course registration is open for the next two weeks.',
                                    priority='HIGH', author_id=admin.id))
        db.session.commit()
        print(f"✓ Created {len(BOOKS)} library books, a registration period and an announcement")

        print("\nSample data creation completed!")
        print("\nLogin credentials:")
        print(f"Admin: {app.config['DEFAULT_ADMIN_EMAIL']} / (DEFAULT_ADMIN_PASSWORD)")
        for data in LECTURERS + STUDENTS:
            print(f"  - {data['email']} / {SAMPLE_PASSWORD}")

if __name__ == '__main__':
    create_sample_data()
