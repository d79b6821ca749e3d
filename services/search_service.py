"""
Search service for the Campus Portal
One query across courses, assignments, announcements and students, scoped by role
"""

import logging

from sqlalchemy import and_, or_, select

from database import db
from models.academic import Course, Enrollment, COURSE_APPROVED, ENROLLMENT_ENROLLED
from models.assignments import Assignment, Submission
from models.communication import Announcement, ROLE_AUDIENCE
from models.user import User, StudentProfile, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from services.course_service import CourseService

logger = logging.getLogger(__name__)

SEARCH_TYPES = ('all', 'courses', 'assignments', 'announcements', 'students')
MIN_QUERY_LENGTH = 2
RESULTS_PER_TYPE = 10

class SearchService:
    """Global search"""

    @staticmethod
    def empty():
        return {'courses': [], 'assignments': [], 'announcements': [], 'students': [], 'total': 0}

    @staticmethod
    def search(user, text, search_type='all'):
        """Up to ten hits per kind of record; queries shorter than two characters find nothing"""
        results = SearchService.empty()
        term = (text or '').strip()
        if len(term) < MIN_QUERY_LENGTH:
            return results

        pattern = f'%{term}%'
        wanted = SEARCH_TYPES[1:] if search_type == 'all' else (search_type,)
        enrolled_ids = CourseService.enrolled_course_ids(user.id) if user.role == ROLE_STUDENT else set()

        if 'courses' in wanted:
            results['courses'] = SearchService._courses(user, pattern, enrolled_ids)
        if 'assignments' in wanted:
            results['assignments'] = SearchService._assignments(user, pattern, enrolled_ids)
        if 'announcements' in wanted:
            results['announcements'] = SearchService._announcements(user, pattern)
        if 'students' in wanted and user.role in (ROLE_ADMIN, ROLE_LECTURER):
            results['students'] = SearchService._students(user, pattern)

        results['total'] = sum(len(results[kind]) for kind in SEARCH_TYPES[1:])
        logger.debug("Search %r by user %s found %s results", term, user.id, results['total'])
        return results

    @staticmethod
    def _courses(user, pattern, enrolled_ids):
        query = Course.query.filter(or_(Course.code.ilike(pattern), Course.title.ilike(pattern),
                                        Course.description.ilike(pattern)))
        open_courses = and_(Course.status == COURSE_APPROVED, Course.is_active.is_(True))
        if user.role == ROLE_LECTURER:
            query = query.filter(or_(Course.lecturer_id == user.id, open_courses))
        elif user.role == ROLE_STUDENT:
            query = query.filter(open_courses)

        return [{
            'id': course.id,
            'type': 'course',
            'code': course.code,
            'title': course.title,
            'description': course.description,
            'lecturer': course.lecturer.name if course.lecturer else None,
            'is_enrolled': course.id in enrolled_ids,
        } for course in query.order_by(Course.code.asc()).limit(RESULTS_PER_TYPE).all()]

    @staticmethod
    def _assignments(user, pattern, enrolled_ids):
        query = (Assignment.query
                 .join(Course, Course.id == Assignment.course_id)
                 .filter(or_(Assignment.title.ilike(pattern), Assignment.description.ilike(pattern))))
        submitted = set()
        if user.role == ROLE_STUDENT:
            if not enrolled_ids:
                return []
            query = query.filter(Assignment.course_id.in_(enrolled_ids))
            submitted = {row.assignment_id for row in
                         db.session.query(Submission.assignment_id).filter_by(student_id=user.id).all()}
        elif user.role == ROLE_LECTURER:
            query = query.filter(Course.lecturer_id == user.id)

        return [{
            'id': assignment.id,
            'type': 'assignment',
            'title': assignment.title,
            'description': assignment.description,
            'course': assignment.course.title if assignment.course else None,
            'due_date': assignment.due_date.isoformat() if assignment.due_date else None,
            'is_submitted': assignment.id in submitted,
        } for assignment in query.order_by(Assignment.due_date.desc()).limit(RESULTS_PER_TYPE).all()]

    @staticmethod
    def _announcements(user, pattern):
        audiences = ['ALL']
        if user.role in ROLE_AUDIENCE:
            audiences.append(ROLE_AUDIENCE[user.role])
        query = Announcement.query.filter(or_(Announcement.title.ilike(pattern), Announcement.content.ilike(pattern)))
        if user.role != ROLE_ADMIN:
            query = query.filter(Announcement.is_active.is_(True), Announcement.target_audience.in_(audiences))

        return [{
            'id': announcement.id,
            'type': 'announcement',
            'title': announcement.title,
            'content': announcement.content,
            'author': announcement.author.name if announcement.author else None,
            'created_at': announcement.created_at.isoformat() if announcement.created_at else None,
        } for announcement in query.order_by(Announcement.created_at.desc()).limit(RESULTS_PER_TYPE).all()]

    @staticmethod
    def _students(user, pattern):
        """Admins search every student; lecturers only those enrolled in their courses"""
        query = (User.query
                 .join(StudentProfile, StudentProfile.user_id == User.id)
                 .filter(User.role == ROLE_STUDENT)
                 .filter(or_(User.name.ilike(pattern), User.email.ilike(pattern),
                             StudentProfile.student_number.ilike(pattern))))
        if user.role == ROLE_LECTURER:
            taught = (select(Enrollment.student_id)
                      .join(Course, Course.id == Enrollment.course_id)
                      .filter(Course.lecturer_id == user.id, Enrollment.status == ENROLLMENT_ENROLLED))
            query = query.filter(User.id.in_(taught))

        return [{
            'id': student.id,
            'type': 'student',
            'name': student.name,
            'email': student.email,
            'student_number': student.student_profile.student_number,
            'programme': student.student_profile.programme,
            'level': student.student_profile.level,
        } for student in query.order_by(User.name.asc()).limit(RESULTS_PER_TYPE).all()]
