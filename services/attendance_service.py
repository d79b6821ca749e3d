"""
Attendance service for the Campus Portal
Marking attendance per class session and per-course attendance reports
"""

import logging

from database import db
from models.academic import Course, Enrollment, ENROLLMENT_ENROLLED
from models.attendance import Attendance
from models.user import User
from services.activity_log_service import ActivityLogService
from services.course_service import CourseService
from utils.db_helpers import get_or_404, transaction
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

class AttendanceService:
    """Course attendance"""

    @staticmethod
    def enrolled_students(course):
        return (User.query
                .join(Enrollment, Enrollment.student_id == User.id)
                .filter(Enrollment.course_id == course.id, Enrollment.status == ENROLLMENT_ENROLLED)
                .order_by(User.name.asc())
                .all())

    @staticmethod
    def mark(course_id, session_date, records, user):
        """Record attendance for one session; existing marks for the day are overwritten.

        ``records`` is a list of {student_id, status, notes}. Every student must be
        enrolled in the course. Returns the saved Attendance rows.
        """
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, user)

        enrolled = {student.id for student in AttendanceService.enrolled_students(course)}
        errors = {}
        seen = set()
        for index, record in enumerate(records):
            if record['student_id'] not in enrolled:
                errors[f'records[{index}]'] = "Student is not enrolled in this course"
            elif record['student_id'] in seen:
                errors[f'records[{index}]'] = "Student listed more than once"
            seen.add(record['student_id'])
        if errors:
            raise ValidationError("Validation failed", details=errors)

        existing = {
            row.student_id: row
            for row in Attendance.query.filter_by(course_id=course.id, date=session_date).all()
        }
        saved = []
        with transaction("Attendance for this session was recorded at the same time, please retry"):
            for record in records:
                row = existing.get(record['student_id'])
                if row is None:
                    row = Attendance(student_id=record['student_id'], course_id=course.id, date=session_date)
                    db.session.add(row)
                row.status = record['status']
                row.notes = record.get('notes')
                row.marked_by = user.id
                saved.append(row)

        logger.info("Attendance for %s on %s marked by %s (%s records)",
                    course.code, session_date, user.id, len(saved))
        ActivityLogService.log('MARK_ATTENDANCE', user.id, 'course', course.id,
                               {'date': session_date.isoformat(), 'records': len(saved)})
        return saved

    @staticmethod
    def _filtered(course, start_date=None, end_date=None, student_id=None):
        query = Attendance.query.filter_by(course_id=course.id)
        if start_date:
            query = query.filter(Attendance.date >= start_date)
        if end_date:
            query = query.filter(Attendance.date <= end_date)
        if student_id:
            query = query.filter(Attendance.student_id == student_id)
        return query

    @staticmethod
    def list_records(course_id, user, session_date=None, start_date=None, end_date=None):
        """Attendance rows of a course; students only see their own"""
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_view_content(course, user)

        query = AttendanceService._filtered(course, start_date, end_date,
                                            student_id=user.id if user.is_student else None)
        if session_date:
            query = query.filter(Attendance.date == session_date)
        return course, query.order_by(Attendance.date.desc(), Attendance.student_id.asc()).all()

    @staticmethod
    def report(course_id, user, start_date=None, end_date=None):
        """Overall and per-student attendance statistics for a course.

        Every currently enrolled student is listed, including those with no records.
        A student caller receives only their own line.
        """
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_view_content(course, user)

        students = AttendanceService.enrolled_students(course)
        if user.is_student:
            students = [student for student in students if student.id == user.id]

        rows = AttendanceService._filtered(course, start_date, end_date,
                                           student_id=user.id if user.is_student else None).all()
        by_student = {}
        for row in rows:
            by_student.setdefault(row.student_id, []).append(row.status)

        per_student = []
        for student in students:
            profile = student.student_profile
            stats = Attendance.summarize(by_student.get(student.id, []))
            stats.update({
                'student_id': student.id,
                'student_name': student.name,
                'student_number': profile.student_number if profile else None,
            })
            per_student.append(stats)

        return {
            'course': {'id': course.id, 'code': course.code, 'title': course.title},
            'period': {
                'start_date': start_date.isoformat() if start_date else None,
                'end_date': end_date.isoformat() if end_date else None,
            },
            'overall': Attendance.summarize([row.status for row in rows]),
            'sessions': len({row.date for row in rows}),
            'students': per_student,
        }
