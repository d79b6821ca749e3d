"""
Dashboard statistics service for the Campus Portal
Role-specific overview figures
"""

from datetime import datetime

from sqlalchemy import func

from database import db
from models.academic import Course, Enrollment, ENROLLMENT_ENROLLED
from models.admissions import Application, APPLICATION_PENDING, APPLICATION_UNDER_REVIEW
from models.assignments import Assignment, Submission, SUBMISSION_SUBMITTED
from models.finance import Fee, FEE_PAID
from models.library import Borrowing
from models.user import User
from services.activity_log_service import ActivityLogService
from services.finance_service import FeeService
from services.message_service import MessageService
from services.notification_service import NotificationService
from services.schedule_service import CalendarService
from services.self_service_service import SelfServiceService
from services.settings_service import SettingsService

class DashboardService:
    """Overview figures for each role's landing page"""

    @staticmethod
    def admin_stats():
        users_by_role = dict(
            db.session.query(User.role, func.count(User.id))
            .filter(User.is_active.is_(True))
            .group_by(User.role)
            .all()
        )
        courses_by_status = dict(
            db.session.query(Course.status, func.count(Course.id)).group_by(Course.status).all()
        )
        pending_applications = Application.query.filter(
            Application.status.in_((APPLICATION_PENDING, APPLICATION_UNDER_REVIEW))
        ).count()

        return {
            'users': {
                'admin': users_by_role.get('admin', 0),
                'lecturer': users_by_role.get('lecturer', 0),
                'student': users_by_role.get('student', 0),
                'total': sum(users_by_role.values()),
            },
            'courses': {
                'pending': courses_by_status.get('PENDING', 0),
                'approved': courses_by_status.get('APPROVED', 0),
                'rejected': courses_by_status.get('REJECTED', 0),
                'total': sum(courses_by_status.values()),
            },
            'active_enrollments': Enrollment.query.filter_by(status=ENROLLMENT_ENROLLED).count(),
            'pending_applications': pending_applications,
            'open_requests': SelfServiceService.open_request_count(),
            'outstanding_fees': FeeService.outstanding_total(),
            'unpaid_fee_count': Fee.query.filter(Fee.status != FEE_PAID).count(),
            'open_loans': Borrowing.query.filter(Borrowing.return_date.is_(None)).count(),
            'academic_year': SettingsService.get('academic_year'),
            'semester': SettingsService.get('semester'),
            'recent_activity': [entry.to_dict() for entry in ActivityLogService.recent(10)],
        }

    @staticmethod
    def lecturer_stats(lecturer):
        courses = lecturer.taught_courses.order_by(Course.code.asc()).all()
        course_ids = [course.id for course in courses]

        student_count = 0
        pending_grading = 0
        upcoming = []
        if course_ids:
            student_count = (db.session.query(func.count(func.distinct(Enrollment.student_id)))
                             .filter(Enrollment.course_id.in_(course_ids),
                                     Enrollment.status == ENROLLMENT_ENROLLED)
                             .scalar())
            pending_grading = (Submission.query
                               .join(Assignment, Assignment.id == Submission.assignment_id)
                               .filter(Assignment.course_id.in_(course_ids),
                                       Submission.status == SUBMISSION_SUBMITTED)
                               .count())
            upcoming = (Assignment.query
                        .filter(Assignment.course_id.in_(course_ids), Assignment.due_date >= datetime.utcnow())
                        .order_by(Assignment.due_date.asc())
                        .limit(5)
                        .all())

        return {
            'courses': [course.to_dict() for course in courses],
            'course_count': len(courses),
            'pending_courses': sum(1 for course in courses if course.status == 'PENDING'),
            'student_count': student_count,
            'pending_grading': pending_grading,
            'upcoming_assignments': [assignment.to_dict() for assignment in upcoming],
            'upcoming_events': [event.to_dict() for event in CalendarService.upcoming()],
            'unread_notifications': NotificationService.unread_count(lecturer.id),
            'unread_messages': MessageService.unread_count(lecturer.id),
        }

    @staticmethod
    def student_stats(student):
        enrollments = (Enrollment.query
                       .filter_by(student_id=student.id, status=ENROLLMENT_ENROLLED)
                       .all())
        course_ids = [enrollment.course_id for enrollment in enrollments]

        upcoming = []
        if course_ids:
            submitted_ids = [row.assignment_id for row in
                             db.session.query(Submission.assignment_id).filter_by(student_id=student.id).all()]
            query = Assignment.query.filter(Assignment.course_id.in_(course_ids),
                                            Assignment.due_date >= datetime.utcnow())
            if submitted_ids:
                query = query.filter(Assignment.id.notin_(submitted_ids))
            upcoming = query.order_by(Assignment.due_date.asc()).limit(5).all()

        profile = student.student_profile
        return {
            'student_number': profile.student_number if profile else None,
            'programme': profile.programme if profile else None,
            'gpa': profile.gpa if profile else None,
            'enrollments': [enrollment.to_dict() for enrollment in enrollments],
            'enrolled_credits': sum(enrollment.course.credits for enrollment in enrollments),
            'upcoming_assignments': [assignment.to_dict() for assignment in upcoming],
            'upcoming_events': [event.to_dict() for event in CalendarService.upcoming()],
            'fee_balance': FeeService.outstanding_total(student.id),
            'unread_notifications': NotificationService.unread_count(student.id),
            'unread_messages': MessageService.unread_count(student.id),
            'open_loans': Borrowing.query.filter(Borrowing.user_id == student.id,
                                                 Borrowing.return_date.is_(None)).count(),
        }
