"""
Course registration service for the Campus Portal
Registration periods and the per-semester course registration flow
"""

import logging
from datetime import datetime

from database import db
from models.academic import Course, Enrollment, COURSE_APPROVED, ENROLLMENT_ENROLLED
from models.system import CourseRegistrationPeriod
from services.activity_log_service import ActivityLogService
from services.course_service import CourseService, EnrollmentService
from services.notification_service import NotificationService
from services.settings_service import SettingsService
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

PERIOD_FIELDS = ('name', 'description', 'academic_year', 'semester', 'level', 'department',
                 'start_date', 'end_date', 'is_active')

class RegistrationService:
    """Registration windows and semester course registration"""

    @staticmethod
    def _find_overlap(period, exclude_id=None):
        """Another active period for the same cohort whose dates intersect"""
        query = CourseRegistrationPeriod.query.filter(
            CourseRegistrationPeriod.is_active.is_(True),
            CourseRegistrationPeriod.academic_year == period.academic_year,
            CourseRegistrationPeriod.semester == period.semester,
            CourseRegistrationPeriod.level.is_(None) if period.level is None
            else CourseRegistrationPeriod.level == period.level,
            CourseRegistrationPeriod.department.is_(None) if period.department is None
            else CourseRegistrationPeriod.department == period.department,
            CourseRegistrationPeriod.start_date <= period.end_date,
            CourseRegistrationPeriod.end_date >= period.start_date,
        )
        if exclude_id:
            query = query.filter(CourseRegistrationPeriod.id != exclude_id)
        return query.first()

    @staticmethod
    def _check_period(period, exclude_id=None):
        if period.start_date >= period.end_date:
            raise ValidationError("Validation failed", details={'end_date': "End date must be after start date"})
        if period.is_active:
            overlap = RegistrationService._find_overlap(period, exclude_id)
            if overlap is not None:
                raise ValidationError(f"Period overlaps with active period '{overlap.name}'")

    @staticmethod
    def list_periods(academic_year=None, is_active=None, page=1, per_page=20):
        query = CourseRegistrationPeriod.query
        if academic_year:
            query = query.filter_by(academic_year=academic_year)
        if is_active is not None:
            query = query.filter_by(is_active=is_active)
        return paginate_query(query.order_by(CourseRegistrationPeriod.start_date.desc()), page, per_page)

    @staticmethod
    def create_period(data, admin_id):
        period = CourseRegistrationPeriod(created_by=admin_id)
        for field in PERIOD_FIELDS:
            if data.get(field) is not None:
                setattr(period, field, data[field])
        if period.is_active is None:
            period.is_active = True

        RegistrationService._check_period(period)
        with transaction():
            db.session.add(period)

        ActivityLogService.log('CREATE_REGISTRATION_PERIOD', admin_id, 'registration_period', period.id,
                               {'name': period.name})
        return period

    @staticmethod
    def update_period(period_id, data, admin_id):
        period = get_or_404(CourseRegistrationPeriod, period_id, "Registration period not found")
        # Validate on a detached copy so a rejected update leaves the row untouched
        candidate = CourseRegistrationPeriod(**{field: getattr(period, field) for field in PERIOD_FIELDS})
        for field in PERIOD_FIELDS:
            if field in data and data[field] is not None:
                setattr(candidate, field, data[field])
        RegistrationService._check_period(candidate, exclude_id=period.id)

        for field in PERIOD_FIELDS:
            setattr(period, field, getattr(candidate, field))
        db.session.commit()

        ActivityLogService.log('UPDATE_REGISTRATION_PERIOD', admin_id, 'registration_period', period.id,
                               {'fields': sorted(data)})
        return period

    @staticmethod
    def delete_period(period_id, admin_id):
        period = get_or_404(CourseRegistrationPeriod, period_id, "Registration period not found")
        db.session.delete(period)
        db.session.commit()
        ActivityLogService.log('DELETE_REGISTRATION_PERIOD', admin_id, 'registration_period', period_id)

    @staticmethod
    def current_status(now=None):
        """Whether registration is open right now, and the period that opens it"""
        now = now or datetime.utcnow()
        academic_year, semester = SettingsService.current_term()

        if not SettingsService.get('registration_open'):
            return {'is_open': False, 'period': None, 'message': "Course registration is closed",
                    'academic_year': academic_year, 'semester': semester}

        period = (CourseRegistrationPeriod.query
                  .filter(CourseRegistrationPeriod.is_active.is_(True),
                          CourseRegistrationPeriod.academic_year == academic_year,
                          CourseRegistrationPeriod.semester == semester,
                          CourseRegistrationPeriod.start_date <= now,
                          CourseRegistrationPeriod.end_date >= now)
                  .order_by(CourseRegistrationPeriod.end_date.asc())
                  .first())
        if period is None:
            return {'is_open': False, 'period': None,
                    'message': "No active registration period for the current semester",
                    'academic_year': academic_year, 'semester': semester}

        return {'is_open': True, 'period': period.to_dict(),
                'message': f"Registration open until {period.end_date.isoformat()}",
                'academic_year': academic_year, 'semester': semester}

    @staticmethod
    def credit_limits():
        return {
            'min_credits': SettingsService.get('min_course_credits'),
            'max_credits': SettingsService.get('max_course_credits'),
        }

    @staticmethod
    def overview(student_id):
        """Courses available for registration with the student's current state"""
        courses = (Course.query
                   .filter(Course.status == COURSE_APPROVED, Course.is_active.is_(True))
                   .order_by(Course.code.asc())
                   .all())
        enrolled_ids = CourseService.enrolled_course_ids(student_id)
        available = []
        for course in courses:
            data = course.to_dict()
            data['is_enrolled'] = course.id in enrolled_ids
            available.append(data)

        academic_year, semester = SettingsService.current_term()
        registered = (Enrollment.query
                      .filter_by(student_id=student_id, status=ENROLLMENT_ENROLLED,
                                 academic_year=academic_year, semester=semester)
                      .all())
        return {
            'courses': available,
            'registration': RegistrationService.current_status(),
            'credit_limits': RegistrationService.credit_limits(),
            'registered': [enrollment.to_dict() for enrollment in registered],
            'registered_credits': sum(enrollment.course.credits for enrollment in registered),
        }

    @staticmethod
    def register(student_id, course_ids):
        """Register a student for a semester's set of courses in one transaction"""
        status = RegistrationService.current_status()
        if not status['is_open']:
            raise ValidationError(status['message'])

        academic_year, semester = status['academic_year'], status['semester']
        already = Enrollment.query.filter_by(student_id=student_id, status=ENROLLMENT_ENROLLED,
                                             academic_year=academic_year, semester=semester).count()
        if already:
            raise ValidationError("You have already registered for courses this semester")

        if len(set(course_ids)) != len(course_ids):
            raise ValidationError("Duplicate courses in selection")

        courses = Course.query.filter(Course.id.in_(course_ids)).all()
        if len(courses) != len(course_ids):
            raise ValidationError("One or more selected courses do not exist")
        unavailable = [course.code for course in courses if not course.is_open_for_enrollment]
        if unavailable:
            raise ValidationError(f"Courses not available for registration: {', '.join(sorted(unavailable))}")

        total_credits = sum(course.credits for course in courses)
        limits = RegistrationService.credit_limits()
        if total_credits < limits['min_credits'] or total_credits > limits['max_credits']:
            raise ValidationError(
                f"Total credits must be between {limits['min_credits']} and {limits['max_credits']} "
                f"(selected {total_credits})"
            )

        with transaction("Already enrolled in one of the selected courses"):
            enrollments = [
                EnrollmentService.stage_enrollment(student_id, course, academic_year, semester)
                for course in courses
            ]
            NotificationService.notify(
                student_id,
                'Course Registration Successful',
                f'You registered for {len(courses)} courses ({total_credits} credits) '
                f'for {semester} {academic_year}.',
                'SUCCESS',
                {'course_ids': [course.id for course in courses]},
            )

        logger.info("Student %s registered for %d courses", student_id, len(courses))
        ActivityLogService.log('COURSE_REGISTRATION', student_id, 'enrollment', None,
                               {'course_ids': course_ids, 'total_credits': total_credits})
        return enrollments, total_credits
