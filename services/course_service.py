"""
Course service for the Campus Portal
Course catalogue, approval workflow, enrollment and grading
"""

import logging
from datetime import datetime

from flask import current_app

from database import db
from models.academic import (
    Course, Enrollment, AcademicRecord,
    COURSE_PENDING, COURSE_APPROVED, COURSE_REJECTED,
    ENROLLMENT_ENROLLED, ENROLLMENT_DROPPED, RECORD_IN_PROGRESS,
)
from models.user import User, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.notification_service import NotificationService
from services.settings_service import SettingsService
from utils.db_helpers import commit_or_rollback, get_or_404, paginate_query, transaction
from utils.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

COURSE_EDITABLE_FIELDS = ('title', 'description', 'credits', 'department', 'level', 'semester')

class CourseService:
    """Course catalogue and approval workflow"""

    @staticmethod
    def ensure_can_manage(course, user):
        """Only the owning lecturer or an admin may change a course"""
        if user.role == ROLE_ADMIN:
            return
        if user.role == ROLE_LECTURER and course.lecturer_id == user.id:
            return
        raise ForbiddenError("You do not have access to this course")

    @staticmethod
    def ensure_can_view_content(course, user):
        """Admins, the owning lecturer and enrolled students see course content"""
        if user.role == ROLE_STUDENT:
            if not course.has_enrolled_student(user.id):
                raise ForbiddenError("You are not enrolled in this course")
            return
        CourseService.ensure_can_manage(course, user)

    @staticmethod
    def list_courses(user, status=None, search=None, page=1, per_page=20):
        query = Course.query
        if user.role == ROLE_STUDENT:
            query = query.filter(Course.status == COURSE_APPROVED, Course.is_active.is_(True))
        elif user.role == ROLE_LECTURER:
            query = query.filter(Course.lecturer_id == user.id)
            if status:
                query = query.filter(Course.status == status.upper())
        elif status:
            query = query.filter(Course.status == status.upper())

        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(db.or_(Course.code.ilike(pattern), Course.title.ilike(pattern)))

        return paginate_query(query.order_by(Course.code.asc()), page, per_page)

    @staticmethod
    def enrolled_course_ids(student_id):
        rows = (db.session.query(Enrollment.course_id)
                .filter_by(student_id=student_id, status=ENROLLMENT_ENROLLED)
                .all())
        return {row.course_id for row in rows}

    @staticmethod
    def create_course(data, user):
        code = data['code'].upper()
        if Course.query.filter_by(code=code).first():
            raise ValidationError("A course with this code already exists")

        course = Course(
            code=code,
            title=data['title'],
            description=data.get('description'),
            credits=data.get('credits') or 3,
            department=data.get('department'),
            level=data.get('level'),
            semester=data.get('semester'),
        )

        if user.role == ROLE_ADMIN:
            lecturer_id = data.get('lecturer_id')
            if not lecturer_id:
                raise ValidationError("Validation failed", details={'lecturer_id': "Lecturer is required"})
            lecturer = db.session.get(User, lecturer_id)
            if lecturer is None or lecturer.role != ROLE_LECTURER or not lecturer.is_active:
                raise ValidationError("Validation failed", details={'lecturer_id': "Lecturer not found"})
            course.lecturer_id = lecturer.id
            course.status = COURSE_APPROVED
            course.is_active = True
            course.approved_by = user.id
            course.approved_at = datetime.utcnow()
        else:
            course.lecturer_id = user.id
            course.status = COURSE_PENDING
            course.is_active = False

        with transaction("A course with this code already exists"):
            db.session.add(course)

        logger.info("Course %s created by user %s (%s)", course.code, user.id, course.status)
        ActivityLogService.log('CREATE_COURSE', user.id, 'course', course.id, {'code': course.code})
        return course

    @staticmethod
    def update_course(course_id, data, user):
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, user)

        if data.get('code'):
            code = data['code'].upper()
            clash = Course.query.filter(Course.code == code, Course.id != course.id).first()
            if clash:
                raise ValidationError("A course with this code already exists")
            course.code = code

        for field in COURSE_EDITABLE_FIELDS:
            if field in data and data[field] is not None:
                setattr(course, field, data[field])

        if user.role == ROLE_ADMIN:
            if data.get('is_active') is not None:
                course.is_active = data['is_active']
            if data.get('lecturer_id'):
                lecturer = db.session.get(User, data['lecturer_id'])
                if lecturer is None or lecturer.role != ROLE_LECTURER:
                    raise ValidationError("Validation failed", details={'lecturer_id': "Lecturer not found"})
                course.lecturer_id = lecturer.id

        commit_or_rollback("A course with this code already exists")
        ActivityLogService.log('UPDATE_COURSE', user.id, 'course', course.id, {'fields': sorted(data)})
        return course

    @staticmethod
    def delete_course(course_id, user):
        """Delete a course, or deactivate it when enrollments reference it.

        Returns True when the row was removed.
        """
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, user)

        if course.enrollments.count() > 0 or course.assignments.count() > 0 or course.quizzes.count() > 0:
            course.is_active = False
            db.session.commit()
            ActivityLogService.log('DEACTIVATE_COURSE', user.id, 'course', course.id, {'code': course.code})
            return False

        code = course.code
        db.session.delete(course)
        db.session.commit()
        ActivityLogService.log('DELETE_COURSE', user.id, 'course', course_id, {'code': code})
        return True

    @staticmethod
    def review_course(course_id, action, rejection_reason, admin_id):
        """Approve or reject a pending course and notify its lecturer"""
        course = get_or_404(Course, course_id, "Course not found")
        if course.status != COURSE_PENDING:
            raise ValidationError("Only pending courses can be reviewed")

        with transaction():
            if action == 'approve':
                course.status = COURSE_APPROVED
                course.is_active = True
                course.approved_by = admin_id
                course.approved_at = datetime.utcnow()
                course.rejection_reason = None
                NotificationService.notify(
                    course.lecturer_id,
                    'Course Approved',
                    f'Your course {course.code} - {course.title} has been approved.',
                    'SUCCESS',
                    {'course_id': course.id},
                )
            else:
                if not rejection_reason:
                    raise ValidationError("Validation failed", details={
                        'rejection_reason': "Rejection reason is required",
                    })
                course.status = COURSE_REJECTED
                course.is_active = False
                course.rejection_reason = rejection_reason
                NotificationService.notify(
                    course.lecturer_id,
                    'Course Rejected',
                    f'Your course {course.code} - {course.title} was rejected: {rejection_reason}',
                    'WARNING',
                    {'course_id': course.id},
                )

        logger.info("Course %s %sd by admin %s", course.code, action, admin_id)
        ActivityLogService.log(f'{action.upper()}_COURSE', admin_id, 'course', course.id, {'code': course.code})
        return course


class EnrollmentService:
    """Student enrollment and course results"""

    @staticmethod
    def _ensure_record(student_id, course_id, academic_year, semester):
        record = AcademicRecord.query.filter_by(
            student_id=student_id, course_id=course_id,
            academic_year=academic_year, semester=semester,
        ).first()
        if record is None:
            record = AcademicRecord(
                student_id=student_id, course_id=course_id,
                academic_year=academic_year, semester=semester,
                status=RECORD_IN_PROGRESS,
            )
            db.session.add(record)
        return record

    @staticmethod
    def stage_enrollment(student_id, course, academic_year, semester):
        """Add or reactivate an enrollment plus its record in the open session"""
        enrollment = Enrollment.query.filter_by(student_id=student_id, course_id=course.id).first()
        if enrollment is not None:
            if enrollment.status != ENROLLMENT_DROPPED:
                raise ValidationError(f"Already enrolled in {course.code}")
            enrollment.status = ENROLLMENT_ENROLLED
            enrollment.dropped_at = None
            enrollment.enrollment_date = datetime.utcnow()
            enrollment.academic_year = academic_year
            enrollment.semester = semester
        else:
            enrollment = Enrollment(
                student_id=student_id,
                course_id=course.id,
                status=ENROLLMENT_ENROLLED,
                academic_year=academic_year,
                semester=semester,
            )
            db.session.add(enrollment)
        EnrollmentService._ensure_record(student_id, course.id, academic_year, semester)
        return enrollment

    @staticmethod
    def enroll(student_id, course_id):
        course = db.session.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found")
        if not course.is_open_for_enrollment:
            raise ValidationError("Course is not available for enrollment")

        academic_year, semester = SettingsService.current_term()
        with transaction("Already enrolled in this course"):
            enrollment = EnrollmentService.stage_enrollment(student_id, course, academic_year, semester)

        logger.info("Student %s enrolled in %s", student_id, course.code)
        ActivityLogService.log('ENROLL', student_id, 'course', course.id, {'code': course.code})
        return enrollment

    @staticmethod
    def drop(student_id, course_id):
        enrollment = Enrollment.query.filter_by(student_id=student_id, course_id=course_id).first()
        if enrollment is None:
            raise NotFoundError("Enrollment not found")
        if enrollment.status != ENROLLMENT_ENROLLED:
            raise ValidationError("Only active enrollments can be dropped")

        with transaction():
            enrollment.status = ENROLLMENT_DROPPED
            enrollment.dropped_at = datetime.utcnow()
            # An ungraded record has no meaning once the course is dropped
            AcademicRecord.query.filter_by(
                student_id=student_id, course_id=course_id, status=RECORD_IN_PROGRESS, score=None,
            ).delete(synchronize_session=False)

        ActivityLogService.log('DROP_COURSE', student_id, 'course', course_id)
        return enrollment

    @staticmethod
    def list_for_student(student_id, status=None):
        query = Enrollment.query.filter_by(student_id=student_id)
        if status:
            query = query.filter_by(status=status.upper())
        return query.order_by(Enrollment.enrollment_date.desc()).all()

    @staticmethod
    def roster(course):
        """Enrolled students with their current record for the course"""
        enrollments = (course.enrollments
                       .filter_by(status=ENROLLMENT_ENROLLED)
                       .join(User, User.id == Enrollment.student_id)
                       .order_by(User.name.asc())
                       .all())
        roster = []
        for enrollment in enrollments:
            student = enrollment.student
            record = (AcademicRecord.query
                      .filter_by(student_id=student.id, course_id=course.id)
                      .order_by(AcademicRecord.id.desc())
                      .first())
            profile = student.student_profile
            roster.append({
                'enrollment_id': enrollment.id,
                'student_id': student.id,
                'name': student.name,
                'email': student.email,
                'student_number': profile.student_number if profile else None,
                'programme': profile.programme if profile else None,
                'enrollment_date': enrollment.enrollment_date.isoformat() if enrollment.enrollment_date else None,
                'score': record.score if record else None,
                'letter_grade': record.letter_grade if record else None,
                'grade_status': record.status if record else None,
            })
        return roster

    @staticmethod
    def set_grade(student_id, course_id, score, grader):
        """Record a final course score for an enrolled student"""
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, grader)

        enrollment = Enrollment.query.filter_by(student_id=student_id, course_id=course_id).first()
        if enrollment is None or enrollment.status == ENROLLMENT_DROPPED:
            raise ValidationError("Student is not enrolled in this course")

        with transaction():
            academic_year = enrollment.academic_year or SettingsService.get('academic_year')
            semester = enrollment.semester or SettingsService.get('semester')
            record = EnrollmentService._ensure_record(student_id, course_id, academic_year, semester)
            record.apply_score(score, current_app.config['PASSING_SCORE'])
            record.graded_by = grader.id
            NotificationService.notify(
                student_id,
                'Grade Posted',
                f'Your grade for {course.code} has been posted: {record.letter_grade}',
                'INFO',
                {'course_id': course.id},
            )

        EnrollmentService.refresh_gpa(student_id)
        ActivityLogService.log('GRADE', grader.id, 'academic_record', record.id,
                               {'student_id': student_id, 'course_id': course_id, 'score': score})
        return record

    @staticmethod
    def transcript(student_id):
        """Graded records with credit-weighted GPA"""
        records = (AcademicRecord.query
                   .filter_by(student_id=student_id)
                   .join(Course, Course.id == AcademicRecord.course_id)
                   .order_by(AcademicRecord.academic_year.asc(), AcademicRecord.semester.asc(), Course.code.asc())
                   .all())

        graded = [record for record in records if record.grade_points is not None]
        total_credits = sum(record.course.credits for record in graded)
        weighted = sum(record.grade_points * record.course.credits for record in graded)
        credits_earned = sum(record.course.credits for record in graded if record.status == 'PASSED')
        gpa = round(weighted / total_credits, 2) if total_credits else 0.0

        return {
            'records': [record.to_dict() for record in records],
            'gpa': gpa,
            'credits_attempted': total_credits,
            'credits_earned': credits_earned,
        }

    @staticmethod
    def refresh_gpa(student_id):
        student = db.session.get(User, student_id)
        if student is None or student.student_profile is None:
            return
        student.student_profile.gpa = EnrollmentService.transcript(student_id)['gpa']
        db.session.commit()
