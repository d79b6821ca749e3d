"""
Admission application service for the Campus Portal
Public applications and the admin review that turns them into student accounts
"""

import logging
from datetime import datetime

from sqlalchemy import func

from database import db
from models.admissions import (
    Application, Programme, APPLICATION_TRANSITIONS,
    APPLICATION_PENDING, APPLICATION_APPROVED, APPLICATION_REJECTED,
)
from models.user import User, StudentProfile, ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.finance_service import FeeService, find_fee_structure, structure_total
from services.notification_service import NotificationService
from services.user_service import UserService
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

APPLICATION_FIELDS = (
    'first_name', 'last_name', 'middle_name', 'date_of_birth', 'gender', 'nationality', 'phone',
    'email', 'address', 'previous_school', 'graduation_year', 'programme_id', 'motivation_statement',
    'transcript_url', 'certificate_url', 'photo_url',
)

APPLICATION_NUMBER_ATTEMPTS = 3

class ApplicationService:
    """Admissions pipeline"""

    @staticmethod
    def list_programmes(active_only=True):
        query = Programme.query
        if active_only:
            query = query.filter(Programme.is_active.is_(True))
        return query.order_by(Programme.name.asc()).all()

    @staticmethod
    def programme_summary(programme):
        """Public programme entry with the total of its fee structure"""
        data = programme.to_dict()
        structure = find_fee_structure(programme.name)[1]
        data['total_fees'] = float(structure_total(structure)) if structure else None
        return data

    @staticmethod
    def submit(data):
        email = data['email'].lower()
        if Application.query.filter(func.lower(Application.email) == email).first():
            raise ValidationError("An application with this email already exists")

        programme = db.session.get(Programme, data['programme_id'])
        if programme is None or not programme.is_active:
            raise ValidationError("Validation failed", details={'programme_id': "Programme not found"})

        application = Application(status=APPLICATION_PENDING)
        for field in APPLICATION_FIELDS:
            if data.get(field) is not None:
                setattr(application, field, data[field])
        application.email = email

        for _ in range(APPLICATION_NUMBER_ATTEMPTS):
            application.application_number = Application.next_application_number()
            try:
                with transaction("An application with this email already exists"):
                    db.session.add(application)
                break
            except ConflictError:
                if Application.query.filter(func.lower(Application.email) == email).first():
                    raise
                # Number taken by a concurrent submission
                logger.warning("Application number %s already taken, retrying", application.application_number)
        else:
            raise ConflictError("Could not allocate an application number, please try again")

        logger.info("Application %s submitted for %s", application.application_number, programme.code)
        ActivityLogService.log('SUBMIT_APPLICATION', None, 'application', application.id,
                               {'application_number': application.application_number})
        return application

    @staticmethod
    def lookup_status(email=None, application_number=None):
        if not email and not application_number:
            raise ValidationError("Email or application number is required")
        query = Application.query
        if email:
            query = query.filter(func.lower(Application.email) == email.strip().lower())
        if application_number:
            query = query.filter(Application.application_number == application_number.strip().upper())
        application = query.first()
        if application is None:
            raise NotFoundError("Application not found")
        return application

    @staticmethod
    def list_applications(status=None, programme_id=None, search=None, page=1, per_page=20):
        query = Application.query
        if status:
            query = query.filter(Application.status == status.upper())
        if programme_id:
            query = query.filter(Application.programme_id == programme_id)
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(db.or_(
                Application.first_name.ilike(pattern),
                Application.last_name.ilike(pattern),
                Application.email.ilike(pattern),
                Application.application_number.ilike(pattern),
            ))
        return paginate_query(query.order_by(Application.created_at.desc(), Application.id.desc()), page, per_page)

    @staticmethod
    def review(application_id, status, admin_notes, admin):
        """Move an application forward; approval provisions the student account.

        Returns (application, credentials) where credentials is only set on approval.
        """
        application = get_or_404(Application, application_id, "Application not found")
        if application.is_final:
            raise ValidationError(f"Application has already been {application.status.lower()}")
        if status not in APPLICATION_TRANSITIONS[application.status]:
            raise ValidationError(f"Cannot move an application from {application.status} to {status}")

        credentials = None
        with transaction("A user with this email already exists"):
            application.status = status
            if admin_notes is not None:
                application.admin_notes = admin_notes
            application.reviewed_by = admin.id
            application.reviewed_at = datetime.utcnow()

            if status == APPLICATION_APPROVED:
                credentials = ApplicationService._provision_student(application)
                NotificationService.notify(
                    admin.id,
                    'Student Account Created',
                    f'Application {application.application_number} approved. '
                    f'Student number {credentials["student_number"]}, login {credentials["email"]}.',
                    'SUCCESS',
                    {'application_id': application.id, 'user_id': credentials['user_id']},
                )

        logger.info("Application %s marked %s by admin %s", application.application_number, status, admin.id)
        ActivityLogService.log(
            'APPROVE_APPLICATION' if status == APPLICATION_APPROVED else
            'REJECT_APPLICATION' if status == APPLICATION_REJECTED else 'REVIEW_APPLICATION',
            admin.id, 'application', application.id, {'status': status},
        )
        return application, credentials

    @staticmethod
    def _provision_student(application):
        """Stage the user, profile and fees for an approved applicant"""
        if UserService.email_exists(application.email):
            raise ValidationError("A user with this email already exists")

        password = User.generate_password()
        programme_name = application.programme.name if application.programme else None
        student_number = StudentProfile.next_student_number()

        user = User(email=application.email, name=application.full_name, role=ROLE_STUDENT, is_active=True)
        user.set_issued_password(password)
        user.student_profile = StudentProfile(
            student_number=student_number,
            programme=programme_name,
            phone=application.phone,
            address=application.address,
            date_of_birth=application.date_of_birth,
        )
        db.session.add(user)
        db.session.flush()

        if find_fee_structure(programme_name)[1] is not None:
            FeeService.stage_programme_fees(user.id, programme_name)
        else:
            logger.warning("No fee structure for programme %s; no fees created", programme_name)

        application.generated_student_number = student_number
        application.created_user_id = user.id
        return {
            'user_id': user.id,
            'email': user.email,
            'password': password,
            'student_number': student_number,
        }
