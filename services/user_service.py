"""
User management service for the Campus Portal
Admin operations on accounts and their profile records
"""

import logging
from datetime import datetime

from sqlalchemy import func, or_

from database import db
from models.admissions import Application
from models.academic import Course, Enrollment
from models.assignments import Submission
from models.attendance import Attendance
from models.communication import Announcement, Message
from models.finance import Fee, Payment
from models.library import Borrowing
from models.quizzes import QuizAttempt
from models.self_service import CertificateRequest, ClearanceRequest, IdCardRequest
from models.system import ActivityLog
from models.user import User, StudentProfile, LecturerProfile, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from utils.db_helpers import commit_or_rollback, get_or_404, paginate_query, transaction
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STUDENT_PROFILE_FIELDS = ('programme', 'level', 'year_of_study', 'phone', 'address', 'date_of_birth')
LECTURER_PROFILE_FIELDS = ('department', 'office', 'phone')

BULK_ACTIVATE = 'activate'
BULK_DEACTIVATE = 'deactivate'
BULK_DELETE = 'delete'
BULK_ACTIONS = (BULK_ACTIVATE, BULK_DEACTIVATE, BULK_DELETE)

class UserService:
    """Account administration"""

    @staticmethod
    def list_users(role=None, search=None, is_active=None, page=1, per_page=20):
        query = User.query
        if role:
            query = query.filter(User.role == role.lower())
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if search:
            pattern = f'%{search.strip()}%'
            query = (query
                     .outerjoin(StudentProfile, StudentProfile.user_id == User.id)
                     .filter(or_(User.name.ilike(pattern),
                                 User.email.ilike(pattern),
                                 StudentProfile.student_number.ilike(pattern))))
        return paginate_query(query.order_by(User.created_at.desc(), User.id.desc()), page, per_page)

    @staticmethod
    def email_exists(email, exclude_id=None):
        query = User.query.filter(func.lower(User.email) == email.lower())
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def next_staff_number(year=None):
        """Next sequential number in LEC<year><nnn> format"""
        year = year or datetime.utcnow().year
        prefix = f'LEC{year}'
        count = LecturerProfile.query.filter(LecturerProfile.staff_number.like(f'{prefix}%')).count()
        candidate = f'{prefix}{count + 1:03d}'
        while LecturerProfile.query.filter_by(staff_number=candidate).first():
            count += 1
            candidate = f'{prefix}{count + 1:03d}'
        return candidate

    @staticmethod
    def build_user(data, password):
        """Construct an unsaved user with the profile matching its role"""
        user = User(email=data['email'], name=data['name'], role=data['role'], is_active=True)
        user.set_issued_password(password)

        if user.role == ROLE_STUDENT:
            student_number = data.get('student_number') or StudentProfile.next_student_number()
            if StudentProfile.query.filter_by(student_number=student_number).first():
                raise ValidationError("Student number already exists")
            user.student_profile = StudentProfile(
                student_number=student_number,
                **{field: data[field] for field in STUDENT_PROFILE_FIELDS if data.get(field) is not None}
            )
        elif user.role == ROLE_LECTURER:
            staff_number = data.get('staff_number') or UserService.next_staff_number()
            if LecturerProfile.query.filter_by(staff_number=staff_number).first():
                raise ValidationError("Staff number already exists")
            user.lecturer_profile = LecturerProfile(
                staff_number=staff_number,
                **{field: data[field] for field in LECTURER_PROFILE_FIELDS if data.get(field) is not None}
            )
        return user

    @staticmethod
    def create_user(data, admin_id):
        """Create a user and profile; returns (user, issued_password)"""
        if UserService.email_exists(data['email']):
            raise ValidationError("A user with this email already exists")

        password = data.get('password') or User.generate_password()
        with transaction("A user with this email already exists"):
            user = UserService.build_user(data, password)
            db.session.add(user)

        logger.info("User %s created with role %s", user.email, user.role)
        ActivityLogService.log('CREATE_USER', admin_id, 'user', user.id, {'email': user.email, 'role': user.role})
        return user, password

    @staticmethod
    def update_user(user_id, data, admin_id):
        user = get_or_404(User, user_id, "User not found")

        if 'email' in data and data['email'] and UserService.email_exists(data['email'], exclude_id=user.id):
            raise ValidationError("A user with this email already exists")

        if user.id == admin_id and data.get('is_active') is False:
            raise ValidationError("You cannot deactivate your own account")

        for field in ('email', 'name', 'is_active'):
            if data.get(field) is not None:
                setattr(user, field, data[field])

        profile = user.profile
        if profile is not None:
            fields = STUDENT_PROFILE_FIELDS if user.role == ROLE_STUDENT else LECTURER_PROFILE_FIELDS
            for field in fields:
                if field in data:
                    setattr(profile, field, data[field])

        commit_or_rollback("A user with this email already exists")

        ActivityLogService.log('UPDATE_USER', admin_id, 'user', user.id, {'fields': sorted(data)})
        return user

    @staticmethod
    def deactivate_user(user_id, admin_id):
        """Soft delete: the account is kept but can no longer sign in"""
        if user_id == admin_id:
            raise ValidationError("You cannot deactivate your own account")

        user = get_or_404(User, user_id, "User not found")
        user.is_active = False
        db.session.commit()

        logger.info("User %s deactivated by %s", user.id, admin_id)
        ActivityLogService.log('DEACTIVATE_USER', admin_id, 'user', user.id, {'email': user.email})
        return user

    @staticmethod
    def related_data(user):
        """Counts of records that still reference the user, keyed by kind; empty when none"""
        checks = (
            ('courses', Course.query.filter(Course.lecturer_id == user.id)),
            ('enrollments', Enrollment.query.filter(Enrollment.student_id == user.id)),
            ('submissions', Submission.query.filter(Submission.student_id == user.id)),
            ('quiz_attempts', QuizAttempt.query.filter(QuizAttempt.student_id == user.id)),
            ('attendance', Attendance.query.filter(Attendance.student_id == user.id)),
            ('fees', Fee.query.filter(Fee.student_id == user.id)),
            ('payments', Payment.query.filter(Payment.student_id == user.id)),
            ('borrowings', Borrowing.query.filter(Borrowing.user_id == user.id)),
            ('announcements', Announcement.query.filter(Announcement.author_id == user.id)),
            ('messages', Message.query.filter(or_(Message.sender_id == user.id, Message.recipient_id == user.id))),
            ('certificate_requests', CertificateRequest.query.filter(CertificateRequest.user_id == user.id)),
            ('clearance_requests', ClearanceRequest.query.filter(ClearanceRequest.user_id == user.id)),
            ('id_card_requests', IdCardRequest.query.filter(IdCardRequest.user_id == user.id)),
            ('applications', Application.query.filter(Application.created_user_id == user.id)),
        )
        related = {}
        for kind, query in checks:
            count = query.count()
            if count:
                related[kind] = count
        return related

    @staticmethod
    def bulk_action(user_ids, action, admin_id):
        """Activate, deactivate or delete several accounts at once; returns the number affected.

        The acting admin is never deactivated or deleted. Deletion is all or nothing
        and is refused while any selected account still has related records.
        """
        if admin_id in user_ids and action in (BULK_DEACTIVATE, BULK_DELETE):
            raise ValidationError(f"You cannot {action} your own account")

        users = User.query.filter(User.id.in_(set(user_ids))).all()
        missing = sorted(set(user_ids) - {user.id for user in users})
        if missing:
            raise NotFoundError("Some users were not found", details={'user_ids': missing})

        if action == BULK_DELETE:
            blocked = {}
            for user in users:
                related = UserService.related_data(user)
                if related:
                    blocked[str(user.id)] = related
            if blocked:
                raise ValidationError("Cannot delete users with existing data", details=blocked)

        with transaction("Cannot delete users with existing data"):
            for user in users:
                if action == BULK_DELETE:
                    # Keep the audit trail, detached from the account
                    ActivityLog.query.filter_by(user_id=user.id).update({'user_id': None})
                    db.session.delete(user)
                else:
                    user.is_active = action == BULK_ACTIVATE

        logger.info("Bulk %s of %s users by admin %s", action, len(users), admin_id)
        ActivityLogService.log(f'BULK_{action.upper()}_USERS', admin_id, 'user', None,
                               {'user_ids': sorted(user.id for user in users)})
        return len(users)

    @staticmethod
    def reset_password(user_id, admin_id):
        """Issue a new random password; returns (user, password)"""
        user = get_or_404(User, user_id, "User not found")
        password = User.generate_password()
        user.set_issued_password(password)
        db.session.commit()

        ActivityLogService.log('RESET_PASSWORD', admin_id, 'user', user.id)
        return user, password

    @staticmethod
    def get_credentials(user_id, admin_id):
        """Decrypt the issued password still on record"""
        user = get_or_404(User, user_id, "User not found")
        password = user.get_issued_password()
        if not password:
            raise NotFoundError("No issued credentials on record for this user")

        ActivityLogService.log('VIEW_CREDENTIALS', admin_id, 'user', user.id)
        return {'email': user.email, 'password': password}

    @staticmethod
    def update_own_profile(user, data):
        """Self-service profile edit; students may only change contact details"""
        profile = user.profile
        if profile is None:
            if 'name' in data and user.role == ROLE_ADMIN:
                user.name = data['name']
                db.session.commit()
                return user
            raise ValidationError("No editable profile for this account")

        if user.role == ROLE_STUDENT:
            allowed = ('phone', 'address')
        else:
            allowed = ('phone', 'office')

        disallowed = sorted(set(data) - set(allowed))
        if disallowed:
            raise ValidationError("Validation failed", details={
                field: "This field cannot be changed" for field in disallowed
            })

        for field in allowed:
            if field in data:
                setattr(profile, field, data[field])
        db.session.commit()
        ActivityLogService.log('UPDATE_PROFILE', user.id, 'user', user.id, {'fields': sorted(data)})
        return user
