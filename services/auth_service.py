"""
Authentication service for the Campus Portal
Handles login, password management, and session utilities
"""

import hashlib
import logging
from datetime import datetime

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import func

from database import db
from models.user import User
from utils.errors import UnauthorizedError, ValidationError
from utils.validators import validate_password

logger = logging.getLogger(__name__)

RESET_SALT = 'password-reset'

class AuthService:
    """Authentication service class"""

    @staticmethod
    def authenticate(email, password):
        """Authenticate an active user by email; raises UnauthorizedError on failure"""
        normalized = (email or '').strip()
        user = (
            User.query
            .filter(func.lower(User.email) == func.lower(normalized))
            .filter_by(is_active=True)
            .first()
        )

        if user is None or not user.check_password(password):
            logger.info("Failed login attempt for %s", normalized)
            raise UnauthorizedError("Invalid email or password")

        user.update_last_login()
        return user

    @staticmethod
    def change_password(user, current_password, new_password, confirm_password):
        """Change a user's own password"""
        from services.settings_service import SettingsService

        if not user.check_password(current_password):
            raise ValidationError("Current password is incorrect")

        is_valid, message = validate_password(new_password, SettingsService.get('password_min_length'))
        if not is_valid:
            raise ValidationError("Validation failed", details={'new_password': message})

        if new_password != confirm_password:
            raise ValidationError("Validation failed", details={'confirm_password': "Passwords do not match"})

        if user.check_password(new_password):
            raise ValidationError("New password must be different from the current password")

        user.set_password(new_password)
        # The issued password is no longer valid, so stop exposing it to admins
        user.password_encrypted = None
        db.session.commit()
        logger.info("Password changed for user %s", user.id)

    @staticmethod
    def _reset_serializer():
        return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=RESET_SALT)

    @staticmethod
    def _password_fingerprint(user):
        # Changes with the password hash, so a used token stops verifying
        return hashlib.sha256(user.password_hash.encode()).hexdigest()[:16]

    @staticmethod
    def generate_reset_token(user):
        return AuthService._reset_serializer().dumps({
            'user_id': user.id,
            'fingerprint': AuthService._password_fingerprint(user),
        })

    @staticmethod
    def request_password_reset(email):
        """Issue a reset token for an active account; unknown emails are ignored silently.

        Tokens are handed to the delivery log, there is no mail transport.
        Returns the token or None.
        """
        normalized = (email or '').strip().lower()
        user = (User.query
                .filter(func.lower(User.email) == normalized)
                .filter_by(is_active=True)
                .first())
        if user is None:
            logger.info("Password reset requested for unknown or inactive account %s", normalized)
            return None

        token = AuthService.generate_reset_token(user)
        logger.info("Password reset token for %s: %s", user.email, token)
        return token

    @staticmethod
    def reset_password(token, new_password, confirm_password):
        """Set a new password from a reset token; each token works once"""
        from services.settings_service import SettingsService

        try:
            data = AuthService._reset_serializer().loads(token, max_age=current_app.config['PASSWORD_RESET_MAX_AGE'])
        except SignatureExpired:
            raise ValidationError("Reset link has expired. Please request a new one.")
        except BadSignature:
            raise ValidationError("Invalid or expired reset link")

        user = db.session.get(User, data.get('user_id')) if isinstance(data, dict) else None
        if (user is None or not user.is_active
                or data.get('fingerprint') != AuthService._password_fingerprint(user)):
            raise ValidationError("Invalid or expired reset link")

        is_valid, message = validate_password(new_password, SettingsService.get('password_min_length'))
        if not is_valid:
            raise ValidationError("Validation failed", details={'password': message})
        if new_password != confirm_password:
            raise ValidationError("Validation failed", details={'confirm_password': "Passwords do not match"})

        user.set_password(new_password)
        user.password_encrypted = None
        db.session.commit()
        logger.info("Password reset completed for user %s", user.id)
        return user


class SessionManager:
    """Session management utilities"""

    @staticmethod
    def create_session(session, user):
        """Create user session"""
        session.clear()
        session['user_id'] = user.id
        session['role'] = user.role
        session['email'] = user.email
        session['login_time'] = datetime.utcnow().isoformat()
        session.permanent = True

    @staticmethod
    def clear_session(session):
        """Clear user session"""
        session.clear()

    @staticmethod
    def is_authenticated(session):
        """Check if a user id and role are present"""
        return 'user_id' in session and 'role' in session

    @staticmethod
    def get_current_user_id(session):
        return session.get('user_id')

    @staticmethod
    def get_current_role(session):
        return session.get('role')

    @staticmethod
    def get_current_user(session):
        """The signed-in user, or None when the session is missing or stale"""
        if not SessionManager.is_authenticated(session):
            return None
        user = db.session.get(User, session.get('user_id'))
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    def get_session_info(session):
        """Get complete session information"""
        if not SessionManager.is_authenticated(session):
            return None

        return {
            'user_id': session.get('user_id'),
            'role': session.get('role'),
            'email': session.get('email'),
            'login_time': session.get('login_time'),
        }
