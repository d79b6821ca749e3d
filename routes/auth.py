"""
Authentication routes for the Campus Portal
Handles login, logout, the current session, password changes and resets
"""

from flask import Blueprint, g, session
from flask_wtf.csrf import generate_csrf

from services.activity_log_service import ActivityLogService
from services.auth_service import AuthService, SessionManager
from utils.errors import ForbiddenError, UnauthorizedError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

def login_required(*roles):
    """Decorator to require an authenticated session, optionally with one of the given roles"""
    def decorator(f):
        def decorated_function(*args, **kwargs):
            user = SessionManager.get_current_user(session)
            if user is None:
                raise UnauthorizedError("Authentication required")

            if roles and user.role not in roles:
                raise ForbiddenError("You do not have permission to perform this action")

            g.current_user = user
            return f(*args, **kwargs)

        decorated_function.__name__ = f.__name__
        decorated_function.__doc__ = f.__doc__
        return decorated_function
    return decorator

def current_user():
    """User resolved by login_required for this request"""
    return g.current_user

@auth_bp.route('/login', methods=['POST'])
def login():
    """Sign in with email and password"""
    data = (PayloadValidator(get_json_body())
            .email('email')
            .string('password', min_length=1)
            .validate())

    user = AuthService.authenticate(data['email'], data['password'])
    SessionManager.create_session(session, user)
    ActivityLogService.log('LOGIN', user.id, 'user', user.id)

    return success_response(user.to_dict(), "Login successful")

@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the session"""
    user_id = SessionManager.get_current_user_id(session)
    SessionManager.clear_session(session)
    if user_id:
        ActivityLogService.log('LOGOUT', user_id, 'user', user_id)
    return success_response(None, "You have been logged out successfully")

@auth_bp.route('/me')
@login_required()
def me():
    """Current user with profile"""
    data = current_user().to_dict()
    data['session'] = SessionManager.get_session_info(session)
    return success_response(data)

@auth_bp.route('/change-password', methods=['POST'])
@login_required()
def change_password():
    """Change password for authenticated users"""
    data = (PayloadValidator(get_json_body())
            .string('current_password', label='Current password')
            .string('new_password', label='New password')
            .string('confirm_password', label='Password confirmation')
            .validate())

    user = current_user()
    AuthService.change_password(user, data['current_password'], data['new_password'], data['confirm_password'])
    ActivityLogService.log('CHANGE_PASSWORD', user.id, 'user', user.id)
    return success_response(None, "Password changed successfully")

@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for browser clients to send back as X-CSRFToken"""
    return success_response({'csrf_token': generate_csrf()})

@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """Start a password reset; the answer never reveals whether the account exists"""
    data = PayloadValidator(get_json_body()).email('email').validate()
    AuthService.request_password_reset(data['email'])
    return success_response(None, "If an account exists with this email, a password reset link has been sent")

@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    """Set a new password with a reset token"""
    data = (PayloadValidator(get_json_body())
            .string('token', max_length=500)
            .string('password', label='New password')
            .string('confirm_password', label='Password confirmation')
            .validate())
    user = AuthService.reset_password(data['token'], data['password'], data['confirm_password'])
    ActivityLogService.log('RESET_PASSWORD', user.id, 'user', user.id, {'via': 'reset_token'})
    return success_response(None, "Password has been reset successfully. You can now sign in.")
