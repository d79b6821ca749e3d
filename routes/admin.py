"""
Administration routes for the Campus Portal
User accounts, activity log, system settings and the admin dashboard
"""

from datetime import datetime

from flask import Blueprint, request, send_file
from io import BytesIO

from models.user import User, ROLES, ROLE_STUDENT, ROLE_LECTURER
from routes.auth import login_required, current_user
from services.activity_log_service import ActivityLogService
from services.dashboard_service import DashboardService
from services.excel_export_service import ExcelExportService, XLSX_MIMETYPE
from services.reporting_service import PDF_MIMETYPE
from services.settings_service import SettingsService
from services.user_service import UserService, BULK_ACTIONS
from utils.db_helpers import get_or_404, get_pagination_args
from utils.errors import ValidationError
from utils.responses import arg_bool, get_json_body, success_response
from utils.validators import PayloadValidator, validate_name, validate_password

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

def send_workbook(workbook, prefix):
    """Stream an openpyxl workbook as an .xlsx attachment"""
    data = ExcelExportService.workbook_to_bytes(workbook)
    filename = f"{prefix}_{datetime.utcnow():%Y%m%d_%H%M%S}.xlsx"
    return send_file(BytesIO(data), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)

def send_pdf(data, prefix):
    """Stream PDF bytes as an attachment"""
    filename = f"{prefix}_{datetime.utcnow():%Y%m%d_%H%M%S}.pdf"
    return send_file(BytesIO(data), mimetype=PDF_MIMETYPE, as_attachment=True, download_name=filename)

def _validate_user_payload(payload, partial=False):
    validator = PayloadValidator(payload, partial=partial)
    validator.email('email', required=not partial)
    validator.string('name', required=not partial, min_length=2, max_length=100)
    if not partial:
        validator.choice('role', [role.upper() for role in ROLES])
        validator.string('password', required=False, min_length=1, max_length=128)
        validator.string('student_number', required=False, max_length=20)
        validator.string('staff_number', required=False, max_length=20)
    else:
        validator.boolean('is_active')
    validator.string('programme', required=False, max_length=150)
    validator.string('level', required=False, max_length=10)
    validator.integer('year_of_study', required=False, min_value=1, max_value=10)
    validator.string('phone', required=False, max_length=20)
    validator.string('address', required=False, max_length=500)
    validator.datetime('date_of_birth', required=False)
    validator.string('department', required=False, max_length=100)
    validator.string('office', required=False, max_length=50)

    name = payload.get('name')
    if isinstance(name, str) and name.strip():
        is_valid, message = validate_name(name)
        validator.check('name', is_valid, message)

    password = payload.get('password')
    if not partial and isinstance(password, str) and password:
        is_valid, message = validate_password(password, SettingsService.get('password_min_length'))
        validator.check('password', is_valid, message)

    data = validator.validate()
    if 'role' in data:
        data['role'] = data['role'].lower()
    if data.get('date_of_birth'):
        data['date_of_birth'] = data['date_of_birth'].date()
    return data

# Users

@admin_bp.route('/users')
@login_required('admin')
def list_users():
    """Paginated user list"""
    page, per_page = get_pagination_args()
    pagination = UserService.list_users(
        role=request.args.get('role'),
        search=request.args.get('search'),
        is_active=arg_bool('is_active'),
        page=page,
        per_page=per_page,
    )
    return success_response([user.to_dict() for user in pagination.items], pagination=pagination)

@admin_bp.route('/users', methods=['POST'])
@login_required('admin')
def create_user():
    """Create a user with a role profile"""
    data = _validate_user_payload(get_json_body())
    user, password = UserService.create_user(data, current_user().id)

    body = user.to_dict()
    body['credentials'] = {'email': user.email, 'password': password}
    return success_response(body, "User created successfully", status=201)

@admin_bp.route('/users/bulk', methods=['POST'])
@login_required('admin')
def bulk_users():
    """Activate, deactivate or delete a selection of accounts"""
    payload = get_json_body()
    data = (PayloadValidator(payload)
            .id_list('user_ids', label='User ids')
            .choice('action', [action.upper() for action in BULK_ACTIONS])
            .validate())
    action = data['action'].lower()
    count = UserService.bulk_action(data['user_ids'], action, current_user().id)
    return success_response({'count': count, 'action': action},
                            f"{count} user{'s' if count != 1 else ''} {action}d successfully")

@admin_bp.route('/users/export')
@login_required('admin')
def export_users():
    query = User.query
    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role.lower())
    users = query.order_by(User.role.asc(), User.name.asc()).all()
    return send_workbook(ExcelExportService.export_users(users), 'users')

@admin_bp.route('/users/<int:user_id>')
@login_required('admin')
def get_user(user_id):
    user = get_or_404(User, user_id, "User not found")
    data = user.to_dict()
    data['has_issued_credentials'] = bool(user.password_encrypted)
    if user.role == ROLE_STUDENT:
        data['enrollment_count'] = user.enrollments.count()
    elif user.role == ROLE_LECTURER:
        data['course_count'] = user.taught_courses.count()
    return success_response(data)

@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required('admin')
def update_user(user_id):
    data = _validate_user_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    user = UserService.update_user(user_id, data, current_user().id)
    return success_response(user.to_dict(), "User updated successfully")

@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required('admin')
def deactivate_user(user_id):
    """Soft delete: deactivate the account"""
    user = UserService.deactivate_user(user_id, current_user().id)
    return success_response(user.to_dict(), "User deactivated successfully")

@admin_bp.route('/users/<int:user_id>/reset-password', methods=['POST'])
@login_required('admin')
def reset_password(user_id):
    user, password = UserService.reset_password(user_id, current_user().id)
    return success_response({'email': user.email, 'password': password}, "Password reset successfully")

@admin_bp.route('/users/<int:user_id>/credentials')
@login_required('admin')
def get_credentials(user_id):
    return success_response(UserService.get_credentials(user_id, current_user().id))

# Activity log

@admin_bp.route('/activity-logs')
@login_required('admin')
def activity_logs():
    page, per_page = get_pagination_args()
    pagination = ActivityLogService.list_logs(
        user_id=request.args.get('user_id', type=int),
        action=request.args.get('action'),
        page=page,
        per_page=per_page,
    )
    return success_response([entry.to_dict() for entry in pagination.items], pagination=pagination)

@admin_bp.route('/activity-logs/export')
@login_required('admin')
def export_activity_logs():
    logs = ActivityLogService.all_logs(
        user_id=request.args.get('user_id', type=int),
        action=request.args.get('action'),
    )
    return send_workbook(ExcelExportService.export_activity_logs(logs), 'activity_log')

# Settings

@admin_bp.route('/settings')
@login_required('admin')
def get_settings():
    return success_response(SettingsService.get_all())

@admin_bp.route('/settings', methods=['PUT'])
@login_required('admin')
def update_settings():
    admin = current_user()
    payload = get_json_body()
    settings = SettingsService.update(payload, admin.id)
    ActivityLogService.log('UPDATE_SETTINGS', admin.id, 'system_settings', None, {'keys': sorted(payload)})
    return success_response(settings, "Settings updated successfully")

# Dashboard

@admin_bp.route('/dashboard')
@login_required('admin')
def dashboard():
    """Admin dashboard with overview statistics"""
    return success_response(DashboardService.admin_stats())
