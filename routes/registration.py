"""
Course registration routes for the Campus Portal
Registration periods and semester course registration
"""

from flask import Blueprint, request

from models.system import CourseRegistrationPeriod
from routes.auth import login_required, current_user
from services.registration_service import RegistrationService
from utils.db_helpers import get_or_404, get_pagination_args
from utils.errors import ValidationError
from utils.responses import arg_bool, get_json_body, success_response
from utils.validators import PayloadValidator, validate_academic_year

registration_bp = Blueprint('registration', __name__, url_prefix='/api')

def _validate_period_payload(payload, partial=False):
    validator = (PayloadValidator(payload, partial=partial)
                 .string('name', required=not partial, min_length=3, max_length=100)
                 .string('description', required=False, max_length=1000)
                 .string('academic_year', required=not partial, max_length=20, label='Academic year')
                 .string('semester', required=not partial, max_length=30)
                 .string('level', required=False, max_length=10)
                 .string('department', required=False, max_length=100)
                 .datetime('start_date', required=not partial, label='Start date')
                 .datetime('end_date', required=not partial, label='End date')
                 .boolean('is_active'))

    academic_year = payload.get('academic_year')
    if isinstance(academic_year, str) and academic_year.strip():
        is_valid, message = validate_academic_year(academic_year.strip())
        validator.check('academic_year', is_valid, message)
    return validator.validate()

# Registration periods

@registration_bp.route('/admin/registration-periods')
@login_required('admin')
def list_periods():
    page, per_page = get_pagination_args()
    pagination = RegistrationService.list_periods(
        academic_year=request.args.get('academic_year'),
        is_active=arg_bool('is_active'),
        page=page,
        per_page=per_page,
    )
    return success_response([period.to_dict() for period in pagination.items], pagination=pagination)

@registration_bp.route('/admin/registration-periods', methods=['POST'])
@login_required('admin')
def create_period():
    data = _validate_period_payload(get_json_body())
    period = RegistrationService.create_period(data, current_user().id)
    return success_response(period.to_dict(), "Registration period created successfully", status=201)

@registration_bp.route('/admin/registration-periods/<int:period_id>')
@login_required('admin')
def get_period(period_id):
    period = get_or_404(CourseRegistrationPeriod, period_id, "Registration period not found")
    return success_response(period.to_dict())

@registration_bp.route('/admin/registration-periods/<int:period_id>', methods=['PUT'])
@login_required('admin')
def update_period(period_id):
    data = _validate_period_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    period = RegistrationService.update_period(period_id, data, current_user().id)
    return success_response(period.to_dict(), "Registration period updated successfully")

@registration_bp.route('/admin/registration-periods/<int:period_id>', methods=['DELETE'])
@login_required('admin')
def delete_period(period_id):
    RegistrationService.delete_period(period_id, current_user().id)
    return success_response(None, "Registration period deleted successfully")

# Registration

@registration_bp.route('/registration/current')
@login_required()
def current_registration():
    """Whether course registration is open right now"""
    return success_response(RegistrationService.current_status())

@registration_bp.route('/students/course-registration')
@login_required('student')
def registration_overview():
    return success_response(RegistrationService.overview(current_user().id))

@registration_bp.route('/students/course-registration', methods=['POST'])
@login_required('student')
def register_courses():
    """Register for the semester's courses in one step"""
    data = (PayloadValidator(get_json_body())
            .id_list('course_ids', label='Courses')
            .validate())

    enrollments, total_credits = RegistrationService.register(current_user().id, data['course_ids'])
    return success_response({
        'enrollments': [enrollment.to_dict() for enrollment in enrollments],
        'total_credits': total_credits,
    }, f"Registered for {len(enrollments)} courses successfully", status=201)
