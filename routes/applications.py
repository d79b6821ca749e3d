"""
Admission routes for the Campus Portal
Public programme list, applications and status lookup, plus admin review
"""

from datetime import datetime

from flask import Blueprint, request

from models.admissions import Application, APPLICATION_STATUSES, GENDERS
from routes.auth import login_required, current_user
from services.application_service import ApplicationService
from utils.db_helpers import get_or_404, get_pagination_args
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator, validate_name, validate_phone

applications_bp = Blueprint('applications', __name__, url_prefix='/api')

MIN_MOTIVATION_LENGTH = 50

@applications_bp.route('/programmes')
def list_programmes():
    """Programmes open for application"""
    return success_response([ApplicationService.programme_summary(programme)
                             for programme in ApplicationService.list_programmes()])

@applications_bp.route('/applications', methods=['POST'])
def submit_application():
    payload = get_json_body()
    this_year = datetime.utcnow().year
    validator = (PayloadValidator(payload)
                 .string('first_name', min_length=2, max_length=50, label='First name')
                 .string('last_name', min_length=2, max_length=50, label='Last name')
                 .string('middle_name', required=False, max_length=50, label='Middle name')
                 .datetime('date_of_birth', label='Date of birth')
                 .choice('gender', list(GENDERS))
                 .string('nationality', min_length=2, max_length=50)
                 .string('phone', max_length=20)
                 .email('email')
                 .string('address', min_length=5, max_length=500)
                 .string('previous_school', min_length=2, max_length=150, label='Previous school')
                 .integer('graduation_year', min_value=1950, max_value=this_year, label='Graduation year')
                 .integer('programme_id', min_value=1, label='Programme')
                 .string('motivation_statement', min_length=MIN_MOTIVATION_LENGTH, max_length=5000,
                         label='Motivation statement')
                 .string('transcript_url', required=False, max_length=500, label='Transcript URL')
                 .string('certificate_url', required=False, max_length=500, label='Certificate URL')
                 .string('photo_url', required=False, max_length=500, label='Photo URL'))

    for field, label in (('first_name', 'First name'), ('last_name', 'Last name')):
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            is_valid, message = validate_name(value, label)
            validator.check(field, is_valid, message)
    phone = payload.get('phone')
    if isinstance(phone, str) and phone.strip():
        is_valid, message = validate_phone(phone)
        validator.check('phone', is_valid, message)

    data = validator.validate()
    data['date_of_birth'] = data['date_of_birth'].date()

    application = ApplicationService.submit(data)
    return success_response(application.to_status_dict(), "Application submitted successfully", status=201)

@applications_bp.route('/applications/status')
def application_status():
    """Public status lookup by email and/or application number"""
    application = ApplicationService.lookup_status(
        email=request.args.get('email'),
        application_number=request.args.get('application_number'),
    )
    return success_response(application.to_status_dict())

@applications_bp.route('/applications')
@login_required('admin')
def list_applications():
    page, per_page = get_pagination_args()
    pagination = ApplicationService.list_applications(
        status=request.args.get('status'),
        programme_id=request.args.get('programme_id', type=int),
        search=request.args.get('search'),
        page=page,
        per_page=per_page,
    )
    return success_response([item.to_dict() for item in pagination.items], pagination=pagination)

@applications_bp.route('/applications/<int:application_id>')
@login_required('admin')
def get_application(application_id):
    application = get_or_404(Application, application_id, "Application not found")
    return success_response(application.to_dict())

@applications_bp.route('/applications/<int:application_id>', methods=['PUT'])
@login_required('admin')
def review_application(application_id):
    """Review an application; approval creates the student account"""
    data = (PayloadValidator(get_json_body())
            .choice('status', list(APPLICATION_STATUSES))
            .string('admin_notes', required=False, max_length=2000, label='Admin notes')
            .validate())

    application, credentials = ApplicationService.review(
        application_id, data['status'], data.get('admin_notes'), current_user(),
    )
    body = application.to_dict()
    if credentials:
        body['credentials'] = credentials
    return success_response(body, f"Application {application.status.lower().replace('_', ' ')}")
