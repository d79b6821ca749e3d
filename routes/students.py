"""
Student portal routes for the Campus Portal
Enrollment, transcript, profile and dashboard
"""

from flask import Blueprint, request

from routes.admin import send_pdf
from routes.auth import login_required, current_user
from services.course_service import EnrollmentService
from services.dashboard_service import DashboardService
from services.finance_service import FeeService
from services.reporting_service import ReportingService
from services.settings_service import SettingsService
from services.user_service import UserService
from utils.errors import ValidationError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator, validate_phone

students_bp = Blueprint('students', __name__, url_prefix='/api/students')

@students_bp.route('/dashboard')
@login_required('student')
def dashboard():
    """Student dashboard with overview statistics"""
    return success_response(DashboardService.student_stats(current_user()))

@students_bp.route('/enroll', methods=['POST'])
@login_required('student')
def enroll():
    data = (PayloadValidator(get_json_body())
            .integer('course_id', min_value=1, label='Course')
            .validate())
    enrollment = EnrollmentService.enroll(current_user().id, data['course_id'])
    return success_response(enrollment.to_dict(), "Enrolled successfully", status=201)

@students_bp.route('/enrollments')
@login_required('student')
def enrollments():
    rows = EnrollmentService.list_for_student(current_user().id, request.args.get('status'))
    return success_response([enrollment.to_dict() for enrollment in rows])

@students_bp.route('/enrollments/<int:course_id>/drop', methods=['POST'])
@login_required('student')
def drop(course_id):
    enrollment = EnrollmentService.drop(current_user().id, course_id)
    return success_response(enrollment.to_dict(), "Course dropped successfully")

@students_bp.route('/transcript')
@login_required('student')
def transcript():
    user = current_user()
    data = EnrollmentService.transcript(user.id)
    data['student'] = user.to_dict()
    return success_response(data)

@students_bp.route('/transcript/pdf')
@login_required('student')
def transcript_pdf():
    user = current_user()
    pdf = ReportingService.generate_transcript_pdf(user, EnrollmentService.transcript(user.id),
                                                   SettingsService.get('university_name'))
    return send_pdf(pdf, 'transcript')

@students_bp.route('/fee-status')
@login_required('student')
def fee_status():
    return success_response(FeeService.fee_status(current_user().id))

@students_bp.route('/profile')
@login_required('student')
def get_profile():
    return success_response(current_user().to_dict())

@students_bp.route('/profile', methods=['PUT'])
@login_required('student')
def update_profile():
    """Students may edit their phone number and address only"""
    payload = get_json_body()
    validator = (PayloadValidator(payload, partial=True)
                 .string('phone', required=False, max_length=20)
                 .string('address', required=False, max_length=500))
    phone = payload.get('phone')
    if isinstance(phone, str) and phone.strip():
        is_valid, message = validate_phone(phone)
        validator.check('phone', is_valid, message)
    validator.validate()

    if not payload:
        raise ValidationError("No fields to update")
    data = {key: validator.cleaned.get(key) for key in payload}
    user = UserService.update_own_profile(current_user(), data)
    return success_response(user.to_dict(), "Profile updated successfully")
