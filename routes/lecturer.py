"""
Lecturer portal routes for the Campus Portal
Handles grading and the lecturer dashboard
"""

from flask import Blueprint

from routes.auth import login_required, current_user
from services.course_service import EnrollmentService
from services.dashboard_service import DashboardService
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

lecturer_bp = Blueprint('lecturer', __name__, url_prefix='/api/lecturer')

@lecturer_bp.route('/dashboard')
@login_required('lecturer')
def dashboard():
    """Lecturer dashboard with overview statistics"""
    return success_response(DashboardService.lecturer_stats(current_user()))

@lecturer_bp.route('/grades', methods=['PUT'])
@login_required('lecturer', 'admin')
def set_grade():
    """Record a final course score for one student"""
    data = (PayloadValidator(get_json_body())
            .integer('student_id', min_value=1, label='Student')
            .integer('course_id', min_value=1, label='Course')
            .number('score', min_value=0, max_value=100)
            .validate())

    record = EnrollmentService.set_grade(data['student_id'], data['course_id'], data['score'], current_user())
    return success_response(record.to_dict(), "Grade recorded successfully")
