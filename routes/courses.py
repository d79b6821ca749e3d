"""
Course routes for the Campus Portal
Course catalogue, approval and rosters
"""

from flask import Blueprint, request

from models.academic import Course
from models.user import ROLE_LECTURER, ROLE_STUDENT
from routes.admin import send_workbook
from routes.auth import login_required, current_user
from services.course_service import CourseService, EnrollmentService
from services.excel_export_service import ExcelExportService
from utils.db_helpers import get_or_404, get_pagination_args
from utils.errors import NotFoundError, ValidationError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator, validate_course_code

courses_bp = Blueprint('courses', __name__, url_prefix='/api')

def _validate_course_payload(payload, partial=False):
    validator = (PayloadValidator(payload, partial=partial)
                 .string('code', required=not partial, max_length=20)
                 .string('title', required=not partial, min_length=3, max_length=150)
                 .string('description', required=False, max_length=2000)
                 .integer('credits', required=False, min_value=1, max_value=6)
                 .string('department', required=False, max_length=100)
                 .string('level', required=False, max_length=10)
                 .string('semester', required=False, max_length=30)
                 .integer('lecturer_id', required=False, min_value=1)
                 .boolean('is_active'))

    code = payload.get('code')
    if isinstance(code, str) and code.strip():
        is_valid, message = validate_course_code(code.strip())
        validator.check('code', is_valid, message)
    return validator.validate()

@courses_bp.route('/courses')
@login_required()
def list_courses():
    """Courses visible to the caller's role"""
    user = current_user()
    page, per_page = get_pagination_args()
    pagination = CourseService.list_courses(
        user,
        status=request.args.get('status'),
        search=request.args.get('search'),
        page=page,
        per_page=per_page,
    )

    courses = [course.to_dict() for course in pagination.items]
    if user.role == ROLE_STUDENT:
        enrolled = CourseService.enrolled_course_ids(user.id)
        for course in courses:
            course['is_enrolled'] = course['id'] in enrolled
    return success_response(courses, pagination=pagination)

@courses_bp.route('/courses', methods=['POST'])
@login_required('admin', 'lecturer')
def create_course():
    data = _validate_course_payload(get_json_body())
    course = CourseService.create_course(data, current_user())
    message = "Course created successfully" if course.status == 'APPROVED' \
        else "Course submitted for approval"
    return success_response(course.to_dict(), message, status=201)

@courses_bp.route('/courses/<int:course_id>')
@login_required()
def get_course(course_id):
    user = current_user()
    course = get_or_404(Course, course_id, "Course not found")
    if user.role == ROLE_STUDENT:
        is_enrolled = course.has_enrolled_student(user.id)
        if not course.is_open_for_enrollment and not is_enrolled:
            raise NotFoundError("Course not found")
        data = course.to_dict()
        data['is_enrolled'] = is_enrolled
        return success_response(data)

    if user.role == ROLE_LECTURER:
        CourseService.ensure_can_manage(course, user)
    return success_response(course.to_dict())

@courses_bp.route('/courses/<int:course_id>', methods=['PUT'])
@login_required('admin', 'lecturer')
def update_course(course_id):
    data = _validate_course_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    course = CourseService.update_course(course_id, data, current_user())
    return success_response(course.to_dict(), "Course updated successfully")

@courses_bp.route('/courses/<int:course_id>', methods=['DELETE'])
@login_required('admin', 'lecturer')
def delete_course(course_id):
    deleted = CourseService.delete_course(course_id, current_user())
    if deleted:
        return success_response({'deleted': True}, "Course deleted successfully")
    return success_response({'deleted': False, 'deactivated': True},
                            "Course has enrollments and was deactivated instead")

@courses_bp.route('/admin/courses/<int:course_id>/approve', methods=['POST'])
@login_required('admin')
def review_course(course_id):
    """Approve or reject a pending course"""
    data = (PayloadValidator(get_json_body())
            .choice('action', ['APPROVE', 'REJECT'])
            .string('rejection_reason', required=False, max_length=1000)
            .validate())
    action = data['action'].lower()
    course = CourseService.review_course(course_id, action, data.get('rejection_reason'), current_user().id)
    return success_response(course.to_dict(), f"Course {action}d successfully")

@courses_bp.route('/courses/<int:course_id>/students')
@login_required('admin', 'lecturer')
def course_students(course_id):
    course = get_or_404(Course, course_id, "Course not found")
    CourseService.ensure_can_manage(course, current_user())
    return success_response({
        'course': course.to_dict(),
        'students': EnrollmentService.roster(course),
    })

@courses_bp.route('/courses/<int:course_id>/roster/export')
@login_required('admin', 'lecturer')
def export_roster(course_id):
    course = get_or_404(Course, course_id, "Course not found")
    CourseService.ensure_can_manage(course, current_user())
    workbook = ExcelExportService.export_course_roster(course, EnrollmentService.roster(course))
    return send_workbook(workbook, f"roster_{course.code}")
