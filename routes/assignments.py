"""
Assignment routes for the Campus Portal
Posting coursework, student submissions and grading
"""

from flask import Blueprint

from routes.auth import login_required, current_user
from services.assignment_service import AssignmentService
from utils.errors import ValidationError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

assignments_bp = Blueprint('assignments', __name__, url_prefix='/api')

def _validate_assignment_payload(payload, partial=False):
    return (PayloadValidator(payload, partial=partial)
            .string('title', required=not partial, min_length=3, max_length=200)
            .string('description', required=False, max_length=5000)
            .datetime('due_date', required=not partial, label='Due date')
            .integer('max_points', required=False, min_value=1, max_value=1000, label='Max points')
            .string('file_url', required=False, max_length=500, label='File URL')
            .validate())

@assignments_bp.route('/courses/<int:course_id>/assignments')
@login_required()
def list_assignments(course_id):
    return success_response(AssignmentService.list_for_course(course_id, current_user()))

@assignments_bp.route('/courses/<int:course_id>/assignments', methods=['POST'])
@login_required('lecturer', 'admin')
def create_assignment(course_id):
    data = _validate_assignment_payload(get_json_body())
    assignment = AssignmentService.create(course_id, data, current_user())
    return success_response(assignment.to_dict(), "Assignment created successfully", status=201)

@assignments_bp.route('/assignments/<int:assignment_id>')
@login_required()
def get_assignment(assignment_id):
    return success_response(AssignmentService.get(assignment_id, current_user()))

@assignments_bp.route('/assignments/<int:assignment_id>', methods=['PUT'])
@login_required('lecturer', 'admin')
def update_assignment(assignment_id):
    data = _validate_assignment_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    assignment = AssignmentService.update(assignment_id, data, current_user())
    return success_response(assignment.to_dict(include_stats=True), "Assignment updated successfully")

@assignments_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@login_required('lecturer', 'admin')
def delete_assignment(assignment_id):
    AssignmentService.delete(assignment_id, current_user())
    return success_response(None, "Assignment deleted successfully")

@assignments_bp.route('/assignments/<int:assignment_id>/submit', methods=['POST'])
@login_required('student')
def submit_assignment(assignment_id):
    data = (PayloadValidator(get_json_body())
            .string('file_url', required=False, max_length=500, label='File URL')
            .string('comments', required=False, max_length=2000)
            .validate())
    if not data.get('file_url') and not data.get('comments'):
        raise ValidationError("Validation failed", details={'file_url': "Provide a file URL or comments"})

    submission = AssignmentService.submit(assignment_id, data, current_user())
    return success_response(submission.to_dict(), "Assignment submitted successfully", status=201)

@assignments_bp.route('/assignments/<int:assignment_id>/submissions')
@login_required('lecturer', 'admin')
def list_submissions(assignment_id):
    assignment, submissions = AssignmentService.list_submissions(assignment_id, current_user())
    return success_response({
        'assignment': assignment.to_dict(include_stats=True),
        'submissions': [submission.to_dict() for submission in submissions],
    })

@assignments_bp.route('/submissions/<int:submission_id>/grade', methods=['PUT'])
@login_required('lecturer', 'admin')
def grade_submission(submission_id):
    data = (PayloadValidator(get_json_body())
            .number('mark', min_value=0)
            .string('feedback', required=False, max_length=2000)
            .validate())
    submission = AssignmentService.grade(submission_id, data['mark'], data.get('feedback'), current_user())
    return success_response(submission.to_dict(), "Submission graded successfully")
