"""
Attendance routes for the Campus Portal
Marking class attendance and per-course attendance reports
"""

from flask import Blueprint

from models.academic import Course
from models.attendance import ATTENDANCE_STATUSES
from routes.admin import send_workbook
from routes.auth import login_required, current_user
from services.attendance_service import AttendanceService
from services.course_service import CourseService
from services.excel_export_service import ExcelExportService
from utils.db_helpers import get_or_404
from utils.errors import ValidationError
from utils.responses import arg_date, get_json_body, success_response
from utils.validators import PayloadValidator

attendance_bp = Blueprint('attendance', __name__, url_prefix='/api')

def _clean_records(raw):
    """Normalise [{student_id, status, notes}], collecting per-item errors"""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Validation failed", details={'records': "Records must be a non-empty list"})

    records = []
    errors = {}
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            errors[f'records[{index}]'] = "Each record must be an object"
            continue
        try:
            cleaned = (PayloadValidator(item)
                       .integer('student_id', min_value=1, label='Student')
                       .choice('status', list(ATTENDANCE_STATUSES))
                       .string('notes', required=False, max_length=500)
                       .validate())
        except ValidationError as e:
            errors[f'records[{index}]'] = "; ".join(e.details.values())
            continue
        records.append(cleaned)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    return records

def _report_range():
    start_date, end_date = arg_date('start_date'), arg_date('end_date')
    if start_date and end_date and start_date > end_date:
        raise ValidationError("Start date must be on or before end date")
    return start_date, end_date

@attendance_bp.route('/courses/<int:course_id>/attendance')
@login_required()
def list_attendance(course_id):
    """Attendance rows for a day or a date range"""
    start_date, end_date = _report_range()
    course, records = AttendanceService.list_records(course_id, current_user(), session_date=arg_date('date'),
                                                     start_date=start_date, end_date=end_date)
    return success_response([record.to_dict() for record in records],
                            course={'id': course.id, 'code': course.code, 'title': course.title})

@attendance_bp.route('/courses/<int:course_id>/attendance', methods=['POST'])
@login_required('lecturer', 'admin')
def mark_attendance(course_id):
    payload = get_json_body()
    data = PayloadValidator(payload).datetime('date', label='Date').validate()
    records = _clean_records(payload.get('records'))
    saved = AttendanceService.mark(course_id, data['date'].date(), records, current_user())
    return success_response([record.to_dict() for record in saved],
                            f"Attendance recorded for {len(saved)} students")

@attendance_bp.route('/courses/<int:course_id>/attendance/report')
@login_required()
def attendance_report(course_id):
    start_date, end_date = _report_range()
    return success_response(AttendanceService.report(course_id, current_user(), start_date, end_date))

@attendance_bp.route('/courses/<int:course_id>/attendance/export')
@login_required('lecturer', 'admin')
def export_attendance(course_id):
    course = get_or_404(Course, course_id, "Course not found")
    CourseService.ensure_can_manage(course, current_user())
    start_date, end_date = _report_range()
    report = AttendanceService.report(course_id, current_user(), start_date, end_date)
    return send_workbook(ExcelExportService.export_attendance_report(report), f"attendance_{course.code}")
