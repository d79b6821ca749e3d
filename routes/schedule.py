"""
Scheduling routes for the Campus Portal
Class timetable and the academic calendar
"""

from flask import Blueprint, request

from models.schedule import DAYS_OF_WEEK, CLASS_TYPES, EVENT_TYPES, EVENT_PRIORITIES
from routes.auth import login_required, current_user
from services.schedule_service import TimetableService, CalendarService
from utils.errors import ValidationError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator, validate_academic_year

schedule_bp = Blueprint('schedule', __name__, url_prefix='/api')

def _validate_timetable_payload(payload, partial=False):
    validator = PayloadValidator(payload, partial=partial)
    if not partial:
        validator.integer('course_id', min_value=1, label='Course')
    validator.choice('day_of_week', list(DAYS_OF_WEEK), required=not partial, label='Day of week')
    validator.time('start_time', required=not partial, label='Start time')
    validator.time('end_time', required=not partial, label='End time')
    validator.string('room', required=not partial, max_length=50)
    validator.string('semester', required=False, max_length=30)
    validator.string('academic_year', required=False, max_length=9, label='Academic year')
    validator.choice('class_type', list(CLASS_TYPES), required=False, label='Class type')
    validator.string('notes', required=False, max_length=500)

    academic_year = payload.get('academic_year')
    if isinstance(academic_year, str) and academic_year.strip():
        is_valid, message = validate_academic_year(academic_year.strip())
        validator.check('academic_year', is_valid, message)
    return validator.validate()

def _validate_event_payload(payload, partial=False):
    data = (PayloadValidator(payload, partial=partial)
            .string('title', required=not partial, min_length=3, max_length=200)
            .string('description', required=False, max_length=2000)
            .datetime('date', required=not partial)
            .choice('type', list(EVENT_TYPES), required=False)
            .choice('priority', list(EVENT_PRIORITIES), required=False)
            .boolean('is_active')
            .validate())
    if data.get('date'):
        data['date'] = data['date'].date()
    if 'type' in data:
        data['event_type'] = data.pop('type')
    return data

# Timetable

@schedule_bp.route('/timetable')
@login_required()
def list_timetable():
    entries = TimetableService.list_entries(
        current_user(),
        course_id=request.args.get('course_id', type=int),
        day_of_week=request.args.get('day'),
        semester=request.args.get('semester'),
        academic_year=request.args.get('academic_year'),
    )
    return success_response([entry.to_dict() for entry in entries])

@schedule_bp.route('/timetable', methods=['POST'])
@login_required('lecturer', 'admin')
def create_timetable_entry():
    data = _validate_timetable_payload(get_json_body())
    entry = TimetableService.create(data, current_user())
    return success_response(entry.to_dict(), "Timetable entry created successfully", status=201)

@schedule_bp.route('/timetable/<int:entry_id>')
@login_required()
def get_timetable_entry(entry_id):
    return success_response(TimetableService.get(entry_id, current_user()).to_dict())

@schedule_bp.route('/timetable/<int:entry_id>', methods=['PUT'])
@login_required('lecturer', 'admin')
def update_timetable_entry(entry_id):
    data = _validate_timetable_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    entry = TimetableService.update(entry_id, data, current_user())
    return success_response(entry.to_dict(), "Timetable entry updated successfully")

@schedule_bp.route('/timetable/<int:entry_id>', methods=['DELETE'])
@login_required('lecturer', 'admin')
def delete_timetable_entry(entry_id):
    TimetableService.delete(entry_id, current_user())
    return success_response(None, "Timetable entry deleted successfully")

# Academic calendar

def _calendar_filters():
    year = request.args.get('year', type=int)
    month = request.args.get('month', type=int)
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("Validation failed", details={'month': "Month must be between 1 and 12"})
    if month is not None and year is None:
        raise ValidationError("Validation failed", details={'year': "Year is required with month"})
    return year, month, request.args.get('type')

@schedule_bp.route('/academic-calendar')
@login_required()
def academic_calendar():
    year, month, event_type = _calendar_filters()
    events = CalendarService.list_events(year, month, event_type)
    return success_response([event.to_dict() for event in events])

@schedule_bp.route('/admin/academic-calendar')
@login_required('admin')
def admin_academic_calendar():
    """All events, inactive ones included"""
    year, month, event_type = _calendar_filters()
    events = CalendarService.list_events(year, month, event_type, include_inactive=True)
    return success_response([event.to_dict() for event in events])

@schedule_bp.route('/admin/academic-calendar', methods=['POST'])
@login_required('admin')
def create_academic_event():
    data = _validate_event_payload(get_json_body())
    event = CalendarService.create(data, current_user().id)
    return success_response(event.to_dict(), "Calendar event created successfully", status=201)

@schedule_bp.route('/admin/academic-calendar/<int:event_id>', methods=['PUT'])
@login_required('admin')
def update_academic_event(event_id):
    data = _validate_event_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    event = CalendarService.update(event_id, data, current_user().id)
    return success_response(event.to_dict(), "Calendar event updated successfully")

@schedule_bp.route('/admin/academic-calendar/<int:event_id>', methods=['DELETE'])
@login_required('admin')
def delete_academic_event(event_id):
    CalendarService.delete(event_id, current_user().id)
    return success_response(None, "Calendar event deleted successfully")
