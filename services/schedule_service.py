"""
Scheduling service for the Campus Portal
Weekly class timetable and the academic calendar
"""

import calendar
import logging
from datetime import date

from database import db
from models.academic import Course
from models.schedule import TimetableEntry, AcademicEvent, DAYS_OF_WEEK
from models.user import ROLE_LECTURER, ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.course_service import CourseService
from utils.db_helpers import get_or_404, transaction
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

TIMETABLE_FIELDS = ('day_of_week', 'start_time', 'end_time', 'room', 'semester', 'academic_year',
                    'class_type', 'notes')
EVENT_FIELDS = ('title', 'description', 'date', 'event_type', 'priority', 'is_active')

class TimetableService:
    """Class timetable"""

    @staticmethod
    def list_entries(user, course_id=None, day_of_week=None, semester=None, academic_year=None):
        """Students see their enrolled courses, lecturers their own, admins everything"""
        query = TimetableEntry.query.join(Course, Course.id == TimetableEntry.course_id)
        if user.role == ROLE_STUDENT:
            course_ids = CourseService.enrolled_course_ids(user.id)
            if not course_ids:
                return []
            query = query.filter(TimetableEntry.course_id.in_(course_ids))
        elif user.role == ROLE_LECTURER:
            query = query.filter(Course.lecturer_id == user.id)

        if course_id:
            query = query.filter(TimetableEntry.course_id == course_id)
        if day_of_week:
            query = query.filter(TimetableEntry.day_of_week == day_of_week.upper())
        if semester:
            query = query.filter(TimetableEntry.semester == semester)
        if academic_year:
            query = query.filter(TimetableEntry.academic_year == academic_year)

        entries = query.all()
        entries.sort(key=lambda entry: (DAYS_OF_WEEK.index(entry.day_of_week), entry.start_time))
        return entries

    @staticmethod
    def find_room_conflict(room, day_of_week, start_time, end_time, exclude_id=None):
        """Another slot holding the same room at an overlapping time, if any"""
        query = TimetableEntry.query.filter(
            db.func.lower(TimetableEntry.room) == room.lower(),
            TimetableEntry.day_of_week == day_of_week,
        )
        if exclude_id:
            query = query.filter(TimetableEntry.id != exclude_id)
        for entry in query.all():
            if entry.overlaps(day_of_week, start_time, end_time):
                return entry
        return None

    @staticmethod
    def _check_slot(day_of_week, start_time, end_time, room, exclude_id=None):
        if start_time >= end_time:
            raise ValidationError("Validation failed", details={'end_time': "End time must be after start time"})
        if TimetableService.find_room_conflict(room, day_of_week, start_time, end_time, exclude_id):
            raise ValidationError(
                "Time conflict detected. Another class is scheduled in the same room at this time.")

    @staticmethod
    def create(data, user):
        course = get_or_404(Course, data['course_id'], "Course not found")
        CourseService.ensure_can_manage(course, user)
        TimetableService._check_slot(data['day_of_week'], data['start_time'], data['end_time'], data['room'])

        entry = TimetableEntry(course_id=course.id, created_by=user.id)
        for field in TIMETABLE_FIELDS:
            if data.get(field) is not None:
                setattr(entry, field, data[field])
        with transaction():
            db.session.add(entry)

        logger.info("Timetable slot %s added for %s", entry.id, course.code)
        ActivityLogService.log('CREATE_TIMETABLE', user.id, 'timetable_entry', entry.id, {'course_id': course.id})
        return entry

    @staticmethod
    def get(entry_id, user):
        entry = get_or_404(TimetableEntry, entry_id, "Timetable entry not found")
        CourseService.ensure_can_view_content(entry.course, user)
        return entry

    @staticmethod
    def update(entry_id, data, user):
        entry = get_or_404(TimetableEntry, entry_id, "Timetable entry not found")
        CourseService.ensure_can_manage(entry.course, user)

        day_of_week = data.get('day_of_week') or entry.day_of_week
        start_time = data.get('start_time') or entry.start_time
        end_time = data.get('end_time') or entry.end_time
        room = data.get('room') or entry.room
        TimetableService._check_slot(day_of_week, start_time, end_time, room, exclude_id=entry.id)

        with transaction():
            for field in TIMETABLE_FIELDS:
                if field in data:
                    setattr(entry, field, data[field])

        ActivityLogService.log('UPDATE_TIMETABLE', user.id, 'timetable_entry', entry.id, {'fields': sorted(data)})
        return entry

    @staticmethod
    def delete(entry_id, user):
        entry = get_or_404(TimetableEntry, entry_id, "Timetable entry not found")
        CourseService.ensure_can_manage(entry.course, user)
        with transaction():
            db.session.delete(entry)
        ActivityLogService.log('DELETE_TIMETABLE', user.id, 'timetable_entry', entry_id)


class CalendarService:
    """Academic calendar"""

    @staticmethod
    def list_events(year=None, month=None, event_type=None, include_inactive=False):
        query = AcademicEvent.query
        if not include_inactive:
            query = query.filter(AcademicEvent.is_active.is_(True))
        if year and month:
            last_day = calendar.monthrange(year, month)[1]
            query = query.filter(AcademicEvent.date >= date(year, month, 1),
                                 AcademicEvent.date <= date(year, month, last_day))
        elif year:
            query = query.filter(AcademicEvent.date >= date(year, 1, 1), AcademicEvent.date <= date(year, 12, 31))
        if event_type:
            query = query.filter(AcademicEvent.event_type == event_type.upper())
        return query.order_by(AcademicEvent.date.asc(), AcademicEvent.id.asc()).all()

    @staticmethod
    def upcoming(limit=5):
        return (AcademicEvent.query
                .filter(AcademicEvent.is_active.is_(True), AcademicEvent.date >= date.today())
                .order_by(AcademicEvent.date.asc())
                .limit(limit)
                .all())

    @staticmethod
    def create(data, admin_id):
        event = AcademicEvent(created_by=admin_id)
        for field in EVENT_FIELDS:
            if data.get(field) is not None:
                setattr(event, field, data[field])
        with transaction():
            db.session.add(event)

        ActivityLogService.log('CREATE_ACADEMIC_EVENT', admin_id, 'academic_event', event.id,
                               {'date': event.date.isoformat(), 'type': event.event_type})
        return event

    @staticmethod
    def update(event_id, data, admin_id):
        event = get_or_404(AcademicEvent, event_id, "Calendar event not found")
        with transaction():
            for field in EVENT_FIELDS:
                if field in data and data[field] is not None:
                    setattr(event, field, data[field])
            if 'description' in data and data['description'] is None:
                event.description = None

        ActivityLogService.log('UPDATE_ACADEMIC_EVENT', admin_id, 'academic_event', event.id, {'fields': sorted(data)})
        return event

    @staticmethod
    def delete(event_id, admin_id):
        event = get_or_404(AcademicEvent, event_id, "Calendar event not found")
        with transaction():
            db.session.delete(event)
        ActivityLogService.log('DELETE_ACADEMIC_EVENT', admin_id, 'academic_event', event_id)
