"""
Scheduling models for the Campus Portal
Weekly timetable slots and the academic calendar
"""

from database import db
from datetime import datetime

DAYS_OF_WEEK = ('MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY', 'SUNDAY')
CLASS_TYPES = ('LECTURE', 'TUTORIAL', 'LAB', 'SEMINAR', 'EXAM')

EVENT_TYPES = ('ACADEMIC', 'ADMINISTRATIVE', 'EXAM', 'HOLIDAY', 'EVENT')
EVENT_PRIORITIES = ('HIGH', 'MEDIUM', 'LOW')

class TimetableEntry(db.Model):
    """Recurring weekly class slot for a course"""
    __tablename__ = 'timetable_entry'

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False, index=True)
    day_of_week = db.Column(db.String(10), nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    room = db.Column(db.String(50), nullable=False)
    semester = db.Column(db.String(30), nullable=True)
    academic_year = db.Column(db.String(9), nullable=True)
    class_type = db.Column(db.String(20), default='LECTURE', nullable=False)
    notes = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    course = db.relationship('Course')

    def overlaps(self, day_of_week, start_time, end_time):
        """Same day and the time ranges intersect; touching ends do not overlap"""
        return (self.day_of_week == day_of_week
                and self.start_time < end_time
                and start_time < self.end_time)

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'course_code': self.course.code if self.course else None,
            'course_title': self.course.title if self.course else None,
            'lecturer': self.course.lecturer.name if self.course and self.course.lecturer else None,
            'day_of_week': self.day_of_week,
            'start_time': self.start_time.strftime('%H:%M') if self.start_time else None,
            'end_time': self.end_time.strftime('%H:%M') if self.end_time else None,
            'room': self.room,
            'semester': self.semester,
            'academic_year': self.academic_year,
            'class_type': self.class_type,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<TimetableEntry course={self.course_id} {self.day_of_week} {self.start_time}>'


class AcademicEvent(db.Model):
    """Dated entry on the academic calendar"""
    __tablename__ = 'academic_event'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False, index=True)
    event_type = db.Column(db.String(20), default='ACADEMIC', nullable=False)
    priority = db.Column(db.String(10), default='MEDIUM', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'date': self.date.isoformat() if self.date else None,
            'type': self.event_type,
            'priority': self.priority,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<AcademicEvent {self.date} {self.title}>'
