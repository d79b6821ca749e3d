"""
Attendance models for the Campus Portal
Per-session attendance of enrolled students in a course
"""

from database import db
from datetime import datetime

ATTENDANCE_PRESENT = 'PRESENT'
ATTENDANCE_ABSENT = 'ABSENT'
ATTENDANCE_LATE = 'LATE'
ATTENDANCE_EXCUSED = 'EXCUSED'
ATTENDANCE_STATUSES = (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE, ATTENDANCE_EXCUSED)

# Statuses that count towards the attendance percentage
ATTENDED_STATUSES = (ATTENDANCE_PRESENT, ATTENDANCE_LATE, ATTENDANCE_EXCUSED)

class Attendance(db.Model):
    """Attendance of one student in one course on one day"""
    __tablename__ = 'attendance'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(10), nullable=False)
    notes = db.Column(db.String(500), nullable=True)
    marked_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = db.relationship('User', foreign_keys=[student_id])
    course = db.relationship('Course')

    # One record per student, course and day
    __table_args__ = (db.UniqueConstraint('student_id', 'course_id', 'date', name='unique_student_course_date'),)

    @staticmethod
    def summarize(statuses):
        """Counts per status and the attendance percentage for a list of statuses"""
        total = len(statuses)
        counts = {status: statuses.count(status) for status in ATTENDANCE_STATUSES}
        attended = sum(counts[status] for status in ATTENDED_STATUSES)
        return {
            'total_records': total,
            'present': counts[ATTENDANCE_PRESENT],
            'absent': counts[ATTENDANCE_ABSENT],
            'late': counts[ATTENDANCE_LATE],
            'excused': counts[ATTENDANCE_EXCUSED],
            'attendance_percentage': round(attended / total * 100, 2) if total else 0,
        }

    def to_dict(self):
        profile = self.student.student_profile if self.student else None
        return {
            'id': self.id,
            'student_id': self.student_id,
            'student_name': self.student.name if self.student else None,
            'student_number': profile.student_number if profile else None,
            'course_id': self.course_id,
            'date': self.date.isoformat() if self.date else None,
            'status': self.status,
            'notes': self.notes,
            'marked_by': self.marked_by,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<Attendance student={self.student_id} course={self.course_id} {self.date} {self.status}>'
