"""
System models for the Campus Portal
Activity log, editable settings and course registration periods
"""

from database import db
from datetime import datetime

SETTING_CATEGORIES = ('GENERAL', 'ACADEMIC', 'SYSTEM', 'SECURITY')

class ActivityLog(db.Model):
    """Audit trail of mutating actions"""
    __tablename__ = 'activity_log'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    entity = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship('User', foreign_keys=[user_id])

    def to_dict(self):
        return {
            'id': self.id,
            'user': self.user.to_summary() if self.user else None,
            'action': self.action,
            'entity': self.entity,
            'entity_id': self.entity_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<ActivityLog {self.action} {self.entity}:{self.entity_id}>'


class SystemSetting(db.Model):
    """Key/value setting stored as text and typed by the settings service"""
    __tablename__ = 'system_settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(20), default='GENERAL', nullable=False)
    updated_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<SystemSetting {self.key}={self.value}>'


class CourseRegistrationPeriod(db.Model):
    """Window in which students may register for courses"""
    __tablename__ = 'course_registration_period'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    academic_year = db.Column(db.String(9), nullable=False)
    semester = db.Column(db.String(30), nullable=False)
    level = db.Column(db.String(10), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def covers(self, moment):
        return self.start_date <= moment <= self.end_date

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'academic_year': self.academic_year,
            'semester': self.semester,
            'level': self.level,
            'department': self.department,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'is_active': self.is_active,
            'is_current': self.is_active and self.covers(datetime.utcnow()),
        }

    def __repr__(self):
        return f'<CourseRegistrationPeriod {self.name}>'
