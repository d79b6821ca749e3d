"""
System settings service for the Campus Portal
Typed access to the admin-editable settings table
"""

import logging

from database import db
from models.system import SystemSetting
from utils.errors import ValidationError
from utils.validators import validate_academic_year, validate_email

logger = logging.getLogger(__name__)

# key -> (type, default, category)
SETTING_DEFINITIONS = {
    'university_name': ('string', 'University of Technology', 'GENERAL'),
    'university_email': ('email', 'admin@university.edu', 'GENERAL'),
    'university_phone': ('string', '+1 (555) 123-4567', 'GENERAL'),
    'university_address': ('string', '123 University Avenue', 'GENERAL'),
    'academic_year': ('academic_year', '2024/2025', 'ACADEMIC'),
    'semester': ('string', 'First Semester', 'ACADEMIC'),
    'min_course_credits': ('integer', 12, 'ACADEMIC'),
    'max_course_credits': ('integer', 18, 'ACADEMIC'),
    'registration_open': ('boolean', True, 'SYSTEM'),
    'maintenance_mode': ('boolean', False, 'SYSTEM'),
    'email_notifications': ('boolean', True, 'SYSTEM'),
    'password_min_length': ('integer', 8, 'SECURITY'),
    'session_timeout': ('integer', 120, 'SECURITY'),
}

# Lower bounds for integer settings
INTEGER_MINIMUMS = {
    'min_course_credits': 1,
    'max_course_credits': 1,
    'password_min_length': 6,
    'session_timeout': 5,
}

class SettingsService:
    """Read and update typed system settings"""

    @staticmethod
    def _decode(kind, raw):
        if kind == 'integer':
            return int(raw)
        if kind == 'boolean':
            return raw == 'true'
        return raw

    @staticmethod
    def _encode(kind, value):
        if kind == 'boolean':
            return 'true' if value else 'false'
        return str(value)

    @staticmethod
    def seed_defaults():
        """Insert any setting that has no row yet"""
        existing = {row.key for row in SystemSetting.query.all()}
        for key, (kind, default, category) in SETTING_DEFINITIONS.items():
            if key not in existing:
                db.session.add(SystemSetting(key=key, value=SettingsService._encode(kind, default), category=category))
        db.session.commit()

    @staticmethod
    def get(key):
        """Typed value of one setting, falling back to its default"""
        kind, default, _ = SETTING_DEFINITIONS[key]
        row = SystemSetting.query.filter_by(key=key).first()
        if row is None:
            return default
        try:
            return SettingsService._decode(kind, row.value)
        except ValueError:
            logger.warning("Stored value for setting %s is malformed, using default", key)
            return default

    @staticmethod
    def get_all():
        rows = {row.key: row for row in SystemSetting.query.all()}
        settings = {}
        for key, (kind, default, _) in SETTING_DEFINITIONS.items():
            row = rows.get(key)
            if row is None:
                settings[key] = default
                continue
            try:
                settings[key] = SettingsService._decode(kind, row.value)
            except ValueError:
                settings[key] = default
        return settings

    @staticmethod
    def _validate_value(key, value, errors):
        kind = SETTING_DEFINITIONS[key][0]
        if kind == 'boolean':
            if not isinstance(value, bool):
                errors[key] = "Must be true or false"
        elif kind == 'integer':
            if isinstance(value, bool) or not isinstance(value, int):
                errors[key] = "Must be a whole number"
            elif value < INTEGER_MINIMUMS.get(key, 0):
                errors[key] = f"Must be at least {INTEGER_MINIMUMS.get(key, 0)}"
        elif not isinstance(value, str) or not value.strip():
            errors[key] = "Must be a non-empty string"
        elif kind == 'email':
            is_valid, message = validate_email(value)
            if not is_valid:
                errors[key] = message
        elif kind == 'academic_year':
            is_valid, message = validate_academic_year(value.strip())
            if not is_valid:
                errors[key] = message

    @staticmethod
    def update(payload, admin_id):
        """Partially update settings; returns the full typed settings map"""
        if not isinstance(payload, dict) or not payload:
            raise ValidationError("At least one setting must be provided")

        errors = {}
        for key, value in payload.items():
            if key not in SETTING_DEFINITIONS:
                errors[key] = "Unknown setting"
            else:
                SettingsService._validate_value(key, value, errors)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        merged = SettingsService.get_all()
        merged.update(payload)
        if merged['min_course_credits'] > merged['max_course_credits']:
            raise ValidationError("Validation failed", details={
                'min_course_credits': "Minimum credits cannot exceed maximum credits",
            })

        for key, value in payload.items():
            kind, _, category = SETTING_DEFINITIONS[key]
            if isinstance(value, str):
                value = value.strip()
            row = SystemSetting.query.filter_by(key=key).first()
            if row is None:
                row = SystemSetting(key=key, category=category)
                db.session.add(row)
            row.value = SettingsService._encode(kind, value)
            row.updated_by = admin_id

        db.session.commit()
        logger.info("Settings updated by user %s: %s", admin_id, ', '.join(sorted(payload)))
        return SettingsService.get_all()

    @staticmethod
    def current_term():
        """(academic_year, semester) currently configured"""
        return SettingsService.get('academic_year'), SettingsService.get('semester')
