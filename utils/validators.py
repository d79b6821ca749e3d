"""
Validation utilities for the Campus Portal
"""

import math
import re
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from utils.errors import ValidationError

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
TIME_PATTERN = re.compile(r'^\d{1,2}:\d{2}$')

CENT = Decimal('0.01')
MAX_MONEY = Decimal('9999999999.99')

def validate_email(email):
    """Validate email address format"""
    if not email or len(email.strip()) == 0:
        return False, "Email is required"

    if len(email) > 120:
        return False, "Email must be 120 characters or less"

    if not EMAIL_PATTERN.match(email.strip()):
        return False, "Please enter a valid email address"

    return True, "Valid email"

def validate_name(name, field_name="Name"):
    """Validate person name"""
    if not name or len(name.strip()) == 0:
        return False, f"{field_name} is required"

    if len(name.strip()) < 2:
        return False, f"{field_name} must be at least 2 characters"

    if len(name) > 100:
        return False, f"{field_name} must be 100 characters or less"

    # Allow letters, spaces, and common name characters
    if not re.match(r"^[^\W\d_]+(?:[\s.\-'][^\W\d_]*)*\.?$", name.strip()):
        return False, f"{field_name} can only contain letters, spaces, periods, hyphens, and apostrophes"

    return True, f"Valid {field_name.lower()}"

def validate_password(password, min_length=6):
    """Validate password strength"""
    if not password:
        return False, "Password is required"

    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"

    if len(password) > 128:
        return False, "Password must be 128 characters or less"

    return True, "Valid password"

def validate_course_code(course_code):
    """Validate course code format"""
    if not course_code or len(course_code.strip()) == 0:
        return False, "Course code is required"

    if len(course_code) > 20:
        return False, "Course code must be 20 characters or less"

    if not re.match(r'^[A-Za-z0-9_-]+$', course_code):
        return False, "Course code can only contain letters, numbers, hyphens, and underscores"

    return True, "Valid course code"

def validate_phone(phone):
    """Validate phone number"""
    if not phone:
        return False, "Phone number is required"

    digits = re.sub(r'[\s\-()+]', '', phone)
    if not digits.isdigit():
        return False, "Phone number can only contain digits, spaces, dashes and parentheses"

    if len(digits) < 10 or len(digits) > 15:
        return False, "Phone number must be between 10 and 15 digits"

    return True, "Valid phone number"

def validate_academic_year(value):
    """Validate academic year in YYYY/YYYY format"""
    match = re.match(r'^(\d{4})/(\d{4})$', value or '')
    if not match:
        return False, "Academic year must be in YYYY/YYYY format"

    start, end = int(match.group(1)), int(match.group(2))
    if end != start + 1:
        return False, "Academic year must span consecutive years"

    return True, "Valid academic year"

def parse_datetime(value):
    """Parse an ISO date or datetime string into a naive UTC datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError("Empty date")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class PayloadValidator:
    """Collects field errors while cleaning a JSON request body.

    Each field method records either a cleaned value or an error message,
    and ``validate()`` raises a single ValidationError listing every problem.
    In ``partial`` mode (used for updates) absent fields are skipped rather
    than reported as missing.
    """

    def __init__(self, payload, partial=False):
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        self.payload = payload
        self.partial = partial
        self.errors = {}
        self.cleaned = {}

    def _present(self, field):
        value = self.payload.get(field)
        if value is None:
            return False
        if isinstance(value, str) and value.strip() == '':
            return False
        return True

    def _missing(self, field, required, default, label):
        """Handle an absent field; returns True when the caller should stop"""
        if self._present(field):
            return False
        if self.partial:
            # Explicitly blanking a required field is still an error
            if field in self.payload and required:
                self.errors[field] = f"{label or self._label(field)} is required"
            elif field in self.payload:
                self.cleaned[field] = None
            return True
        if required:
            self.errors[field] = f"{label or self._label(field)} is required"
        elif default is not None:
            self.cleaned[field] = default
        elif field in self.payload:
            self.cleaned[field] = None
        return True

    @staticmethod
    def _label(field):
        return field.replace('_', ' ').capitalize()

    def string(self, field, required=True, min_length=1, max_length=None, default=None, label=None, lower=False):
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        if not isinstance(value, str):
            self.errors[field] = f"{label or self._label(field)} must be a string"
            return self
        value = value.strip()
        if len(value) < min_length:
            self.errors[field] = f"{label or self._label(field)} must be at least {min_length} characters"
        elif max_length is not None and len(value) > max_length:
            self.errors[field] = f"{label or self._label(field)} must be {max_length} characters or less"
        else:
            self.cleaned[field] = value.lower() if lower else value
        return self

    def integer(self, field, required=True, min_value=None, max_value=None, default=None, label=None):
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        try:
            if isinstance(value, bool):
                raise TypeError
            if isinstance(value, float):
                if not value.is_integer():
                    raise ValueError
                value = int(value)
            number = int(value)
        except (TypeError, ValueError):
            self.errors[field] = f"{label or self._label(field)} must be a whole number"
            return self
        if not self._in_range(field, number, min_value, max_value, label):
            return self
        self.cleaned[field] = number
        return self

    def number(self, field, required=True, min_value=None, max_value=None, default=None, label=None, exclusive_min=False):
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        try:
            if isinstance(value, bool):
                raise TypeError
            number = float(value)
            if math.isnan(number) or math.isinf(number):
                raise ValueError
        except (TypeError, ValueError):
            self.errors[field] = f"{label or self._label(field)} must be a number"
            return self
        if exclusive_min and min_value is not None and number <= min_value:
            self.errors[field] = f"{label or self._label(field)} must be greater than {min_value:g}"
            return self
        if not self._in_range(field, number, min_value, max_value, label):
            return self
        self.cleaned[field] = number
        return self

    def money(self, field, required=True, default=None, label=None):
        """Positive amount rounded to cents; anything that rounds to zero is rejected"""
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        try:
            if isinstance(value, bool) or value is None:
                raise TypeError
            amount = Decimal(str(value))
            if not amount.is_finite():
                raise ValueError
        except (TypeError, ValueError, InvalidOperation):
            self.errors[field] = f"{label or self._label(field)} must be a number"
            return self
        if amount > MAX_MONEY:
            self.errors[field] = f"{label or self._label(field)} must be at most {MAX_MONEY}"
            return self
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
        if amount < CENT:
            self.errors[field] = f"{label or self._label(field)} must be at least {CENT}"
            return self
        self.cleaned[field] = amount
        return self

    def _in_range(self, field, number, min_value, max_value, label):
        if min_value is not None and number < min_value:
            self.errors[field] = f"{label or self._label(field)} must be at least {min_value:g}"
            return False
        if max_value is not None and number > max_value:
            self.errors[field] = f"{label or self._label(field)} must be at most {max_value:g}"
            return False
        return True

    def boolean(self, field, required=False, default=None, label=None):
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        if not isinstance(value, bool):
            self.errors[field] = f"{label or self._label(field)} must be true or false"
            return self
        self.cleaned[field] = value
        return self

    def choice(self, field, choices, required=True, default=None, label=None):
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        normalized = value.strip().upper() if isinstance(value, str) else value
        if normalized not in choices:
            self.errors[field] = f"{label or self._label(field)} must be one of: {', '.join(choices)}"
            return self
        self.cleaned[field] = normalized
        return self

    def datetime(self, field, required=True, default=None, label=None):
        if self._missing(field, required, default, label):
            return self
        try:
            self.cleaned[field] = parse_datetime(self.payload.get(field))
        except (TypeError, ValueError):
            self.errors[field] = f"{label or self._label(field)} must be an ISO 8601 date"
        return self

    def time(self, field, required=True, default=None, label=None):
        """Clock time in 24 hour HH:MM form"""
        if self._missing(field, required, default, label):
            return self
        value = self.payload.get(field)
        try:
            if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
                raise ValueError
            self.cleaned[field] = datetime.strptime(value.strip(), '%H:%M').time()
        except ValueError:
            self.errors[field] = f"{label or self._label(field)} must be a time in HH:MM format"
        return self

    def email(self, field='email', required=True):
        if self._missing(field, required, None, 'Email'):
            return self
        value = self.payload.get(field)
        is_valid, message = validate_email(value if isinstance(value, str) else '')
        if not is_valid:
            self.errors[field] = message
        else:
            self.cleaned[field] = value.strip().lower()
        return self

    def string_list(self, field, required=True, min_items=1, label=None):
        if field not in self.payload or self.payload.get(field) is None:
            if required and not self.partial:
                self.errors[field] = f"{label or self._label(field)} is required"
            return self
        value = self.payload.get(field)
        if not isinstance(value, list) or not all(isinstance(item, str) and item.strip() for item in value):
            self.errors[field] = f"{label or self._label(field)} must be a list of non-empty strings"
        elif len(value) < min_items:
            self.errors[field] = f"At least {min_items} {label or self._label(field).lower()} required"
        else:
            self.cleaned[field] = [item.strip() for item in value]
        return self

    def id_list(self, field, required=True, min_items=1, label=None):
        if field not in self.payload or self.payload.get(field) is None:
            if required and not self.partial:
                self.errors[field] = f"{label or self._label(field)} is required"
            return self
        value = self.payload.get(field)
        if not isinstance(value, list) or not all(isinstance(item, int) and not isinstance(item, bool) for item in value):
            self.errors[field] = f"{label or self._label(field)} must be a list of ids"
        elif len(value) < min_items:
            self.errors[field] = f"At least {min_items} item(s) must be selected"
        else:
            self.cleaned[field] = list(value)
        return self

    def check(self, field, condition, message):
        """Record an error for a cross-field rule if no earlier error exists"""
        if field not in self.errors and not condition:
            self.errors[field] = message
        return self

    def validate(self):
        if self.errors:
            raise ValidationError("Validation failed", details=self.errors)
        return self.cleaned
