"""
Admission models for the Campus Portal
Degree programmes and public applications to them
"""

from database import db
from datetime import datetime

APPLICATION_PENDING = 'PENDING'
APPLICATION_UNDER_REVIEW = 'UNDER_REVIEW'
APPLICATION_APPROVED = 'APPROVED'
APPLICATION_REJECTED = 'REJECTED'

APPLICATION_STATUSES = (APPLICATION_PENDING, APPLICATION_UNDER_REVIEW, APPLICATION_APPROVED, APPLICATION_REJECTED)
FINAL_STATUSES = (APPLICATION_APPROVED, APPLICATION_REJECTED)

# Review only moves forward
APPLICATION_TRANSITIONS = {
    APPLICATION_PENDING: (APPLICATION_UNDER_REVIEW, APPLICATION_APPROVED, APPLICATION_REJECTED),
    APPLICATION_UNDER_REVIEW: (APPLICATION_APPROVED, APPLICATION_REJECTED),
    APPLICATION_APPROVED: (),
    APPLICATION_REJECTED: (),
}

GENDERS = ('MALE', 'FEMALE', 'OTHER')

class Programme(db.Model):
    """Degree programme applicants can apply to"""
    __tablename__ = 'programme'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False)
    code = db.Column(db.String(20), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    duration_years = db.Column(db.Integer, default=4, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    applications = db.relationship('Application', backref='programme', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'duration_years': self.duration_years,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Programme {self.code}: {self.name}>'


class Application(db.Model):
    """Admission application submitted without an account"""
    __tablename__ = 'application'

    id = db.Column(db.Integer, primary_key=True)
    application_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    middle_name = db.Column(db.String(50), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=False)
    gender = db.Column(db.String(10), nullable=False)
    nationality = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    address = db.Column(db.Text, nullable=False)
    previous_school = db.Column(db.String(150), nullable=False)
    graduation_year = db.Column(db.Integer, nullable=False)
    programme_id = db.Column(db.Integer, db.ForeignKey('programme.id'), nullable=False)
    motivation_statement = db.Column(db.Text, nullable=False)
    transcript_url = db.Column(db.String(500), nullable=True)
    certificate_url = db.Column(db.String(500), nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), default=APPLICATION_PENDING, nullable=False, index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    generated_student_number = db.Column(db.String(20), nullable=True)
    created_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    reviewer = db.relationship('User', foreign_keys=[reviewed_by])

    @property
    def full_name(self):
        parts = [self.first_name, self.middle_name, self.last_name]
        return ' '.join(part for part in parts if part)

    @property
    def is_final(self):
        return self.status in FINAL_STATUSES

    @staticmethod
    def next_application_number(year=None):
        """Next sequential number in APP<year><nnnn> format"""
        year = year or datetime.utcnow().year
        prefix = f'APP{year}'
        count = Application.query.filter(Application.application_number.like(f'{prefix}%')).count()
        candidate = f'{prefix}{count + 1:04d}'
        while Application.query.filter_by(application_number=candidate).first():
            count += 1
            candidate = f'{prefix}{count + 1:04d}'
        return candidate

    def to_status_dict(self):
        """Public view used by the status lookup"""
        return {
            'application_number': self.application_number,
            'full_name': self.full_name,
            'programme': self.programme.name if self.programme else None,
            'status': self.status,
            'submitted_at': self.created_at.isoformat() if self.created_at else None,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'generated_student_number': self.generated_student_number,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'application_number': self.application_number,
            'first_name': self.first_name,
            'middle_name': self.middle_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'date_of_birth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'gender': self.gender,
            'nationality': self.nationality,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'previous_school': self.previous_school,
            'graduation_year': self.graduation_year,
            'programme': self.programme.to_dict() if self.programme else None,
            'motivation_statement': self.motivation_statement,
            'transcript_url': self.transcript_url,
            'certificate_url': self.certificate_url,
            'photo_url': self.photo_url,
            'status': self.status,
            'admin_notes': self.admin_notes,
            'reviewed_by': self.reviewer.name if self.reviewer else None,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'generated_student_number': self.generated_student_number,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Application {self.application_number} {self.status}>'
