"""
User models for the Campus Portal
User accounts with student and lecturer profile records
"""

from database import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
import secrets
import string

ROLE_ADMIN = 'admin'
ROLE_LECTURER = 'lecturer'
ROLE_STUDENT = 'student'
ROLES = (ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT)

class User(db.Model):
    """Portal account; the role decides which profile record it carries"""
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    password_encrypted = db.Column(db.Text, nullable=True)  # Issued password, readable by admins until changed
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Relationships
    student_profile = db.relationship('StudentProfile', backref='user', uselist=False, cascade='all, delete-orphan')
    lecturer_profile = db.relationship('LecturerProfile', backref='user', uselist=False, cascade='all, delete-orphan')
    taught_courses = db.relationship('Course', backref='lecturer', lazy='dynamic', foreign_keys='Course.lecturer_id')
    enrollments = db.relationship('Enrollment', backref='student', lazy='dynamic')
    fees = db.relationship('Fee', backref='student', lazy='dynamic')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    borrowings = db.relationship('Borrowing', backref='user', lazy='dynamic')

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def set_issued_password(self, password):
        """Set password hash and keep an encrypted copy for admin hand-over"""
        from utils.encryption import password_encryptor
        self.password_hash = generate_password_hash(password)
        self.password_encrypted = password_encryptor.encrypt_password(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password or '')

    def get_issued_password(self):
        """Get decrypted issued password, if one is still on record"""
        from utils.encryption import password_encryptor
        if self.password_encrypted:
            return password_encryptor.decrypt_password(self.password_encrypted)
        return None

    def update_last_login(self):
        """Update last login timestamp"""
        self.last_login = datetime.utcnow()
        db.session.commit()

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_lecturer(self):
        return self.role == ROLE_LECTURER

    @property
    def is_student(self):
        return self.role == ROLE_STUDENT

    @property
    def profile(self):
        if self.role == ROLE_STUDENT:
            return self.student_profile
        if self.role == ROLE_LECTURER:
            return self.lecturer_profile
        return None

    @staticmethod
    def generate_password(length=10):
        """Generate a random password for issued accounts"""
        chars = string.ascii_letters + string.digits
        return ''.join(secrets.choice(chars) for _ in range(length))

    def to_summary(self):
        """Minimal representation used when embedding users in other records"""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
        }

    def to_dict(self):
        """Convert user to dictionary for JSON serialization"""
        profile = self.profile
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'profile': profile.to_dict() if profile else None,
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class StudentProfile(db.Model):
    """Student-specific details"""
    __tablename__ = 'student_profile'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    student_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    programme = db.Column(db.String(150), nullable=True)
    level = db.Column(db.String(10), default='100')
    year_of_study = db.Column(db.Integer, default=1)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    gpa = db.Column(db.Float, default=0.0)

    @staticmethod
    def next_student_number(year=None):
        """Next sequential number in STU<year><nnn> format"""
        year = year or datetime.utcnow().year
        prefix = f'STU{year}'
        count = StudentProfile.query.filter(StudentProfile.student_number.like(f'{prefix}%')).count()
        candidate = f'{prefix}{count + 1:03d}'
        # Gaps from deleted rows can make count+1 collide
        while StudentProfile.query.filter_by(student_number=candidate).first():
            count += 1
            candidate = f'{prefix}{count + 1:03d}'
        return candidate

    def to_dict(self):
        return {
            'student_number': self.student_number,
            'programme': self.programme,
            'level': self.level,
            'year_of_study': self.year_of_study,
            'phone': self.phone,
            'address': self.address,
            'date_of_birth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'gpa': self.gpa,
        }

    def __repr__(self):
        return f'<StudentProfile {self.student_number}>'


class LecturerProfile(db.Model):
    """Lecturer-specific details"""
    __tablename__ = 'lecturer_profile'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    staff_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    department = db.Column(db.String(100), nullable=True)
    office = db.Column(db.String(50), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    def to_dict(self):
        return {
            'staff_number': self.staff_number,
            'department': self.department,
            'office': self.office,
            'phone': self.phone,
        }

    def __repr__(self):
        return f'<LecturerProfile {self.staff_number}>'
