"""
Academic structure models for the Campus Portal
Course, Enrollment, and AcademicRecord models
"""

from database import db
from datetime import datetime

COURSE_PENDING = 'PENDING'
COURSE_APPROVED = 'APPROVED'
COURSE_REJECTED = 'REJECTED'

ENROLLMENT_ENROLLED = 'ENROLLED'
ENROLLMENT_DROPPED = 'DROPPED'
ENROLLMENT_COMPLETED = 'COMPLETED'

RECORD_IN_PROGRESS = 'IN_PROGRESS'
RECORD_PASSED = 'PASSED'
RECORD_FAILED = 'FAILED'

# (minimum score, letter, grade points), highest band first
GRADE_SCALE = [
    (80, 'A', 4.0),
    (75, 'B+', 3.75),
    (70, 'B', 3.5),
    (65, 'C+', 3.0),
    (60, 'C', 2.5),
    (55, 'D+', 2.0),
    (50, 'D', 1.5),
    (45, 'E', 1.0),
]

class Course(db.Model):
    """Course offered by a lecturer"""
    __tablename__ = 'course'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    credits = db.Column(db.Integer, default=3, nullable=False)
    department = db.Column(db.String(100), nullable=True)
    level = db.Column(db.String(10), nullable=True)
    semester = db.Column(db.String(30), nullable=True)
    lecturer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    status = db.Column(db.String(20), default=COURSE_PENDING, nullable=False)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    enrollments = db.relationship('Enrollment', backref='course', lazy='dynamic')
    assignments = db.relationship('Assignment', backref='course', lazy='dynamic')
    quizzes = db.relationship('Quiz', backref='course', lazy='dynamic')

    @property
    def is_open_for_enrollment(self):
        return self.is_active and self.status == COURSE_APPROVED

    def get_active_students_count(self):
        """Get count of students currently enrolled"""
        return self.enrollments.filter_by(status=ENROLLMENT_ENROLLED).count()

    def has_enrolled_student(self, student_id):
        """Check whether a student is currently enrolled"""
        return self.enrollments.filter_by(student_id=student_id, status=ENROLLMENT_ENROLLED).first() is not None

    def to_dict(self):
        """Convert course to dictionary"""
        return {
            'id': self.id,
            'code': self.code,
            'title': self.title,
            'description': self.description,
            'credits': self.credits,
            'department': self.department,
            'level': self.level,
            'semester': self.semester,
            'status': self.status,
            'is_active': self.is_active,
            'lecturer': self.lecturer.to_summary() if self.lecturer else None,
            'rejection_reason': self.rejection_reason,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'enrolled_students': self.get_active_students_count(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Course {self.code}: {self.title}>'


class Enrollment(db.Model):
    """Association between a student and a course"""
    __tablename__ = 'enrollment'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False)
    status = db.Column(db.String(20), default=ENROLLMENT_ENROLLED, nullable=False)
    academic_year = db.Column(db.String(9), nullable=True)
    semester = db.Column(db.String(30), nullable=True)
    enrollment_date = db.Column(db.DateTime, default=datetime.utcnow)
    dropped_at = db.Column(db.DateTime, nullable=True)

    # Unique constraint to prevent double enrollment
    __table_args__ = (db.UniqueConstraint('student_id', 'course_id', name='unique_student_course'),)

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'status': self.status,
            'academic_year': self.academic_year,
            'semester': self.semester,
            'enrollment_date': self.enrollment_date.isoformat() if self.enrollment_date else None,
            'course': {
                'id': self.course.id,
                'code': self.course.code,
                'title': self.course.title,
                'credits': self.course.credits,
                'lecturer': self.course.lecturer.name if self.course.lecturer else None,
            } if self.course else None,
        }

    def __repr__(self):
        return f'<Enrollment student={self.student_id} course={self.course_id} {self.status}>'


class AcademicRecord(db.Model):
    """Final course result for a student in one semester"""
    __tablename__ = 'academic_record'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)
    semester = db.Column(db.String(30), nullable=False)
    score = db.Column(db.Float, nullable=True)
    letter_grade = db.Column(db.String(2), nullable=True)
    grade_points = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), default=RECORD_IN_PROGRESS, nullable=False)
    graded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    course = db.relationship('Course')
    student = db.relationship('User', foreign_keys=[student_id])

    __table_args__ = (db.UniqueConstraint('student_id', 'course_id', 'academic_year', 'semester',
                                          name='unique_student_course_term'),)

    @staticmethod
    def calculate_grade(score):
        """Letter grade and grade points for a 0-100 score"""
        for minimum, letter, points in GRADE_SCALE:
            if score >= minimum:
                return letter, points
        return 'F', 0.0

    def apply_score(self, score, passing_score=45):
        """Record a score and recalculate grade and status"""
        self.score = score
        self.letter_grade, self.grade_points = self.calculate_grade(score)
        self.status = RECORD_PASSED if score >= passing_score else RECORD_FAILED

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'course_code': self.course.code if self.course else None,
            'course_title': self.course.title if self.course else None,
            'credits': self.course.credits if self.course else None,
            'academic_year': self.academic_year,
            'semester': self.semester,
            'score': self.score,
            'letter_grade': self.letter_grade,
            'grade_points': self.grade_points,
            'status': self.status,
        }

    def __repr__(self):
        return f'<AcademicRecord student={self.student_id} course={self.course_id} {self.letter_grade}>'
