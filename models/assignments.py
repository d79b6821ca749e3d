"""
Assignment models for the Campus Portal
Coursework assignments and student submissions
"""

from database import db
from datetime import datetime

SUBMISSION_SUBMITTED = 'SUBMITTED'
SUBMISSION_GRADED = 'GRADED'

class Assignment(db.Model):
    """Coursework set on a course"""
    __tablename__ = 'assignment'

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=False)
    max_points = db.Column(db.Integer, default=100, nullable=False)
    file_url = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    submissions = db.relationship('Submission', backref='assignment', lazy='dynamic',
                                  cascade='all, delete-orphan')

    @property
    def is_past_due(self):
        return datetime.utcnow() > self.due_date

    def submission_for(self, student_id):
        return self.submissions.filter_by(student_id=student_id).first()

    def to_dict(self, include_stats=False):
        data = {
            'id': self.id,
            'course_id': self.course_id,
            'course_code': self.course.code if self.course else None,
            'title': self.title,
            'description': self.description,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'max_points': self.max_points,
            'file_url': self.file_url,
            'is_past_due': self.is_past_due,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_stats:
            data['submission_count'] = self.submissions.count()
            data['graded_count'] = self.submissions.filter_by(status=SUBMISSION_GRADED).count()
        return data

    def __repr__(self):
        return f'<Assignment {self.title}>'


class Submission(db.Model):
    """A student's work handed in for an assignment"""
    __tablename__ = 'submission'

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignment.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    file_url = db.Column(db.String(500), nullable=True)
    comments = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
    status = db.Column(db.String(20), default=SUBMISSION_SUBMITTED, nullable=False)
    mark = db.Column(db.Float, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    graded_at = db.Column(db.DateTime, nullable=True)
    graded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    student = db.relationship('User', foreign_keys=[student_id])

    # One submission per student per assignment
    __table_args__ = (db.UniqueConstraint('assignment_id', 'student_id', name='unique_assignment_student'),)

    def to_dict(self):
        return {
            'id': self.id,
            'assignment_id': self.assignment_id,
            'student_id': self.student_id,
            'student_name': self.student.name if self.student else None,
            'file_url': self.file_url,
            'comments': self.comments,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'status': self.status,
            'mark': self.mark,
            'feedback': self.feedback,
            'graded_at': self.graded_at.isoformat() if self.graded_at else None,
        }

    def __repr__(self):
        return f'<Submission assignment={self.assignment_id} student={self.student_id}>'
