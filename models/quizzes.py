"""
Quiz models for the Campus Portal
"""

from database import db
from datetime import datetime

class Quiz(db.Model):
    """Multiple-choice quiz attached to a course"""
    __tablename__ = 'quiz'

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    time_limit = db.Column(db.Integer, nullable=True)  # minutes
    max_attempts = db.Column(db.Integer, default=1, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    questions = db.relationship('QuizQuestion', backref='quiz', lazy='dynamic',
                                order_by='QuizQuestion.order', cascade='all, delete-orphan')
    attempts = db.relationship('QuizAttempt', backref='quiz', lazy='dynamic',
                               cascade='all, delete-orphan')

    @property
    def total_points(self):
        return sum(question.points for question in self.questions)

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'title': self.title,
            'description': self.description,
            'time_limit': self.time_limit,
            'max_attempts': self.max_attempts,
            'is_active': self.is_active,
            'question_count': self.questions.count(),
            'total_points': self.total_points,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Quiz {self.title}>'


class QuizQuestion(db.Model):
    __tablename__ = 'quiz_question'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False)
    question = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)
    correct_answer = db.Column(db.Integer, nullable=False)  # index into options
    points = db.Column(db.Integer, default=1, nullable=False)
    order = db.Column(db.Integer, default=0, nullable=False)

    def to_dict(self, include_answer=True):
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'question': self.question,
            'options': self.options,
            'points': self.points,
            'order': self.order,
        }
        if include_answer:
            data['correct_answer'] = self.correct_answer
        return data

    def __repr__(self):
        return f'<QuizQuestion {self.id} quiz={self.quiz_id}>'


class QuizAttempt(db.Model):
    __tablename__ = 'quiz_attempt'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    attempt_number = db.Column(db.Integer, default=1, nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    max_score = db.Column(db.Integer, default=0, nullable=False)
    percentage = db.Column(db.Float, default=0.0, nullable=False)
    time_spent = db.Column(db.Integer, nullable=True)  # seconds
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    student = db.relationship('User', foreign_keys=[student_id])
    answers = db.relationship('QuizAnswer', backref='attempt', lazy='dynamic',
                              cascade='all, delete-orphan')

    __table_args__ = (db.UniqueConstraint('quiz_id', 'student_id', 'attempt_number', name='unique_quiz_attempt_number'),)

    def to_dict(self, include_answers=False):
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'student_id': self.student_id,
            'student_name': self.student.name if self.student else None,
            'attempt_number': self.attempt_number,
            'score': self.score,
            'max_score': self.max_score,
            'percentage': self.percentage,
            'time_spent': self.time_spent,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_answers:
            data['answers'] = [answer.to_dict() for answer in self.answers]
        return data

    def __repr__(self):
        return f'<QuizAttempt quiz={self.quiz_id} student={self.student_id} {self.score}/{self.max_score}>'


class QuizAnswer(db.Model):
    __tablename__ = 'quiz_answer'

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey('quiz_attempt.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('quiz_question.id'), nullable=False)
    answer = db.Column(db.Integer, nullable=True)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            'question_id': self.question_id,
            'answer': self.answer,
            'is_correct': self.is_correct,
            'points': self.points,
        }
