"""
Finance models for the Campus Portal
Student fees and the payments recorded against them
"""

from database import db
from datetime import datetime

FEE_PENDING = 'PENDING'
FEE_PARTIALLY_PAID = 'PARTIALLY_PAID'
FEE_PAID = 'PAID'

PAYMENT_COMPLETED = 'COMPLETED'
PAYMENT_REVERSED = 'REVERSED'

PAYMENT_METHODS = ('CASH', 'BANK_TRANSFER', 'MOBILE_MONEY', 'CARD')

FEE_TYPES = ('ADMISSION', 'TUITION', 'ACCOMMODATION', 'LIBRARY', 'LABORATORY', 'EXAMINATION', 'OTHER')

class Fee(db.Model):
    """Amount billed to a student"""
    __tablename__ = 'fee'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    fee_type = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(12, 2), default=0, nullable=False)
    due_date = db.Column(db.DateTime, nullable=True)
    academic_year = db.Column(db.String(9), nullable=True)
    semester = db.Column(db.String(30), nullable=True)
    status = db.Column(db.String(20), default=FEE_PENDING, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payments = db.relationship('Payment', backref='fee', lazy='dynamic')

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='check_fee_amount_positive'),
        db.CheckConstraint('amount_paid >= 0 AND amount_paid <= amount', name='check_fee_amount_paid_range'),
    )

    @property
    def balance(self):
        return (self.amount or 0) - (self.amount_paid or 0)

    @property
    def is_overdue(self):
        return bool(self.due_date and self.due_date < datetime.utcnow() and self.status != FEE_PAID)

    def refresh_status(self):
        """Recompute status from the amount paid so far"""
        if self.balance <= 0:
            self.status = FEE_PAID
            self.paid_at = self.paid_at or datetime.utcnow()
        elif (self.amount_paid or 0) > 0:
            self.status = FEE_PARTIALLY_PAID
            self.paid_at = None
        else:
            self.status = FEE_PENDING
            self.paid_at = None

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'student_name': self.student.name if self.student else None,
            'fee_type': self.fee_type,
            'description': self.description,
            'amount': float(self.amount),
            'amount_paid': float(self.amount_paid or 0),
            'balance': float(self.balance),
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'academic_year': self.academic_year,
            'semester': self.semester,
            'status': self.status,
            'is_overdue': self.is_overdue,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Fee {self.fee_type} student={self.student_id} {self.amount}>'


class Payment(db.Model):
    """Money received against a fee"""
    __tablename__ = 'payment'

    id = db.Column(db.Integer, primary_key=True)
    fee_id = db.Column(db.Integer, db.ForeignKey('fee.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    reference = db.Column(db.String(100), unique=True, nullable=True)
    receipt_number = db.Column(db.String(30), unique=True, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default=PAYMENT_COMPLETED, nullable=False)
    recorded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    reversed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship('User', foreign_keys=[student_id])
    recorder = db.relationship('User', foreign_keys=[recorded_by])

    __table_args__ = (db.CheckConstraint('amount > 0', name='check_payment_amount_positive'),)

    def to_dict(self):
        return {
            'id': self.id,
            'fee_id': self.fee_id,
            'fee_type': self.fee.fee_type if self.fee else None,
            'student_id': self.student_id,
            'student_name': self.student.name if self.student else None,
            'amount': float(self.amount),
            'payment_method': self.payment_method,
            'reference': self.reference,
            'receipt_number': self.receipt_number,
            'notes': self.notes,
            'status': self.status,
            'recorded_by': self.recorder.name if self.recorder else None,
            'reversed_at': self.reversed_at.isoformat() if self.reversed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Payment {self.receipt_number} {self.amount}>'
