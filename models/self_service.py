"""
Student self-service request models for the Campus Portal
Certificate, clearance and ID card requests share one request lifecycle
"""

from database import db
from datetime import datetime
from sqlalchemy.orm import declared_attr

REQUEST_PENDING = 'PENDING'
REQUEST_PROCESSING = 'PROCESSING'
REQUEST_APPROVED = 'APPROVED'
REQUEST_REJECTED = 'REJECTED'
REQUEST_COMPLETED = 'COMPLETED'

REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_PROCESSING, REQUEST_APPROVED, REQUEST_REJECTED, REQUEST_COMPLETED)
OPEN_STATUSES = (REQUEST_PENDING, REQUEST_PROCESSING)

# Allowed forward moves from each status
STATUS_TRANSITIONS = {
    REQUEST_PENDING: (REQUEST_PROCESSING, REQUEST_APPROVED, REQUEST_REJECTED),
    REQUEST_PROCESSING: (REQUEST_APPROVED, REQUEST_REJECTED),
    REQUEST_APPROVED: (REQUEST_COMPLETED,),
    REQUEST_REJECTED: (),
    REQUEST_COMPLETED: (),
}

CERTIFICATE_TYPES = ('TRANSCRIPT', 'DEGREE_CERTIFICATE', 'ENROLLMENT_CERTIFICATE', 'GOOD_STANDING', 'OTHER')
CERTIFICATE_DELIVERY = ('PICKUP', 'EMAIL', 'MAIL')
CLEARANCE_TYPES = ('GRADUATION', 'TRANSFER', 'WITHDRAWAL', 'OTHER')
ID_CARD_REQUEST_TYPES = ('NEW', 'REPLACEMENT', 'RENEWAL')
ID_CARD_DELIVERY = ('PICKUP', 'MAIL')

class RequestMixin:
    """Columns and behaviour shared by every self-service request"""

    id = db.Column(db.Integer, primary_key=True)
    additional_notes = db.Column(db.Text, nullable=True)
    urgent = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default=REQUEST_PENDING, nullable=False, index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def user_id(cls):
        return db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    @declared_attr
    def processed_by(cls):
        return db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    @declared_attr
    def user(cls):
        return db.relationship('User', foreign_keys=f'{cls.__name__}.user_id')

    @declared_attr
    def processor(cls):
        return db.relationship('User', foreign_keys=f'{cls.__name__}.processed_by')

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES

    def can_transition_to(self, status):
        return status in STATUS_TRANSITIONS.get(self.status, ())

    def base_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'student_name': self.user.name if self.user else None,
            'additional_notes': self.additional_notes,
            'urgent': self.urgent,
            'status': self.status,
            'admin_notes': self.admin_notes,
            'processed_by': self.processor.name if self.processor else None,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class CertificateRequest(RequestMixin, db.Model):
    __tablename__ = 'certificate_request'

    certificate_type = db.Column(db.String(30), nullable=False)
    purpose = db.Column(db.Text, nullable=False)
    delivery_method = db.Column(db.String(10), default='PICKUP', nullable=False)
    delivery_address = db.Column(db.Text, nullable=True)
    copies = db.Column(db.Integer, default=1, nullable=False)

    def to_dict(self):
        data = self.base_dict()
        data.update({
            'certificate_type': self.certificate_type,
            'purpose': self.purpose,
            'delivery_method': self.delivery_method,
            'delivery_address': self.delivery_address,
            'copies': self.copies,
        })
        return data

    def __repr__(self):
        return f'<CertificateRequest {self.certificate_type} {self.status}>'


class ClearanceRequest(RequestMixin, db.Model):
    __tablename__ = 'clearance_request'

    clearance_type = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    clearance_items = db.Column(db.JSON, nullable=True)

    def to_dict(self):
        data = self.base_dict()
        data.update({
            'clearance_type': self.clearance_type,
            'reason': self.reason,
            'clearance_items': self.clearance_items or [],
        })
        return data

    def __repr__(self):
        return f'<ClearanceRequest {self.clearance_type} {self.status}>'


class IdCardRequest(RequestMixin, db.Model):
    __tablename__ = 'id_card_request'

    request_type = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    delivery_method = db.Column(db.String(10), default='PICKUP', nullable=False)
    delivery_address = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        data = self.base_dict()
        data.update({
            'request_type': self.request_type,
            'reason': self.reason,
            'delivery_method': self.delivery_method,
            'delivery_address': self.delivery_address,
            'photo_url': self.photo_url,
        })
        return data

    def __repr__(self):
        return f'<IdCardRequest {self.request_type} {self.status}>'
