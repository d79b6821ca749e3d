"""
Self-service request service for the Campus Portal
Certificates, clearance and ID cards share one review workflow
"""

import logging
from datetime import datetime

from database import db
from models.finance import Fee, FEE_PAID
from models.library import Borrowing
from models.self_service import (
    CertificateRequest, ClearanceRequest, IdCardRequest, OPEN_STATUSES,
)
from services.activity_log_service import ActivityLogService
from services.notification_service import NotificationService
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# URL segment -> (model, type column, display label)
REQUEST_KINDS = {
    'certificates': (CertificateRequest, 'certificate_type', 'certificate request'),
    'clearance': (ClearanceRequest, 'clearance_type', 'clearance request'),
    'id-cards': (IdCardRequest, 'request_type', 'ID card request'),
}

REQUEST_FIELDS = {
    'certificates': ('certificate_type', 'purpose', 'delivery_method', 'delivery_address', 'copies',
                     'additional_notes', 'urgent'),
    'clearance': ('clearance_type', 'reason', 'additional_notes', 'urgent'),
    'id-cards': ('request_type', 'reason', 'delivery_method', 'delivery_address', 'photo_url',
                 'additional_notes', 'urgent'),
}

STATUS_MESSAGES = {
    'PROCESSING': 'is now being processed',
    'APPROVED': 'has been approved',
    'REJECTED': 'has been rejected',
    'COMPLETED': 'has been completed',
}

class SelfServiceService:
    """Student requests and their administrative review"""

    @staticmethod
    def kind_or_404(kind):
        if kind not in REQUEST_KINDS:
            raise NotFoundError("Unknown request type")
        return REQUEST_KINDS[kind]

    @staticmethod
    def list_requests(kind, user_id=None, status=None, request_type=None, page=1, per_page=20):
        model, type_column, _ = SelfServiceService.kind_or_404(kind)
        query = model.query
        if user_id:
            query = query.filter(model.user_id == user_id)
        if status:
            query = query.filter(model.status == status.upper())
        if request_type:
            query = query.filter(getattr(model, type_column) == request_type.upper())
        return paginate_query(query.order_by(model.created_at.desc(), model.id.desc()), page, per_page)

    @staticmethod
    def clearance_items(student_id):
        """Department sign-offs computed from current library and finance state"""
        open_loans = Borrowing.query.filter(Borrowing.user_id == student_id, Borrowing.return_date.is_(None)).count()
        outstanding = Fee.query.filter(Fee.student_id == student_id, Fee.status != FEE_PAID).count()
        return [
            {'department': 'library', 'status': 'CLEARED' if open_loans == 0 else 'PENDING',
             'notes': None if open_loans == 0 else f'{open_loans} book(s) not returned'},
            {'department': 'finance', 'status': 'CLEARED' if outstanding == 0 else 'PENDING',
             'notes': None if outstanding == 0 else f'{outstanding} fee(s) outstanding'},
            {'department': 'academic', 'status': 'PENDING', 'notes': None},
            {'department': 'hostel', 'status': 'PENDING', 'notes': None},
        ]

    @staticmethod
    def create_request(kind, data, student):
        model, type_column, label = SelfServiceService.kind_or_404(kind)

        duplicate = model.query.filter(model.user_id == student.id, model.status.in_(OPEN_STATUSES))
        if kind == 'certificates':
            duplicate = duplicate.filter(model.certificate_type == data['certificate_type'])
        if duplicate.first() is not None:
            raise ValidationError(f"You already have an open {label}")

        if data.get('delivery_method') == 'MAIL' and not data.get('delivery_address'):
            raise ValidationError("Validation failed", details={
                'delivery_address': "Delivery address is required for mail delivery",
            })

        request_row = model(user_id=student.id)
        for field in REQUEST_FIELDS[kind]:
            if data.get(field) is not None:
                setattr(request_row, field, data[field])
        if kind == 'clearance':
            request_row.clearance_items = SelfServiceService.clearance_items(student.id)

        with transaction():
            db.session.add(request_row)

        logger.info("Student %s opened %s %s", student.id, label, request_row.id)
        ActivityLogService.log('CREATE_REQUEST', student.id, model.__tablename__, request_row.id,
                               {'type': getattr(request_row, type_column)})
        return request_row

    @staticmethod
    def update_status(kind, request_id, status, admin_notes, admin_id):
        model, type_column, label = SelfServiceService.kind_or_404(kind)
        request_row = get_or_404(model, request_id, f"{label[0].upper()}{label[1:]} not found")

        if not request_row.can_transition_to(status):
            raise ValidationError(f"Cannot change status from {request_row.status} to {status}")

        with transaction():
            request_row.status = status
            if admin_notes is not None:
                request_row.admin_notes = admin_notes
            request_row.processed_by = admin_id
            request_row.processed_at = datetime.utcnow()
            content = f'Your {label} {STATUS_MESSAGES[status]}.'
            if admin_notes:
                content = f'{content} Notes: {admin_notes}'
            NotificationService.notify(
                request_row.user_id,
                f'{label[0].upper()}{label[1:]} {status.lower()}',
                content,
                'ERROR' if status == 'REJECTED' else 'INFO',
                {'kind': kind, 'request_id': request_row.id, 'status': status},
            )

        ActivityLogService.log('UPDATE_REQUEST_STATUS', admin_id, model.__tablename__, request_row.id,
                               {'status': status, 'type': getattr(request_row, type_column)})
        return request_row

    @staticmethod
    def open_request_count():
        return sum(
            model.query.filter(model.status.in_(OPEN_STATUSES)).count()
            for model, _, _ in REQUEST_KINDS.values()
        )
