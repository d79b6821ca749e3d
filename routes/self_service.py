"""
Self-service routes for the Campus Portal
Certificate, clearance and ID card requests
"""

from flask import Blueprint, request

from models.self_service import (
    CERTIFICATE_TYPES, CERTIFICATE_DELIVERY, CLEARANCE_TYPES,
    ID_CARD_REQUEST_TYPES, ID_CARD_DELIVERY, REQUEST_STATUSES,
)
from models.user import ROLE_STUDENT
from routes.auth import login_required, current_user
from services.self_service_service import SelfServiceService
from utils.db_helpers import get_pagination_args
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

self_service_bp = Blueprint('self_service', __name__, url_prefix='/api/self-service')

def _validate_request_payload(kind, payload):
    validator = PayloadValidator(payload)
    if kind == 'certificates':
        validator.choice('certificate_type', list(CERTIFICATE_TYPES), label='Certificate type')
        validator.string('purpose', min_length=3, max_length=500)
        validator.choice('delivery_method', list(CERTIFICATE_DELIVERY), required=False,
                         default='PICKUP', label='Delivery method')
        validator.string('delivery_address', required=False, max_length=500, label='Delivery address')
        validator.integer('copies', required=False, min_value=1, max_value=10, default=1)
    elif kind == 'clearance':
        validator.choice('clearance_type', list(CLEARANCE_TYPES), label='Clearance type')
        validator.string('reason', min_length=10, max_length=1000)
    else:
        validator.choice('request_type', list(ID_CARD_REQUEST_TYPES), label='Request type')
        validator.string('reason', required=False, max_length=1000)
        validator.choice('delivery_method', list(ID_CARD_DELIVERY), required=False,
                         default='PICKUP', label='Delivery method')
        validator.string('delivery_address', required=False, max_length=500, label='Delivery address')
        validator.string('photo_url', required=False, max_length=500, label='Photo URL')
    validator.string('additional_notes', required=False, max_length=1000, label='Additional notes')
    validator.boolean('urgent', default=False)
    return validator.validate()

@self_service_bp.route('/<kind>')
@login_required('student', 'admin')
def list_requests(kind):
    """Students see their own requests; admins see and filter all of them"""
    SelfServiceService.kind_or_404(kind)
    user = current_user()
    user_id = user.id if user.role == ROLE_STUDENT else request.args.get('user_id', type=int)

    page, per_page = get_pagination_args()
    pagination = SelfServiceService.list_requests(
        kind,
        user_id=user_id,
        status=request.args.get('status'),
        request_type=request.args.get('type'),
        page=page,
        per_page=per_page,
    )
    return success_response([row.to_dict() for row in pagination.items], pagination=pagination)

@self_service_bp.route('/<kind>', methods=['POST'])
@login_required('student')
def create_request(kind):
    SelfServiceService.kind_or_404(kind)
    data = _validate_request_payload(kind, get_json_body())
    request_row = SelfServiceService.create_request(kind, data, current_user())
    return success_response(request_row.to_dict(), "Request submitted successfully", status=201)

@self_service_bp.route('/<kind>/<int:request_id>', methods=['PUT'])
@login_required('admin')
def update_request(kind, request_id):
    SelfServiceService.kind_or_404(kind)
    data = (PayloadValidator(get_json_body())
            .choice('status', list(REQUEST_STATUSES))
            .string('admin_notes', required=False, max_length=2000, label='Admin notes')
            .validate())
    request_row = SelfServiceService.update_status(kind, request_id, data['status'],
                                                   data.get('admin_notes'), current_user().id)
    return success_response(request_row.to_dict(), f"Request {data['status'].lower()}")
