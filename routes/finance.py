"""
Finance routes for the Campus Portal
Fees, payments, receipts and the fee ledger export
"""

from flask import Blueprint, request

from models.finance import Fee, FEE_TYPES, PAYMENT_METHODS
from models.user import ROLE_STUDENT
from routes.admin import send_pdf, send_workbook
from routes.auth import login_required, current_user
from services.excel_export_service import ExcelExportService
from services.finance_service import FeeService, PaymentService
from services.reporting_service import ReportingService
from utils.db_helpers import get_pagination_args
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

finance_bp = Blueprint('finance', __name__, url_prefix='/api')

def _scoped_student_id(user):
    """Students only ever see their own records"""
    if user.role == ROLE_STUDENT:
        return user.id
    return request.args.get('student_id', type=int)

# Fees

@finance_bp.route('/fees')
@login_required('student', 'admin')
def list_fees():
    """Fees with a total/paid/outstanding summary"""
    page, per_page = get_pagination_args()
    pagination, summary = FeeService.list_fees(
        student_id=_scoped_student_id(current_user()),
        status=request.args.get('status'),
        fee_type=request.args.get('fee_type'),
        page=page,
        per_page=per_page,
    )
    return success_response([fee.to_dict() for fee in pagination.items],
                            pagination=pagination, summary=summary)

@finance_bp.route('/fees', methods=['POST'])
@login_required('admin')
def create_fee():
    data = (PayloadValidator(get_json_body())
            .integer('student_id', min_value=1, label='Student')
            .choice('fee_type', list(FEE_TYPES), label='Fee type')
            .string('description', required=False, max_length=255)
            .money('amount')
            .datetime('due_date', required=False, label='Due date')
            .string('academic_year', required=False, max_length=20, label='Academic year')
            .string('semester', required=False, max_length=30)
            .validate())
    fee = FeeService.create_fee(data, current_user().id)
    return success_response(fee.to_dict(), "Fee created successfully", status=201)

@finance_bp.route('/admin/fees/generate', methods=['POST'])
@login_required('admin')
def generate_fees():
    """Bill a student the fee structure of their programme"""
    data = (PayloadValidator(get_json_body())
            .integer('student_id', min_value=1, label='Student')
            .string('programme', required=False, max_length=150)
            .validate())
    fees = FeeService.generate_programme_fees(data['student_id'], data.get('programme'), current_user().id)
    total = sum(fee.amount for fee in fees)
    return success_response({
        'fees': [fee.to_dict() for fee in fees],
        'total_amount': float(total),
    }, f"Generated {len(fees)} fees successfully", status=201)

@finance_bp.route('/admin/fees/export')
@login_required('admin')
def export_fees():
    query = Fee.query
    student_id = request.args.get('student_id', type=int)
    if student_id:
        query = query.filter(Fee.student_id == student_id)
    status = request.args.get('status')
    if status:
        query = query.filter(Fee.status == status.upper())
    fees = query.order_by(Fee.student_id.asc(), Fee.due_date.asc()).all()
    return send_workbook(ExcelExportService.export_fee_ledger(fees), 'fee_ledger')

# Payments

@finance_bp.route('/payments')
@login_required('student', 'admin')
def list_payments():
    page, per_page = get_pagination_args()
    pagination = PaymentService.list_payments(
        student_id=_scoped_student_id(current_user()),
        status=request.args.get('status'),
        page=page,
        per_page=per_page,
    )
    return success_response([payment.to_dict() for payment in pagination.items], pagination=pagination)

@finance_bp.route('/payments', methods=['POST'])
@login_required('student', 'admin')
def make_payment():
    data = (PayloadValidator(get_json_body())
            .integer('fee_id', min_value=1, label='Fee')
            .money('amount')
            .choice('payment_method', list(PAYMENT_METHODS), label='Payment method')
            .string('reference', required=False, max_length=100)
            .string('notes', required=False, max_length=500)
            .validate())
    payment = PaymentService.make_payment(data, current_user())
    return success_response(payment.to_dict(), "Payment recorded successfully", status=201)

@finance_bp.route('/payments/<int:payment_id>/receipt')
@login_required('student', 'admin')
def payment_receipt(payment_id):
    return success_response(PaymentService.receipt(payment_id, current_user()))

@finance_bp.route('/payments/<int:payment_id>/receipt/pdf')
@login_required('student', 'admin')
def payment_receipt_pdf(payment_id):
    receipt = PaymentService.receipt(payment_id, current_user())
    return send_pdf(ReportingService.generate_receipt_pdf(receipt), f"receipt_{receipt['receipt_number']}")

@finance_bp.route('/payments/<int:payment_id>/reverse', methods=['POST'])
@login_required('admin')
def reverse_payment(payment_id):
    payload = get_json_body() if request.get_data() else {}
    data = (PayloadValidator(payload)
            .string('reason', required=False, max_length=500)
            .validate())
    payment = PaymentService.reverse_payment(payment_id, current_user().id, data.get('reason'))
    return success_response(payment.to_dict(), "Payment reversed successfully")
