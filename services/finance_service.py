"""
Finance service for the Campus Portal
Fee billing, payment bookkeeping and programme fee structures
"""

import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from database import db
from models.finance import Fee, Payment, FEE_PAID, PAYMENT_COMPLETED, PAYMENT_REVERSED
from models.user import User, ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.notification_service import NotificationService
from services.settings_service import SettingsService
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

PROGRAMME_FEES = {
    'BACHELOR OF SCIENCE (INFORMATION TECHNOLOGY)': {
        'admission': 5000, 'tuition': 18000, 'accommodation': 3500,
        'library': 600, 'laboratory': 1200, 'examination': 800,
    },
    'BACHELOR OF SCIENCE (COMPUTER SCIENCE)': {
        'admission': 5000, 'tuition': 18000, 'accommodation': 3500,
        'library': 600, 'laboratory': 1200, 'examination': 800,
    },
    'BACHELOR OF SCIENCE (SOFTWARE ENGINEERING)': {
        'admission': 5000, 'tuition': 20000, 'accommodation': 3500,
        'library': 600, 'laboratory': 1500, 'examination': 800,
    },
    'BACHELOR OF ARTS (BUSINESS ADMINISTRATION)': {
        'admission': 5000, 'tuition': 15000, 'accommodation': 3500,
        'library': 500, 'examination': 600,
    },
    'BACHELOR OF SCIENCE (ACCOUNTING)': {
        'admission': 5000, 'tuition': 16000, 'accommodation': 3500,
        'library': 500, 'examination': 700,
    },
}

# Checked in order when the programme name is not an exact match
PROGRAMME_KEYWORDS = (
    ('COMPUTER SCIENCE', 'BACHELOR OF SCIENCE (COMPUTER SCIENCE)'),
    ('INFORMATION TECHNOLOGY', 'BACHELOR OF SCIENCE (INFORMATION TECHNOLOGY)'),
    ('SOFTWARE ENGINEERING', 'BACHELOR OF SCIENCE (SOFTWARE ENGINEERING)'),
    ('BUSINESS ADMINISTRATION', 'BACHELOR OF ARTS (BUSINESS ADMINISTRATION)'),
    ('ACCOUNTING', 'BACHELOR OF SCIENCE (ACCOUNTING)'),
)

# (component, fee type, label, days until due)
FEE_SCHEDULE = (
    ('admission', 'ADMISSION', 'Admission Fee', 14),
    ('tuition', 'TUITION', 'Tuition Fee', 30),
    ('accommodation', 'ACCOMMODATION', 'Accommodation Fee', 45),
    ('library', 'LIBRARY', 'Library Fee', 50),
    ('laboratory', 'LABORATORY', 'Laboratory Fee', 55),
    ('examination', 'EXAMINATION', 'Examination Fee', 60),
)

def to_money(value):
    """Quantize a number to cents"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

def positive_money(value):
    """Amount in cents; rejects anything that rounds to zero or below"""
    amount = to_money(value)
    if amount < CENT:
        raise ValidationError("Validation failed", details={'amount': f"Amount must be at least {CENT}"})
    return amount

def structure_total(structure):
    """Sum of the billed components of a fee structure"""
    return to_money(sum(structure.get(component, 0) for component, _, _, _ in FEE_SCHEDULE))

def find_fee_structure(programme):
    """Fee structure for a programme name; exact match first, then by keyword"""
    if not programme:
        return None, None
    normalized = programme.strip().upper()
    if normalized in PROGRAMME_FEES:
        return normalized, PROGRAMME_FEES[normalized]
    for keyword, name in PROGRAMME_KEYWORDS:
        if keyword in normalized:
            return name, PROGRAMME_FEES[name]
    return None, None


class FeeService:
    """Fee billing"""

    @staticmethod
    def _student_or_error(student_id):
        student = db.session.get(User, student_id)
        if student is None or student.role != ROLE_STUDENT:
            raise NotFoundError("Student not found")
        return student

    @staticmethod
    def _filtered_query(student_id=None, status=None, fee_type=None):
        query = Fee.query
        if student_id:
            query = query.filter(Fee.student_id == student_id)
        if status:
            query = query.filter(Fee.status == status.upper())
        if fee_type:
            query = query.filter(Fee.fee_type == fee_type.upper())
        return query

    @staticmethod
    def list_fees(student_id=None, status=None, fee_type=None, page=1, per_page=20):
        query = FeeService._filtered_query(student_id, status, fee_type)
        pagination = paginate_query(query.order_by(Fee.due_date.asc(), Fee.id.asc()), page, per_page)
        return pagination, FeeService.summary(query)

    @staticmethod
    def summary(query):
        total, paid = query.with_entities(
            func.coalesce(func.sum(Fee.amount), 0),
            func.coalesce(func.sum(Fee.amount_paid), 0),
        ).order_by(None).one()
        total, paid = to_money(total), to_money(paid)
        return {
            'total_amount': float(total),
            'total_paid': float(paid),
            'total_outstanding': float(total - paid),
        }

    @staticmethod
    def create_fee(data, admin_id):
        student = FeeService._student_or_error(data['student_id'])
        fee = Fee(
            student_id=student.id,
            fee_type=data['fee_type'],
            description=data.get('description'),
            amount=positive_money(data['amount']),
            amount_paid=Decimal('0'),
            due_date=data.get('due_date'),
            academic_year=data.get('academic_year') or SettingsService.get('academic_year'),
            semester=data.get('semester') or SettingsService.get('semester'),
        )
        with transaction():
            db.session.add(fee)
            db.session.flush()
            NotificationService.notify(
                student.id,
                'New Fee Issued',
                f'A {fee.fee_type.lower()} fee of {fee.amount} has been added to your account.',
                'INFO',
                {'fee_id': fee.id},
            )

        ActivityLogService.log('CREATE_FEE', admin_id, 'fee', fee.id,
                               {'student_id': student.id, 'amount': float(fee.amount)})
        return fee

    @staticmethod
    def stage_programme_fees(student_id, programme):
        """Add a programme's fee structure to the open session; returns the fees"""
        name, structure = find_fee_structure(programme)
        if structure is None:
            raise ValidationError(f"No fee structure found for programme: {programme}")

        academic_year, semester = SettingsService.current_term()
        now = datetime.utcnow()
        fees = []
        for component, fee_type, label, due_in_days in FEE_SCHEDULE:
            amount = structure.get(component)
            if not amount:
                continue
            fee = Fee(
                student_id=student_id,
                fee_type=fee_type,
                description=f'{label} - {name} - {semester} {academic_year}',
                amount=to_money(amount),
                amount_paid=Decimal('0'),
                due_date=now + timedelta(days=due_in_days),
                academic_year=academic_year,
                semester=semester,
            )
            db.session.add(fee)
            fees.append(fee)
        return fees

    @staticmethod
    def generate_programme_fees(student_id, programme, admin_id):
        student = FeeService._student_or_error(student_id)
        if student.fees.count() > 0:
            raise ValidationError("Student already has fees on record")

        programme = programme or (student.student_profile.programme if student.student_profile else None)
        with transaction():
            fees = FeeService.stage_programme_fees(student.id, programme)

        total = sum(fee.amount for fee in fees)
        logger.info("Generated %d fees totalling %s for student %s", len(fees), total, student.id)
        ActivityLogService.log('GENERATE_FEES', admin_id, 'user', student.id,
                               {'programme': programme, 'total': float(total)})
        return fees

    @staticmethod
    def fee_status(student_id):
        """Per-fee breakdown with totals and the registration clearance flag"""
        fees = Fee.query.filter_by(student_id=student_id).order_by(Fee.due_date.asc(), Fee.id.asc()).all()

        total = sum((fee.amount for fee in fees), Decimal('0'))
        paid = sum((fee.amount_paid for fee in fees), Decimal('0'))

        tuition = [fee for fee in fees if fee.fee_type == 'TUITION']
        admission = [fee for fee in fees if fee.fee_type == 'ADMISSION']
        if tuition:
            tuition_total = sum(fee.amount for fee in tuition)
            tuition_paid = sum(fee.amount_paid for fee in tuition)
            can_register = tuition_paid * 2 >= tuition_total
            requirement = "At least 50% of tuition must be paid"
        elif admission:
            can_register = all(fee.status == FEE_PAID for fee in admission)
            requirement = "Admission fee must be paid in full"
        else:
            can_register = True
            requirement = None

        return {
            'fees': [fee.to_dict() for fee in fees],
            'total_amount': float(total),
            'total_paid': float(paid),
            'total_outstanding': float(total - paid),
            'overdue_count': sum(1 for fee in fees if fee.is_overdue),
            'can_register': can_register,
            'registration_requirement': requirement,
        }

    @staticmethod
    def outstanding_total(student_id=None):
        query = db.session.query(func.coalesce(func.sum(Fee.amount - Fee.amount_paid), 0))
        if student_id:
            query = query.filter(Fee.student_id == student_id)
        return float(to_money(query.scalar()))


class PaymentService:
    """Payment bookkeeping against fees"""

    @staticmethod
    def generate_receipt_number():
        return f"RCP{datetime.utcnow():%Y%m%d}{secrets.token_hex(3).upper()}"

    @staticmethod
    def list_payments(student_id=None, status=None, page=1, per_page=20):
        query = Payment.query
        if student_id:
            query = query.filter(Payment.student_id == student_id)
        if status:
            query = query.filter(Payment.status == status.upper())
        return paginate_query(query.order_by(Payment.created_at.desc(), Payment.id.desc()), page, per_page)

    @staticmethod
    def make_payment(data, user):
        """Apply a completed payment to a fee, never beyond its balance"""
        amount = positive_money(data['amount'])
        reference = data.get('reference')
        if reference and Payment.query.filter_by(reference=reference).first():
            raise ValidationError("A payment with this reference already exists")

        with transaction("A payment with this reference already exists"):
            fee = Fee.query.filter_by(id=data['fee_id']).with_for_update().first()
            if fee is None:
                raise NotFoundError("Fee not found")
            if user.role == ROLE_STUDENT and fee.student_id != user.id:
                raise ForbiddenError("You can only pay your own fees")
            if fee.status == FEE_PAID:
                raise ValidationError("This fee has already been paid in full")

            balance = to_money(fee.balance)
            if amount > balance:
                raise ValidationError(f"Payment amount exceeds outstanding balance of {balance}")

            payment = Payment(
                fee_id=fee.id,
                student_id=fee.student_id,
                amount=amount,
                payment_method=data['payment_method'],
                reference=reference,
                receipt_number=PaymentService.generate_receipt_number(),
                notes=data.get('notes'),
                status=PAYMENT_COMPLETED,
                recorded_by=user.id,
            )
            db.session.add(payment)
            fee.amount_paid = to_money(fee.amount_paid or 0) + amount
            fee.refresh_status()
            NotificationService.notify(
                fee.student_id,
                'Payment Received',
                f'Payment of {amount} received for {fee.fee_type.lower()} fee. Receipt {payment.receipt_number}.',
                'SUCCESS',
                {'fee_id': fee.id},
            )

        logger.info("Payment %s of %s applied to fee %s", payment.receipt_number, amount, fee.id)
        ActivityLogService.log('PAYMENT', user.id, 'payment', payment.id,
                               {'fee_id': fee.id, 'amount': float(amount)})
        return payment

    @staticmethod
    def reverse_payment(payment_id, admin_id, reason=None):
        """Undo a completed payment and restore the fee balance"""
        with transaction():
            payment = Payment.query.filter_by(id=payment_id).with_for_update().first()
            if payment is None:
                raise NotFoundError("Payment not found")
            if payment.status != PAYMENT_COMPLETED:
                raise ValidationError("Only completed payments can be reversed")

            fee = Fee.query.filter_by(id=payment.fee_id).with_for_update().first()
            payment.status = PAYMENT_REVERSED
            payment.reversed_at = datetime.utcnow()
            if reason:
                payment.notes = f"{payment.notes}\nReversed: {reason}" if payment.notes else f"Reversed: {reason}"
            fee.amount_paid = max(to_money(fee.amount_paid or 0) - to_money(payment.amount), Decimal('0'))
            fee.refresh_status()

        logger.info("Payment %s reversed by admin %s", payment.receipt_number, admin_id)
        ActivityLogService.log('REVERSE_PAYMENT', admin_id, 'payment', payment.id,
                               {'fee_id': fee.id, 'amount': float(payment.amount)})
        return payment

    @staticmethod
    def receipt(payment_id, user):
        payment = get_or_404(Payment, payment_id, "Payment not found")
        if user.role == ROLE_STUDENT and payment.student_id != user.id:
            raise NotFoundError("Payment not found")

        student = payment.student
        profile = student.student_profile if student else None
        return {
            'receipt_number': payment.receipt_number,
            'university': SettingsService.get('university_name'),
            'issued_at': payment.created_at.isoformat() if payment.created_at else None,
            'student': {
                'name': student.name if student else None,
                'email': student.email if student else None,
                'student_number': profile.student_number if profile else None,
            },
            'fee': {
                'id': payment.fee.id,
                'fee_type': payment.fee.fee_type,
                'description': payment.fee.description,
                'amount': float(payment.fee.amount),
                'balance_after': float(payment.fee.balance),
            },
            'payment': payment.to_dict(),
        }
