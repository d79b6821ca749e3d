"""
Tests for fees, payments and registration clearance
"""

import unittest
from decimal import Decimal

from database import db
from models.finance import Fee, Payment, FEE_PAID, FEE_PARTIALLY_PAID, FEE_PENDING, PAYMENT_REVERSED
from services.excel_export_service import XLSX_MIMETYPE
from services.finance_service import FeeService, find_fee_structure, positive_money, structure_total
from tests.base import CampusPortalTestCase
from utils.db_helpers import transaction
from utils.errors import ConflictError, ValidationError

class TestFeeStructures(CampusPortalTestCase):

    def test_exact_and_keyword_match(self):
        name, structure = find_fee_structure('Bachelor of Science (Software Engineering)')
        self.assertEqual(name, 'BACHELOR OF SCIENCE (SOFTWARE ENGINEERING)')
        self.assertEqual(structure_total(structure), Decimal('31400.00'))

        name, _ = find_fee_structure('BSc Computer Science')
        self.assertEqual(name, 'BACHELOR OF SCIENCE (COMPUTER SCIENCE)')

    def test_unknown_programme(self):
        self.assertEqual(find_fee_structure('Diploma in Cooking'), (None, None))
        self.assertEqual(find_fee_structure(None), (None, None))

    def test_generate_programme_fees(self):
        student = self.make_student()
        self.login_as(self.admin)

        body = self.assertSuccess(self.client.post('/api/admin/fees/generate', json={'student_id': student.id}), 201)
        self.assertEqual(len(body['data']['fees']), 6)
        self.assertEqual(body['data']['total_amount'], 29100.0)
        self.assertEqual(sum(fee['amount'] for fee in body['data']['fees']), 29100.0)

        # second run is rejected
        self.assertError(self.client.post('/api/admin/fees/generate', json={'student_id': student.id}), 400)

    def test_generate_without_structure(self):
        student = self.make_student(programme='Diploma in Cooking')
        self.login_as(self.admin)
        self.assertError(self.client.post('/api/admin/fees/generate', json={'student_id': student.id}), 400)
        self.assertEqual(Fee.query.count(), 0)

    def test_programmes_without_laboratory(self):
        student = self.make_student(programme='Bachelor of Arts (Business Administration)')
        self.login_as(self.admin)
        body = self.assertSuccess(self.client.post('/api/admin/fees/generate', json={'student_id': student.id}), 201)
        fee_types = {fee['fee_type'] for fee in body['data']['fees']}
        self.assertNotIn('LABORATORY', fee_types)
        self.assertEqual(body['data']['total_amount'], 24600.0)


class TestFees(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.other = self.make_student(name='Other Student')

    def test_admin_creates_fee(self):
        self.login_as(self.admin)
        body = self.assertSuccess(self.client.post('/api/fees', json={
            'student_id': self.student.id, 'fee_type': 'library', 'amount': 150.5,
        }), 201)
        self.assertEqual(body['data']['fee_type'], 'LIBRARY')
        self.assertEqual(body['data']['amount'], 150.5)
        self.assertEqual(body['data']['status'], FEE_PENDING)

    def test_create_fee_rejects_non_positive_amount(self):
        self.login_as(self.admin)
        response = self.client.post('/api/fees', json={
            'student_id': self.student.id, 'fee_type': 'TUITION', 'amount': 0,
        })
        body = self.assertError(response, 400)
        self.assertIn('amount', body['details'])

    def test_create_fee_rejects_sub_cent_amount(self):
        self.login_as(self.admin)
        response = self.client.post('/api/fees', json={
            'student_id': self.student.id, 'fee_type': 'TUITION', 'amount': 0.004,
        })
        body = self.assertError(response, 400)
        self.assertEqual(body['details']['amount'], 'Amount must be at least 0.01')
        self.assertEqual(Fee.query.count(), 0)

    def test_fee_amount_rounds_to_cents(self):
        self.login_as(self.admin)
        body = self.assertSuccess(self.client.post('/api/fees', json={
            'student_id': self.student.id, 'fee_type': 'TUITION', 'amount': '99.995',
        }), 201)
        self.assertEqual(body['data']['amount'], 100.0)

    def test_service_rejects_amount_rounding_to_zero(self):
        with self.assertRaises(ValidationError):
            positive_money('0.004')
        with self.assertRaises(ValidationError):
            FeeService.create_fee({'student_id': self.student.id, 'fee_type': 'TUITION', 'amount': 0.001},
                                  self.admin.id)
        self.assertEqual(positive_money(0.005), Decimal('0.01'))

    def test_constraint_failure_on_flush_is_a_conflict(self):
        with self.assertRaises(ConflictError):
            with transaction():
                db.session.add(Fee(student_id=self.student.id, fee_type='TUITION',
                                   amount=Decimal('0.00'), amount_paid=Decimal('0')))
                db.session.flush()
        self.assertEqual(Fee.query.count(), 0)

    def test_create_fee_for_non_student(self):
        lecturer = self.make_lecturer()
        self.login_as(self.admin)
        response = self.client.post('/api/fees', json={
            'student_id': lecturer.id, 'fee_type': 'TUITION', 'amount': 100,
        })
        self.assertError(response, 404)

    def test_student_sees_only_own_fees(self):
        self.make_fee(self.student, amount='1000.00')
        self.make_fee(self.other, amount='500.00')

        self.login_as(self.student)
        body = self.assertSuccess(self.client.get(f'/api/fees?student_id={self.other.id}'))
        self.assertEqual(len(body['data']), 1)
        self.assertEqual(body['summary']['total_amount'], 1000.0)
        self.assertEqual(body['summary']['total_outstanding'], 1000.0)

    def test_admin_sees_all_fees(self):
        self.make_fee(self.student, amount='1000.00')
        self.make_fee(self.other, amount='500.00')

        self.login_as(self.admin)
        body = self.assertSuccess(self.client.get('/api/fees'))
        self.assertEqual(body['summary']['total_amount'], 1500.0)
        self.assertEqual(body['pagination']['total'], 2)

    def test_lecturer_cannot_list_fees(self):
        self.login_as(self.make_lecturer())
        self.assertError(self.client.get('/api/fees'), 403)

    def test_overdue_flag(self):
        fee = self.make_fee(self.student, due_in_days=-3)
        self.assertTrue(fee.is_overdue)
        fee.amount_paid = fee.amount
        fee.refresh_status()
        self.assertFalse(fee.is_overdue)

    def test_export_ledger(self):
        self.make_fee(self.student)
        self.login_as(self.admin)
        response = self.client.get('/api/admin/fees/export')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, XLSX_MIMETYPE)
        self.assertIn('fee_ledger_', response.headers['Content-Disposition'])


class TestPayments(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.fee = self.make_fee(self.student, amount='1000.00')

    def pay(self, amount, fee_id=None, **extra):
        payload = {'fee_id': fee_id or self.fee.id, 'amount': amount, 'payment_method': 'mobile_money'}
        payload.update(extra)
        return self.client.post('/api/payments', json=payload)

    def test_partial_then_full_payment(self):
        self.login_as(self.student)

        body = self.assertSuccess(self.pay(400), 201)
        self.assertEqual(body['data']['status'], 'COMPLETED')
        self.assertTrue(body['data']['receipt_number'].startswith('RCP'))
        self.assertEqual(db.session.get(Fee, self.fee.id).status, FEE_PARTIALLY_PAID)

        self.assertSuccess(self.pay(600), 201)
        fee = db.session.get(Fee, self.fee.id)
        self.assertEqual(fee.status, FEE_PAID)
        self.assertEqual(fee.amount_paid, Decimal('1000.00'))
        self.assertIsNotNone(fee.paid_at)

        body = self.assertError(self.pay(1), 400)
        self.assertIn('already been paid', body['error'])

    def test_overpayment_rejected(self):
        self.login_as(self.student)
        body = self.assertError(self.pay(1000.01), 400)
        self.assertIn('exceeds outstanding balance', body['error'])
        self.assertEqual(Payment.query.count(), 0)

    def test_sub_cent_payment_rejected(self):
        self.login_as(self.student)
        body = self.assertError(self.pay(0.001, payment_method='CASH'), 400)
        self.assertEqual(body['details']['amount'], 'Amount must be at least 0.01')
        self.assertEqual(Payment.query.count(), 0)
        self.assertEqual(db.session.get(Fee, self.fee.id).amount_paid, Decimal('0.00'))

    def test_student_cannot_pay_other_fee(self):
        other = self.make_student(name='Other Student')
        other_fee = self.make_fee(other)
        self.login_as(self.student)
        self.assertError(self.pay(100, fee_id=other_fee.id), 403)

    def test_unknown_fee(self):
        self.login_as(self.admin)
        self.assertError(self.pay(100, fee_id=9999), 404)

    def test_duplicate_reference(self):
        self.login_as(self.admin)
        self.assertSuccess(self.pay(100, reference='BANK-001'), 201)
        self.assertError(self.pay(100, reference='BANK-001'), 400)

    def test_invalid_method(self):
        self.login_as(self.student)
        response = self.client.post('/api/payments', json={
            'fee_id': self.fee.id, 'amount': 100, 'payment_method': 'BITCOIN',
        })
        body = self.assertError(response, 400)
        self.assertIn('payment_method', body['details'])

    def test_reverse_payment(self):
        self.login_as(self.admin)
        payment_id = self.assertSuccess(self.pay(1000), 201)['data']['id']
        self.assertEqual(db.session.get(Fee, self.fee.id).status, FEE_PAID)

        body = self.assertSuccess(self.client.post(f'/api/payments/{payment_id}/reverse',
                                                   json={'reason': 'Bounced transfer'}))
        self.assertEqual(body['data']['status'], PAYMENT_REVERSED)
        self.assertIn('Bounced transfer', body['data']['notes'])

        fee = db.session.get(Fee, self.fee.id)
        self.assertEqual(fee.amount_paid, Decimal('0.00'))
        self.assertEqual(fee.status, FEE_PENDING)
        self.assertIsNone(fee.paid_at)

        self.assertError(self.client.post(f'/api/payments/{payment_id}/reverse'), 400)

    def test_student_cannot_reverse(self):
        self.login_as(self.student)
        payment_id = self.assertSuccess(self.pay(100), 201)['data']['id']
        self.assertError(self.client.post(f'/api/payments/{payment_id}/reverse'), 403)

    def test_receipt_visibility(self):
        self.login_as(self.student)
        payment_id = self.assertSuccess(self.pay(250), 201)['data']['id']

        body = self.assertSuccess(self.client.get(f'/api/payments/{payment_id}/receipt'))
        self.assertEqual(body['data']['fee']['balance_after'], 750.0)
        self.assertEqual(body['data']['student']['name'], self.student.name)

        self.login_as(self.make_student(name='Nosy Student'))
        self.assertError(self.client.get(f'/api/payments/{payment_id}/receipt'), 404)

    def test_receipt_pdf(self):
        self.login_as(self.student)
        payment = self.assertSuccess(self.pay(250, reference='MOMO-77'), 201)['data']

        response = self.client.get(f"/api/payments/{payment['id']}/receipt/pdf")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, 'application/pdf')
        self.assertTrue(response.data.startswith(b'%PDF'))
        self.assertIn(payment['receipt_number'], response.headers['Content-Disposition'])

    def test_payment_listing_is_scoped(self):
        other = self.make_student(name='Other Student')
        other_fee = self.make_fee(other)
        self.login_as(self.admin)
        self.assertSuccess(self.pay(100), 201)
        self.assertSuccess(self.pay(100, fee_id=other_fee.id), 201)

        body = self.assertSuccess(self.client.get('/api/payments'))
        self.assertEqual(len(body['data']), 2)

        self.login_as(self.student)
        body = self.assertSuccess(self.client.get('/api/payments'))
        self.assertEqual(len(body['data']), 1)


class TestRegistrationClearance(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()

    def test_no_fees(self):
        status = FeeService.fee_status(self.student.id)
        self.assertTrue(status['can_register'])
        self.assertEqual(status['total_amount'], 0.0)

    def test_half_of_tuition_required(self):
        fee = self.make_fee(self.student, amount='1000.00', fee_type='TUITION')
        self.assertFalse(FeeService.fee_status(self.student.id)['can_register'])

        fee.amount_paid = Decimal('499.99')
        db.session.commit()
        self.assertFalse(FeeService.fee_status(self.student.id)['can_register'])

        fee.amount_paid = Decimal('500.00')
        db.session.commit()
        self.assertTrue(FeeService.fee_status(self.student.id)['can_register'])

    def test_admission_must_be_paid_without_tuition(self):
        fee = self.make_fee(self.student, amount='200.00', fee_type='ADMISSION')
        self.assertFalse(FeeService.fee_status(self.student.id)['can_register'])

        fee.amount_paid = fee.amount
        fee.refresh_status()
        db.session.commit()
        self.assertTrue(FeeService.fee_status(self.student.id)['can_register'])

    def test_fee_status_endpoint(self):
        self.make_fee(self.student, amount='300.00', fee_type='LIBRARY', due_in_days=-1)
        self.login_as(self.student)
        body = self.assertSuccess(self.client.get('/api/students/fee-status'))
        self.assertEqual(body['data']['overdue_count'], 1)
        self.assertEqual(body['data']['total_outstanding'], 300.0)
        self.assertEqual(len(body['data']['fees']), 1)

if __name__ == '__main__':
    unittest.main()
