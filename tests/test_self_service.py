"""
Tests for certificate, clearance and ID card requests
"""

import unittest
from datetime import datetime, timedelta

from database import db
from models.communication import Notification
from models.library import Borrowing
from tests.base import CampusPortalTestCase

class TestCertificateRequests(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.login_as(self.student)

    def request_certificate(self, **fields):
        payload = {'certificate_type': 'transcript', 'purpose': 'Graduate school application'}
        payload.update(fields)
        return self.client.post('/api/self-service/certificates', json=payload)

    def test_create_with_defaults(self):
        body = self.assertSuccess(self.request_certificate(), 201)
        self.assertEqual(body['data']['certificate_type'], 'TRANSCRIPT')
        self.assertEqual(body['data']['delivery_method'], 'PICKUP')
        self.assertEqual(body['data']['copies'], 1)
        self.assertFalse(body['data']['urgent'])
        self.assertEqual(body['data']['status'], 'PENDING')

    def test_one_open_request_per_certificate_type(self):
        self.assertSuccess(self.request_certificate(), 201)
        body = self.assertError(self.request_certificate(), 400)
        self.assertIn('already have an open', body['error'])

        self.assertSuccess(self.request_certificate(certificate_type='GOOD_STANDING'), 201)

    def test_mail_needs_address(self):
        body = self.assertError(self.request_certificate(delivery_method='MAIL'), 400)
        self.assertIn('delivery_address', body['details'])

        body = self.assertSuccess(self.request_certificate(delivery_method='MAIL',
                                                          delivery_address='12 Campus Road, Accra'), 201)
        self.assertEqual(body['data']['delivery_method'], 'MAIL')

    def test_unknown_kind(self):
        self.assertError(self.client.get('/api/self-service/parking-permits'), 404)

    def test_lecturers_cannot_request(self):
        self.login_as(self.make_lecturer())
        self.assertError(self.request_certificate(), 403)


class TestClearanceRequests(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()

    def request_clearance(self):
        return self.client.post('/api/self-service/clearance', json={
            'clearance_type': 'GRADUATION', 'reason': 'Completing my final semester',
        })

    def test_items_reflect_library_and_finance(self):
        book = self.make_book()
        db.session.add(Borrowing(user_id=self.student.id, book_id=book.id,
                                 due_date=datetime.utcnow() + timedelta(days=7)))
        db.session.commit()
        self.make_fee(self.student)

        self.login_as(self.student)
        body = self.assertSuccess(self.request_clearance(), 201)
        items = {item['department']: item for item in body['data']['clearance_items']}
        self.assertEqual(set(items), {'library', 'finance', 'academic', 'hostel'})
        self.assertEqual(items['library']['status'], 'PENDING')
        self.assertEqual(items['finance']['status'], 'PENDING')
        self.assertEqual(items['finance']['notes'], '1 fee(s) outstanding')

    def test_cleared_student(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.request_clearance(), 201)
        items = {item['department']: item['status'] for item in body['data']['clearance_items']}
        self.assertEqual(items['library'], 'CLEARED')
        self.assertEqual(items['finance'], 'CLEARED')

    def test_one_open_clearance(self):
        self.login_as(self.student)
        self.assertSuccess(self.request_clearance(), 201)
        self.assertError(self.request_clearance(), 400)

    def test_reason_too_short(self):
        self.login_as(self.student)
        response = self.client.post('/api/self-service/clearance', json={
            'clearance_type': 'GRADUATION', 'reason': 'Done',
        })
        body = self.assertError(response, 400)
        self.assertIn('reason', body['details'])


class TestRequestReview(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.login_as(self.student)
        self.request_id = self.assertSuccess(self.client.post('/api/self-service/id-cards', json={
            'request_type': 'replacement', 'reason': 'Lost my card',
        }), 201)['data']['id']
        self.login_as(self.admin)

    def set_status(self, status, **extra):
        payload = {'status': status}
        payload.update(extra)
        return self.client.put(f'/api/self-service/id-cards/{self.request_id}', json=payload)

    def test_lifecycle(self):
        body = self.assertSuccess(self.set_status('processing'))
        self.assertEqual(body['data']['status'], 'PROCESSING')

        body = self.assertSuccess(self.set_status('APPROVED', admin_notes='Collect from the registry'))
        self.assertEqual(body['data']['processed_by'], self.admin.name)
        self.assertEqual(body['data']['admin_notes'], 'Collect from the registry')

        self.assertSuccess(self.set_status('COMPLETED'))

        notifications = Notification.query.filter_by(user_id=self.student.id).all()
        self.assertEqual(len(notifications), 3)

    def test_invalid_transitions(self):
        self.assertError(self.set_status('COMPLETED'), 400)
        self.assertSuccess(self.set_status('REJECTED'))
        body = self.assertError(self.set_status('APPROVED'), 400)
        self.assertIn('Cannot change status from REJECTED', body['error'])

    def test_rejection_notifies_with_error_type(self):
        self.assertSuccess(self.set_status('REJECTED', admin_notes='Photo missing'))
        notification = Notification.query.filter_by(user_id=self.student.id).one()
        self.assertEqual(notification.type, 'ERROR')
        self.assertIn('Photo missing', notification.content)

    def test_closed_request_allows_a_new_one(self):
        self.assertSuccess(self.set_status('REJECTED'))
        self.login_as(self.student)
        self.assertSuccess(self.client.post('/api/self-service/id-cards', json={'request_type': 'NEW'}), 201)

    def test_unknown_request(self):
        response = self.client.put('/api/self-service/id-cards/9999', json={'status': 'APPROVED'})
        body = self.assertError(response, 404)
        self.assertEqual(body['error'], 'ID card request not found')

    def test_students_cannot_review(self):
        self.login_as(self.student)
        self.assertError(self.set_status('APPROVED'), 403)

    def test_listing_scope(self):
        other = self.make_student(name='Other Student')
        self.login_as(other)
        self.assertSuccess(self.client.post('/api/self-service/id-cards', json={'request_type': 'NEW'}), 201)

        body = self.assertSuccess(self.client.get('/api/self-service/id-cards'))
        self.assertEqual(len(body['data']), 1)
        self.assertEqual(body['data'][0]['user_id'], other.id)

        self.login_as(self.admin)
        body = self.assertSuccess(self.client.get('/api/self-service/id-cards'))
        self.assertEqual(len(body['data']), 2)

        body = self.assertSuccess(self.client.get(f'/api/self-service/id-cards?user_id={self.student.id}'))
        self.assertEqual(len(body['data']), 1)

        body = self.assertSuccess(self.client.get('/api/self-service/id-cards?type=new'))
        self.assertEqual(body['data'][0]['request_type'], 'NEW')

if __name__ == '__main__':
    unittest.main()
