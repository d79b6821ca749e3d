"""
Tests for admission applications and their review
"""

import unittest
from datetime import date
from unittest.mock import patch

from database import db
from models.admissions import Application, Programme
from models.communication import Notification
from models.finance import Fee
from models.user import User, ROLE_STUDENT
from tests.base import CampusPortalTestCase

MOTIVATION = ("I have wanted to study computing since I built my first website at school "
              "and I am ready for the challenge.")

class ApplicationTestCase(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.programme = Programme.query.filter_by(name='BACHELOR OF SCIENCE (COMPUTER SCIENCE)').one()

    def application_payload(self, **fields):
        payload = {
            'first_name': 'Ama',
            'last_name': 'Mensah',
            'date_of_birth': '2004-05-17',
            'gender': 'female',
            'nationality': 'Ghanaian',
            'phone': '+233 24 123 4567',
            'email': 'Ama.Mensah@example.com',
            'address': '14 Ring Road, Accra',
            'previous_school': 'Achimota School',
            'graduation_year': 2022,
            'programme_id': self.programme.id,
            'motivation_statement': MOTIVATION,
        }
        payload.update(fields)
        return payload

    def submit(self, **fields):
        return self.client.post('/api/applications', json=self.application_payload(**fields))


class TestSubmission(ApplicationTestCase):

    def test_programmes_are_public(self):
        body = self.assertSuccess(self.client.get('/api/programmes'))
        self.assertIn(self.programme.name, [item['name'] for item in body['data']])
        listed = {item['name']: item for item in body['data']}
        self.assertEqual(listed[self.programme.name]['total_fees'], 29100.0)

    def test_submit(self):
        body = self.assertSuccess(self.submit(), 201)
        self.assertEqual(body['data']['status'], 'PENDING')
        self.assertEqual(body['data']['full_name'], 'Ama Mensah')
        self.assertTrue(body['data']['application_number'].startswith(f'APP{date.today().year}'))

        application = Application.query.one()
        self.assertEqual(application.email, 'ama.mensah@example.com')
        self.assertEqual(application.date_of_birth, date(2004, 5, 17))
        self.assertEqual(application.gender, 'FEMALE')

    def test_sequential_numbers(self):
        first = self.assertSuccess(self.submit(), 201)['data']['application_number']
        second = self.assertSuccess(self.submit(email='kofi@example.com', first_name='Kofi'), 201)
        self.assertEqual(int(second['data']['application_number'][-4:]), int(first[-4:]) + 1)

    def test_number_collision_is_retried(self):
        taken = self.assertSuccess(self.submit(), 201)['data']['application_number']
        fresh = f'APP{date.today().year}9999'
        with patch.object(Application, 'next_application_number', side_effect=[taken, fresh]):
            body = self.assertSuccess(self.submit(email='kofi@example.com', first_name='Kofi'), 201)
        self.assertEqual(body['data']['application_number'], fresh)
        self.assertEqual(Application.query.count(), 2)

    def test_number_collision_that_persists(self):
        taken = self.assertSuccess(self.submit(), 201)['data']['application_number']
        with patch.object(Application, 'next_application_number', return_value=taken):
            body = self.assertError(self.submit(email='kofi@example.com', first_name='Kofi'), 409)
        self.assertEqual(body['error'], 'Could not allocate an application number, please try again')
        self.assertEqual(Application.query.count(), 1)

    def test_short_motivation(self):
        body = self.assertError(self.submit(motivation_statement='I like computers.'), 400)
        self.assertIn('motivation_statement', body['details'])

    def test_invalid_fields(self):
        body = self.assertError(self.submit(first_name='Am4', phone='12ab', gender='unknown'), 400)
        for field in ('first_name', 'phone', 'gender'):
            self.assertIn(field, body['details'])

    def test_graduation_year_in_future(self):
        body = self.assertError(self.submit(graduation_year=date.today().year + 1), 400)
        self.assertIn('graduation_year', body['details'])

    def test_duplicate_email(self):
        self.assertSuccess(self.submit(), 201)
        body = self.assertError(self.submit(email='AMA.MENSAH@example.com'), 400)
        self.assertIn('already exists', body['error'])

    def test_unknown_programme(self):
        body = self.assertError(self.submit(programme_id=9999), 400)
        self.assertIn('programme_id', body['details'])

    def test_status_lookup(self):
        number = self.assertSuccess(self.submit(), 201)['data']['application_number']

        body = self.assertSuccess(self.client.get('/api/applications/status?email=ama.mensah@example.com'))
        self.assertEqual(body['data']['application_number'], number)

        body = self.assertSuccess(self.client.get(f'/api/applications/status?application_number={number.lower()}'))
        self.assertEqual(body['data']['status'], 'PENDING')
        self.assertNotIn('email', body['data'])

        self.assertError(self.client.get('/api/applications/status'), 400)
        self.assertError(self.client.get('/api/applications/status?email=nobody@example.com'), 404)

    def test_submission_allowed_during_maintenance(self):
        self.login_as(self.admin)
        self.assertSuccess(self.client.put('/api/admin/settings', json={'maintenance_mode': True}))
        self.logout()

        self.assertSuccess(self.submit(), 201)
        self.assertSuccess(self.client.get('/api/programmes'))


class TestReview(ApplicationTestCase):

    def setUp(self):
        super().setUp()
        self.application_id = Application.query.filter_by(
            application_number=self.assertSuccess(self.submit(), 201)['data']['application_number'],
        ).one().id
        self.login_as(self.admin)

    def review(self, status, **extra):
        payload = {'status': status}
        payload.update(extra)
        return self.client.put(f'/api/applications/{self.application_id}', json=payload)

    def test_admin_list_and_search(self):
        body = self.assertSuccess(self.client.get('/api/applications?search=mensah'))
        self.assertEqual(len(body['data']), 1)

        body = self.assertSuccess(self.client.get('/api/applications?status=approved'))
        self.assertEqual(body['data'], [])

        body = self.assertSuccess(self.client.get(f'/api/applications/{self.application_id}'))
        self.assertEqual(body['data']['programme']['id'], self.programme.id)

    def test_review_requires_admin(self):
        self.logout()
        self.assertError(self.client.get('/api/applications'), 401)

    def test_approval_provisions_student(self):
        body = self.assertSuccess(self.review('approved', admin_notes='Strong candidate'))
        credentials = body['data']['credentials']
        self.assertEqual(body['data']['status'], 'APPROVED')
        self.assertEqual(credentials['email'], 'ama.mensah@example.com')
        self.assertEqual(body['data']['generated_student_number'], credentials['student_number'])

        user = User.query.filter_by(email='ama.mensah@example.com').one()
        self.assertEqual(user.role, ROLE_STUDENT)
        self.assertTrue(user.check_password(credentials['password']))
        self.assertEqual(user.student_profile.programme, self.programme.name)
        self.assertEqual(user.student_profile.date_of_birth, date(2004, 5, 17))

        fees = Fee.query.filter_by(student_id=user.id).all()
        self.assertEqual(len(fees), 6)
        self.assertEqual(sum(fee.amount for fee in fees), 29100)

        notification = Notification.query.filter_by(user_id=self.admin.id, title='Student Account Created').one()
        self.assertEqual(notification.data['user_id'], user.id)

        # new student can sign in with the issued password
        self.logout()
        response = self.client.post('/api/auth/login', json={
            'email': credentials['email'], 'password': credentials['password'],
        })
        self.assertEqual(response.status_code, 200)

    def test_under_review_then_reject(self):
        body = self.assertSuccess(self.review('UNDER_REVIEW'))
        self.assertNotIn('credentials', body['data'])

        self.assertSuccess(self.review('REJECTED', admin_notes='Incomplete transcript'))
        self.assertIsNone(User.query.filter_by(email='ama.mensah@example.com').first())

    def test_review_never_moves_backwards(self):
        self.assertSuccess(self.review('UNDER_REVIEW'))
        body = self.assertError(self.review('PENDING'), 400)
        self.assertEqual(body['error'], 'Cannot move an application from UNDER_REVIEW to PENDING')
        self.assertError(self.review('UNDER_REVIEW'), 400)
        self.assertEqual(db.session.get(Application, self.application_id).status, 'UNDER_REVIEW')

    def test_pending_cannot_be_set_again(self):
        self.assertError(self.review('PENDING'), 400)

    def test_final_status_is_locked(self):
        self.assertSuccess(self.review('REJECTED'))
        body = self.assertError(self.review('APPROVED'), 400)
        self.assertEqual(body['error'], 'Application has already been rejected')

    def test_approval_with_existing_account(self):
        self.make_student(email='ama.mensah@example.com')
        self.assertError(self.review('APPROVED'), 400)
        self.assertEqual(db.session.get(Application, self.application_id).status, 'PENDING')

if __name__ == '__main__':
    unittest.main()
