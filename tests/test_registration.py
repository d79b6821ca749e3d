"""
Tests for registration periods and semester course registration
"""

import unittest
from datetime import datetime, timedelta

from database import db
from models.academic import Enrollment, AcademicRecord
from models.communication import Notification
from services.registration_service import RegistrationService
from services.settings_service import SettingsService
from tests.base import CampusPortalTestCase

class TestRegistrationPeriods(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.login_as(self.admin)
        self.now = datetime.utcnow()

    def period_payload(self, **overrides):
        payload = {
            'name': 'First Semester Registration',
            'academic_year': '2024/2025',
            'semester': 'First Semester',
            'start_date': (self.now - timedelta(days=1)).isoformat(),
            'end_date': (self.now + timedelta(days=14)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_create_period(self):
        body = self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload()), 201)
        self.assertTrue(body['data']['is_active'])
        self.assertTrue(body['data']['is_current'])

    def test_start_must_precede_end(self):
        response = self.client.post('/api/admin/registration-periods', json=self.period_payload(
            start_date=(self.now + timedelta(days=5)).isoformat(),
            end_date=(self.now + timedelta(days=1)).isoformat(),
        ))
        body = self.assertError(response, 400)
        self.assertIn('end_date', body['details'])

    def test_overlapping_active_period_rejected(self):
        self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload()), 201)
        response = self.client.post('/api/admin/registration-periods', json=self.period_payload(name='Late Registration'))
        self.assertError(response, 400)

    def test_overlap_allowed_for_other_level(self):
        self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload(level='100')), 201)
        self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload(level='200')), 201)

    def test_invalid_academic_year(self):
        response = self.client.post('/api/admin/registration-periods', json=self.period_payload(academic_year='2024'))
        body = self.assertError(response, 400)
        self.assertIn('academic_year', body['details'])

    def test_update_and_delete_period(self):
        body = self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload()), 201)
        period_id = body['data']['id']

        body = self.assertSuccess(self.client.put(f'/api/admin/registration-periods/{period_id}',
                                                  json={'is_active': False}))
        self.assertFalse(body['data']['is_active'])

        self.assertSuccess(self.client.delete(f'/api/admin/registration-periods/{period_id}'))
        self.assertError(self.client.get(f'/api/admin/registration-periods/{period_id}'), 404)

    def test_rejected_update_leaves_period_unchanged(self):
        body = self.assertSuccess(self.client.post('/api/admin/registration-periods', json=self.period_payload()), 201)
        period_id = body['data']['id']

        response = self.client.put(f'/api/admin/registration-periods/{period_id}', json={
            'end_date': (self.now - timedelta(days=10)).isoformat(),
        })
        self.assertError(response, 400)

        body = self.assertSuccess(self.client.get(f'/api/admin/registration-periods/{period_id}'))
        self.assertTrue(body['data']['is_current'])


class TestRegistrationStatus(CampusPortalTestCase):

    def test_closed_without_period(self):
        status = RegistrationService.current_status()
        self.assertFalse(status['is_open'])
        self.assertIsNone(status['period'])

    def test_open_with_covering_period(self):
        period = self.open_registration_period()
        status = RegistrationService.current_status()
        self.assertTrue(status['is_open'])
        self.assertEqual(status['period']['id'], period.id)

    def test_setting_closes_registration(self):
        self.open_registration_period()
        SettingsService.update({'registration_open': False}, self.admin.id)
        self.assertFalse(RegistrationService.current_status()['is_open'])

    def test_period_for_other_semester_does_not_open(self):
        self.open_registration_period(semester='Second Semester')
        self.assertFalse(RegistrationService.current_status()['is_open'])

    def test_current_endpoint_for_any_user(self):
        self.open_registration_period()
        self.login_as(self.make_lecturer())
        body = self.assertSuccess(self.client.get('/api/registration/current'))
        self.assertTrue(body['data']['is_open'])


class TestCourseRegistration(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        lecturer = self.make_lecturer()
        self.courses = [self.make_course(lecturer, credits=3) for _ in range(5)]
        self.student = self.make_student()
        self.login_as(self.student)

    def register(self, courses):
        return self.client.post('/api/students/course-registration',
                                json={'course_ids': [course.id for course in courses]})

    def test_overview(self):
        self.open_registration_period()
        body = self.assertSuccess(self.client.get('/api/students/course-registration'))
        self.assertEqual(len(body['data']['courses']), 5)
        self.assertTrue(body['data']['registration']['is_open'])
        self.assertEqual(body['data']['credit_limits'], {'min_credits': 12, 'max_credits': 18})

    def test_registration_closed(self):
        self.assertError(self.register(self.courses[:4]), 400)

    def test_successful_registration(self):
        """All enrollments, records and the notification are written together"""
        self.open_registration_period()
        body = self.assertSuccess(self.register(self.courses[:4]), 201)
        self.assertEqual(body['data']['total_credits'], 12)
        self.assertEqual(len(body['data']['enrollments']), 4)

        self.assertEqual(Enrollment.query.filter_by(student_id=self.student.id).count(), 4)
        self.assertEqual(AcademicRecord.query.filter_by(student_id=self.student.id).count(), 4)
        self.assertEqual(Notification.query.filter_by(user_id=self.student.id).count(), 1)

    def test_credits_below_minimum(self):
        self.open_registration_period()
        body = self.assertError(self.register(self.courses[:2]), 400)
        self.assertIn('between 12 and 18', body['error'])
        self.assertEqual(Enrollment.query.count(), 0)

    def test_duplicate_ids_rejected(self):
        self.open_registration_period()
        response = self.client.post('/api/students/course-registration', json={
            'course_ids': [self.courses[0].id, self.courses[0].id, self.courses[1].id, self.courses[2].id],
        })
        self.assertError(response, 400)

    def test_unknown_course_rejected(self):
        self.open_registration_period()
        response = self.client.post('/api/students/course-registration', json={
            'course_ids': [self.courses[0].id, self.courses[1].id, self.courses[2].id, 9999],
        })
        self.assertError(response, 400)

    def test_cannot_register_twice_in_a_semester(self):
        self.open_registration_period()
        self.assertSuccess(self.register(self.courses[:4]), 201)
        body = self.assertError(self.register(self.courses[1:5]), 400)
        self.assertIn('already registered', body['error'])

    def test_failed_registration_writes_nothing(self):
        """A course the student already holds aborts the whole batch"""
        self.open_registration_period()
        self.enroll(self.student, self.courses[0])
        Enrollment.query.filter_by(student_id=self.student.id).update({'academic_year': '2023/2024'})
        db.session.commit()

        self.assertError(self.register(self.courses[:4]), 400)
        self.assertEqual(Enrollment.query.filter_by(student_id=self.student.id).count(), 1)
        self.assertEqual(Notification.query.filter_by(user_id=self.student.id).count(), 0)

if __name__ == '__main__':
    unittest.main()
