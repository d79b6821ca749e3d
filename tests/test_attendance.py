"""
Tests for attendance marking, listings, reports and exports
"""

import unittest
from datetime import date

from models.attendance import Attendance
from tests.base import CampusPortalTestCase

class TestMarkAttendance(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.lecturer = self.make_lecturer()
        self.course = self.make_course(self.lecturer)
        self.alice = self.make_student(name='Alice Student')
        self.bob = self.make_student(name='Bob Student')
        self.enroll(self.alice, self.course)
        self.enroll(self.bob, self.course)
        self.login_as(self.lecturer)

    def _mark(self, day, records, course=None):
        return self.client.post(f'/api/courses/{(course or self.course).id}/attendance',
                                json={'date': day, 'records': records})

    def test_mark_session(self):
        body = self.assertSuccess(self._mark('2026-03-02', [
            {'student_id': self.alice.id, 'status': 'present'},
            {'student_id': self.bob.id, 'status': 'LATE', 'notes': 'Bus delay'},
        ]))
        self.assertEqual(body['message'], 'Attendance recorded for 2 students')
        self.assertEqual(Attendance.query.filter_by(course_id=self.course.id).count(), 2)
        bob = Attendance.query.filter_by(student_id=self.bob.id).one()
        self.assertEqual(bob.status, 'LATE')
        self.assertEqual(bob.date, date(2026, 3, 2))
        self.assertEqual(bob.marked_by, self.lecturer.id)

    def test_marking_again_overwrites_the_day(self):
        self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'ABSENT'}])
        self.assertSuccess(self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'EXCUSED'}]))
        rows = Attendance.query.filter_by(student_id=self.alice.id).all()
        self.assertEqual([row.status for row in rows], ['EXCUSED'])

    def test_rejects_students_not_enrolled(self):
        outsider = self.make_student()
        body = self.assertError(self._mark('2026-03-02', [
            {'student_id': self.alice.id, 'status': 'PRESENT'},
            {'student_id': outsider.id, 'status': 'PRESENT'},
        ]), 400)
        self.assertIn('records[1]', body['details'])
        self.assertEqual(Attendance.query.count(), 0)

    def test_rejects_duplicates_and_bad_status(self):
        body = self.assertError(self._mark('2026-03-02', [
            {'student_id': self.alice.id, 'status': 'PRESENT'},
            {'student_id': self.alice.id, 'status': 'ABSENT'},
        ]), 400)
        self.assertIn('records[1]', body['details'])

        body = self.assertError(self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'ASLEEP'}]), 400)
        self.assertIn('records[0]', body['details'])

    def test_requires_date_and_records(self):
        body = self.assertError(self.client.post(f'/api/courses/{self.course.id}/attendance',
                                                 json={'records': []}), 400)
        self.assertIn('date', body['details'])
        self.assertError(self._mark('2026-03-02', []), 400)

    def test_only_owning_lecturer_or_admin(self):
        other = self.make_lecturer()
        self.login_as(other)
        self.assertError(self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'PRESENT'}]), 403)

        self.login_as(self.alice)
        self.assertError(self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'PRESENT'}]), 403)

        self.login_as(self.admin)
        self.assertSuccess(self._mark('2026-03-02', [{'student_id': self.alice.id, 'status': 'PRESENT'}]))


class TestAttendanceReports(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.lecturer = self.make_lecturer()
        self.course = self.make_course(self.lecturer)
        self.alice = self.make_student(name='Alice Student')
        self.bob = self.make_student(name='Bob Student')
        self.carol = self.make_student(name='Carol Student')
        for student in (self.alice, self.bob, self.carol):
            self.enroll(student, self.course)

        self.login_as(self.lecturer)
        sessions = [
            ('2026-03-02', 'PRESENT', 'ABSENT'),
            ('2026-03-09', 'LATE', 'ABSENT'),
            ('2026-03-16', 'EXCUSED', 'PRESENT'),
            ('2026-04-06', 'ABSENT', 'PRESENT'),
        ]
        for day, alice, bob in sessions:
            self.assertSuccess(self.client.post(f'/api/courses/{self.course.id}/attendance', json={
                'date': day,
                'records': [{'student_id': self.alice.id, 'status': alice},
                            {'student_id': self.bob.id, 'status': bob}],
            }))

    def test_report_counts_late_and_excused_as_attended(self):
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/attendance/report'))
        report = body['data']
        self.assertEqual(report['sessions'], 4)
        self.assertEqual(report['overall']['total_records'], 8)
        # 3 present, 1 late, 1 excused out of 8
        self.assertEqual(report['overall']['attendance_percentage'], 62.5)

        by_name = {entry['student_name']: entry for entry in report['students']}
        self.assertEqual(by_name['Alice Student']['attendance_percentage'], 75.0)
        self.assertEqual(by_name['Bob Student']['attendance_percentage'], 50.0)
        self.assertEqual(by_name['Bob Student']['absent'], 2)

    def test_students_without_records_are_listed(self):
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/attendance/report'))
        carol = [entry for entry in body['data']['students'] if entry['student_id'] == self.carol.id][0]
        self.assertEqual(carol['total_records'], 0)
        self.assertEqual(carol['attendance_percentage'], 0)

    def test_report_date_range(self):
        body = self.assertSuccess(self.client.get(
            f'/api/courses/{self.course.id}/attendance/report?start_date=2026-03-01&end_date=2026-03-31'))
        self.assertEqual(body['data']['sessions'], 3)
        self.assertEqual(body['data']['period']['end_date'], '2026-03-31')

        self.assertError(self.client.get(
            f'/api/courses/{self.course.id}/attendance/report?start_date=2026-04-01&end_date=2026-03-01'), 400)
        body = self.assertError(self.client.get(
            f'/api/courses/{self.course.id}/attendance/report?start_date=March'), 400)
        self.assertIn('start_date', body['details'])

    def test_list_for_one_day(self):
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/attendance?date=2026-03-09'))
        self.assertEqual(sorted(row['status'] for row in body['data']), ['ABSENT', 'LATE'])
        self.assertEqual(body['course']['code'], self.course.code)

    def test_student_sees_only_own_attendance(self):
        self.login_as(self.alice)
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/attendance'))
        self.assertEqual({row['student_id'] for row in body['data']}, {self.alice.id})

        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/attendance/report'))
        self.assertEqual([entry['student_id'] for entry in body['data']['students']], [self.alice.id])
        self.assertEqual(body['data']['overall']['total_records'], 4)

    def test_unenrolled_student_is_forbidden(self):
        self.login_as(self.make_student())
        self.assertError(self.client.get(f'/api/courses/{self.course.id}/attendance/report'), 403)

    def test_export_is_xlsx(self):
        response = self.client.get(f'/api/courses/{self.course.id}/attendance/export')
        self.assertEqual(response.status_code, 200)
        self.assertIn('spreadsheetml', response.content_type)
        self.assertTrue(response.data.startswith(b'PK'))

    def test_students_cannot_export(self):
        self.login_as(self.alice)
        self.assertError(self.client.get(f'/api/courses/{self.course.id}/attendance/export'), 403)

if __name__ == '__main__':
    unittest.main()
