"""
Tests for global search
"""

import unittest
from datetime import datetime, timedelta

from database import db
from models.assignments import Assignment
from models.communication import Announcement
from tests.base import CampusPortalTestCase

class TestSearch(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.lecturer = self.make_lecturer()
        self.other_lecturer = self.make_lecturer()
        self.algorithms = self.make_course(self.lecturer, code='CS301', title='Algorithms and Graphs')
        self.graphics = self.make_course(self.other_lecturer, code='CS302', title='Computer Graphs')
        self.draft = self.make_course(self.other_lecturer, code='CS399', title='Graph Theory Draft',
                                      status='PENDING', is_active=False)

        self.student = self.make_student(name='Grace Hopper')
        self.enroll(self.student, self.algorithms)
        self.outsider = self.make_student(name='Graham Bell')

        due = datetime.utcnow() + timedelta(days=7)
        db.session.add_all([
            Assignment(course_id=self.algorithms.id, title='Graph traversal', due_date=due),
            Assignment(course_id=self.graphics.id, title='Graph rendering', due_date=due),
            Announcement(title='Graph seminar', content='Open to all', author_id=self.admin.id),
            Announcement(title='Graph staff meeting', content='Staff only', target_audience='LECTURERS',
                         author_id=self.admin.id),
        ])
        db.session.commit()

    def _search(self, q, search_type=None):
        url = f'/api/search?q={q}' + (f'&type={search_type}' if search_type else '')
        return self.assertSuccess(self.client.get(url))['data']

    def test_short_queries_find_nothing(self):
        self.login_as(self.admin)
        data = self._search('g')
        self.assertEqual(data['total'], 0)
        self.assertEqual(data['courses'], [])

    def test_student_scope(self):
        self.login_as(self.student)
        data = self._search('graph')
        self.assertEqual({course['code'] for course in data['courses']}, {'CS301', 'CS302'})
        enrolled = {course['code']: course['is_enrolled'] for course in data['courses']}
        self.assertTrue(enrolled['CS301'])
        self.assertFalse(enrolled['CS302'])
        self.assertEqual([item['title'] for item in data['assignments']], ['Graph traversal'])
        self.assertEqual([item['title'] for item in data['announcements']], ['Graph seminar'])
        self.assertEqual(data['students'], [])
        self.assertEqual(data['total'], 4)

    def test_lecturer_scope(self):
        self.login_as(self.lecturer)
        data = self._search('GRA')
        self.assertEqual([item['title'] for item in data['assignments']], ['Graph traversal'])
        self.assertEqual({item['title'] for item in data['announcements']}, {'Graph seminar', 'Graph staff meeting'})
        # Only students enrolled in the lecturer's courses
        self.assertEqual([item['name'] for item in data['students']], ['Grace Hopper'])
        self.assertNotIn('CS399', {course['code'] for course in data['courses']})

    def test_admin_sees_everything(self):
        self.login_as(self.admin)
        data = self._search('gra')
        self.assertEqual({course['code'] for course in data['courses']}, {'CS301', 'CS302', 'CS399'})
        self.assertEqual({item['name'] for item in data['students']}, {'Grace Hopper', 'Graham Bell'})

    def test_type_filter(self):
        self.login_as(self.admin)
        data = self._search('graph', 'courses')
        self.assertEqual(len(data['courses']), 3)
        self.assertEqual(data['assignments'], [])
        self.assertEqual(data['total'], 3)

        body = self.assertError(self.client.get('/api/search?q=graph&type=books'), 400)
        self.assertIn('type', body['details'])

    def test_search_by_student_number(self):
        self.login_as(self.admin)
        number = self.outsider.student_profile.student_number
        data = self._search(number, 'students')
        self.assertEqual([item['name'] for item in data['students']], ['Graham Bell'])

    def test_requires_login(self):
        self.assertError(self.client.get('/api/search?q=graph'), 401)

if __name__ == '__main__':
    unittest.main()
