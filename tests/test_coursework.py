"""
Tests for assignments, submissions and quizzes
"""

import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from database import db
from models.assignments import Assignment, Submission
from models.communication import Notification
from models.quizzes import Quiz, QuizQuestion, QuizAttempt
from services.quiz_service import QuizService
from tests.base import CampusPortalTestCase
from utils.db_helpers import transaction
from utils.errors import ConflictError, ValidationError

class TestAssignments(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.lecturer = self.make_lecturer()
        self.course = self.make_course(self.lecturer, code='CS101')
        self.student = self.make_student()
        self.enroll(self.student, self.course)

    def make_assignment(self, due_in_days=7, max_points=100):
        assignment = Assignment(course_id=self.course.id, title='Linked Lists', max_points=max_points,
                                due_date=datetime.utcnow() + timedelta(days=due_in_days),
                                created_by=self.lecturer.id)
        db.session.add(assignment)
        db.session.commit()
        return assignment

    def test_create_notifies_enrolled_students(self):
        self.login_as(self.lecturer)
        response = self.client.post(f'/api/courses/{self.course.id}/assignments', json={
            'title': 'Binary Trees',
            'due_date': (datetime.utcnow() + timedelta(days=10)).isoformat(),
            'max_points': 50,
        })
        body = self.assertSuccess(response, 201)
        self.assertEqual(body['data']['max_points'], 50)

        notification = Notification.query.filter_by(user_id=self.student.id).one()
        self.assertEqual(notification.title, 'New Assignment')

    def test_create_requires_ownership(self):
        self.login_as(self.make_lecturer(name='Other Lecturer'))
        response = self.client.post(f'/api/courses/{self.course.id}/assignments', json={
            'title': 'Binary Trees', 'due_date': (datetime.utcnow() + timedelta(days=10)).isoformat(),
        })
        self.assertError(response, 403)

    def test_unenrolled_student_forbidden(self):
        self.make_assignment()
        self.login_as(self.make_student(name='Outside Student'))
        self.assertError(self.client.get(f'/api/courses/{self.course.id}/assignments'), 403)

    def test_student_sees_only_own_submission(self):
        assignment = self.make_assignment()
        classmate = self.make_student(name='Class Mate')
        self.enroll(classmate, self.course)
        db.session.add(Submission(assignment_id=assignment.id, student_id=classmate.id, comments='Mine'))
        db.session.commit()

        self.login_as(self.student)
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/assignments'))
        self.assertEqual(len(body['data']), 1)
        self.assertIsNone(body['data'][0]['submission'])
        self.assertNotIn('submission_count', body['data'][0])

    def test_submit_once(self):
        assignment = self.make_assignment()
        self.login_as(self.student)

        response = self.client.post(f'/api/assignments/{assignment.id}/submit',
                                    json={'file_url': 'https://files.example.edu/a1.pdf'})
        body = self.assertSuccess(response, 201)
        self.assertEqual(body['data']['status'], 'SUBMITTED')

        response = self.client.post(f'/api/assignments/{assignment.id}/submit', json={'comments': 'Again'})
        self.assertError(response, 400)

    def test_submit_after_due_date(self):
        assignment = self.make_assignment(due_in_days=-1)
        self.login_as(self.student)
        response = self.client.post(f'/api/assignments/{assignment.id}/submit', json={'comments': 'Late work'})
        body = self.assertError(response, 400)
        self.assertIn('due date', body['error'])

    def test_submit_requires_content(self):
        assignment = self.make_assignment()
        self.login_as(self.student)
        self.assertError(self.client.post(f'/api/assignments/{assignment.id}/submit', json={}), 400)

    def test_grade_submission(self):
        assignment = self.make_assignment(max_points=20)
        submission = Submission(assignment_id=assignment.id, student_id=self.student.id, comments='Done')
        db.session.add(submission)
        db.session.commit()

        self.login_as(self.lecturer)
        self.assertError(self.client.put(f'/api/submissions/{submission.id}/grade', json={'mark': 25}), 400)

        body = self.assertSuccess(self.client.put(f'/api/submissions/{submission.id}/grade',
                                                  json={'mark': 18, 'feedback': 'Good work'}))
        self.assertEqual(body['data']['status'], 'GRADED')
        self.assertEqual(body['data']['mark'], 18)

        notification = Notification.query.filter_by(user_id=self.student.id).one()
        self.assertEqual(notification.title, 'Assignment Graded')

    def test_list_submissions_for_owner(self):
        assignment = self.make_assignment()
        db.session.add(Submission(assignment_id=assignment.id, student_id=self.student.id, comments='Done'))
        db.session.commit()

        self.login_as(self.lecturer)
        body = self.assertSuccess(self.client.get(f'/api/assignments/{assignment.id}/submissions'))
        self.assertEqual(len(body['data']['submissions']), 1)
        self.assertEqual(body['data']['assignment']['submission_count'], 1)

    def test_cannot_delete_with_submissions(self):
        assignment = self.make_assignment()
        db.session.add(Submission(assignment_id=assignment.id, student_id=self.student.id, comments='Done'))
        db.session.commit()

        self.login_as(self.lecturer)
        self.assertError(self.client.delete(f'/api/assignments/{assignment.id}'), 400)

    def test_update_and_delete(self):
        assignment = self.make_assignment()
        self.login_as(self.lecturer)

        body = self.assertSuccess(self.client.put(f'/api/assignments/{assignment.id}', json={'title': 'Stacks'}))
        self.assertEqual(body['data']['title'], 'Stacks')

        self.assertSuccess(self.client.delete(f'/api/assignments/{assignment.id}'))
        self.assertIsNone(db.session.get(Assignment, assignment.id))


class TestQuizzes(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.lecturer = self.make_lecturer()
        self.course = self.make_course(self.lecturer)
        self.student = self.make_student()
        self.enroll(self.student, self.course)

        self.quiz = Quiz(course_id=self.course.id, title='Week 1 Quiz', max_attempts=2, created_by=self.lecturer.id)
        db.session.add(self.quiz)
        db.session.flush()
        self.q1 = QuizQuestion(quiz_id=self.quiz.id, question='2 + 2?', options=['3', '4'], correct_answer=1,
                               points=2, order=1)
        self.q2 = QuizQuestion(quiz_id=self.quiz.id, question='Capital of Ghana?',
                               options=['Accra', 'Kumasi', 'Tamale'], correct_answer=0, points=3, order=2)
        db.session.add_all([self.q1, self.q2])
        db.session.commit()

    def attempt(self, answers):
        return self.client.post(f'/api/quizzes/{self.quiz.id}/attempt', json={'answers': answers, 'time_spent': 120})

    def test_grading(self):
        score, max_score, percentage, graded = QuizService.grade_answers(
            [self.q1, self.q2],
            [{'question_id': self.q1.id, 'answer': 1}, {'question_id': self.q2.id, 'answer': 2}],
        )
        self.assertEqual((score, max_score, percentage), (2, 5, 40.0))
        self.assertEqual([item[2] for item in graded], [True, False])

    def test_grading_without_questions(self):
        self.assertEqual(QuizService.grade_answers([], [])[:3], (0, 0, 0))

    def test_grading_rejects_foreign_and_repeated_questions(self):
        with self.assertRaises(ValidationError):
            QuizService.grade_answers([self.q1], [{'question_id': self.q2.id, 'answer': 0}])
        with self.assertRaises(ValidationError):
            QuizService.grade_answers([self.q1], [{'question_id': self.q1.id, 'answer': 1},
                                                  {'question_id': self.q1.id, 'answer': 0}])

    def test_student_questions_hide_answers(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.client.get(f'/api/quizzes/{self.quiz.id}/questions'))
        self.assertEqual(len(body['data']['questions']), 2)
        self.assertNotIn('correct_answer', body['data']['questions'][0])

        self.login_as(self.lecturer)
        body = self.assertSuccess(self.client.get(f'/api/quizzes/{self.quiz.id}/questions'))
        self.assertIn('correct_answer', body['data']['questions'][0])

    def test_add_question_validates_answer_index(self):
        self.login_as(self.lecturer)
        response = self.client.post(f'/api/quizzes/{self.quiz.id}/questions', json={
            'question': 'Pick one', 'options': ['a', 'b'], 'correct_answer': 2,
        })
        self.assertError(response, 400)

        response = self.client.post(f'/api/quizzes/{self.quiz.id}/questions', json={
            'question': 'Pick one', 'options': ['a', 'b'], 'correct_answer': 1,
        })
        body = self.assertSuccess(response, 201)
        self.assertEqual(body['data']['order'], 3)

    def test_add_question_needs_two_options(self):
        self.login_as(self.lecturer)
        response = self.client.post(f'/api/quizzes/{self.quiz.id}/questions', json={
            'question': 'Pick one', 'options': ['only'], 'correct_answer': 0,
        })
        self.assertError(response, 400)

    def test_attempt_scores_and_stores_answers(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.attempt([
            {'question_id': self.q1.id, 'answer': 1},
            {'question_id': self.q2.id, 'answer': 0},
        ]), 201)
        self.assertEqual(body['data']['score'], 5)
        self.assertEqual(body['data']['percentage'], 100.0)
        self.assertEqual(len(body['data']['answers']), 2)

    def test_unanswered_questions_score_zero(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.attempt([{'question_id': self.q2.id, 'answer': 0}]), 201)
        self.assertEqual(body['data']['score'], 3)
        self.assertEqual(body['data']['max_score'], 5)
        self.assertEqual(body['data']['percentage'], 60.0)

    def test_attempt_limit(self):
        self.login_as(self.student)
        self.assertSuccess(self.attempt([]), 201)
        self.assertSuccess(self.attempt([]), 201)
        body = self.assertError(self.attempt([]), 400)
        self.assertEqual(body['error'], 'Maximum number of attempts reached')
        self.assertEqual(QuizAttempt.query.count(), 2)

    def test_attempts_are_numbered_per_student(self):
        self.login_as(self.student)
        first = self.assertSuccess(self.attempt([]), 201)
        second = self.assertSuccess(self.attempt([]), 201)
        self.assertEqual(first['data']['attempt_number'], 1)
        self.assertEqual(second['data']['attempt_number'], 2)

    def test_limit_rechecked_inside_the_write(self):
        self.login_as(self.student)
        self.assertSuccess(self.attempt([]), 201)

        grade_answers = QuizService.grade_answers

        def grade_while_another_attempt_lands(questions, answers):
            db.session.add(QuizAttempt(quiz_id=self.quiz.id, student_id=self.student.id, attempt_number=2,
                                       completed_at=datetime.utcnow()))
            db.session.commit()
            return grade_answers(questions, answers)

        with patch.object(QuizService, 'grade_answers', side_effect=grade_while_another_attempt_lands):
            body = self.assertError(self.attempt([]), 400)
        self.assertEqual(body['error'], 'Maximum number of attempts reached')
        self.assertEqual(QuizAttempt.query.filter_by(student_id=self.student.id).count(), 2)

    def test_duplicate_attempt_number_is_a_conflict(self):
        db.session.add(QuizAttempt(quiz_id=self.quiz.id, student_id=self.student.id, attempt_number=1))
        db.session.commit()
        with self.assertRaises(ConflictError):
            with transaction():
                db.session.add(QuizAttempt(quiz_id=self.quiz.id, student_id=self.student.id, attempt_number=1))
                db.session.flush()
        self.assertEqual(QuizAttempt.query.count(), 1)
        self.assertEqual(QuizAttempt.query.count(), 2)

    def test_attempt_with_foreign_question(self):
        self.login_as(self.student)
        self.assertError(self.attempt([{'question_id': 9999, 'answer': 0}]), 400)
        self.assertEqual(QuizAttempt.query.count(), 0)

    def test_inactive_quiz(self):
        self.quiz.is_active = False
        db.session.commit()
        self.login_as(self.student)
        self.assertError(self.attempt([]), 400)

    def test_unenrolled_student_cannot_attempt(self):
        self.login_as(self.make_student(name='Outside Student'))
        self.assertError(self.attempt([]), 403)

    def test_attempt_listing_is_scoped(self):
        classmate = self.make_student(name='Class Mate')
        self.enroll(classmate, self.course)
        self.login_as(classmate)
        self.assertSuccess(self.attempt([]), 201)

        self.login_as(self.student)
        self.assertSuccess(self.attempt([]), 201)
        body = self.assertSuccess(self.client.get(f'/api/quizzes/{self.quiz.id}/attempts'))
        self.assertEqual(len(body['data']), 1)

        self.login_as(self.lecturer)
        body = self.assertSuccess(self.client.get(f'/api/quizzes/{self.quiz.id}/attempts'))
        self.assertEqual(len(body['data']), 2)

    def test_course_quiz_list_for_student(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.client.get(f'/api/courses/{self.course.id}/quizzes'))
        self.assertEqual(body['data'][0]['attempts_remaining'], 2)

if __name__ == '__main__':
    unittest.main()
