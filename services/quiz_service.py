"""
Quiz service for the Campus Portal
Quiz authoring, attempts and automatic grading
"""

import logging
from datetime import datetime

from database import db
from models.academic import Course
from models.quizzes import Quiz, QuizQuestion, QuizAttempt, QuizAnswer
from models.user import ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.course_service import CourseService
from utils.db_helpers import get_or_404, transaction
from utils.errors import ForbiddenError, ValidationError

logger = logging.getLogger(__name__)

class QuizService:
    """Quizzes and their attempts"""

    @staticmethod
    def list_for_course(course_id, user):
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_view_content(course, user)

        query = course.quizzes
        if user.role == ROLE_STUDENT:
            query = query.filter(Quiz.is_active.is_(True))

        results = []
        for quiz in query.order_by(Quiz.created_at.desc(), Quiz.id.desc()).all():
            data = quiz.to_dict()
            if user.role == ROLE_STUDENT:
                attempts = quiz.attempts.filter_by(student_id=user.id).order_by(QuizAttempt.id.asc()).all()
                data['attempts'] = [attempt.to_dict() for attempt in attempts]
                data['attempts_remaining'] = max(quiz.max_attempts - len(attempts), 0)
            else:
                data['attempt_count'] = quiz.attempts.count()
            results.append(data)
        return results

    @staticmethod
    def create(course_id, data, user):
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, user)

        quiz = Quiz(
            course_id=course.id,
            title=data['title'],
            description=data.get('description'),
            time_limit=data.get('time_limit'),
            max_attempts=data.get('max_attempts') or 1,
            is_active=data.get('is_active', True) is not False,
            created_by=user.id,
        )
        with transaction():
            db.session.add(quiz)

        ActivityLogService.log('CREATE_QUIZ', user.id, 'quiz', quiz.id, {'course_id': course.id})
        return quiz

    @staticmethod
    def list_questions(quiz_id, user):
        quiz = get_or_404(Quiz, quiz_id, "Quiz not found")
        CourseService.ensure_can_view_content(quiz.course, user)
        if user.role == ROLE_STUDENT and not quiz.is_active:
            raise ForbiddenError("This quiz is not available")

        include_answer = user.role != ROLE_STUDENT
        return quiz, [question.to_dict(include_answer=include_answer) for question in quiz.questions.all()]

    @staticmethod
    def add_question(quiz_id, data, user):
        quiz = get_or_404(Quiz, quiz_id, "Quiz not found")
        CourseService.ensure_can_manage(quiz.course, user)

        options = data['options']
        if data['correct_answer'] >= len(options):
            raise ValidationError("Validation failed", details={
                'correct_answer': "Correct answer must reference one of the options",
            })

        order = data.get('order')
        if order is None:
            order = quiz.questions.count() + 1

        question = QuizQuestion(
            quiz_id=quiz.id,
            question=data['question'],
            options=options,
            correct_answer=data['correct_answer'],
            points=data.get('points') or 1,
            order=order,
        )
        with transaction():
            db.session.add(question)
        return question

    @staticmethod
    def grade_answers(questions, answers):
        """Score submitted answers against the quiz questions.

        Returns (score, max_score, percentage, graded) where graded holds
        (question, answer, is_correct, points) for each answered question.
        Questions that were not answered contribute nothing to the score.
        """
        by_id = {question.id: question for question in questions}
        seen = set()
        errors = {}
        for index, item in enumerate(answers):
            question_id = item['question_id']
            if question_id not in by_id:
                errors[f'answers[{index}]'] = "Question does not belong to this quiz"
            elif question_id in seen:
                errors[f'answers[{index}]'] = "Question answered more than once"
            seen.add(question_id)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        graded = []
        score = 0
        for item in answers:
            question = by_id[item['question_id']]
            is_correct = item['answer'] is not None and item['answer'] == question.correct_answer
            points = question.points if is_correct else 0
            score += points
            graded.append((question, item['answer'], is_correct, points))

        max_score = sum(question.points for question in questions)
        percentage = round(score / max_score * 100, 2) if max_score else 0
        return score, max_score, percentage, graded

    @staticmethod
    def attempt(quiz_id, answers, time_spent, student):
        quiz = get_or_404(Quiz, quiz_id, "Quiz not found")
        if not quiz.course.has_enrolled_student(student.id):
            raise ForbiddenError("You are not enrolled in this course")
        if not quiz.is_active:
            raise ValidationError("This quiz is not active")

        previous = quiz.attempts.filter_by(student_id=student.id).count()
        if previous >= quiz.max_attempts:
            raise ValidationError("Maximum number of attempts reached")

        questions = quiz.questions.all()
        score, max_score, percentage, graded = QuizService.grade_answers(questions, answers)

        now = datetime.utcnow()
        with transaction("Another attempt was submitted at the same time, please retry"):
            # Row lock serializes concurrent attempts on the same quiz
            Quiz.query.filter_by(id=quiz.id).with_for_update().one()
            previous = quiz.attempts.filter_by(student_id=student.id).count()
            if previous >= quiz.max_attempts:
                raise ValidationError("Maximum number of attempts reached")

            attempt = QuizAttempt(
                quiz_id=quiz.id,
                student_id=student.id,
                attempt_number=previous + 1,
                score=score,
                max_score=max_score,
                percentage=percentage,
                time_spent=time_spent,
                started_at=now,
                completed_at=now,
            )
            db.session.add(attempt)
            db.session.flush()
            for question, answer, is_correct, points in graded:
                db.session.add(QuizAnswer(
                    attempt_id=attempt.id,
                    question_id=question.id,
                    answer=answer,
                    is_correct=is_correct,
                    points=points,
                ))

        logger.info("Student %s scored %s/%s on quiz %s", student.id, score, max_score, quiz.id)
        ActivityLogService.log('QUIZ_ATTEMPT', student.id, 'quiz_attempt', attempt.id,
                               {'quiz_id': quiz.id, 'score': score, 'max_score': max_score})
        return attempt

    @staticmethod
    def list_attempts(quiz_id, user):
        quiz = get_or_404(Quiz, quiz_id, "Quiz not found")
        query = quiz.attempts
        if user.role == ROLE_STUDENT:
            CourseService.ensure_can_view_content(quiz.course, user)
            query = query.filter_by(student_id=user.id)
        else:
            CourseService.ensure_can_manage(quiz.course, user)
        return query.order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc()).all()
