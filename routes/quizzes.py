"""
Quiz routes for the Campus Portal
"""

from flask import Blueprint

from routes.auth import login_required, current_user
from services.quiz_service import QuizService
from utils.errors import ValidationError
from utils.responses import get_json_body, success_response
from utils.validators import PayloadValidator

quizzes_bp = Blueprint('quizzes', __name__, url_prefix='/api')

def _clean_answers(raw):
    """Normalise [{question_id, answer}] into ints, collecting per-item errors"""
    if not isinstance(raw, list):
        raise ValidationError("Validation failed", details={'answers': "Answers must be a list"})

    answers = []
    errors = {}
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            errors[f'answers[{index}]'] = "Each answer must be an object"
            continue
        question_id = item.get('question_id')
        answer = item.get('answer')
        if not isinstance(question_id, int) or isinstance(question_id, bool):
            errors[f'answers[{index}]'] = "question_id must be a whole number"
        elif answer is not None and (not isinstance(answer, int) or isinstance(answer, bool) or answer < 0):
            errors[f'answers[{index}]'] = "answer must be an option index"
        else:
            answers.append({'question_id': question_id, 'answer': answer})
    if errors:
        raise ValidationError("Validation failed", details=errors)
    return answers

@quizzes_bp.route('/courses/<int:course_id>/quizzes')
@login_required()
def list_quizzes(course_id):
    return success_response(QuizService.list_for_course(course_id, current_user()))

@quizzes_bp.route('/courses/<int:course_id>/quizzes', methods=['POST'])
@login_required('lecturer', 'admin')
def create_quiz(course_id):
    data = (PayloadValidator(get_json_body())
            .string('title', min_length=3, max_length=200)
            .string('description', required=False, max_length=2000)
            .integer('time_limit', required=False, min_value=1, max_value=600, label='Time limit')
            .integer('max_attempts', required=False, min_value=1, max_value=20, label='Max attempts')
            .boolean('is_active')
            .validate())
    quiz = QuizService.create(course_id, data, current_user())
    return success_response(quiz.to_dict(), "Quiz created successfully", status=201)

@quizzes_bp.route('/quizzes/<int:quiz_id>/questions')
@login_required()
def list_questions(quiz_id):
    quiz, questions = QuizService.list_questions(quiz_id, current_user())
    return success_response({'quiz': quiz.to_dict(), 'questions': questions})

@quizzes_bp.route('/quizzes/<int:quiz_id>/questions', methods=['POST'])
@login_required('lecturer', 'admin')
def add_question(quiz_id):
    data = (PayloadValidator(get_json_body())
            .string('question', min_length=3, max_length=2000)
            .string_list('options', min_items=2)
            .integer('correct_answer', min_value=0, label='Correct answer')
            .integer('points', required=False, min_value=1, max_value=100)
            .integer('order', required=False, min_value=0)
            .validate())
    question = QuizService.add_question(quiz_id, data, current_user())
    return success_response(question.to_dict(), "Question added successfully", status=201)

@quizzes_bp.route('/quizzes/<int:quiz_id>/attempt', methods=['POST'])
@login_required('student')
def attempt_quiz(quiz_id):
    """Submit answers and receive the graded attempt"""
    payload = get_json_body()
    data = (PayloadValidator(payload)
            .integer('time_spent', required=False, min_value=0, label='Time spent')
            .validate())
    if 'answers' not in payload:
        raise ValidationError("Validation failed", details={'answers': "Answers is required"})
    answers = _clean_answers(payload['answers'])

    attempt = QuizService.attempt(quiz_id, answers, data.get('time_spent'), current_user())
    return success_response(attempt.to_dict(include_answers=True), "Quiz submitted successfully", status=201)

@quizzes_bp.route('/quizzes/<int:quiz_id>/attempts')
@login_required()
def list_attempts(quiz_id):
    attempts = QuizService.list_attempts(quiz_id, current_user())
    return success_response([attempt.to_dict() for attempt in attempts])
