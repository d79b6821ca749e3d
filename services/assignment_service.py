"""
Assignment service for the Campus Portal
"""

import logging
from datetime import datetime

from database import db
from models.academic import Course, Enrollment, ENROLLMENT_ENROLLED
from models.assignments import Assignment, Submission, SUBMISSION_GRADED
from models.user import ROLE_STUDENT
from services.activity_log_service import ActivityLogService
from services.course_service import CourseService
from services.notification_service import NotificationService
from utils.db_helpers import get_or_404, transaction
from utils.errors import ForbiddenError, ValidationError

logger = logging.getLogger(__name__)

class AssignmentService:
    """Coursework lifecycle from posting to grading"""

    @staticmethod
    def enrolled_student_ids(course):
        rows = (db.session.query(Enrollment.student_id)
                .filter_by(course_id=course.id, status=ENROLLMENT_ENROLLED)
                .all())
        return {row.student_id for row in rows}

    @staticmethod
    def list_for_course(course_id, user):
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_view_content(course, user)

        assignments = course.assignments.order_by(Assignment.due_date.asc()).all()
        results = []
        for assignment in assignments:
            if user.role == ROLE_STUDENT:
                data = assignment.to_dict()
                submission = assignment.submission_for(user.id)
                data['submission'] = submission.to_dict() if submission else None
            else:
                data = assignment.to_dict(include_stats=True)
            results.append(data)
        return results

    @staticmethod
    def create(course_id, data, user):
        course = get_or_404(Course, course_id, "Course not found")
        CourseService.ensure_can_manage(course, user)

        assignment = Assignment(
            course_id=course.id,
            title=data['title'],
            description=data.get('description'),
            due_date=data['due_date'],
            max_points=data.get('max_points') or 100,
            file_url=data.get('file_url'),
            created_by=user.id,
        )
        with transaction():
            db.session.add(assignment)
            for enrollment_student_id in sorted(AssignmentService.enrolled_student_ids(course)):
                NotificationService.notify(
                    enrollment_student_id,
                    'New Assignment',
                    f'{assignment.title} has been posted for {course.code}.',
                    'INFO',
                    {'course_id': course.id},
                )

        ActivityLogService.log('CREATE_ASSIGNMENT', user.id, 'assignment', assignment.id, {'course_id': course.id})
        return assignment

    @staticmethod
    def get(assignment_id, user):
        assignment = get_or_404(Assignment, assignment_id, "Assignment not found")
        CourseService.ensure_can_view_content(assignment.course, user)
        if user.role == ROLE_STUDENT:
            data = assignment.to_dict()
            submission = assignment.submission_for(user.id)
            data['submission'] = submission.to_dict() if submission else None
            return data
        return assignment.to_dict(include_stats=True)

    @staticmethod
    def update(assignment_id, data, user):
        assignment = get_or_404(Assignment, assignment_id, "Assignment not found")
        CourseService.ensure_can_manage(assignment.course, user)

        if data.get('max_points') is not None:
            top_mark = (db.session.query(db.func.max(Submission.mark))
                        .filter(Submission.assignment_id == assignment.id)
                        .scalar())
            if top_mark is not None and data['max_points'] < top_mark:
                raise ValidationError("Max points cannot be lower than an awarded mark")

        for field in ('title', 'description', 'due_date', 'max_points', 'file_url'):
            if field in data and data[field] is not None:
                setattr(assignment, field, data[field])
        db.session.commit()

        ActivityLogService.log('UPDATE_ASSIGNMENT', user.id, 'assignment', assignment.id, {'fields': sorted(data)})
        return assignment

    @staticmethod
    def delete(assignment_id, user):
        assignment = get_or_404(Assignment, assignment_id, "Assignment not found")
        CourseService.ensure_can_manage(assignment.course, user)
        if assignment.submissions.count() > 0:
            raise ValidationError("Cannot delete an assignment that has submissions")

        db.session.delete(assignment)
        db.session.commit()
        ActivityLogService.log('DELETE_ASSIGNMENT', user.id, 'assignment', assignment_id)

    @staticmethod
    def submit(assignment_id, data, student):
        assignment = get_or_404(Assignment, assignment_id, "Assignment not found")
        if not assignment.course.has_enrolled_student(student.id):
            raise ForbiddenError("You are not enrolled in this course")
        if assignment.is_past_due:
            raise ValidationError("The due date for this assignment has passed")
        if assignment.submission_for(student.id) is not None:
            raise ValidationError("You have already submitted this assignment")

        submission = Submission(
            assignment_id=assignment.id,
            student_id=student.id,
            file_url=data.get('file_url'),
            comments=data.get('comments'),
        )
        with transaction("You have already submitted this assignment"):
            db.session.add(submission)

        logger.info("Student %s submitted assignment %s", student.id, assignment.id)
        ActivityLogService.log('SUBMIT_ASSIGNMENT', student.id, 'submission', submission.id,
                               {'assignment_id': assignment.id})
        return submission

    @staticmethod
    def list_submissions(assignment_id, user):
        assignment = get_or_404(Assignment, assignment_id, "Assignment not found")
        CourseService.ensure_can_manage(assignment.course, user)
        return assignment, assignment.submissions.order_by(Submission.submitted_at.asc()).all()

    @staticmethod
    def grade(submission_id, mark, feedback, user):
        submission = get_or_404(Submission, submission_id, "Submission not found")
        assignment = submission.assignment
        CourseService.ensure_can_manage(assignment.course, user)

        if mark < 0 or mark > assignment.max_points:
            raise ValidationError("Validation failed", details={
                'mark': f"Mark must be between 0 and {assignment.max_points}",
            })

        with transaction():
            submission.mark = mark
            submission.feedback = feedback
            submission.status = SUBMISSION_GRADED
            submission.graded_at = datetime.utcnow()
            submission.graded_by = user.id
            NotificationService.notify(
                submission.student_id,
                'Assignment Graded',
                f'Your submission for {assignment.title} was graded: {mark:g}/{assignment.max_points}',
                'INFO',
                {'assignment_id': assignment.id, 'submission_id': submission.id},
            )

        ActivityLogService.log('GRADE_SUBMISSION', user.id, 'submission', submission.id, {'mark': mark})
        return submission

