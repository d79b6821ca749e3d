"""
Library routes for the Campus Portal
Catalogue search, book management, borrowing and returns
"""

from datetime import datetime

from flask import Blueprint, request

from models.library import BOOK_CONDITIONS
from routes.auth import login_required, current_user
from services.library_service import LibraryService
from utils.db_helpers import get_pagination_args
from utils.errors import ValidationError
from utils.responses import arg_bool, get_json_body, success_response
from utils.validators import PayloadValidator

library_bp = Blueprint('library', __name__, url_prefix='/api/library')

def _validate_book_payload(payload, partial=False):
    return (PayloadValidator(payload, partial=partial)
            .string('title', required=not partial, min_length=1, max_length=255)
            .string('author', required=not partial, min_length=1, max_length=255)
            .string('isbn', required=not partial, min_length=10, max_length=20, label='ISBN')
            .string('publisher', required=False, max_length=255)
            .integer('publication_year', required=False, min_value=1000, max_value=datetime.utcnow().year + 1,
                     label='Publication year')
            .string('category', required=False, max_length=100)
            .string('description', required=False, max_length=5000)
            .integer('total_copies', required=False, min_value=1, max_value=1000, label='Total copies')
            .string('location', required=False, max_length=100)
            .validate())

@library_bp.route('/books')
@login_required()
def search_books():
    page, per_page = get_pagination_args()
    pagination = LibraryService.search_books(
        search=request.args.get('search'),
        category=request.args.get('category'),
        available=arg_bool('available'),
        page=page,
        per_page=per_page,
    )
    return success_response([book.to_dict() for book in pagination.items],
                            pagination=pagination, categories=LibraryService.categories())

@library_bp.route('/books', methods=['POST'])
@login_required('admin')
def add_book():
    data = _validate_book_payload(get_json_body())
    book = LibraryService.add_book(data, current_user().id)
    return success_response(book.to_dict(), "Book added successfully", status=201)

@library_bp.route('/books/<int:book_id>', methods=['PUT'])
@login_required('admin')
def update_book(book_id):
    data = _validate_book_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    book = LibraryService.update_book(book_id, data, current_user().id)
    return success_response(book.to_dict(), "Book updated successfully")

@library_bp.route('/books/<int:book_id>', methods=['DELETE'])
@login_required('admin')
def delete_book(book_id):
    LibraryService.delete_book(book_id, current_user().id)
    return success_response(None, "Book deleted successfully")

@library_bp.route('/borrow', methods=['POST'])
@login_required('student')
def borrow_book():
    data = (PayloadValidator(get_json_body())
            .integer('book_id', min_value=1, label='Book')
            .datetime('due_date', required=False, label='Due date')
            .string('notes', required=False, max_length=500)
            .validate())
    borrowing = LibraryService.borrow(current_user(), data['book_id'], data.get('due_date'), data.get('notes'))
    return success_response(borrowing.to_dict(), "Book borrowed successfully", status=201)

@library_bp.route('/return', methods=['POST'])
@login_required()
def return_book():
    data = (PayloadValidator(get_json_body())
            .integer('borrowing_id', min_value=1, label='Borrowing')
            .choice('condition', list(BOOK_CONDITIONS), required=False)
            .string('notes', required=False, max_length=500)
            .validate())
    borrowing = LibraryService.return_book(current_user(), data['borrowing_id'],
                                           data.get('condition'), data.get('notes'))
    return success_response(borrowing.to_dict(), "Book returned successfully")

@library_bp.route('/my-books')
@login_required()
def my_books():
    """The caller's loans, open ones first"""
    include_returned = arg_bool('include_returned')
    loans = LibraryService.loans_for_user(current_user().id, include_returned is not False)
    loans.sort(key=lambda loan: loan.is_returned)
    return success_response([loan.to_dict() for loan in loans])
