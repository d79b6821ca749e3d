"""
Library service for the Campus Portal
Catalogue management, borrowing and returns
"""

import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_

from database import db
from models.library import Book, Borrowing
from models.user import ROLE_ADMIN
from services.activity_log_service import ActivityLogService
from utils.db_helpers import commit_or_rollback, get_or_404, paginate_query, transaction
from utils.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

BOOK_FIELDS = ('title', 'author', 'isbn', 'publisher', 'publication_year', 'category', 'description', 'location')

class LibraryService:
    """Books and loans"""

    @staticmethod
    def search_books(search=None, category=None, available=None, page=1, per_page=20):
        query = Book.query
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(Book.title.ilike(pattern), Book.author.ilike(pattern), Book.isbn.ilike(pattern)))
        if category:
            query = query.filter(Book.category == category)
        if available:
            query = query.filter(Book.available_copies > 0)
        return paginate_query(query.order_by(Book.title.asc()), page, per_page)

    @staticmethod
    def categories():
        rows = db.session.query(Book.category).filter(Book.category.isnot(None)).distinct().all()
        return sorted(row.category for row in rows)

    @staticmethod
    def add_book(data, admin_id):
        if Book.query.filter_by(isbn=data['isbn']).first():
            raise ValidationError("A book with this ISBN already exists")

        total = data.get('total_copies') or 1
        book = Book(total_copies=total, available_copies=total)
        for field in BOOK_FIELDS:
            if data.get(field) is not None:
                setattr(book, field, data[field])
        with transaction("A book with this ISBN already exists"):
            db.session.add(book)

        ActivityLogService.log('ADD_BOOK', admin_id, 'book', book.id, {'isbn': book.isbn})
        return book

    @staticmethod
    def update_book(book_id, data, admin_id):
        book = get_or_404(Book, book_id, "Book not found")

        if data.get('isbn') and data['isbn'] != book.isbn:
            if Book.query.filter(Book.isbn == data['isbn'], Book.id != book.id).first():
                raise ValidationError("A book with this ISBN already exists")

        if data.get('total_copies') is not None:
            on_loan = book.copies_on_loan
            if data['total_copies'] < on_loan:
                raise ValidationError(f"Total copies cannot be less than the {on_loan} copies on loan")
            book.total_copies = data['total_copies']
            book.available_copies = data['total_copies'] - on_loan

        for field in BOOK_FIELDS:
            if field in data and data[field] is not None:
                setattr(book, field, data[field])

        commit_or_rollback("A book with this ISBN already exists")
        ActivityLogService.log('UPDATE_BOOK', admin_id, 'book', book.id, {'fields': sorted(data)})
        return book

    @staticmethod
    def delete_book(book_id, admin_id):
        book = get_or_404(Book, book_id, "Book not found")
        if book.copies_on_loan > 0:
            raise ValidationError("Cannot delete a book with copies on loan")

        isbn = book.isbn
        Borrowing.query.filter_by(book_id=book.id).delete(synchronize_session=False)
        db.session.delete(book)
        db.session.commit()
        ActivityLogService.log('DELETE_BOOK', admin_id, 'book', book_id, {'isbn': isbn})

    @staticmethod
    def open_loans_query(user_id):
        return Borrowing.query.filter(Borrowing.user_id == user_id, Borrowing.return_date.is_(None))

    @staticmethod
    def borrow(user, book_id, due_date=None, notes=None):
        book = db.session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book not found")
        if book.available_copies <= 0:
            raise ValidationError("No copies of this book are available")

        open_loans = LibraryService.open_loans_query(user.id)
        if open_loans.filter(Borrowing.book_id == book.id).first():
            raise ValidationError("You already have this book on loan")

        limit = current_app.config['LIBRARY_MAX_BORROWINGS']
        if open_loans.count() >= limit:
            raise ValidationError(f"Borrowing limit of {limit} books reached")

        now = datetime.utcnow()
        due_date = due_date or now + timedelta(days=current_app.config['LIBRARY_LOAN_DAYS'])
        if due_date <= now:
            raise ValidationError("Validation failed", details={'due_date': "Due date must be in the future"})

        with transaction():
            # Guarded decrement, never below zero
            taken = (db.session.query(Book)
                     .filter(Book.id == book.id, Book.available_copies > 0)
                     .update({Book.available_copies: Book.available_copies - 1}, synchronize_session=False))
            if not taken:
                raise ValidationError("No copies of this book are available")
            borrowing = Borrowing(user_id=user.id, book_id=book.id, borrow_date=now, due_date=due_date, notes=notes)
            db.session.add(borrowing)

        db.session.refresh(book)
        logger.info("User %s borrowed book %s until %s", user.id, book.id, due_date.date())
        ActivityLogService.log('BORROW_BOOK', user.id, 'borrowing', borrowing.id, {'book_id': book.id})
        return borrowing

    @staticmethod
    def return_book(user, borrowing_id, condition=None, notes=None):
        borrowing = get_or_404(Borrowing, borrowing_id, "Borrowing record not found")
        if borrowing.user_id != user.id and user.role != ROLE_ADMIN:
            raise ForbiddenError("You can only return your own books")
        if borrowing.is_returned:
            raise ValidationError("This book has already been returned")

        with transaction():
            borrowing.return_date = datetime.utcnow()
            if condition:
                borrowing.condition = condition
            if notes:
                borrowing.notes = notes
            (db.session.query(Book)
             .filter(Book.id == borrowing.book_id, Book.available_copies < Book.total_copies)
             .update({Book.available_copies: Book.available_copies + 1}, synchronize_session=False))

        db.session.refresh(borrowing.book)
        logger.info("Borrowing %s returned", borrowing.id)
        ActivityLogService.log('RETURN_BOOK', user.id, 'borrowing', borrowing.id, {'book_id': borrowing.book_id})
        return borrowing

    @staticmethod
    def loans_for_user(user_id, include_returned=True):
        query = Borrowing.query.filter_by(user_id=user_id)
        if not include_returned:
            query = query.filter(Borrowing.return_date.is_(None))
        return query.order_by(Borrowing.borrow_date.desc(), Borrowing.id.desc()).all()
