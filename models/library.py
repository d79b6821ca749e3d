"""
Library models for the Campus Portal
"""

from database import db
from datetime import datetime

BOOK_CONDITIONS = ('EXCELLENT', 'GOOD', 'FAIR', 'POOR')

class Book(db.Model):
    __tablename__ = 'book'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    author = db.Column(db.String(255), nullable=False)
    isbn = db.Column(db.String(20), unique=True, nullable=False, index=True)
    publisher = db.Column(db.String(255), nullable=True)
    publication_year = db.Column(db.Integer, nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    total_copies = db.Column(db.Integer, default=1, nullable=False)
    available_copies = db.Column(db.Integer, default=1, nullable=False)
    location = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    borrowings = db.relationship('Borrowing', backref='book', lazy='dynamic')

    __table_args__ = (
        db.CheckConstraint('total_copies >= 1', name='check_book_total_copies'),
        db.CheckConstraint('available_copies >= 0 AND available_copies <= total_copies',
                           name='check_book_available_copies'),
    )

    @property
    def copies_on_loan(self):
        return self.borrowings.filter(Borrowing.return_date.is_(None)).count()

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'author': self.author,
            'isbn': self.isbn,
            'publisher': self.publisher,
            'publication_year': self.publication_year,
            'category': self.category,
            'description': self.description,
            'total_copies': self.total_copies,
            'available_copies': self.available_copies,
            'location': self.location,
            'is_available': self.available_copies > 0,
        }

    def __repr__(self):
        return f'<Book {self.isbn}: {self.title}>'


class Borrowing(db.Model):
    __tablename__ = 'borrowing'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey('book.id'), nullable=False, index=True)
    borrow_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime, nullable=True)
    condition = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    @property
    def is_returned(self):
        return self.return_date is not None

    @property
    def is_overdue(self):
        return not self.is_returned and self.due_date < datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'book': {
                'id': self.book.id,
                'title': self.book.title,
                'author': self.book.author,
                'isbn': self.book.isbn,
            } if self.book else None,
            'borrow_date': self.borrow_date.isoformat() if self.borrow_date else None,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'return_date': self.return_date.isoformat() if self.return_date else None,
            'condition': self.condition,
            'notes': self.notes,
            'is_overdue': self.is_overdue,
        }

    def __repr__(self):
        return f'<Borrowing book={self.book_id} user={self.user_id}>'
