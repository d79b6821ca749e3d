"""
Tests for the library catalogue, borrowing and returns
"""

import unittest
from datetime import datetime, timedelta

from database import db
from models.library import Book, Borrowing
from tests.base import CampusPortalTestCase

class TestCatalogue(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.login_as(self.admin)

    def test_add_book(self):
        body = self.assertSuccess(self.client.post('/api/library/books', json={
            'title': 'Design Patterns', 'author': 'Gamma et al.', 'isbn': '9780201633610',
            'total_copies': 3, 'category': 'Software',
        }), 201)
        self.assertEqual(body['data']['available_copies'], 3)
        self.assertTrue(body['data']['is_available'])

    def test_duplicate_isbn(self):
        self.make_book(isbn='9780132350884')
        response = self.client.post('/api/library/books', json={
            'title': 'Copy', 'author': 'Someone', 'isbn': '9780132350884',
        })
        self.assertError(response, 400)

    def test_search_and_categories(self):
        self.make_book(title='Clean Code')
        self.make_book(title='Refactoring', copies=1)
        book = Book.query.filter_by(title='Refactoring').one()
        book.category = 'Design'
        book.available_copies = 0
        db.session.commit()

        body = self.assertSuccess(self.client.get('/api/library/books?search=clean'))
        self.assertEqual([item['title'] for item in body['data']], ['Clean Code'])
        self.assertEqual(body['categories'], ['Design', 'Software'])

        body = self.assertSuccess(self.client.get('/api/library/books?available=true'))
        self.assertEqual([item['title'] for item in body['data']], ['Clean Code'])

    def test_students_cannot_add_books(self):
        self.login_as(self.make_student())
        response = self.client.post('/api/library/books', json={
            'title': 'Design Patterns', 'author': 'Gamma', 'isbn': '9780201633610',
        })
        self.assertError(response, 403)


class TestBorrowing(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.book = self.make_book(copies=2)

    def borrow(self, book_id=None, **extra):
        payload = {'book_id': book_id or self.book.id}
        payload.update(extra)
        return self.client.post('/api/library/borrow', json=payload)

    def test_borrow_takes_a_copy(self):
        self.login_as(self.student)
        body = self.assertSuccess(self.borrow(), 201)
        self.assertEqual(body['data']['book']['id'], self.book.id)
        self.assertIsNone(body['data']['return_date'])
        self.assertEqual(db.session.get(Book, self.book.id).available_copies, 1)

    def test_default_loan_period(self):
        self.login_as(self.student)
        borrowing_id = self.assertSuccess(self.borrow(), 201)['data']['id']
        borrowing = db.session.get(Borrowing, borrowing_id)
        days = (borrowing.due_date - borrowing.borrow_date).days
        self.assertEqual(days, self.app.config['LIBRARY_LOAN_DAYS'])

    def test_due_date_in_past(self):
        self.login_as(self.student)
        past = (datetime.utcnow() - timedelta(days=1)).isoformat()
        body = self.assertError(self.borrow(due_date=past), 400)
        self.assertIn('due_date', body['details'])

    def test_same_book_twice(self):
        self.login_as(self.student)
        self.assertSuccess(self.borrow(), 201)
        body = self.assertError(self.borrow(), 400)
        self.assertIn('already have this book', body['error'])

    def test_no_copies_left(self):
        book = self.make_book(title='Rare Book', copies=1)
        self.login_as(self.make_student(name='First Reader'))
        self.assertSuccess(self.borrow(book.id), 201)

        self.login_as(self.student)
        self.assertError(self.borrow(book.id), 400)
        self.assertEqual(db.session.get(Book, book.id).available_copies, 0)

    def test_borrowing_limit(self):
        self.login_as(self.student)
        for index in range(self.app.config['LIBRARY_MAX_BORROWINGS']):
            book = self.make_book(title=f'Book {index}')
            self.assertSuccess(self.borrow(book.id), 201)

        body = self.assertError(self.borrow(), 400)
        self.assertIn('Borrowing limit', body['error'])

    def test_unknown_book(self):
        self.login_as(self.student)
        self.assertError(self.borrow(9999), 404)

    def test_lecturers_cannot_borrow(self):
        self.login_as(self.make_lecturer())
        self.assertError(self.borrow(), 403)

    def test_return_restores_copy(self):
        self.login_as(self.student)
        borrowing_id = self.assertSuccess(self.borrow(), 201)['data']['id']

        body = self.assertSuccess(self.client.post('/api/library/return', json={
            'borrowing_id': borrowing_id, 'condition': 'good',
        }))
        self.assertEqual(body['data']['condition'], 'GOOD')
        self.assertIsNotNone(body['data']['return_date'])
        self.assertEqual(db.session.get(Book, self.book.id).available_copies, 2)

        self.assertError(self.client.post('/api/library/return', json={'borrowing_id': borrowing_id}), 400)

    def test_return_someone_elses_book(self):
        self.login_as(self.student)
        borrowing_id = self.assertSuccess(self.borrow(), 201)['data']['id']

        self.login_as(self.make_student(name='Other Student'))
        self.assertError(self.client.post('/api/library/return', json={'borrowing_id': borrowing_id}), 403)

        self.login_as(self.admin)
        self.assertSuccess(self.client.post('/api/library/return', json={'borrowing_id': borrowing_id}))

    def test_my_books_lists_open_loans_first(self):
        second = self.make_book(title='Second Book')
        self.login_as(self.student)
        returned_id = self.assertSuccess(self.borrow(), 201)['data']['id']
        self.assertSuccess(self.client.post('/api/library/return', json={'borrowing_id': returned_id}))
        self.assertSuccess(self.borrow(second.id), 201)

        body = self.assertSuccess(self.client.get('/api/library/my-books'))
        self.assertEqual(len(body['data']), 2)
        self.assertIsNone(body['data'][0]['return_date'])
        self.assertIsNotNone(body['data'][1]['return_date'])

        body = self.assertSuccess(self.client.get('/api/library/my-books?include_returned=false'))
        self.assertEqual([item['book']['id'] for item in body['data']], [second.id])


class TestBookMaintenance(CampusPortalTestCase):

    def setUp(self):
        super().setUp()
        self.student = self.make_student()
        self.book = self.make_book(copies=3)
        self.login_as(self.student)
        self.borrowing_id = self.assertSuccess(
            self.client.post('/api/library/borrow', json={'book_id': self.book.id}), 201)['data']['id']
        self.login_as(self.admin)

    def test_shrinking_keeps_loans_out(self):
        self.assertSuccess(self.client.put(f'/api/library/books/{self.book.id}', json={'total_copies': 1}))
        book = db.session.get(Book, self.book.id)
        self.assertEqual(book.available_copies, 0)

    def test_update_reports_loans(self):
        self.login_as(self.make_student(name='Second Reader'))
        self.assertSuccess(self.client.post('/api/library/borrow', json={'book_id': self.book.id}), 201)
        self.login_as(self.admin)

        body = self.assertError(self.client.put(f'/api/library/books/{self.book.id}', json={'total_copies': 1}), 400)
        self.assertIn('2 copies on loan', body['error'])

    def test_cannot_delete_with_loans(self):
        self.assertError(self.client.delete(f'/api/library/books/{self.book.id}'), 400)

    def test_delete_after_return(self):
        self.assertSuccess(self.client.post('/api/library/return', json={'borrowing_id': self.borrowing_id}))
        self.assertSuccess(self.client.delete(f'/api/library/books/{self.book.id}'))
        self.assertIsNone(db.session.get(Book, self.book.id))
        self.assertEqual(Borrowing.query.count(), 0)

if __name__ == '__main__':
    unittest.main()
