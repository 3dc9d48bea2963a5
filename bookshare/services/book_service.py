"""Book catalog use cases: the owner-side CRUD that lending builds on."""

from __future__ import annotations

from bookshare.db.models import Book
from bookshare.domain import access
from bookshare.domain.errors import BookNotFoundError, OperationNotPermittedError
from bookshare.repositories.sql_repository import SQLRepository
from bookshare.services.paging import Page, page_bounds


class BookService:
    def __init__(self, repository: SQLRepository | None = None):
        self.repository = repository or SQLRepository()

    def save(
        self,
        owner_id: int,
        *,
        title: str,
        author_name: str,
        isbn: str,
        synopsis: str | None = None,
        shareable: bool = False,
    ) -> Book:
        return self.repository.create_book(
            owner_id,
            title=title.strip(),
            author_name=author_name.strip(),
            isbn=isbn.strip(),
            synopsis=synopsis,
            shareable=shareable,
        )

    def find_by_id(self, book_id: int) -> Book:
        book = self.repository.get_book(book_id)
        if not book:
            raise BookNotFoundError(book_id)
        return book

    def find_all_displayable(self, viewer_id: int, page: int = 0, size: int = 10) -> Page[Book]:
        page, size, offset, limit = page_bounds(page, size)
        books, total = self.repository.list_displayable_books(viewer_id, offset=offset, limit=limit)
        return Page(books, page, size, total)

    def find_all_by_owner(self, owner_id: int, page: int = 0, size: int = 10) -> Page[Book]:
        page, size, offset, limit = page_bounds(page, size)
        books, total = self.repository.list_books_by_owner(owner_id, offset=offset, limit=limit)
        return Page(books, page, size, total)

    def update_shareable_status(self, book_id: int, user_id: int) -> Book:
        book = self.find_by_id(book_id)
        if not access.is_owner(user_id, book):
            raise OperationNotPermittedError("You cannot update the shareable status of another user's book")
        self.repository.update_book_flags(book_id, shareable=not book.shareable)
        return self.find_by_id(book_id)

    def update_archived_status(self, book_id: int, user_id: int) -> Book:
        book = self.find_by_id(book_id)
        if not access.is_owner(user_id, book):
            raise OperationNotPermittedError("You cannot update the archived status of another user's book")
        self.repository.update_book_flags(book_id, archived=not book.archived)
        return self.find_by_id(book_id)
