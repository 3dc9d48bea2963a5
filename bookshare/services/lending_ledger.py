"""
Borrow / return / approve state machine over (book, borrower) pairs.

    NONE -> BORROWED -> RETURNED -> APPROVED

APPROVED frees the pair for a new cycle. Every out-of-order call fails with
its own error; nothing here is a silent no-op. The acting user id always
comes from the verified session credential.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from bookshare.db.models import Book, LoanRecord
from bookshare.domain import access
from bookshare.domain.errors import (
    BookNotFoundError,
    DuplicateLoanError,
    NoActiveLoanError,
    OperationNotPermittedError,
    ReturnNotYetRequestedError,
)
from bookshare.repositories.sql_repository import SQLRepository
from bookshare.services.paging import Page, page_bounds

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "The requested book is archived or not shareable"
OWN_BOOK = "You cannot borrow or return your own book"
NOT_OWNER = "Only the owner of the book can approve its return"


@dataclass
class LoanEntry:
    loan: LoanRecord
    book: Book


class LendingLedger:
    def __init__(self, repository: SQLRepository | None = None):
        self.repository = repository or SQLRepository()

    def _resolve_book(self, book_id: int) -> Book:
        book = self.repository.get_book(book_id)
        if not book:
            raise BookNotFoundError(book_id)
        return book

    def _require_available(self, book: Book) -> None:
        if not access.is_available(book):
            raise OperationNotPermittedError(NOT_AVAILABLE)

    # -------------------------------------- transitions --------------------------------------
    def borrow(self, book_id: int, borrower_id: int) -> LoanRecord:
        book = self._resolve_book(book_id)
        if not access.can_borrow(borrower_id, book):
            self._require_available(book)
            raise OperationNotPermittedError("You cannot borrow your own book")
        if self.repository.has_active_loan(book_id, borrower_id):
            raise DuplicateLoanError()
        # A concurrent borrow that slipped past the check above is rejected by
        # the partial unique index and surfaces as DuplicateLoanError too.
        loan = self.repository.insert_loan(book_id, borrower_id)
        logger.info("User %s borrowed book %s (loan %s)", borrower_id, book_id, loan.id)
        return loan

    def return_book(self, book_id: int, borrower_id: int) -> LoanRecord:
        book = self._resolve_book(book_id)
        self._require_available(book)
        if access.is_owner(borrower_id, book):
            raise OperationNotPermittedError(OWN_BOOK)
        loan = self.repository.find_unreturned_loan(book_id, borrower_id)
        if not loan or not self.repository.mark_loan_returned(loan.id):
            raise NoActiveLoanError()
        logger.info("User %s returned book %s (loan %s)", borrower_id, book_id, loan.id)
        return self.repository.get_loan(loan.id)

    def approve_return(self, book_id: int, approver_id: int, borrower_id: int | None = None) -> LoanRecord:
        book = self._resolve_book(book_id)
        self._require_available(book)
        if not access.can_approve_return(approver_id, book):
            raise OperationNotPermittedError(NOT_OWNER)
        loan = self.repository.find_returned_unapproved_loan(book_id, borrower_id)
        if not loan or not self.repository.mark_loan_return_approved(loan.id):
            raise ReturnNotYetRequestedError()
        logger.info("Owner %s approved return of book %s (loan %s)", approver_id, book_id, loan.id)
        return self.repository.get_loan(loan.id)

    # -------------------------------------- history --------------------------------------
    def list_borrowed(self, user_id: int, page: int = 0, size: int = 10) -> Page[LoanEntry]:
        page, size, offset, limit = page_bounds(page, size)
        rows, total = self.repository.list_loans_by_borrower(user_id, offset=offset, limit=limit)
        return Page([LoanEntry(loan, book) for loan, book in rows], page, size, total)

    def list_returned(self, owner_id: int, page: int = 0, size: int = 10) -> Page[LoanEntry]:
        page, size, offset, limit = page_bounds(page, size)
        rows, total = self.repository.list_loans_by_book_owner(owner_id, offset=offset, limit=limit)
        return Page([LoanEntry(loan, book) for loan, book in rows], page, size, total)
