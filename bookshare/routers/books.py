from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from bookshare.schemas import (
    ERROR_RESPONSES,
    BookOut,
    BookRequest,
    BorrowedBookOut,
    IdResponse,
    LoanOut,
    PageResponse,
)
from bookshare.services.book_service import BookService
from bookshare.services.lending_ledger import LendingLedger, LoanEntry
from bookshare.services.paging import Page
from bookshare.services.session_service import current_user_id

router = APIRouter(prefix="/books", tags=["books"], responses=ERROR_RESPONSES)


def _get_book_service(request: Request) -> BookService:
    svc = getattr(getattr(request.app, "state", None), "book_service", None)
    if not svc:
        raise RuntimeError("BookService not configured")
    return svc


def _get_ledger(request: Request) -> LendingLedger:
    ledger = getattr(getattr(request.app, "state", None), "lending_ledger", None)
    if not ledger:
        raise RuntimeError("LendingLedger not configured")
    return ledger


def _page_response(page: Page, items: list) -> dict:
    return {
        "content": items,
        "number": page.number,
        "size": page.size,
        "total_elements": page.total_elements,
        "total_pages": page.total_pages,
        "first": page.first,
        "last": page.last,
    }


def _borrowed_out(entry: LoanEntry) -> BorrowedBookOut:
    return BorrowedBookOut(
        id=entry.loan.id,
        book_id=entry.book.id,
        borrower_id=entry.loan.borrower_id,
        title=entry.book.title,
        author_name=entry.book.author_name,
        isbn=entry.book.isbn,
        returned=entry.loan.returned,
        return_approved=entry.loan.return_approved,
    )


# -------------------------------------- catalog --------------------------------------
@router.post("", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
def save_book(
    payload: BookRequest,
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    book = svc.save(
        user_id,
        title=payload.title,
        author_name=payload.author_name,
        isbn=payload.isbn,
        synopsis=payload.synopsis,
        shareable=payload.shareable,
    )
    return {"id": book.id}


@router.get("", response_model=PageResponse[BookOut])
def find_all_books(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    result = svc.find_all_displayable(user_id, page, size)
    return _page_response(result, [BookOut.model_validate(b) for b in result.content])


@router.get("/owner", response_model=PageResponse[BookOut])
def find_all_books_by_owner(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    result = svc.find_all_by_owner(user_id, page, size)
    return _page_response(result, [BookOut.model_validate(b) for b in result.content])


@router.get("/borrowed", response_model=PageResponse[BorrowedBookOut])
def find_all_borrowed_books(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    ledger: LendingLedger = Depends(_get_ledger),
):
    result = ledger.list_borrowed(user_id, page, size)
    return _page_response(result, [_borrowed_out(e) for e in result.content])


@router.get("/returned", response_model=PageResponse[BorrowedBookOut])
def find_all_returned_books(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    ledger: LendingLedger = Depends(_get_ledger),
):
    result = ledger.list_returned(user_id, page, size)
    return _page_response(result, [_borrowed_out(e) for e in result.content])


@router.get("/{book_id}", response_model=BookOut)
def find_book_by_id(
    book_id: int,
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    return svc.find_by_id(book_id)


@router.patch("/shareable/{book_id}", response_model=IdResponse)
def update_shareable_status(
    book_id: int,
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    return {"id": svc.update_shareable_status(book_id, user_id).id}


@router.patch("/archived/{book_id}", response_model=IdResponse)
def update_archived_status(
    book_id: int,
    user_id: int = Depends(current_user_id),
    svc: BookService = Depends(_get_book_service),
):
    return {"id": svc.update_archived_status(book_id, user_id).id}


# -------------------------------------- lending --------------------------------------
@router.post("/borrow/{book_id}", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
def borrow_book(
    book_id: int,
    user_id: int = Depends(current_user_id),
    ledger: LendingLedger = Depends(_get_ledger),
):
    return ledger.borrow(book_id, user_id)


@router.patch("/borrow/return/{book_id}", response_model=LoanOut)
def return_borrowed_book(
    book_id: int,
    user_id: int = Depends(current_user_id),
    ledger: LendingLedger = Depends(_get_ledger),
):
    return ledger.return_book(book_id, user_id)


@router.patch("/borrow/return/approve/{book_id}", response_model=LoanOut)
def approve_return_borrowed_book(
    book_id: int,
    borrower_id: int | None = Query(default=None),
    user_id: int = Depends(current_user_id),
    ledger: LendingLedger = Depends(_get_ledger),
):
    return ledger.approve_return(book_id, user_id, borrower_id=borrower_id)
