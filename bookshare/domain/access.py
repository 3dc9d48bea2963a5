"""
Authorization predicates for book lending.

Plain functions of (acting user id, book): no lookups, no side effects. The
lending ledger calls them inline and turns a False into a business error.
"""
from __future__ import annotations

from typing import Protocol


class OwnedBook(Protocol):
    owner_id: int
    archived: bool
    shareable: bool


def is_owner(user_id: int, book: OwnedBook) -> bool:
    return book.owner_id == user_id


def is_available(book: OwnedBook) -> bool:
    """A book takes part in lending only while shareable and not archived."""
    return bool(book.shareable) and not book.archived


def can_borrow(user_id: int, book: OwnedBook) -> bool:
    return is_available(book) and not is_owner(user_id, book)


def can_approve_return(user_id: int, book: OwnedBook) -> bool:
    return is_owner(user_id, book)
