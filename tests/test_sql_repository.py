"""
Smoke tests for the SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bookshare.domain.errors import DuplicateLoanError, EmailAlreadyRegisteredError
from bookshare.repositories.sql_repository import SQLRepository

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def repo(db_env):
    return SQLRepository()


def _user(repo: SQLRepository, email: str):
    return repo.create_user(first_name="Test", last_name="User", email=email, password_hash="argon2$x")


def test_user_lookup_is_case_insensitive(repo):
    user = _user(repo, "someone@example.com")
    assert repo.get_user_by_email("SomeOne@Example.COM").id == user.id
    assert repo.get_user_by_email("missing@example.com") is None


def test_duplicate_email_is_rejected(repo):
    _user(repo, "dup@example.com")
    with pytest.raises(EmailAlreadyRegisteredError):
        _user(repo, "dup@example.com")


def test_new_activation_token_supersedes_older(repo):
    user = _user(repo, "a@example.com")
    repo.create_activation_token(user.id, "111111", T0, T0 + timedelta(minutes=15))
    repo.create_activation_token(user.id, "222222", T0 + timedelta(minutes=1), T0 + timedelta(minutes=16))

    assert repo.get_activation_token("111111").superseded_at is not None
    assert repo.get_activation_token("222222").superseded_at is None
    assert repo.activation_code_exists("111111")
    assert repo.activation_code_exists("222222")
    assert not repo.activation_code_exists("333333")


def test_activation_codes_are_unique_across_users(repo):
    first = _user(repo, "first@example.com")
    second = _user(repo, "second@example.com")
    token = repo.create_activation_token(first.id, "111111", T0, T0 + timedelta(minutes=15))
    repo.consume_activation_token(token.id, T0)

    assert repo.create_activation_token(second.id, "111111", T0, T0 + timedelta(minutes=15)) is None
    assert repo.count_activation_tokens(second.id) == 0
    assert repo.get_activation_token("111111").user_id == first.id


def test_rejected_code_leaves_earlier_code_live(repo):
    user = _user(repo, "again@example.com")
    repo.create_activation_token(user.id, "111111", T0, T0 + timedelta(minutes=15))

    assert repo.create_activation_token(user.id, "111111", T0, T0 + timedelta(minutes=15)) is None
    assert repo.get_activation_token("111111").superseded_at is None


def test_consume_is_single_shot_and_enables_user(repo):
    user = _user(repo, "b@example.com")
    token = repo.create_activation_token(user.id, "333333", T0, T0 + timedelta(minutes=15))

    assert repo.consume_activation_token(token.id, T0) is True
    assert repo.consume_activation_token(token.id, T0) is False
    assert repo.get_user(user.id).enabled is True
    assert repo.claim_expired_token(token.id, T0) is False


def test_expired_token_is_claimed_once(repo):
    user = _user(repo, "c@example.com")
    token = repo.create_activation_token(user.id, "444444", T0, T0 + timedelta(minutes=15))
    later = T0 + timedelta(hours=1)

    assert repo.claim_expired_token(token.id, later) is True
    assert repo.claim_expired_token(token.id, later) is False
    assert repo.consume_activation_token(token.id, later) is False


def test_active_loan_index_allows_new_cycle_after_approval(repo):
    owner = _user(repo, "owner@example.com")
    reader = _user(repo, "reader@example.com")
    book = repo.create_book(owner.id, title="Emma", author_name="Jane Austen", isbn="9780141439587", shareable=True)

    loan = repo.insert_loan(book.id, reader.id)
    with pytest.raises(DuplicateLoanError):
        repo.insert_loan(book.id, reader.id)

    assert repo.has_active_loan(book.id, reader.id)
    assert repo.mark_loan_return_approved(loan.id) is False
    assert repo.mark_loan_returned(loan.id) is True
    assert repo.mark_loan_returned(loan.id) is False
    assert repo.mark_loan_return_approved(loan.id) is True
    assert not repo.has_active_loan(book.id, reader.id)

    repo.insert_loan(book.id, reader.id)
    assert repo.count_loans(book.id, reader.id) == 2


def test_displayable_books_exclude_own_archived_and_private(repo):
    owner = _user(repo, "owner2@example.com")
    viewer = _user(repo, "viewer@example.com")
    visible = repo.create_book(owner.id, title="A", author_name="X", isbn="1", shareable=True)
    repo.create_book(owner.id, title="B", author_name="X", isbn="2", shareable=False)
    repo.create_book(owner.id, title="C", author_name="X", isbn="3", shareable=True, archived=True)
    repo.create_book(viewer.id, title="D", author_name="X", isbn="4", shareable=True)

    books, total = repo.list_displayable_books(viewer.id, offset=0, limit=10)

    assert total == 1
    assert [b.id for b in books] == [visible.id]
    _, owned_total = repo.list_books_by_owner(owner.id, offset=0, limit=10)
    assert owned_total == 3
