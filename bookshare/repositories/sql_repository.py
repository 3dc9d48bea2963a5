"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError

from bookshare.db.models import ActivationToken, Book, LoanRecord, User
from bookshare.db.session import get_session
from bookshare.domain.errors import DuplicateLoanError, EmailAlreadyRegisteredError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user(self, user_id: int) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with get_session() as session:
            stmt = select(User).where(func.lower(User.email) == (email or "").strip().lower())
            return session.execute(stmt).scalar_one_or_none()

    def create_user(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: str,
        roles: list[str] | None = None,
        enabled: bool = False,
        locked: bool = False,
    ) -> User:
        now = _utcnow()
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=password_hash,
            enabled=enabled,
            locked=locked,
            roles=list(roles or ["USER"]),
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise EmailAlreadyRegisteredError() from exc
            session.refresh(user)
            return user

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=_utcnow())
            )
            session.execute(stmt)
            session.commit()

    def set_user_locked(self, user_id: int, locked: bool) -> None:
        with get_session() as session:
            session.execute(update(User).where(User.id == user_id).values(locked=locked, updated_at=_utcnow()))
            session.commit()

    # -------------------------- activation tokens --------------------------
    def create_activation_token(
        self, user_id: int, token: str, created_at: datetime, expires_at: datetime
    ) -> Optional[ActivationToken]:
        """
        Store a new code and supersede every earlier unconsumed code of the user.

        Codes are unique across the table, consumed and expired rows included,
        so a code string always resolves to the user it was mailed to. Returns
        None when the code is already taken; nothing is superseded in that case.
        """
        entity = ActivationToken(token=token, user_id=user_id, created_at=created_at, expires_at=expires_at)
        with get_session() as session:
            session.execute(
                update(ActivationToken)
                .where(
                    ActivationToken.user_id == user_id,
                    ActivationToken.validated_at.is_(None),
                    ActivationToken.superseded_at.is_(None),
                )
                .values(superseded_at=created_at)
            )
            session.add(entity)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            session.refresh(entity)
            return entity

    def get_activation_token(self, token: str) -> Optional[ActivationToken]:
        with get_session() as session:
            stmt = select(ActivationToken).where(ActivationToken.token == token)
            return session.execute(stmt).scalar_one_or_none()

    def activation_code_exists(self, token: str) -> bool:
        with get_session() as session:
            stmt = select(ActivationToken.id).where(ActivationToken.token == token).limit(1)
            return session.execute(stmt).first() is not None

    def count_activation_tokens(self, user_id: int) -> int:
        with get_session() as session:
            stmt = select(func.count(ActivationToken.id)).where(ActivationToken.user_id == user_id)
            return int(session.execute(stmt).scalar_one())

    def consume_activation_token(self, token_id: int, now: datetime) -> bool:
        """
        Stamp validated_at and enable the owner in one transaction.

        The conditional UPDATE makes consumption single-shot: only the caller
        whose statement changes the row gets True.
        """
        with get_session() as session:
            result = session.execute(
                update(ActivationToken)
                .where(
                    ActivationToken.id == token_id,
                    ActivationToken.validated_at.is_(None),
                    ActivationToken.superseded_at.is_(None),
                )
                .values(validated_at=now)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            user_id = session.execute(
                select(ActivationToken.user_id).where(ActivationToken.id == token_id)
            ).scalar_one()
            session.execute(update(User).where(User.id == user_id).values(enabled=True, updated_at=now))
            session.commit()
            return True

    def claim_expired_token(self, token_id: int, now: datetime) -> bool:
        """Mark an expired token superseded; True only for the caller that claimed it."""
        with get_session() as session:
            result = session.execute(
                update(ActivationToken)
                .where(
                    ActivationToken.id == token_id,
                    ActivationToken.validated_at.is_(None),
                    ActivationToken.superseded_at.is_(None),
                )
                .values(superseded_at=now)
            )
            session.commit()
            return result.rowcount == 1

    # -------------------------- books --------------------------
    def create_book(
        self,
        owner_id: int,
        *,
        title: str,
        author_name: str,
        isbn: str,
        synopsis: str | None = None,
        shareable: bool = False,
        archived: bool = False,
    ) -> Book:
        now = _utcnow()
        book = Book(
            owner_id=owner_id,
            title=title,
            author_name=author_name,
            isbn=isbn,
            synopsis=synopsis,
            shareable=shareable,
            archived=archived,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(book)
            session.commit()
            session.refresh(book)
            return book

    def get_book(self, book_id: int) -> Optional[Book]:
        with get_session() as session:
            return session.get(Book, book_id)

    def update_book_flags(self, book_id: int, **values: bool) -> None:
        with get_session() as session:
            stmt = update(Book).where(Book.id == book_id).values(updated_at=_utcnow(), **values)
            session.execute(stmt)
            session.commit()

    def list_displayable_books(self, viewer_id: int, *, offset: int, limit: int) -> tuple[list[Book], int]:
        condition = and_(Book.archived.is_(False), Book.shareable.is_(True), Book.owner_id != viewer_id)
        return self._page(select(Book).where(condition), condition, Book, offset=offset, limit=limit)

    def list_books_by_owner(self, owner_id: int, *, offset: int, limit: int) -> tuple[list[Book], int]:
        condition = Book.owner_id == owner_id
        return self._page(select(Book).where(condition), condition, Book, offset=offset, limit=limit)

    # -------------------------- loans --------------------------
    def has_active_loan(self, book_id: int, borrower_id: int) -> bool:
        with get_session() as session:
            stmt = (
                select(LoanRecord.id)
                .where(
                    LoanRecord.book_id == book_id,
                    LoanRecord.borrower_id == borrower_id,
                    LoanRecord.return_approved.is_(False),
                )
                .limit(1)
            )
            return session.execute(stmt).first() is not None

    def insert_loan(self, book_id: int, borrower_id: int) -> LoanRecord:
        """Insert an active loan; the partial unique index rejects a second one."""
        now = _utcnow()
        loan = LoanRecord(
            book_id=book_id,
            borrower_id=borrower_id,
            returned=False,
            return_approved=False,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(loan)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateLoanError() from exc
            session.refresh(loan)
            return loan

    def get_loan(self, loan_id: int) -> Optional[LoanRecord]:
        with get_session() as session:
            return session.get(LoanRecord, loan_id)

    def find_unreturned_loan(self, book_id: int, borrower_id: int) -> Optional[LoanRecord]:
        with get_session() as session:
            stmt = select(LoanRecord).where(
                LoanRecord.book_id == book_id,
                LoanRecord.borrower_id == borrower_id,
                LoanRecord.returned.is_(False),
                LoanRecord.return_approved.is_(False),
            )
            return session.execute(stmt).scalars().first()

    def find_returned_unapproved_loan(self, book_id: int, borrower_id: int | None = None) -> Optional[LoanRecord]:
        with get_session() as session:
            stmt = select(LoanRecord).where(
                LoanRecord.book_id == book_id,
                LoanRecord.returned.is_(True),
                LoanRecord.return_approved.is_(False),
            )
            if borrower_id is not None:
                stmt = stmt.where(LoanRecord.borrower_id == borrower_id)
            stmt = stmt.order_by(LoanRecord.created_at.asc(), LoanRecord.id.asc())
            return session.execute(stmt).scalars().first()

    def mark_loan_returned(self, loan_id: int) -> bool:
        with get_session() as session:
            result = session.execute(
                update(LoanRecord)
                .where(
                    LoanRecord.id == loan_id,
                    LoanRecord.returned.is_(False),
                    LoanRecord.return_approved.is_(False),
                )
                .values(returned=True, updated_at=_utcnow())
            )
            session.commit()
            return result.rowcount == 1

    def mark_loan_return_approved(self, loan_id: int) -> bool:
        with get_session() as session:
            result = session.execute(
                update(LoanRecord)
                .where(
                    LoanRecord.id == loan_id,
                    LoanRecord.returned.is_(True),
                    LoanRecord.return_approved.is_(False),
                )
                .values(return_approved=True, updated_at=_utcnow())
            )
            session.commit()
            return result.rowcount == 1

    def count_loans(self, book_id: int, borrower_id: int) -> int:
        with get_session() as session:
            stmt = select(func.count(LoanRecord.id)).where(
                LoanRecord.book_id == book_id, LoanRecord.borrower_id == borrower_id
            )
            return int(session.execute(stmt).scalar_one())

    def list_loans_by_borrower(self, borrower_id: int, *, offset: int, limit: int) -> tuple[list[tuple[LoanRecord, Book]], int]:
        condition = LoanRecord.borrower_id == borrower_id
        return self._loan_page(condition, offset=offset, limit=limit)

    def list_loans_by_book_owner(self, owner_id: int, *, offset: int, limit: int) -> tuple[list[tuple[LoanRecord, Book]], int]:
        condition = Book.owner_id == owner_id
        return self._loan_page(condition, offset=offset, limit=limit)

    # -------------------------- helpers --------------------------
    def _page(self, stmt, condition, entity, *, offset: int, limit: int):
        with get_session() as session:
            total = session.execute(select(func.count(entity.id)).where(condition)).scalar_one()
            rows = (
                session.execute(stmt.order_by(entity.created_at.desc(), entity.id.desc()).offset(offset).limit(limit))
                .scalars()
                .all()
            )
            return list(rows), int(total)

    def _loan_page(self, condition, *, offset: int, limit: int):
        joined = select(LoanRecord, Book).join(Book, Book.id == LoanRecord.book_id).where(condition)
        with get_session() as session:
            total = session.execute(
                select(func.count(LoanRecord.id)).join(Book, Book.id == LoanRecord.book_id).where(condition)
            ).scalar_one()
            rows = session.execute(
                joined.order_by(LoanRecord.created_at.desc(), LoanRecord.id.desc()).offset(offset).limit(limit)
            ).all()
            return [(loan, book) for loan, book in rows], int(total)
