"""
Business error taxonomy.

Services raise these; the FastAPI exception handlers in bookshare.app turn
them into the JSON error payload. Each error knows its business code and the
HTTP status it maps to, so routers never build error responses by hand.
"""

from __future__ import annotations

from enum import Enum


class BusinessErrorCode(Enum):
    NO_CODE = (0, "No code")
    VALIDATION_FAILED = (100, "Request validation failed")
    BAD_CREDENTIALS = (304, "Login and / or password is incorrect")
    ACCOUNT_LOCKED = (302, "User account is locked")
    ACCOUNT_DISABLED = (303, "User account is disabled")
    UNAUTHORIZED = (305, "Authentication is required")
    INVALID_SESSION = (306, "Session credential is invalid")
    SESSION_EXPIRED = (307, "Session credential has expired")
    ACTIVATION_CODE_NOT_FOUND = (310, "Activation code not found")
    ACTIVATION_CODE_EXPIRED = (311, "Activation code has expired")
    ACTIVATION_CODE_CONSUMED = (312, "Activation code was already used")
    EMAIL_ALREADY_REGISTERED = (313, "Email is already registered")
    MAIL_DELIVERY_FAILED = (320, "Email delivery failed")
    BOOK_NOT_FOUND = (400, "Book not found")
    OPERATION_NOT_PERMITTED = (401, "Operation not permitted")
    DUPLICATE_LOAN = (402, "Book already borrowed by this user")
    NO_ACTIVE_LOAN = (403, "No active loan for this book")
    RETURN_NOT_REQUESTED = (404, "Book return has not been requested")

    def __init__(self, code: int, description: str):
        self.code = code
        self.description = description


class BookshareError(Exception):
    """Base class for every error surfaced to API callers."""

    error_code: BusinessErrorCode = BusinessErrorCode.NO_CODE
    status_code: int = 400

    def __init__(self, message: str | None = None):
        self.message = message or self.error_code.description
        super().__init__(self.message)


# -------------------------------------- credentials --------------------------------------
class CredentialError(BookshareError):
    status_code = 401


class BadCredentialsError(CredentialError):
    error_code = BusinessErrorCode.BAD_CREDENTIALS


class AccountDisabledError(CredentialError):
    error_code = BusinessErrorCode.ACCOUNT_DISABLED


class AccountLockedError(CredentialError):
    error_code = BusinessErrorCode.ACCOUNT_LOCKED


class UnauthorizedError(CredentialError):
    error_code = BusinessErrorCode.UNAUTHORIZED


class InvalidSessionCredentialError(CredentialError):
    error_code = BusinessErrorCode.INVALID_SESSION


class SessionCredentialExpiredError(CredentialError):
    error_code = BusinessErrorCode.SESSION_EXPIRED


class ActivationCodeNotFoundError(BookshareError):
    error_code = BusinessErrorCode.ACTIVATION_CODE_NOT_FOUND
    status_code = 404


class ActivationCodeExpiredError(CredentialError):
    error_code = BusinessErrorCode.ACTIVATION_CODE_EXPIRED

    def __init__(self, code_reissued: bool):
        self.code_reissued = code_reissued
        if code_reissued:
            message = "Activation code has expired. A new code has been sent to your email."
        else:
            message = "Activation code is no longer valid. Use the most recent code sent to your email."
        super().__init__(message)


class ActivationCodeAlreadyConsumedError(CredentialError):
    error_code = BusinessErrorCode.ACTIVATION_CODE_CONSUMED


class EmailAlreadyRegisteredError(BookshareError):
    error_code = BusinessErrorCode.EMAIL_ALREADY_REGISTERED


class MailDeliveryError(BookshareError):
    error_code = BusinessErrorCode.MAIL_DELIVERY_FAILED
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or "Activation email could not be delivered")


# -------------------------------------- lending --------------------------------------
class BookNotFoundError(BookshareError):
    error_code = BusinessErrorCode.BOOK_NOT_FOUND
    status_code = 404

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book {book_id} not found")


class OperationNotPermittedError(BookshareError):
    error_code = BusinessErrorCode.OPERATION_NOT_PERMITTED


class DuplicateLoanError(BookshareError):
    error_code = BusinessErrorCode.DUPLICATE_LOAN

    def __init__(self, message: str | None = None):
        super().__init__(message or "You have already borrowed this book")


class NoActiveLoanError(BookshareError):
    error_code = BusinessErrorCode.NO_ACTIVE_LOAN

    def __init__(self, message: str | None = None):
        super().__init__(message or "You have not borrowed this book yet")


class ReturnNotYetRequestedError(BookshareError):
    error_code = BusinessErrorCode.RETURN_NOT_REQUESTED

    def __init__(self, message: str | None = None):
        super().__init__(message or "The book is not returned yet. You cannot approve its return")
