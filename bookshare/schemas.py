from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

T = TypeVar("T")


# Auth
class RegistrationRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class AuthenticationRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class ResendActivationRequest(BaseModel):
    email: EmailStr


class AuthenticationResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    message: str


class ActivationResponse(BaseModel):
    activated: bool
    user_id: int


# Books
class BookRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    author_name: str = Field(min_length=1, max_length=255)
    isbn: str = Field(min_length=1, max_length=32)
    synopsis: str | None = Field(default=None, max_length=2000)
    shareable: bool = False


class BookOut(BaseModel):
    id: int
    title: str
    author_name: str
    isbn: str
    synopsis: str | None
    archived: bool
    shareable: bool
    owner_id: int

    model_config = ConfigDict(from_attributes=True)


class IdResponse(BaseModel):
    id: int


# Loans
class LoanOut(BaseModel):
    id: int
    book_id: int
    borrower_id: int
    returned: bool
    return_approved: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BorrowedBookOut(BaseModel):
    id: int
    book_id: int
    borrower_id: int
    title: str
    author_name: str
    isbn: str
    returned: bool
    return_approved: bool


class PageResponse(BaseModel, Generic[T]):
    content: list[T]
    number: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool


# Errors
class ErrorResponse(BaseModel):
    business_error_code: int | None = None
    business_error_description: str | None = None
    error: str | None = None
    validation_errors: list[str] | None = None


ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Validation or business rule failure"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or expired credential"},
    404: {"model": ErrorResponse, "description": "Book or activation code not found"},
    429: {"model": ErrorResponse, "description": "Too many requests"},
}
