"""Bookshare: a library-lending backend (registration, activation, sessions, borrowing)."""

__version__ = "1.0.0"
