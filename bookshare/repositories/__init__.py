"""
Persistence adapters.

These modules encapsulate how users, activation tokens, books and loan
records are stored and retrieved. Services depend on the repository instead
of opening SQLAlchemy sessions themselves.
"""
