"""
High-level use cases for the Bookshare API.

Each service module orchestrates the repository and core adapters to
implement business rules (register, activate, borrow, return, approve).
Routers call these services instead of touching the database directly.
"""
