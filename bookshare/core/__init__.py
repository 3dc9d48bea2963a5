"""
Core utilities shared across the Bookshare API.

This package hosts:
- configuration helpers (env vars, database URL, signing key, SMTP)
- cross-cutting services such as logging, the email adapter, password
  hashing and rate limit helpers.

Services depend on these primitives instead of reading the environment or
talking to SMTP directly.
"""
