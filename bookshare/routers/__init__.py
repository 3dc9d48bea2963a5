"""
FastAPI routers grouped by domain (auth, books).

Each module exposes an APIRouter included by bookshare.app. Routers resolve
their services from app.state and never talk to the database directly.
"""
