"""Entry point for uvicorn/gunicorn: ``uvicorn bookshare.app_factory:app``."""
from bookshare.app import create_app

app = create_app()

__all__ = ["app", "create_app"]
