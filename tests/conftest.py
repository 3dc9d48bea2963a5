from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re
import sys
from pathlib import Path

import pytest

# Make the bookshare package importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bookshare.core import config as core_config  # noqa: E402
from bookshare.core.rate_limiter import reset_rate_limits  # noqa: E402
from bookshare.db import models  # noqa: E402
from bookshare.db import session as db_session  # noqa: E402
import bookshare.services.credential_issuer as credential_issuer  # noqa: E402

CODE_PATTERN = re.compile(r"activation code is (\d+)")


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class MailOutbox:
    """Collects messages handed to dispatch_email."""

    def __init__(self):
        self.messages: list[dict] = []

    def __call__(self, subject, to_email, html_body, text_body=None):
        self.messages.append({"subject": subject, "to": to_email, "html": html_body, "text": text_body})

    def codes_for(self, email: str) -> list[str]:
        return [CODE_PATTERN.search(m["text"]).group(1) for m in self.messages if m["to"] == email]

    def last_code(self, email: str) -> str:
        return self.codes_for(email)[-1]


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Point the app at a temporary SQLite file and reset settings/engine caches."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("MAIL_ASYNC", "false")
    monkeypatch.delenv("ACTIVATION_CODE_LENGTH", raising=False)
    monkeypatch.delenv("ACTIVATION_TTL_SECONDS", raising=False)
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    reset_rate_limits()

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield db_file

    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def outbox(monkeypatch) -> MailOutbox:
    box = MailOutbox()
    monkeypatch.setattr(credential_issuer, "dispatch_email", box)
    return box


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
