# tests/unit/test_secret_scrub.py
from __future__ import annotations

import logging

from app.core.logging import REDACTED, SecretScrubFilter, scrub_secrets
from app.db.session import normalize_async_dsn
from app.services.activity_logger import _sanitize


def test_dsn_password_is_redacted():
    out = scrub_secrets("connect failed: postgresql+psycopg://wms:s3cr3t@db:5432/wms")
    assert "s3cr3t" not in out
    assert f"wms:{REDACTED}@db" in out


def test_key_value_secrets_are_redacted():
    out = scrub_secrets("login password=hunter2 token: abc.def api_key='xyz' user=bob")
    assert "hunter2" not in out
    assert "abc.def" not in out
    assert "xyz" not in out
    assert "user=bob" in out


def test_filter_scrubs_formatted_message():
    record = logging.LogRecord("wmsdu", logging.ERROR, __file__, 1, "dsn=%s", ("postgres://u:pw@h/db",), None)
    assert SecretScrubFilter().filter(record) is True
    assert "pw@" not in record.getMessage()


def test_activity_payload_is_sanitized():
    clean = _sanitize({"error": "password=letmein", "qty": 3})
    assert clean == {"error": f"password={REDACTED}", "qty": 3}


def test_normalize_async_dsn():
    assert normalize_async_dsn("sqlite:///./wms.db") == "sqlite+aiosqlite:///./wms.db"
    assert normalize_async_dsn("postgres://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_async_dsn("'postgresql://u:p@h/db'") == "postgresql+psycopg://u:p@h/db"
    assert normalize_async_dsn("postgresql+asyncpg://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
