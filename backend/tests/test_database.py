"""
Tests for engine connect args driven by DATABASE_SSL.
"""

import ssl

import pytest

from seo_campaigns.config import Settings
from seo_campaigns.database import build_connect_args

PG_URL = "postgresql+asyncpg://user:pw@db.example.net:5432/seo"


def test_sqlite_gets_no_connect_args():
    assert build_connect_args("sqlite+aiosqlite:///tmp/app.db", "require") == {}


def test_ssl_disabled_by_default():
    assert build_connect_args(PG_URL) == {"timeout": 30}


def test_ssl_require_skips_certificate_checks():
    ctx = build_connect_args(PG_URL, "require")["ssl"]
    assert ctx.check_hostname is False
    assert ctx.verify_mode == ssl.CERT_NONE


def test_ssl_verify_full_checks_certificates():
    ctx = build_connect_args(PG_URL, "verify-full")["ssl"]
    assert ctx.check_hostname is True
    assert ctx.verify_mode == ssl.CERT_REQUIRED


def test_unknown_ssl_mode_is_rejected():
    with pytest.raises(ValueError, match="DATABASE_SSL"):
        Settings(database_ssl="sometimes")
