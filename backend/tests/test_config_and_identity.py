from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import UserIdentity, create_token, decode_token, user_id_from_token  # noqa: E402
from config import Settings  # noqa: E402
from storage.errors import NotAuthenticatedError  # noqa: E402


def test_production_security_gate_rejects_default_secret_values():
    settings = Settings(ENVIRONMENT="production", SECRET_KEY="change-me-in-production")
    with pytest.raises(RuntimeError):
        settings.validate_security_configuration()


def test_production_gate_requires_database_url_for_database_backend():
    settings = Settings(
        ENVIRONMENT="production",
        SECRET_KEY="a-long-enough-production-secret",
        STORAGE_BACKEND="database",
        DATABASE_URL="",
    )
    with pytest.raises(RuntimeError):
        settings.validate_security_configuration()


def test_development_settings_skip_the_gate():
    Settings(ENVIRONMENT="development").validate_security_configuration()


def test_storage_backend_is_normalized():
    assert Settings(STORAGE_BACKEND=" Database ").storage_backend == "database"
    assert Settings(STORAGE_BACKEND="cloud").storage_backend == "local"
    assert Settings(DATABASE_URL="  ").database_configured is False


def test_token_round_trip_and_bad_tokens():
    token = create_token("user-42")
    assert decode_token(token)["sub"] == "user-42"
    assert user_id_from_token(token) == "user-42"
    assert user_id_from_token("garbage") is None
    assert user_id_from_token(None) is None

    expired = create_token("user-42", expiry_hours_override=-1)
    with pytest.raises(NotAuthenticatedError):
        decode_token(expired)


def test_identity_caches_until_invalidated():
    calls = {"n": 0}

    def _resolve():
        calls["n"] += 1
        return "user-1"

    identity = UserIdentity(_resolve)
    assert identity.user_id() == "user-1"
    assert identity.user_id() == "user-1"
    assert calls["n"] == 1

    identity.invalidate()
    assert identity.require_user_id() == "user-1"
    assert calls["n"] == 2

    with pytest.raises(NotAuthenticatedError):
        UserIdentity.anonymous().require_user_id()
