"""Password hashing and settings validation."""

import pytest
from argon2 import PasswordHasher
from pydantic import ValidationError

from foxboard.auth.password import hash_password, needs_upgrade, verify_password
from foxboard.config import DEFAULT_ADMIN_PASSWORD, Settings
from foxboard.errors import CryptError


def test_hash_is_salted():
    first, second = hash_password("hunter2"), hash_password("hunter2")
    assert first != second
    assert first.startswith("$argon2id$")


def test_verify_roundtrip():
    stored = hash_password("hunter2")
    assert verify_password("hunter2", stored)
    assert not verify_password("hunter3", stored)


def test_malformed_hash_is_crypt_error():
    with pytest.raises(CryptError):
        verify_password("hunter2", "not-a-hash")


def test_weaker_hash_needs_upgrade():
    weak = PasswordHasher(time_cost=1, memory_cost=8192, parallelism=1).hash("hunter2")
    assert verify_password("hunter2", weak)
    assert needs_upgrade(weak)
    assert not needs_upgrade(hash_password("hunter2"))


def test_default_admin_password_refused_in_production():
    with pytest.raises(ValidationError):
        Settings(environment="production")


def test_default_admin_password_allowed_in_development():
    s = Settings(environment="development")
    assert s.admin_initial_password == DEFAULT_ADMIN_PASSWORD


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("FOXB_SESSION_IDLE_TIMEOUT_MINUTES", "45")
    monkeypatch.setenv("FOXB_ADMIN_USER", "root")
    s = Settings()
    assert s.session_idle_timeout_minutes == 45
    assert s.admin_user == "root"
