"""Pytest configuration for all tests."""

import itertools
from typing import Callable, Iterator

import pytest

from accessguard.application import AccessGuard
from accessguard.core.config import Settings
from accessguard.domain.entities.user import User
from accessguard.domain.services import BASIC_USER_ROLE

ADMIN_PASSWORD = "Secret1"
USER_PASSWORD = "Passw0rd!"


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated in-memory store."""
    return Settings(
        _env_file=None,
        store_url="memory://",
        environment="testing",
        log_format="console",
        log_level="WARNING",
    )


@pytest.fixture
def guard(settings: Settings) -> Iterator[AccessGuard]:
    """An opened and seeded AccessGuard facade."""
    guard = AccessGuard(settings)
    guard.open()
    yield guard
    guard.close()


@pytest.fixture
def admin(guard: AccessGuard) -> User:
    """The bootstrap superuser (username ``admin``, password ``Secret1``)."""
    created = guard.lifecycle.create_superuser(
        {
            "full_name": "System Admin",
            "username": "Admin",
            "email": "admin@example.com",
            "password": ADMIN_PASSWORD,
        }
    )
    return created.user


@pytest.fixture
def make_user(guard: AccessGuard, admin: User) -> Callable[..., User]:
    """Factory creating users through the lifecycle service as the admin."""
    counter = itertools.count(1)

    def _make(role_id: str = BASIC_USER_ROLE, department: str = "", **overrides) -> User:
        n = next(counter)
        data = {
            "full_name": f"User {n}",
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "role_id": role_id,
            "department": department,
            "password": USER_PASSWORD,
        }
        data.update(overrides)
        return guard.lifecycle.create_user(data, admin.user_id).user

    return _make


@pytest.fixture
def audit_actions(guard: AccessGuard) -> Callable[..., list[str]]:
    """Return compact log actions, oldest first, optionally for one target."""

    def _actions(target_id: str | None = None) -> list[str]:
        return [
            entry.action
            for entry in guard.audit_log_repository.list_all()
            if target_id is None or entry.target_id == target_id
        ]

    return _actions
