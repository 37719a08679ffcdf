"""Unit tests for the User domain entity."""
import pytest

from accessguard.domain.entities.user import User


def _user(**overrides) -> User:
    values = {
        "user_id": "USR_00001",
        "full_name": "Jane Doe",
        "username": "jdoe",
        "email": "jane@example.com",
        "role_id": "Basic_User",
    }
    values.update(overrides)
    return User(**values)


def test_user_entity_defaults():
    """Test creating a User entity with default values."""
    user = _user()

    assert user.is_active is True
    assert user.password_hash == ""
    assert user.mfa_enabled is False
    assert user.disabled_at is None
    assert user.has_local_credential is False


def test_user_entity_requires_id():
    """Test that a missing id raises ValueError."""
    with pytest.raises(ValueError, match="User ID is required"):
        _user(user_id="")


@pytest.mark.parametrize(
    "stored,expected",
    [("", False), ("plain", False), ("salt:digest", True)],
)
def test_has_local_credential(stored, expected):
    """Test that only salt:digest values count as a local credential."""
    assert _user(password_hash=stored).has_local_credential is expected


def test_public_dict_drops_password_hash():
    """Test that public serialization never includes the hash."""
    data = _user(password_hash="salt:digest").to_public_dict()

    assert "password_hash" not in data
    assert data["user_id"] == "USR_00001"


def test_snapshot_fields():
    """Test the login snapshot shape."""
    snapshot = _user(department="Sales").snapshot()

    assert snapshot == {
        "user_id": "USR_00001",
        "full_name": "Jane Doe",
        "email": "jane@example.com",
        "role_id": "Basic_User",
        "department": "Sales",
    }
