"""
Tests de la vérification des tokens JWT et du contrôle de rôle.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.config import settings
from app.errors import AuthenticationFailed, NotAuthorized
from app.security import CurrentUser, decode_token, require_roles


def make_token(claims: dict, secret: str = None) -> str:
    return jwt.encode(claims, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def test_token_valide():
    user = decode_token(make_token({"id": 3, "role": "parent"}))
    assert user == CurrentUser(id=3, role="parent")
    assert user.user_type == "parent"


def test_token_ancien_format_user_type():
    user = decode_token(make_token({"id": "7", "userType": "teacher"}))
    assert user == CurrentUser(id=7, role="teacher")
    assert user.user_type == "staff"


def test_token_mauvaise_signature():
    with pytest.raises(AuthenticationFailed):
        decode_token(make_token({"id": 3, "role": "parent"}, secret="un-autre-secret-de-plus-de-32-octets"))


def test_token_expire():
    expired = datetime.now(timezone.utc) - timedelta(minutes=5)
    with pytest.raises(AuthenticationFailed):
        decode_token(make_token({"id": 3, "role": "parent", "exp": expired}))


def test_token_role_inconnu():
    with pytest.raises(AuthenticationFailed):
        decode_token(make_token({"id": 3, "role": "superuser"}))


def test_token_sans_id():
    with pytest.raises(AuthenticationFailed):
        decode_token(make_token({"role": "admin"}))


def test_require_roles():
    check = require_roles("admin")
    admin = CurrentUser(id=1, role="admin")

    assert check(user=admin) is admin
    with pytest.raises(NotAuthorized):
        check(user=CurrentUser(id=2, role="teacher"))
