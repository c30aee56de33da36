"""
Identité de l'appelant.

Les tokens sont émis par le service d'authentification (hors de cette API) ;
ici on vérifie seulement la signature du JWT Bearer et on extrait id + rôle.
"""

import logging
from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.errors import AuthenticationFailed, NotAuthorized

logger = logging.getLogger(__name__)

ROLE_PARENT = "parent"
ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"
VALID_ROLES = {ROLE_PARENT, ROLE_TEACHER, ROLE_ADMIN}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def user_type(self) -> str:
        """Type de destinataire des notifications : parents dans users, personnel dans staff."""
        return "parent" if self.role == ROLE_PARENT else "staff"


def decode_token(token: str) -> CurrentUser:
    """Vérifie le JWT et retourne l'utilisateur. Lève AuthenticationFailed sinon."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("Token refusé : %s", exc)
        raise AuthenticationFailed("Token invalide ou expiré.")

    # Les anciens tokens portent userType au lieu de role
    role = claims.get("role") or claims.get("userType")
    user_id = claims.get("id")
    if role not in VALID_ROLES or user_id is None:
        raise AuthenticationFailed("Token incomplet.")
    try:
        return CurrentUser(id=int(user_id), role=role)
    except (TypeError, ValueError):
        raise AuthenticationFailed("Token incomplet.")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    """Dépendance FastAPI : utilisateur authentifié à partir du header Authorization."""
    if credentials is None:
        raise AuthenticationFailed()
    return decode_token(credentials.credentials)


def require_roles(*roles: str):
    """Fabrique une dépendance qui refuse les rôles non listés."""

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise NotAuthorized()
        return user

    return dependency
