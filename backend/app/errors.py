"""
Erreurs métier de l'API.

Chaque erreur porte un code stable (lisible par le client) et un statut HTTP.
Les routers ne font aucun matching sur le texte des messages : le handler
global de app.main convertit l'exception en réponse JSON.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    MISSING_SUBMISSION_CONTENT = "missing_submission_content"
    CHILD_NOT_IN_CLASS = "child_not_in_class"
    HOMEWORK_NOT_ACTIVE = "homework_not_active"
    INVALID_CLASS = "invalid_class"
    NOT_AUTHORIZED = "not_authorized"
    NOT_FOUND = "not_found"
    ALREADY_SUBMITTED = "already_submitted"
    UNAUTHENTICATED = "unauthenticated"
    INTERNAL_ERROR = "internal_error"


class DomainError(Exception):
    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR
    default_message = "Requête invalide."

    def __init__(self, message: Optional[str] = None, code: Optional[ErrorCode] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationFailed(DomainError):
    status_code = 400


class AuthenticationFailed(DomainError):
    status_code = 401
    default_code = ErrorCode.UNAUTHENTICATED
    default_message = "Authentification requise."


class NotAuthorized(DomainError):
    """Ne révèle jamais si la ressource existe sous un autre propriétaire."""
    status_code = 403
    default_code = ErrorCode.NOT_AUTHORIZED
    default_message = "Accès non autorisé."


class NotFound(DomainError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND
    default_message = "Ressource introuvable."


class AlreadySubmitted(DomainError):
    status_code = 409
    default_code = ErrorCode.ALREADY_SUBMITTED
    default_message = "Ce devoir a déjà été rendu pour cet enfant."
