"""
Enveloppe commune des réponses d'erreur.
"""

from typing import Any, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    errors: Optional[List[Any]] = None
