"""
Schémas Pydantic pour les rendus de devoirs et leur notation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubmissionCreate(BaseModel):
    """
    Corps de requête pour rendre un devoir.
    file_url vient du middleware d'upload ; comment est la réponse libre ;
    answers est le résultat structuré d'un devoir interactif.
    """
    child_id: int
    file_url: Optional[str] = None
    comment: Optional[str] = None
    answers: Optional[Dict[str, Any]] = None
    score: Optional[Decimal] = None
    time_spent_seconds: Optional[int] = None

    @field_validator("child_id")
    @classmethod
    def valid_child_id(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("child_id invalide.")
        return v

    @field_validator("file_url", "comment")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @field_validator("score")
    @classmethod
    def score_range(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and not (0 <= v <= 100):
            raise ValueError("Le score doit être compris entre 0 et 100.")
        return v

    @field_validator("time_spent_seconds")
    @classmethod
    def non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Durée invalide.")
        return v


class SubmissionCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Devoir rendu avec succès."
    submission_id: int = Field(alias="submissionId")


class GradeSubmission(BaseModel):
    score: Optional[Decimal] = None
    grade: Optional[str] = None
    feedback: Optional[str] = None

    @field_validator("score")
    @classmethod
    def score_range(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and not (0 <= v <= 100):
            raise ValueError("Le score doit être compris entre 0 et 100.")
        return v

    @field_validator("feedback")
    @classmethod
    def feedback_strip(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class SubmissionResponse(BaseModel):
    id: int
    homework_id: int
    child_id: int
    parent_id: Optional[int]
    submission_type: str
    file_url: Optional[str]
    comment: Optional[str]
    status: str
    score: Optional[Decimal]
    grade: Optional[str]
    feedback: Optional[str]
    submitted_at: datetime
    graded_at: Optional[datetime]

    model_config = {"from_attributes": True}


class SubmissionGraded(BaseModel):
    success: bool = True
    message: str = "Rendu noté."
    submission: SubmissionResponse


class SubmissionWithChild(SubmissionResponse):
    first_name: str
    last_name: str
    parent_name: Optional[str] = None
    answers: Optional[Dict[str, Any]] = None


class StudentWithStatus(BaseModel):
    """Élève ciblé par le devoir et son état de rendu (pending, submitted, graded, overdue)."""
    child_id: int
    first_name: str
    last_name: str
    status: str
    submission_id: Optional[int] = None
    submitted_at: Optional[datetime] = None


class HomeworkSubmissions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    homework_id: int
    submissions: List[SubmissionWithChild]
    students_with_status: List[StudentWithStatus] = Field(alias="studentsWithStatus")
