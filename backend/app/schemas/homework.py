"""
Schémas Pydantic pour les devoirs : création, mise à jour et vues de visibilité.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

VALID_ASSIGNMENT_TYPES = {"class", "individual"}
VALID_CONTENT_TYPES = {"traditional", "interactive", "project"}
VALID_HOMEWORK_STATUSES = {"active", "completed", "archived"}
VALID_DERIVED_STATUSES = {"pending", "submitted", "overdue"}


def _naive(v: Optional[datetime]) -> Optional[datetime]:
    """Les colonnes DATETIME MySQL sont naïves : on ramène les dates aware en heure locale."""
    if v is not None and v.tzinfo is not None:
        return v.astimezone().replace(tzinfo=None)
    return v


class HomeworkCreate(BaseModel):
    """Corps de requête pour créer un devoir (enseignant, sa propre classe uniquement)."""
    title: str
    due_date: datetime
    class_name: str
    instructions: Optional[str] = None
    description: Optional[str] = None
    assignment_type: str = "class"
    content_type: str = "traditional"
    child_ids: List[int] = []  # Obligatoire si assignment_type = individual
    file_url: Optional[str] = None
    points: Optional[int] = None

    @field_validator("title", "class_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Ce champ ne peut pas être vide.")
        return v.strip()

    @field_validator("due_date")
    @classmethod
    def due_date_naive(cls, v: datetime) -> datetime:
        return _naive(v)

    @field_validator("assignment_type")
    @classmethod
    def valid_assignment_type(cls, v: str) -> str:
        if v not in VALID_ASSIGNMENT_TYPES:
            raise ValueError(f"Type d'assignation invalide. Valeurs acceptées : {VALID_ASSIGNMENT_TYPES}")
        return v

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v: str) -> str:
        if v not in VALID_CONTENT_TYPES:
            raise ValueError(f"Type de contenu invalide. Valeurs acceptées : {VALID_CONTENT_TYPES}")
        return v

    @field_validator("child_ids")
    @classmethod
    def positive_ids(cls, v: List[int]) -> List[int]:
        if any(cid <= 0 for cid in v):
            raise ValueError("Identifiant d'enfant invalide.")
        return list(dict.fromkeys(v))  # dédoublonné, ordre conservé

    @model_validator(mode="after")
    def individual_needs_children(self):
        if self.assignment_type == "individual" and not self.child_ids:
            raise ValueError("Un devoir individuel doit cibler au moins un enfant.")
        return self


class HomeworkUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = None
    content_type: Optional[str] = None
    file_url: Optional[str] = None
    points: Optional[int] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre ne peut pas être vide.")
        return v.strip() if v else v

    @field_validator("due_date")
    @classmethod
    def due_date_naive(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_HOMEWORK_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {VALID_HOMEWORK_STATUSES}")
        return v

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_CONTENT_TYPES:
            raise ValueError(f"Type de contenu invalide. Valeurs acceptées : {VALID_CONTENT_TYPES}")
        return v


class HomeworkResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    instructions: Optional[str]
    due_date: datetime
    teacher_id: int
    class_id: Optional[int]
    assignment_type: str
    content_type: str
    status: str
    file_url: Optional[str]
    points: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class HomeworkCreated(BaseModel):
    """Réponse 201 de la création."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Devoir créé avec succès."
    homework_id: int = Field(alias="homeworkId")
    homework: HomeworkResponse


class HomeworkUpdated(BaseModel):
    success: bool = True
    message: str = "Devoir mis à jour."
    homework: HomeworkResponse


# --- Vue parent (résolution de visibilité) ---

class VisibleHomework(BaseModel):
    """Devoir visible par un enfant, avec statut dérivé et champs dénormalisés."""
    id: int
    title: str
    description: Optional[str]
    instructions: Optional[str]
    due_date: datetime
    assignment_type: str
    content_type: str
    homework_status: str
    status: str  # pending, submitted, overdue (dérivé, jamais stocké)
    class_id: Optional[int]
    class_name: Optional[str]
    teacher_id: int
    teacher_name: Optional[str]
    file_url: Optional[str]
    points: Optional[int]
    submission_id: Optional[int] = None
    submitted_at: Optional[datetime] = None
    submission_status: Optional[str] = None
    score: Optional[Decimal] = None
    grade: Optional[str] = None
    teacher_feedback: Optional[str] = None
    attachment_url: Optional[str] = None


class ChildSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    class_id: Optional[int]
    class_name: Optional[str]


class ChildHomeworkList(BaseModel):
    success: bool = True
    homeworks: List[VisibleHomework]
    children: List[ChildSummary]


class HomeworkDetailForChild(BaseModel):
    success: bool = True
    homework: VisibleHomework


class HomeworkDetail(BaseModel):
    success: bool = True
    homework: HomeworkResponse


# --- Vue enseignant ---

class AssignedStudent(BaseModel):
    id: int
    first_name: str
    last_name: str
    assignment_status: str
    assigned_at: Optional[datetime]


class TeacherHomework(BaseModel):
    id: int
    title: str
    description: Optional[str]
    instructions: Optional[str]
    due_date: datetime
    assignment_type: str
    content_type: str
    status: str
    class_id: Optional[int]
    class_name: Optional[str]
    teacher_name: Optional[str]
    file_url: Optional[str]
    points: Optional[int]
    created_at: Optional[datetime]
    total_students: int
    submitted_count: int
    graded_count: int
    pending_count: int
    overdue_count: int
    assigned_students: Optional[List[AssignedStudent]] = None


class TeacherHomeworkList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    class_name: Optional[str] = Field(default=None, alias="className")
    homeworks: List[TeacherHomework]
    total_homeworks: int = Field(alias="totalHomeworks")
