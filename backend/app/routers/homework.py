"""
Router pour les devoirs : listes parent et enseignant, détail, création,
modification, rendus et notation.

Les erreurs métier (DomainError) sont converties en réponses JSON par le
handler global de app.main.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import NotFound
from app.schemas.homework import (
    ChildHomeworkList,
    HomeworkCreate,
    HomeworkCreated,
    HomeworkDetail,
    HomeworkDetailForChild,
    HomeworkUpdate,
    HomeworkUpdated,
    TeacherHomeworkList,
)
from app.schemas.submission import (
    GradeSubmission,
    HomeworkSubmissions,
    SubmissionCreate,
    SubmissionCreated,
    SubmissionGraded,
)
from app.security import CurrentUser, get_current_user
from app.services import homework_service, submission_service, visibility_service

router = APIRouter(prefix="/api/v1/homework", tags=["Devoirs"])


@router.get("/parent", response_model=ChildHomeworkList, summary="Devoirs d'un enfant")
def list_homework_for_child(
    child_id: int = Query(..., gt=0),
    status: Optional[str] = Query(None, description="pending, submitted ou overdue"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Devoirs visibles par l'enfant (devoirs de sa classe et devoirs individuels),
    avec le statut dérivé et la liste des enfants du parent.
    """
    return visibility_service.list_homework_for_child(db, user, child_id, status)


@router.get("/teacher/{teacher_id}", response_model=TeacherHomeworkList, summary="Devoirs d'un enseignant")
def list_homework_for_teacher(
    teacher_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Devoirs de la classe de l'enseignant avec les compteurs de rendus."""
    return visibility_service.list_homework_for_teacher(db, user, teacher_id)


@router.get(
    "/{homework_id}",
    response_model=Union[HomeworkDetailForChild, HomeworkDetail],
    summary="Détail d'un devoir",
)
def get_homework(
    homework_id: int,
    child_id: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return visibility_service.get_homework_detail(db, user, homework_id, child_id)


@router.post("", response_model=HomeworkCreated, status_code=201, summary="Créer un devoir")
def create_homework(
    data: HomeworkCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Crée un devoir pour la classe de l'enseignant.
    Les parents concernés sont notifiés de façon asynchrone (outbox).
    """
    return homework_service.create_homework(db, user, data)


@router.put("/{homework_id}", response_model=HomeworkUpdated, summary="Modifier un devoir")
def update_homework(
    homework_id: int,
    data: HomeworkUpdate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Seuls les champs fournis sont modifiés."""
    return homework_service.update_homework(db, user, homework_id, data)


@router.delete("/{homework_id}", status_code=204, summary="Supprimer un devoir")
def delete_homework(
    homework_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Suppression définitive, réservée aux administrateurs."""
    success = homework_service.delete_homework(db, user, homework_id)
    if not success:
        raise NotFound("Devoir introuvable.")


# --- Rendus ---

@router.post(
    "/{homework_id}/submissions",
    response_model=SubmissionCreated,
    status_code=201,
    summary="Rendre un devoir",
)
def submit_homework(
    homework_id: int,
    data: SubmissionCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Enregistre le rendu d'un enfant. Un second rendu pour le même enfant
    est refusé (409 already_submitted).
    """
    return submission_service.submit_homework(db, user, homework_id, data)


@router.get(
    "/{homework_id}/submissions",
    response_model=HomeworkSubmissions,
    summary="Rendus d'un devoir",
)
def list_submissions(
    homework_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return submission_service.get_submissions_for_homework(db, user, homework_id)


@router.put(
    "/submissions/{submission_id}/grade",
    response_model=SubmissionGraded,
    summary="Noter un rendu",
)
def grade_submission(
    submission_id: int,
    data: GradeSubmission,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return submission_service.grade_submission(db, user, submission_id, data)
