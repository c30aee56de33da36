"""
Service métier pour les rendus de devoirs.

Invariant : au plus un rendu par (homework_id, child_id). Il est garanti par
la contrainte unique uq_submission_homework_child : l'INSERT est tenté
directement et la violation de contrainte devient AlreadySubmitted.
Aucune vérification préalable (SELECT puis INSERT) n'est faite, donc deux
rendus concurrents ne peuvent pas passer tous les deux.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import AlreadySubmitted, ErrorCode, NotAuthorized, NotFound, ValidationFailed
from app.models.child import Child
from app.models.homework import (
    Homework,
    HomeworkCompletion,
    HomeworkIndividualAssignment,
    HomeworkSubmission,
)
from app.models.user import Parent
from app.schemas.submission import (
    GradeSubmission,
    HomeworkSubmissions,
    StudentWithStatus,
    SubmissionCreate,
    SubmissionCreated,
    SubmissionGraded,
    SubmissionResponse,
    SubmissionWithChild,
)
from app.security import ROLE_PARENT, ROLE_TEACHER, CurrentUser
from app.services import homework_service, notification_service, roster_service, visibility_service

logger = logging.getLogger(__name__)


def submit_homework(
    db: Session,
    user: CurrentUser,
    homework_id: int,
    data: SubmissionCreate,
    now: Optional[datetime] = None,
) -> SubmissionCreated:
    """
    Enregistre le rendu d'un devoir pour un enfant.

    Validations :
    1. L'appelant est le parent de l'enfant
    2. Le devoir existe et figure dans la liste de l'enfant (sinon même refus qu'en 1)
    3. Le devoir est actif
    4. Contenu : fichier ou réponse libre ; un devoir interactif accepte aussi answers
    """
    if user.role != ROLE_PARENT:
        raise NotAuthorized()
    child = roster_service.get_child_for_parent(db, user, data.child_id)

    homework = db.get(Homework, homework_id)
    if homework is None or not visibility_service.is_visible_to_child(db, homework_id, child):
        raise NotAuthorized()
    if homework.status != "active":
        raise ValidationFailed("Ce devoir n'accepte plus de rendu.", ErrorCode.HOMEWORK_NOT_ACTIVE)

    interactive = homework.content_type == "interactive"
    has_content = bool(data.file_url or data.comment or (interactive and data.answers))
    if not has_content:
        raise ValidationFailed(
            "Un fichier ou une réponse est obligatoire pour rendre ce devoir.",
            ErrorCode.MISSING_SUBMISSION_CONTENT,
        )

    now = now or datetime.now()
    if interactive and data.answers:
        submission_type = "interactive"
    elif data.file_url:
        submission_type = "file"
    else:
        submission_type = "text"

    submission = HomeworkSubmission(
        homework_id=homework.id,
        child_id=child.id,
        parent_id=child.parent_id,
        submission_type=submission_type,
        file_url=data.file_url,
        comment=data.comment,
        status="submitted",
        score=data.score if interactive else None,
        submitted_at=now,
    )
    db.add(submission)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        if _submission_exists(db, homework_id, child.id):
            logger.info("Rendu refusé : devoir %s déjà rendu pour l'enfant %s", homework_id, child.id)
            raise AlreadySubmitted()
        logger.exception("Échec insertion rendu devoir=%s enfant=%s", homework_id, child.id)
        raise

    if data.answers or data.comment:
        _upsert_completion(db, homework.id, child.id, data, now)

    db.execute(
        update(HomeworkIndividualAssignment)
        .where(
            HomeworkIndividualAssignment.homework_id == homework.id,
            HomeworkIndividualAssignment.child_id == child.id,
        )
        .values(status="submitted")
    )
    notification_service.enqueue_event(
        db, notification_service.EVENT_HOMEWORK_SUBMITTED, {"submission_id": submission.id}
    )

    try:
        db.commit()
    except IntegrityError:
        # Rendu concurrent commité entre le flush et le commit
        db.rollback()
        if _submission_exists(db, homework_id, child.id):
            raise AlreadySubmitted()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Échec commit rendu devoir=%s enfant=%s", homework_id, child.id)
        raise

    logger.info(
        "Devoir %s rendu pour l'enfant %s par le parent %s (%s)",
        homework.id, child.id, user.id, submission_type,
    )
    return SubmissionCreated(submission_id=submission.id)


def _submission_exists(db: Session, homework_id: int, child_id: int) -> bool:
    return db.execute(
        select(HomeworkSubmission.id).where(
            HomeworkSubmission.homework_id == homework_id,
            HomeworkSubmission.child_id == child_id,
        )
    ).scalar() is not None


def _upsert_completion(
    db: Session,
    homework_id: int,
    child_id: int,
    data: SubmissionCreate,
    now: datetime,
) -> HomeworkCompletion:
    """Crée ou met à jour la ligne de réponses pour la paire (devoir, enfant)."""
    completion = db.execute(
        select(HomeworkCompletion).where(
            HomeworkCompletion.homework_id == homework_id,
            HomeworkCompletion.child_id == child_id,
        )
    ).scalar()
    if completion is None:
        completion = HomeworkCompletion(homework_id=homework_id, child_id=child_id)
        db.add(completion)

    completion.answers = data.answers
    completion.completion_answer = data.comment
    completion.score = data.score
    completion.time_spent_seconds = data.time_spent_seconds
    completion.completed_at = now
    return completion


def get_submissions_for_homework(
    db: Session,
    user: CurrentUser,
    homework_id: int,
    now: Optional[datetime] = None,
) -> HomeworkSubmissions:
    """
    Rendus d'un devoir (enseignant gestionnaire ou admin) et statut de chaque
    élève ciblé : graded, submitted, overdue ou pending.
    """
    homework = homework_service.get_owned_homework(db, user, homework_id)
    now = now or datetime.now()

    rows = db.execute(
        select(HomeworkSubmission, Child, Parent.name, HomeworkCompletion.answers)
        .join(Child, Child.id == HomeworkSubmission.child_id)
        .outerjoin(Parent, Parent.id == Child.parent_id)
        .outerjoin(
            HomeworkCompletion,
            and_(
                HomeworkCompletion.homework_id == HomeworkSubmission.homework_id,
                HomeworkCompletion.child_id == HomeworkSubmission.child_id,
            ),
        )
        .where(HomeworkSubmission.homework_id == homework_id)
        .order_by(HomeworkSubmission.submitted_at.desc(), HomeworkSubmission.id.desc())
    ).all()

    submissions = []
    by_child = {}
    for submission, child, parent_name, answers in rows:
        by_child[child.id] = submission
        submissions.append(SubmissionWithChild(
            **SubmissionResponse.model_validate(submission).model_dump(),
            first_name=child.first_name,
            last_name=child.last_name,
            parent_name=parent_name,
            answers=answers,
        ))

    students = []
    for child in _target_children(db, homework):
        submission = by_child.get(child.id)
        if submission is not None:
            status = submission.status
        elif homework.due_date < now:
            status = "overdue"
        else:
            status = "pending"
        students.append(StudentWithStatus(
            child_id=child.id,
            first_name=child.first_name,
            last_name=child.last_name,
            status=status,
            submission_id=submission.id if submission else None,
            submitted_at=submission.submitted_at if submission else None,
        ))

    return HomeworkSubmissions(homework_id=homework.id, submissions=submissions, students_with_status=students)


def _target_children(db: Session, homework: Homework):
    """Élèves ciblés : assignés individuellement, ou inscrits dans la classe du devoir."""
    if homework.assignment_type == "individual":
        stmt = (
            select(Child)
            .join(HomeworkIndividualAssignment, HomeworkIndividualAssignment.child_id == Child.id)
            .where(HomeworkIndividualAssignment.homework_id == homework.id)
        )
    elif homework.class_id is None:
        return []
    else:
        stmt = select(Child).where(Child.class_id == homework.class_id)
    return db.execute(stmt.order_by(Child.first_name, Child.id)).scalars().all()


def grade_submission(
    db: Session,
    user: CurrentUser,
    submission_id: int,
    data: GradeSubmission,
    now: Optional[datetime] = None,
) -> SubmissionGraded:
    """
    Note un rendu existant (submitted → graded). Ne crée jamais de nouvelle ligne :
    la paire (devoir, enfant) reste unique. Une re-notation met à jour la même ligne.
    """
    if not user.is_admin and user.role != ROLE_TEACHER:
        raise NotAuthorized()
    submission = db.get(HomeworkSubmission, submission_id)
    if submission is None:
        raise NotFound("Rendu introuvable.")
    homework_service.get_owned_homework(db, user, submission.homework_id)

    if data.score is None and not data.grade and not data.feedback:
        raise ValidationFailed("Une note, une appréciation ou un commentaire est requis.")

    now = now or datetime.now()
    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(submission, field, value)
    submission.status = "graded"
    submission.graded_at = now

    db.execute(
        update(HomeworkIndividualAssignment)
        .where(
            HomeworkIndividualAssignment.homework_id == submission.homework_id,
            HomeworkIndividualAssignment.child_id == submission.child_id,
        )
        .values(status="graded")
    )
    notification_service.enqueue_event(
        db,
        notification_service.EVENT_HOMEWORK_GRADED,
        {"submission_id": submission.id, "graded_at": now.isoformat()},
    )
    db.commit()
    db.refresh(submission)

    logger.info("Rendu %s noté par %s (devoir %s)", submission.id, user.id, submission.homework_id)
    return SubmissionGraded(submission=SubmissionResponse.model_validate(submission))
