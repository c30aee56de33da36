"""
Tests unitaires pour la création et la gestion des devoirs.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from app.errors import ErrorCode, NotAuthorized, NotFound, ValidationFailed
from app.models.homework import Homework, HomeworkIndividualAssignment, HomeworkSubmission
from app.schemas.homework import HomeworkCreate, HomeworkUpdate
from app.services.homework_service import (
    create_homework,
    delete_homework,
    get_owned_homework,
    update_homework,
)

from conftest import NOW


def make_create(**kwargs) -> HomeworkCreate:
    kwargs.setdefault("title", "Peinture")
    kwargs.setdefault("due_date", NOW + timedelta(days=2))
    kwargs.setdefault("class_name", "Panda")
    return HomeworkCreate(**kwargs)


# --- Validation des schémas ---

def test_homework_create_titre_vide_rejete():
    with pytest.raises(ValidationError):
        make_create(title="   ")


def test_homework_create_type_invalide_rejete():
    with pytest.raises(ValidationError):
        make_create(assignment_type="group")


def test_homework_create_individuel_sans_enfant_rejete():
    with pytest.raises(ValidationError):
        make_create(assignment_type="individual")


def test_homework_create_child_ids_dedoublonnes():
    data = make_create(assignment_type="individual", child_ids=[3, 1, 3])
    assert data.child_ids == [3, 1]


def test_homework_create_date_aware_convertie_en_naive():
    data = make_create(due_date=datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc))
    assert data.due_date.tzinfo is None


def test_homework_update_statut_invalide():
    with pytest.raises(ValidationError):
        HomeworkUpdate(status="deleted")


# --- create_homework ---

def test_creation_renseigne_class_id(db_session, school):
    result = create_homework(db_session, school.as_teacher, make_create())

    homework = db_session.get(Homework, result.homework_id)
    assert homework.class_id == school.panda.id
    assert homework.teacher_id == school.teacher.id
    assert homework.status == "active"
    assert result.homework.class_id == school.panda.id


def test_creation_pour_une_autre_classe_refusee(db_session, school):
    with pytest.raises(NotAuthorized):
        create_homework(db_session, school.as_hawks_teacher, make_create(class_name="Panda"))

    assert db_session.execute(select(Homework)).scalar() is None


def test_creation_par_un_parent_refusee(db_session, school):
    with pytest.raises(NotAuthorized):
        create_homework(db_session, school.as_parent(school.p1), make_create())


def test_creation_admin_classe_inexistante(db_session, school):
    with pytest.raises(ValidationFailed) as exc:
        create_homework(db_session, school.as_admin, make_create(class_name="Licornes"))

    assert exc.value.code == ErrorCode.INVALID_CLASS


def test_creation_admin_toute_classe(db_session, school):
    result = create_homework(db_session, school.as_admin, make_create(class_name="Hawks"))

    assert db_session.get(Homework, result.homework_id).class_id == school.hawks.id


def test_creation_individuelle(db_session, school):
    data = make_create(assignment_type="individual", child_ids=[school.x.id, school.z.id])

    result = create_homework(db_session, school.as_teacher, data)

    assigned = db_session.execute(
        select(HomeworkIndividualAssignment.child_id)
        .where(HomeworkIndividualAssignment.homework_id == result.homework_id)
    ).scalars().all()
    assert sorted(assigned) == sorted([school.x.id, school.z.id])


def test_creation_individuelle_enfant_hors_classe(db_session, school):
    data = make_create(assignment_type="individual", child_ids=[school.x.id, school.y.id])

    with pytest.raises(ValidationFailed) as exc:
        create_homework(db_session, school.as_teacher, data)

    assert exc.value.code == ErrorCode.CHILD_NOT_IN_CLASS
    assert db_session.execute(select(Homework)).scalar() is None


# --- get_owned_homework / update_homework ---

def test_devoir_gere_par_le_titulaire_actuel(db_session, school):
    """Un admin crée pour Panda : l'enseignante de Panda peut le gérer."""
    result = create_homework(db_session, school.as_admin, make_create())

    assert get_owned_homework(db_session, school.as_teacher, result.homework_id).id == result.homework_id


def test_devoir_inexistant(db_session, school):
    with pytest.raises(NotFound):
        get_owned_homework(db_session, school.as_teacher, 9999)


@pytest.mark.parametrize("existing", [True, False])
def test_parent_meme_refus_que_le_devoir_existe_ou_non(db_session, school, existing):
    created = create_homework(db_session, school.as_hawks_teacher, make_create(class_name="Hawks"))
    homework_id = created.homework_id if existing else 9999

    with pytest.raises(NotAuthorized):
        get_owned_homework(db_session, school.as_parent(school.p4), homework_id)
    with pytest.raises(NotAuthorized):
        update_homework(db_session, school.as_parent(school.p4), homework_id, HomeworkUpdate(title="Modifié"))


def test_modification_partielle(db_session, school):
    created = create_homework(db_session, school.as_teacher, make_create(instructions="Au crayon"))

    result = update_homework(
        db_session, school.as_teacher, created.homework_id, HomeworkUpdate(title="Peinture à l'eau", due_date=None)
    )

    assert result.homework.title == "Peinture à l'eau"
    assert result.homework.instructions == "Au crayon"
    assert result.homework.due_date == NOW + timedelta(days=2)


def test_modification_par_un_autre_enseignant_refusee(db_session, school):
    created = create_homework(db_session, school.as_teacher, make_create())

    with pytest.raises(NotAuthorized):
        update_homework(db_session, school.as_hawks_teacher, created.homework_id, HomeworkUpdate(title="Piraté"))


# --- delete_homework ---

def test_suppression_admin_supprime_les_lignes_liees(db_session, school):
    created = create_homework(
        db_session, school.as_teacher, make_create(assignment_type="individual", child_ids=[school.x.id])
    )
    db_session.add(HomeworkSubmission(
        homework_id=created.homework_id, child_id=school.x.id, submission_type="text",
        comment="ok", status="submitted", submitted_at=NOW,
    ))
    db_session.commit()

    assert delete_homework(db_session, school.as_admin, created.homework_id) is True

    assert db_session.get(Homework, created.homework_id) is None
    assert db_session.execute(select(HomeworkSubmission)).scalar() is None
    assert db_session.execute(select(HomeworkIndividualAssignment)).scalar() is None


def test_suppression_inexistant(db_session, school):
    assert delete_homework(db_session, school.as_admin, 9999) is False


def test_suppression_par_un_enseignant_refusee(db_session, school):
    created = create_homework(db_session, school.as_teacher, make_create())

    with pytest.raises(NotAuthorized):
        delete_homework(db_session, school.as_teacher, created.homework_id)
