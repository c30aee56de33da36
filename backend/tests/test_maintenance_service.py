"""
Tests des procédures de réparation (class_id des devoirs, noms de classe)
et de la réaffectation d'un enfant.
"""

from datetime import timedelta

import pytest

from app.errors import NotFound
from app.models.child import Child
from app.models.homework import Homework, HomeworkIndividualAssignment
from app.models.school_class import SchoolClass
from app.services.maintenance_service import repair_class_names, repair_homework_class_ids
from app.services.roster_service import reassign_child_class
from app.services.visibility_service import visible_homework_for_child

from conftest import NOW


def orphan_homework(db, teacher, assignment_type="class", child=None):
    homework = Homework(
        title="Orphelin",
        due_date=NOW + timedelta(days=1),
        teacher_id=teacher.id,
        class_id=None,
        assignment_type=assignment_type,
    )
    db.add(homework)
    db.flush()
    if child is not None:
        db.add(HomeworkIndividualAssignment(homework_id=homework.id, child_id=child.id))
    db.commit()
    return homework


# --- repair_homework_class_ids ---

def test_reparation_par_la_classe_de_l_enseignant(db_session, school):
    homework = orphan_homework(db_session, school.teacher)

    report = repair_homework_class_ids(db_session)

    assert report.repaired == [homework.id]
    assert homework.class_id == school.panda.id
    assert homework.id in [h.id for h in visible_homework_for_child(db_session, school.x, NOW)]


def test_reparation_par_l_enfant_assigne(db_session, school):
    """L'enfant assigné fait foi, même si l'enseignant a une autre classe."""
    homework = orphan_homework(db_session, school.teacher, "individual", child=school.y)

    repair_homework_class_ids(db_session)

    assert homework.class_id == school.hawks.id


def test_reparation_suffixe_class_tolere(db_session, school):
    school.teacher.class_name = "panda Class"
    db_session.commit()
    homework = orphan_homework(db_session, school.teacher)

    repair_homework_class_ids(db_session)

    assert homework.class_id == school.panda.id


def test_reparation_impossible(db_session, school):
    homework = orphan_homework(db_session, school.admin)

    report = repair_homework_class_ids(db_session)

    assert report.unresolved == [homework.id]
    assert homework.class_id is None


def test_reparation_idempotente(db_session, school):
    orphan_homework(db_session, school.teacher)
    repair_homework_class_ids(db_session)

    report = repair_homework_class_ids(db_session)

    assert report.repaired == []
    assert report.unresolved == []


# --- repair_class_names ---

def test_alignement_des_noms(db_session, school):
    school.teacher.class_name = "Panda Class"
    school.hawks_teacher.class_name = " hawks "
    school.z.class_name = "panda"
    drifted = Child(first_name="Nina", last_name="Test", parent_id=school.p2.id, class_id=None, class_name="HAWKS CLASS")
    lost = Child(first_name="Léo", last_name="Test", parent_id=school.p2.id, class_id=None, class_name="Licornes")
    db_session.add_all([drifted, lost])
    db_session.commit()

    report = repair_class_names(db_session)

    assert report.staff_updated == 2
    assert report.children_updated == 2
    assert report.unmatched_names == ["Licornes"]
    assert school.teacher.class_name == "Panda"
    assert school.hawks_teacher.class_name == "Hawks"
    assert school.z.class_name == "Panda"
    assert (drifted.class_id, drifted.class_name) == (school.hawks.id, "Hawks")
    assert lost.class_id is None


def test_alignement_idempotent(db_session, school):
    school.teacher.class_name = "PANDA"
    db_session.commit()
    repair_class_names(db_session)

    report = repair_class_names(db_session)

    assert report.staff_updated == 0
    assert report.children_updated == 0


def test_alignement_noms_ambigus_non_rapproches(db_session, school):
    """« Panda » et « Panda Class » coexistent : seul le nom exact est reconnu."""
    duplicate = SchoolClass(name="Panda Class")
    db_session.add(duplicate)
    school.hawks_teacher.class_name = "PANDA"
    school.z.class_name = "panda"
    drifted = Child(first_name="Nina", last_name="Test", parent_id=school.p2.id, class_id=None, class_name="panda class")
    db_session.add(drifted)
    db_session.commit()

    report = repair_class_names(db_session)

    assert report.unmatched_names == ["PANDA", "panda class"]
    assert school.hawks_teacher.class_name == "PANDA"
    assert school.teacher.class_name == "Panda"
    assert drifted.class_id is None
    assert (school.z.class_id, school.z.class_name) == (school.panda.id, "Panda")


# --- reassign_child_class ---

def test_reaffectation_garde_nom_et_id_synchronises(db_session, school):
    result = reassign_child_class(db_session, school.x.id, school.hawks.id)

    child = db_session.get(Child, school.x.id)
    assert result.class_name == "Hawks"
    assert (child.class_id, child.class_name) == (school.hawks.id, "Hawks")


def test_reaffectation_classe_inconnue(db_session, school):
    with pytest.raises(NotFound):
        reassign_child_class(db_session, school.x.id, 9999)


def test_reaffectation_enfant_inconnu(db_session, school):
    with pytest.raises(NotFound):
        reassign_child_class(db_session, 9999, school.panda.id)
