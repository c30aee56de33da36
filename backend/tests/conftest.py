"""
Configuration partagée pour tous les tests.

- client : TestClient avec get_db mocké (aucune connexion réelle à MySQL)
  et un utilisateur authentifié injecté via login().
- db_session : vraie base SQLite (fichier temporaire) pour les tests de services.
- school : jeu de données de référence (classes Panda et Hawks, parents, enfants, enseignants).
"""

import os
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

# Avant l'import de app : pas de scheduler ni de MySQL pendant les tests
os.environ["OUTBOX_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///./test-lifespan.db"

import pytest
from fastapi.testclient import TestClient

from app.database import Database, get_db
from app.main import app
from app.models.child import Child
from app.models.school_class import SchoolClass
from app.models.user import Parent, Staff
from app.security import ROLE_ADMIN, ROLE_PARENT, ROLE_TEACHER, CurrentUser, get_current_user

NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """login(role, user_id) : authentifie les requêtes suivantes du client."""

    def _login(role: str = ROLE_PARENT, user_id: int = 1) -> CurrentUser:
        user = CurrentUser(id=user_id, role=role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


@pytest.fixture
def db_session(tmp_path):
    """Session sur une base SQLite neuve, tables créées depuis les modèles."""
    database = Database(f"sqlite:///{tmp_path / 'homework.db'}")
    database.create_tables()
    session = database.session()
    try:
        yield session
    finally:
        session.close()
        database.dispose()


@pytest.fixture
def school(db_session):
    """
    Panda : x (parent p1), x2 (p1, deuxième enfant), z (p2), w (p3)
    Hawks : y (p4)
    Sans classe : orphan (p3)
    Enseignants : teacher (Panda), hawks_teacher (Hawks) ; admin sans classe.
    """
    panda = SchoolClass(name="Panda")
    hawks = SchoolClass(name="Hawks")
    parents = [Parent(name=f"Parent {i}", email=f"parent{i}@example.com") for i in range(1, 5)]
    db_session.add_all([panda, hawks, *parents])
    db_session.flush()
    p1, p2, p3, p4 = parents

    def child(first_name, parent, school_class):
        return Child(
            first_name=first_name,
            last_name="Test",
            parent_id=parent.id,
            class_id=school_class.id if school_class else None,
            class_name=school_class.name if school_class else None,
        )

    x = child("Xavier", p1, panda)
    x2 = child("Xena", p1, panda)
    z = child("Zoe", p2, panda)
    w = child("Walid", p3, panda)
    y = child("Yanis", p4, hawks)
    orphan = child("Omar", p3, None)

    teacher = Staff(name="Mme Tulipe", email="t@example.com", class_name="Panda", role="teacher")
    hawks_teacher = Staff(name="M. Hibou", email="h@example.com", class_name="Hawks", role="teacher")
    admin = Staff(name="Admin", email="admin@example.com", class_name=None, role="admin")
    db_session.add_all([x, x2, z, w, y, orphan, teacher, hawks_teacher, admin])
    db_session.commit()

    return SimpleNamespace(
        panda=panda, hawks=hawks,
        p1=p1, p2=p2, p3=p3, p4=p4,
        x=x, x2=x2, z=z, w=w, y=y, orphan=orphan,
        teacher=teacher, hawks_teacher=hawks_teacher, admin=admin,
        as_parent=lambda parent: CurrentUser(id=parent.id, role=ROLE_PARENT),
        as_teacher=CurrentUser(id=teacher.id, role=ROLE_TEACHER),
        as_hawks_teacher=CurrentUser(id=hawks_teacher.id, role=ROLE_TEACHER),
        as_admin=CurrentUser(id=admin.id, role=ROLE_ADMIN),
    )
