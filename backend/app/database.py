"""
Accès à la base de données relationnelle (MySQL).

Le moteur SQLAlchemy (et son pool de connexions) n'est pas un singleton de module :
un objet Database est construit par la racine de composition (lifespan FastAPI),
stocké sur app.state et fermé à l'arrêt.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


class Database:
    """Moteur + fabrique de sessions pour une URL de base donnée."""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine = create_engine(url, pool_pre_ping=True, **engine_kwargs)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def create_tables(self) -> None:
        """Crée les tables manquantes à partir de Base.metadata."""
        import app.models  # noqa: F401 (enregistre les modèles)

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
