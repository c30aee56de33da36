"""
Modèle SQLAlchemy pour les classes.
Nommé school_class pour éviter le conflit avec le mot-clé Python 'class'.
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.database import Base


class SchoolClass(Base):
    """Classe canonique : children.class_id pointe ici, staff.class_name doit égaler name."""
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)  # Ex: "Panda", "Curious Cubs"
    created_at = Column(DateTime, server_default=func.now())
