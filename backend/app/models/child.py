"""
Modèle SQLAlchemy pour la table children.
class_id est la clé d'appartenance ; class_name est l'ancienne colonne texte,
maintenue synchronisée par roster_service.reassign_child_class.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from app.database import Base


class Child(Base):
    __tablename__ = "children"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    parent_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    class_name = Column("className", String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
