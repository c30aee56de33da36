"""
Modèles SQLAlchemy pour les utilisateurs.
Les parents vivent dans users, les enseignants et administrateurs dans staff.
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.database import Base


class Parent(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    class_name = Column("className", String(100), nullable=True)  # Nom libre, résolu contre classes.name
    role = Column(String(20), nullable=False, default="teacher")  # teacher, admin
    created_at = Column(DateTime, server_default=func.now())
