"""
Modèles SQLAlchemy pour les devoirs, leurs assignations individuelles,
les rendus et les réponses interactives.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from app.database import Base


class Homework(Base):
    __tablename__ = "homework"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=False)
    teacher_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=True, index=True)  # NULL = état à réparer
    assignment_type = Column(String(20), nullable=False, default="class")     # class, individual
    content_type = Column(String(20), nullable=False, default="traditional")  # traditional, interactive, project
    status = Column(String(20), nullable=False, default="active")             # active, completed, archived
    file_url = Column(String(500), nullable=True)   # Pièce jointe de l'enseignant
    points = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class HomeworkIndividualAssignment(Base):
    """Devoir ciblé sur un enfant précis (assignment_type = individual)."""
    __tablename__ = "homework_individual_assignments"
    __table_args__ = (
        UniqueConstraint("homework_id", "child_id", name="unique_assignment"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    homework_id = Column(Integer, ForeignKey("homework.id", ondelete="CASCADE"), nullable=False, index=True)
    child_id = Column(Integer, ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="assigned")  # assigned, submitted, graded
    assigned_at = Column(DateTime, server_default=func.now())


class HomeworkSubmission(Base):
    """Rendu d'un devoir : au plus une ligne par (homework_id, child_id)."""
    __tablename__ = "homework_submissions"
    __table_args__ = (
        UniqueConstraint("homework_id", "child_id", name="uq_submission_homework_child"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    homework_id = Column(Integer, ForeignKey("homework.id", ondelete="CASCADE"), nullable=False)
    child_id = Column(Integer, ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    submission_type = Column(String(20), nullable=False, default="file")  # file, text, interactive
    file_url = Column(String(500), nullable=True)
    comment = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="submitted")  # submitted, graded
    score = Column(Numeric(5, 2), nullable=True)
    grade = Column(String(20), nullable=True)
    feedback = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=False)
    graded_at = Column(DateTime, nullable=True)


class HomeworkCompletion(Base):
    """Réponses libres ou interactives associées au rendu (upsert par paire)."""
    __tablename__ = "homework_completions"
    __table_args__ = (
        UniqueConstraint("homework_id", "child_id", name="uq_completion_homework_child"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    homework_id = Column(Integer, ForeignKey("homework.id", ondelete="CASCADE"), nullable=False)
    child_id = Column(Integer, ForeignKey("children.id", ondelete="CASCADE"), nullable=False)
    answers = Column(JSON, nullable=True)
    completion_answer = Column(Text, nullable=True)
    score = Column(Numeric(5, 2), nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)
    completed_at = Column(DateTime, nullable=False)
