# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Ordre : classes et utilisateurs avant children, children avant homework.

from app.models.school_class import SchoolClass  # noqa: F401
from app.models.user import Parent, Staff  # noqa: F401
from app.models.child import Child  # noqa: F401
from app.models.homework import (  # noqa: F401
    Homework,
    HomeworkCompletion,
    HomeworkIndividualAssignment,
    HomeworkSubmission,
)
from app.models.notification import Notification, NotificationOutboxEvent  # noqa: F401
