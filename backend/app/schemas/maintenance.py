"""
Schémas Pydantic pour les opérations d'administration (réparation des données).
"""

from typing import List

from pydantic import BaseModel


class HomeworkClassRepairReport(BaseModel):
    success: bool = True
    repaired: List[int]     # IDs des devoirs dont class_id a été renseigné
    unresolved: List[int]   # IDs sans classe déductible


class ClassNameRepairReport(BaseModel):
    success: bool = True
    staff_updated: int
    children_updated: int
    unmatched_names: List[str]


class ChildClassUpdate(BaseModel):
    class_id: int


class ChildClassResponse(BaseModel):
    success: bool = True
    child_id: int
    class_id: int
    class_name: str
