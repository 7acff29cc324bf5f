"""Authenticated actor, supplied by the upstream auth layer."""
import enum
from pydantic import BaseModel


class Role(str, enum.Enum):
    student = "student"
    faculty = "faculty"
    gate = "gate"
    guardian = "guardian"


class Actor(BaseModel):
    id: str
    display_name: str
    role: Role

    @classmethod
    def guardian(cls, selected_guardian: dict) -> "Actor":
        """Pseudo-actor for ledger entries written through a guardian link."""
        name = selected_guardian.get("name", "guardian")
        return cls(id=f"guardian:{name}", display_name=name, role=Role.guardian)
