"""
The authenticated actor as seen by the authorization layer.

Gates and ownership checks only ever receive a Principal, never the full
User row, so credential material cannot leak into authorization decisions.
"""

from dataclasses import dataclass

from models import Role, User


@dataclass(frozen=True)
class Principal:
    id: int
    role: Role
    active: bool

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, role=Role(user.role), active=bool(user.is_active))
