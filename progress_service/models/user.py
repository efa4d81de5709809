from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ROLE_STUDENT = "student"
ROLE_INSTRUCTOR = "instructor"
ROLE_ADMIN = "admin"

# Roles allowed to grade labs and review certificates
REVIEWER_ROLES = frozenset({ROLE_INSTRUCTOR, ROLE_ADMIN})


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""
    roles: tuple[str, ...] = (ROLE_STUDENT,)
    is_active: bool = True

    def has_any_role(self, roles: frozenset[str] | set[str]) -> bool:
        return any(r in roles for r in self.roles)

    @property
    def is_reviewer(self) -> bool:
        return self.has_any_role(REVIEWER_ROLES)

    @staticmethod
    def new(
        *, email: str, name: str = "", roles: tuple[str, ...] = (ROLE_STUDENT,)
    ) -> User:
        return User(id=uuid4(), email=email.strip().lower(), name=name, roles=roles)
