from __future__ import annotations

from dataclasses import dataclass

STAFF_ROLES = frozenset({"admin", "teacher"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity extracted from a validated bearer token.

    ``user_id`` is the token subject.  For students it is the numeric
    user id that progress records are keyed by.  Roles mirror the admin
    panel's user types: admin, teacher, student.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)

    @property
    def student_id(self) -> int | None:
        """Numeric user id, or None when the subject is not numeric."""
        try:
            return int(self.user_id)
        except ValueError:
            return None
