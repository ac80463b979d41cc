# learnhub/auth/identity.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jose import jwt, JWTError

from learnhub.assessments.errors import Unauthorized


class Role(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class DashboardView(str, Enum):
    STUDENT = "student_dashboard"
    INSTRUCTOR = "instructor_dashboard"
    ADMIN = "admin_console"


_VIEWS = {
    Role.STUDENT: DashboardView.STUDENT,
    Role.INSTRUCTOR: DashboardView.INSTRUCTOR,
    Role.ADMIN: DashboardView.ADMIN,
}


def dashboard_view_for(role: Role) -> DashboardView:
    """Pick the dashboard a role lands on"""
    return _VIEWS[role]


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role = Role.STUDENT

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.INSTRUCTOR, Role.ADMIN)


class IdentityProvider:
    """
    Verifies bearer tokens issued by the auth provider.

    Tokens are HS256 JWTs signed with the shared secret. The subject claim
    is the user id and the optional `role` claim one of the Role values.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def _decode_jwt_token(self, token: str) -> dict:
        if not self.secret_key:
            raise Unauthorized("Token verification is not configured")
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise Unauthorized("Invalid or Expired Token")

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise Unauthorized("Unauthorized")

        payload = self._decode_jwt_token(token)

        user_id = payload.get("sub")
        if not user_id:
            raise Unauthorized("Invalid token: missing user_id")

        try:
            role = Role(str(payload.get("role", Role.STUDENT.value)).lower())
        except ValueError:
            raise Unauthorized("Invalid token: unknown role")

        return Identity(user_id=str(user_id), role=role)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None
