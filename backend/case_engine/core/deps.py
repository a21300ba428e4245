from dataclasses import dataclass, field
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.security import decode_access_token
from case_engine.models.enums import UserRole
from case_engine.models.models import User

security_scheme = HTTPBearer()

MONITORING_EDITOR_ROLES = {UserRole.BENI_VOLUNTEER, UserRole.ADMIN}
HOSPITAL_SCOPED_ROLES = {UserRole.HOSPITAL_SPOC, UserRole.HOSPITAL_DOCTOR}


@dataclass(frozen=True)
class SessionContext:
    """The acting user and the role they are acting in for this request."""

    user_id: UUID
    active_role: UserRole
    roles: frozenset[UserRole] = field(default_factory=frozenset)
    hospital_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.active_role == UserRole.ADMIN

    @property
    def can_edit_monitoring(self) -> bool:
        return self.active_role in MONITORING_EDITOR_ROLES

    @property
    def is_hospital_scoped(self) -> bool:
        return self.active_role in HOSPITAL_SCOPED_ROLES


def build_session_context(user: User, active_role: UserRole) -> SessionContext:
    return SessionContext(
        user_id=user.id,
        active_role=active_role,
        roles=frozenset(UserRole(r) for r in user.roles or []),
        hospital_id=user.hospital_id,
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> tuple[User, dict]:
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )
    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject.",
        )
    user = db.query(User).filter(User.id == UUID(user_id)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found.",
        )
    return user, payload


def get_session_context(
    current: tuple[User, dict] = Depends(get_current_user),
) -> SessionContext:
    user, payload = current
    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing active role.",
        )
    if role.value not in (user.roles or []):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Active role is not assigned to this user.",
        )
    return build_session_context(user, role)
