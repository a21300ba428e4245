from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_current_user, get_session_context, SessionContext
from case_engine.core.security import hash_password, verify_password, create_access_token
from case_engine.models.models import User
from case_engine.schemas.schemas import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    UserResponse,
    SessionResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == body.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered.")
    user = User(
        email=body.email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
        roles=[r.value for r in body.roles],
        hospital_id=body.hospital_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    if body.role.value not in (user.roles or []):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role is not assigned to this user.",
        )
    token = create_access_token({"sub": str(user.id), "role": body.role.value})
    return TokenResponse(access_token=token, active_role=body.role)


@router.get("/me", response_model=SessionResponse)
def me(
    current: tuple[User, dict] = Depends(get_current_user),
    ctx: SessionContext = Depends(get_session_context),
):
    user, _ = current
    return SessionResponse(user=UserResponse.model_validate(user), active_role=ctx.active_role)
