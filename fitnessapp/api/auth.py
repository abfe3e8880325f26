import logging
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from fitnessapp.core.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from fitnessapp.db.models import User
from fitnessapp.db.session import get_db

router = APIRouter(prefix="/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
logger = logging.getLogger("uvicorn.error")

ROLE_USER = "USER"
ROLE_COACH = "COACH"
ROLE_ADMIN = "ADMIN"

COACH_PENDING = "PENDING"
COACH_APPROVED = "APPROVED"
COACH_REJECTED = "REJECTED"


class RegisterRole(str, Enum):
    user = ROLE_USER
    coach = ROLE_COACH


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    role: RegisterRole = RegisterRole.user


class UserSummary(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    coach_status: Optional[str] = None


class RegisterResponse(BaseModel):
    user: UserSummary
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    message: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def _bad_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        coach_status=user.coach_status,
    )


def _issue_token(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        role=user.role,
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def _coach_block_message(coach_status: Optional[str]) -> Optional[str]:
    if coach_status == COACH_PENDING:
        return "Your coach application is still under review. Please wait for admin approval."
    if coach_status == COACH_REJECTED:
        return "Your coach application has been rejected. Please contact support for more information."
    return None


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> User:
    try:
        subject = decode_access_token(token)
        user_id = int(subject)
    except Exception:
        raise _bad_credentials()

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _bad_credentials()
    return user


def require_role(role: str) -> Callable[..., User]:
    """Dependency that admits only users with ``role``; coaches must also be approved."""

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise HTTPException(status_code=403, detail="Unauthorized")
        if role == ROLE_COACH and user.coach_status != COACH_APPROVED:
            raise HTTPException(status_code=403, detail="Coach account is not approved")
        return user

    return _checker


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> RegisterResponse:
    email = payload.email.lower()
    user = db.query(User).filter(User.email == email).first()
    if user and user.password_hash:
        raise HTTPException(status_code=409, detail="Email already registered")

    is_coach = payload.role == RegisterRole.coach
    if not user:
        user = User(email=email)
        db.add(user)
    user.name = payload.name
    user.password_hash = get_password_hash(payload.password)
    user.role = payload.role.value
    user.coach_status = COACH_PENDING if is_coach else None
    db.commit()
    db.refresh(user)
    logger.info("user_registered user_id=%s role=%s", user.id, user.role)

    if is_coach:
        return RegisterResponse(
            user=_summary(user),
            message="Coach application submitted. Please wait for admin approval.",
        )
    return RegisterResponse(user=_summary(user), access_token=_issue_token(user), token_type="bearer")


@router.post("/login", response_model=TokenResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> TokenResponse:
    user = db.query(User).filter(User.email == form_data.username.lower()).first()
    if not user or not user.password_hash or not verify_password(form_data.password, user.password_hash):
        raise _bad_credentials()

    if user.role == ROLE_COACH:
        blocked = _coach_block_message(user.coach_status)
        if blocked:
            raise HTTPException(status_code=403, detail=blocked)

    return TokenResponse(access_token=_issue_token(user))


@router.get("/me", response_model=UserSummary)
def me(user: User = Depends(get_current_user)) -> UserSummary:
    return _summary(user)
