from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security import create_access_token, hash_password, verify_password
from schoolstock.core.security_current import get_current_user
from schoolstock.db.base import generate_id
from schoolstock.models.user import User
from schoolstock.schemas.auth import LoginIn, RegisterIn, TokenOut, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


def _find_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def _authenticate(db: Session, email: str, password: str) -> User:
    user = _find_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is inactive")
    return user


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register a staff account",
    responses=error_responses(409, 422, 500),
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    if _find_user_by_email(db, payload.email):
        raise HTTPException(status_code=409, detail="User already exists with this email")

    user = User(
        id=generate_id(),
        email=payload.email.lower(),
        first_name=payload.first_name,
        last_name=payload.last_name,
        hashed_password=hash_password(payload.password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    return TokenOut(access_token=create_access_token(user.id))


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Log in with email and password",
    responses=error_responses(401, 422, 500),
)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = _authenticate(db, payload.email, payload.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password flow token endpoint",
    responses=error_responses(401, 422, 500),
)
def token(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = _authenticate(db, form.username, form.password)
    return TokenOut(access_token=create_access_token(user.id))


@router.get(
    "/me",
    response_model=UserOut,
    summary="Current user profile",
    responses=error_responses(401, 500),
)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
