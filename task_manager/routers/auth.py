import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ..database import get_db
from ..errors import StoreError, TokenError
from ..models import User
from ..models.common import as_utc
from ..schemas.user import AuthResponse, ProfileResponse, UserCreate, UserLogin
from ..security import create_access_token, decode_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = "Invalid credentials"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _get_token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def _build_user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
    }


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the ``Authorization: Bearer`` header.

    A copy of the user without its password hash and the raw token are
    also attached to ``request.state``.
    """
    token = _get_token_from_request(request)
    if not token:
        raise _unauthorized("Access denied. No token provided")

    try:
        user_id = decode_access_token(token)
    except TokenError as exc:
        logger.debug("Rejected token (%s): %s", type(exc).__name__, exc)
        raise _unauthorized("Invalid token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    request.state.user = user.model_dump(exclude={"password"})
    request.state.token = token
    return user


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a new user account and return a token for it."""
    logger.info("Registration attempt: username=%s email=%s", payload.username, payload.email)

    existing = db.exec(
        select(User).where(or_(User.email == payload.email, User.username == payload.username))
    ).first()
    if existing:
        logger.info("Registration failed, user exists: username=%s", payload.username)
        raise HTTPException(status_code=400, detail="User already exists with this email or username")

    # password is hashed by the model's before-insert hook
    user = User(username=payload.username, email=payload.email, password=payload.password)
    token = create_access_token(user.id)

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User already exists with this email or username")
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError("Registration failed") from exc

    logger.info("User registered: id=%s username=%s", user.id, user.username)
    return {
        "message": "User registered successfully",
        "token": token,
        "user": _build_user_payload(user),
    }


@router.post("/login", response_model=AuthResponse)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    """Sign in with username or email.

    Unknown user, inactive account and wrong password all answer with the
    same message; the reason is only logged.
    """
    try:
        user = db.exec(
            select(User).where(or_(User.username == payload.username, User.email == payload.username.lower()))
        ).first()
    except SQLAlchemyError as exc:
        raise StoreError("Login failed") from exc

    if user is None:
        logger.info("Login failed, user not found: %s", payload.username)
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    if not user.is_active:
        logger.info("Login failed, account inactive: user_id=%s", user.id)
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    if not verify_password(payload.password, user.password):
        logger.info("Login failed, bad password: user_id=%s", user.id)
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    logger.info("Login successful: user_id=%s", user.id)
    return {
        "message": "Login successful",
        "token": create_access_token(user.id),
        "user": _build_user_payload(user),
    }


@router.get("/profile", response_model=ProfileResponse)
def profile(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return {"user": {**_build_user_payload(current_user), "createdAt": as_utc(current_user.created_at)}}
