from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import structlog

from config import Settings
from database import get_db
from errors import ConflictError, InvalidCredentialsError, UnauthenticatedError
from models import User
from schemas import UserPublic
from security import create_access_token, decode_access_token, hash_password, verify_password

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password("not-a-real-password", rounds)


def register_user(db: Session, settings: Settings, username: str, password: str) -> UserPublic:
    """Create a user. Raises ConflictError if the username is taken."""
    if db.query(User).filter(User.username == username).first() is not None:
        raise ConflictError()

    user = User(username=username, password_hash=hash_password(password, settings.bcrypt_rounds))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same name
        db.rollback()
        raise ConflictError()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, username=user.username)
    return UserPublic.model_validate(user)


def login(db: Session, settings: Settings, username: str, password: str) -> tuple[UserPublic, str]:
    """
    Check credentials and issue a session token.

    Unknown username and wrong password raise the same InvalidCredentialsError.
    A hash comparison runs in both cases so timing does not tell them apart.
    """
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        verify_password(password, _dummy_hash(settings.bcrypt_rounds))
        logger.info("login_failed", username=username)
        raise InvalidCredentialsError()
    if not verify_password(password, user.password_hash):
        logger.info("login_failed", username=username)
        raise InvalidCredentialsError()

    token = create_access_token(
        user.id,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(days=settings.token_ttl_days),
    )
    return UserPublic.model_validate(user), token


def resolve_session(db: Session, settings: Settings, token: Optional[str]) -> UserPublic:
    """Map a session token back to its user, or raise UnauthenticatedError."""
    if not token:
        raise UnauthenticatedError()
    user_id = decode_access_token(token, settings.jwt_secret, settings.jwt_algorithm)
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UnauthenticatedError()
    return UserPublic.model_validate(user)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> UserPublic:
    """Dependency resolving the session cookie to the authenticated user."""
    return resolve_session(db, settings, request.cookies.get(settings.cookie_name))
