from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from errors import UnauthenticatedError

# bcrypt only looks at the first 72 bytes; newer releases reject longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    raw = password.encode()
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(raw, password_hash.encode())


def create_access_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    ttl: timedelta = timedelta(days=7),
    now: Optional[datetime] = None,
) -> str:
    """Sign a token asserting `subject` until now + ttl."""
    issued_at = now or datetime.now(timezone.utc)
    claims = {
        "sub": subject,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> str:
    """
    Verify signature and expiry and return the token subject.

    Every failure (malformed, tampered, expired, no subject) raises the same
    UnauthenticatedError so callers cannot tell them apart.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        raise UnauthenticatedError()
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise UnauthenticatedError()
    return subject
