from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from driveshare.config import settings
from driveshare.schemas.identity import Identity


def _now() -> datetime:
    return datetime.utcnow()


def create_access_token(identity: Identity, expires_minutes: int = 15) -> str:
    """Issue a token carrying the claims the identity service puts in its own."""
    expire = _now() + timedelta(minutes=expires_minutes)
    payload = {
        "sub": str(identity.id),
        "type": "access",
        "role": identity.role,
        "gender": identity.gender,
        "username": identity.username,
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_identity(token: str) -> Identity:
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    sub: Optional[str] = payload.get("sub")
    if sub is None:
        raise JWTError("Token has no subject")
    return Identity(
        id=int(sub),
        role=payload.get("role"),
        gender=payload.get("gender"),
        username=payload.get("username"),
    )
