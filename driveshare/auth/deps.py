from typing import List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from driveshare.config import settings
from driveshare.exceptions import AccessDenied
from driveshare.schemas.identity import Identity
from driveshare.services import identity as identity_service


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.IDENTITY_TOKEN_URL)


async def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    try:
        return identity_service.decode_identity(token)
    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def role_required(allowed: List[str]):
    async def _dep(current: Identity = Depends(get_current_identity)) -> Identity:
        if current.role is None:
            raise AccessDenied("You must select a DriveShare role first")
        if current.role not in allowed:
            raise AccessDenied(f"This action requires {' or '.join(allowed)} access")
        return current

    return _dep
