from typing import Optional

from pydantic import BaseModel


class Identity(BaseModel):
    """Caller as asserted by the identity service's token."""

    id: int
    role: Optional[str] = None  # rider | driver, None until a role is chosen
    gender: Optional[str] = None
    username: Optional[str] = None
