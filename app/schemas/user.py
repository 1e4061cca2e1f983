from pydantic import BaseModel, ConfigDict
from typing import Any

from app.core.constants import RoleEnum

class UserContext(BaseModel):
    """Authenticated caller resolved from the bearer token."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: Any
    role: RoleEnum
