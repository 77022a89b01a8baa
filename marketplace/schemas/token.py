# marketplace/schemas/token.py
from pydantic import BaseModel, Field
from typing import List, Optional


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    roles: List[str] = Field(default_factory=list)
    email: Optional[str] = None
    exp: int  # Standard claim for expiration time

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    def has_role(self, role: str) -> bool:
        return role.lower() in {r.lower() for r in self.roles}
