from pydantic import BaseModel
from typing import Optional

class TokenData(BaseModel):
    """Caller identity extracted from the bearer token"""
    tenant_id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
