from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=20, pattern=r"^[a-zA-Z0-9_]+$")
    name: Optional[str] = None


class UserOut(BaseModel):
    id: int
    username: str
    name: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
