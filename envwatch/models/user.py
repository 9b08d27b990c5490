from datetime import datetime, timezone

from pydantic import BaseModel, Field


class AdminUser(BaseModel):
    username: str
    hashed_password: str
    role: str = "admin"
    disabled: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdminPublic(BaseModel):
    username: str
    role: str
