from pydantic import BaseModel

from envwatch.models.user import AdminPublic


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AdminPublic


class MeResponse(BaseModel):
    success: bool = True
    user: AdminPublic
