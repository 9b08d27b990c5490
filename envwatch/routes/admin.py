import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from envwatch.dependencies.auth import (
    TokenService,
    get_bearer_token,
    get_current_admin_user,
    get_token_service,
)
from envwatch.models.user import AdminPublic
from envwatch.schemas.user import LoginRequest, LoginResponse, MeResponse
from envwatch.stores.admins import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
):
    user = await store.authenticate(credentials.username, credentials.password)
    if not user:
        logger.warning("Failed admin login for %s", credentials.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    logger.info("Admin %s logged in", user.username)
    return LoginResponse(
        token=tokens.create_access_token(user),
        expires_in=tokens.expire_minutes * 60,
        user=AdminPublic(username=user.username, role=user.role),
    )


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: AdminPublic = Depends(get_current_admin_user)):
    return MeResponse(user=current_user)


@router.post("/logout")
async def logout(token: str = Depends(get_bearer_token), tokens: TokenService = Depends(get_token_service)):
    if not tokens.revoke(token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return {"success": True, "message": "Logged out"}
