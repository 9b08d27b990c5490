import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from cachetools import TTLCache
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from envwatch.models.user import AdminPublic, AdminUser

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class TokenService:
    """Signed, expiring admin tokens. Logged-out tokens are kept in a TTL
    cache until they would have expired anyway."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.revoked = TTLCache(maxsize=10000, ttl=expire_minutes * 60)

    def create_access_token(self, user: AdminUser) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.username,
            "role": user.role,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[dict]:
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected admin token: %s", e)
            return None
        if claims.get("jti") in self.revoked:
            logger.info("Rejected revoked token for %s", claims.get("sub"))
            return None
        return claims

    def revoke(self, token: str) -> bool:
        claims = self.decode(token)
        if not claims:
            return False
        self.revoked[claims["jti"]] = claims["sub"]
        return True


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token missing",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_admin_user(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
) -> AdminPublic:
    claims = tokens.decode(token)
    if not claims or claims.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AdminPublic(username=claims["sub"], role=claims["role"])


async def require_admin_if_enabled(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)):
    """Guards the triage endpoints only when ADMIN_AUTH_REQUIRED is on."""
    if not request.app.state.settings.admin_auth_required:
        return None
    token = await get_bearer_token(credentials)
    return await get_current_admin_user(token, get_token_service(request))
