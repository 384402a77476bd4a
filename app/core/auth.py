import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from app.schemas.auth import TokenData
from app.core.config import settings
from app.utils.utils import utcnow

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(tenant_id: str, user_id: Optional[str] = None, email: Optional[str] = None,
                        expires_in: timedelta = timedelta(hours=1)) -> str:
    """Issue a signed token for a tenant (used by internal callers and tests)"""
    claims = {
        "tenant_id": tenant_id,
        "sub": user_id or tenant_id,
        "exp": utcnow() + expires_in,
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> TokenData:
    """Verify JWT token and return the caller's tenant"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise credentials_exception

    tenant_id = payload.get("tenant_id")
    if not tenant_id:
        logger.warning("JWT has no tenant_id claim")
        raise credentials_exception

    return TokenData(
        tenant_id=str(tenant_id),
        user_id=payload.get("sub"),
        email=payload.get("email")
    )


async def get_current_user(token_data: TokenData = Depends(verify_token)) -> TokenData:
    """Get current authenticated caller"""
    return token_data
