import hmac
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt

from . import config
from .time_utils import utcnow

logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass(frozen=True)
class StaffContext:
    """Authenticated staff member and the tenant they act for"""

    user_id: str
    tenant_id: str


def create_staff_token(
    user_id: str, tenant_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=config.STAFF_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "tenant_id": tenant_id, "role": "staff", "exp": expire}
    return jose_jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


async def get_current_staff(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> StaffContext:
    try:
        payload = jose_jwt.decode(
            credentials.credentials, config.SECRET_KEY, algorithms=[config.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"🚫 Staff token rejected: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    tenant_id = payload.get("tenant_id")
    user_id = payload.get("sub")
    if payload.get("role") != "staff" or not tenant_id or not user_id:
        logger.warning("🚫 Staff token missing required claims")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return StaffContext(user_id=str(user_id), tenant_id=str(tenant_id))


async def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured - refusing scheduled job trigger")
        raise HTTPException(status_code=503, detail="Scheduled jobs are not configured")
    if not hmac.compare_digest(credentials.credentials, config.CRON_SECRET):
        raise HTTPException(status_code=401, detail="Unauthorized")
