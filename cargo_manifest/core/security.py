"""Staff identity from bearer JWTs."""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from pydantic import BaseModel
import uuid

from cargo_manifest.core.config import settings
from cargo_manifest.core.logging import get_logger


logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """JWT payload issued by the staff identity provider."""
    sub: str  # staff_id
    role: Optional[str] = None
    hub_id: Optional[str] = None
    exp: Optional[datetime] = None
    iat: Optional[datetime] = None

    class Config:
        extra = "allow"


def create_access_token(staff_id: str, hub_id: Optional[str] = None, expires_minutes: int = 60) -> str:
    """Create a staff access token (service clients and tests)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": staff_id,
        "hub_id": hub_id,
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[TokenPayload]:
    """Decode and validate a staff JWT. None when invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"Token decode error: {e}")
        return None
    return TokenPayload(**payload)
