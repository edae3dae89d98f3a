"""Application dependencies for dependency injection."""
from typing import Annotated, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_manifest.core.database import get_db
from cargo_manifest.core.security import decode_token
from cargo_manifest.repositories.sql import SqlUnitOfWork


# Identity is optional: anonymous requests are accepted, staff id stays None
security = HTTPBearer(auto_error=False)


async def get_staff_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Resolve the current operator's staff id from the bearer token, if any."""
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload.sub


async def get_uow(db: AsyncSession = Depends(get_db)) -> SqlUnitOfWork:
    return SqlUnitOfWork(db)


# Type aliases for cleaner dependency injection
StaffId = Annotated[Optional[str], Depends(get_staff_id)]
Uow = Annotated[SqlUnitOfWork, Depends(get_uow)]
