"""Shared FastAPI dependencies: blob storage handle, caller identity, admin guard.

Identity is read from the X-User-Id header. Bearer-token issuance and
verification sit in front of this service and are not implemented here.
"""
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.database import get_db
from resourcehub.models.user import User
from resourcehub.services.blob_store.handle import StorageHandle


def get_storage(request: Request) -> StorageHandle:
    """The storage handle built in the app lifespan."""
    return request.app.state.storage


async def _load_user(raw_id: str, db: AsyncSession) -> User:
    try:
        user_id = uuid.UUID(raw_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    if user.account_status != "active":
        raise HTTPException(status_code=403, detail=f"Account is {user.account_status}")
    return user


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return await _load_user(x_user_id, db)


async def get_optional_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    if not x_user_id:
        return None
    return await _load_user(x_user_id, db)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
