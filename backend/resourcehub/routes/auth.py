"""Account API routes."""
import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.database import get_db
from resourcehub.dependencies import get_current_user
from resourcehub.models.user import User
from resourcehub.schemas.user import ProfileUpdate, PublicProfile, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=UserResponse, status_code=201)
async def signup(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a student account."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email is already registered")

    user = User(**body.model_dump(), role="student", account_status="active")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"New user {user.id} ({user.branch}, semester {user.semester})")
    return user


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The calling user's profile. Marks the user as active now."""
    user.last_active = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)
    return user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the caller's name, branch or semester."""
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Please provide at least one field to update")
    for key, value in changes.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} updated {', '.join(sorted(changes))}")
    return user


@router.get("/user/{user_id}", response_model=PublicProfile)
async def get_public_profile(user_id: UUID, db: AsyncSession = Depends(get_db)):
    """Public view of a user: no email or account status."""
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
