"""Admin API - resource review queue and user management."""
import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.database import get_db
from resourcehub.dependencies import get_storage, require_admin
from resourcehub.models.resource import Resource
from resourcehub.models.user import User
from resourcehub.routes.resources import _to_response
from resourcehub.schemas.common import StatusCounts
from resourcehub.schemas.resource import ResourceList, ResourceReject, ResourceResponse
from resourcehub.schemas.user import AdminUserUpdate, UserResponse
from resourcehub.services.blob_store import StorageHandle
from resourcehub.services.catalog import delete_resources, forget_user_reactions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=StatusCounts)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """Dashboard counters."""
    async def count(model, *conditions) -> int:
        query = select(func.count()).select_from(model)
        if conditions:
            query = query.where(*conditions)
        return (await db.execute(query)).scalar_one()

    return {
        "total_users": await count(User, User.role == "student"),
        "total_uploads": await count(Resource),
        "pending_approvals": await count(Resource, Resource.status == "pending"),
        "approved_resources": await count(Resource, Resource.status == "approved"),
        "rejected_resources": await count(Resource, Resource.status == "rejected"),
    }


@router.get("/resources/{status}", response_model=ResourceList)
async def list_resources_by_status(
    status: Literal["pending", "approved", "rejected"],
    db: AsyncSession = Depends(get_db),
):
    """Resources in one review state, newest first."""
    result = await db.execute(
        select(Resource, User)
        .join(User, Resource.uploaded_by == User.id)
        .where(Resource.status == status)
        .order_by(desc(Resource.created_at))
    )
    resources = [_to_response(r, u) for r, u in result.all()]
    return {"count": len(resources), "resources": resources}


@router.put("/resources/{resource_id}/approve", response_model=ResourceResponse)
async def approve_resource(resource_id: UUID, db: AsyncSession = Depends(get_db)):
    """Approve a resource so it shows up in the public catalog."""
    resource = await _get_resource(db, resource_id)
    resource.status = "approved"
    resource.rejection_reason = ""
    await db.commit()
    await db.refresh(resource)
    logger.info(f"Resource {resource_id} approved")
    return _to_response(resource)


@router.put("/resources/{resource_id}/reject", response_model=ResourceResponse)
async def reject_resource(
    resource_id: UUID,
    body: ResourceReject,
    db: AsyncSession = Depends(get_db),
):
    """Reject a resource. A reason is required."""
    reason = (body.reason or "").strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Please provide a rejection reason")
    resource = await _get_resource(db, resource_id)
    resource.status = "rejected"
    resource.rejection_reason = reason
    await db.commit()
    await db.refresh(resource)
    logger.info(f"Resource {resource_id} rejected: {reason}")
    return _to_response(resource)


@router.delete("/resources/{resource_id}")
async def delete_resource(
    resource_id: UUID,
    storage: StorageHandle = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Delete a resource and its file."""
    resource = await _get_resource(db, resource_id)
    failures = await delete_resources(db, storage, [resource])
    return {"deleted": True, "id": str(resource_id), "fileDeleted": failures == 0}


@router.get("/users", response_model=list[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    """All student accounts, newest first."""
    result = await db.execute(
        select(User).where(User.role == "student").order_by(desc(User.created_at))
    )
    return result.scalars().all()


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get a user by ID."""
    return await _get_user(db, user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
async def edit_user(user_id: UUID, body: AdminUserUpdate, db: AsyncSession = Depends(get_db)):
    """Edit a student's name, email, branch or semester."""
    user = await _get_user(db, user_id)
    if user.role == "admin":
        raise HTTPException(status_code=403, detail="Cannot edit admin users")
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Please provide at least one field to update")
    if changes.get("email", user.email) != user.email:
        taken = await db.execute(select(User.id).where(User.email == changes["email"]))
        if taken.first():
            raise HTTPException(status_code=409, detail="Email is already registered")

    for key, value in changes.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Admin updated user {user_id}: {', '.join(sorted(changes))}")
    return user


@router.put("/users/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(user_id: UUID, db: AsyncSession = Depends(get_db)):
    """Suspend an active student, or reactivate a suspended/deactivated one."""
    user = await _get_user(db, user_id)
    if user.role == "admin":
        raise HTTPException(status_code=403, detail="Cannot change the status of admin users")
    user.account_status = "suspended" if user.account_status == "active" else "active"
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user_id} is now {user.account_status}")
    return user


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: UUID,
    storage: StorageHandle = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Delete a student together with their resources, files, likes and bookmarks."""
    user = await _get_user(db, user_id)
    if user.role == "admin":
        raise HTTPException(status_code=403, detail="Cannot delete admin users")

    result = await db.execute(select(Resource).where(Resource.uploaded_by == user.id))
    resources = result.scalars().all()
    await forget_user_reactions(db, user.id)
    failures = await delete_resources(db, storage, resources)

    await db.delete(user)
    await db.commit()
    logger.info(f"Deleted user {user_id} and {len(resources)} resource(s)")
    return {
        "deleted": True,
        "id": str(user_id),
        "resourcesDeleted": len(resources),
        "fileFailures": failures,
    }


async def _get_resource(db: AsyncSession, resource_id: UUID) -> Resource:
    resource = await db.get(Resource, resource_id)
    if not resource:
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
