"""Resources API routes (student-facing catalog)."""
import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Form, HTTPException, Query, UploadFile, File as FastAPIFile
from sqlalchemy import and_, delete as sql_delete, desc, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.config import settings
from resourcehub.database import get_db
from resourcehub.dependencies import get_current_user, get_optional_user, get_storage
from resourcehub.models.resource import RESOURCE_TYPES, Resource
from resourcehub.models.user import BRANCHES, User, resource_bookmarks, resource_likes
from resourcehub.schemas.resource import ResourceList, ResourcePage, ResourceResponse, ToggleResponse
from resourcehub.services.blob_store import BlobStoreError, StorageHandle, delete_blob, upload_blob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["resources"])


@router.get("", response_model=ResourcePage)
async def list_resources(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None),
    subject: Optional[str] = Query(None, description="Substring match on subject"),
    resource_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = Query(None, description="Search title, description and subject"),
    db: AsyncSession = Depends(get_db),
):
    """List approved resources with filters and pagination, newest first."""
    conditions = [Resource.status == "approved"]
    if branch:
        conditions.append(Resource.branch == branch)
    if semester:
        conditions.append(Resource.semester == semester)
    if subject:
        conditions.append(Resource.subject.ilike(f"%{subject}%"))
    if resource_type:
        conditions.append(Resource.resource_type == resource_type)
    if search:
        conditions.append(or_(
            Resource.title.ilike(f"%{search}%"),
            Resource.description.ilike(f"%{search}%"),
            Resource.subject.ilike(f"%{search}%"),
        ))

    total = (await db.execute(
        select(func.count()).select_from(Resource).where(and_(*conditions))
    )).scalar_one()

    result = await db.execute(
        select(Resource, User)
        .join(User, Resource.uploaded_by == User.id)
        .where(and_(*conditions))
        .order_by(desc(Resource.created_at))
        .offset((page - 1) * limit)
        .limit(limit)
    )
    resources = [_to_response(r, u) for r, u in result.all()]
    return {
        "count": len(resources),
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit),
        "resources": resources,
    }


@router.get("/user/bookmarks", response_model=ResourceList)
async def list_bookmarks(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's bookmarked resources that are still approved."""
    result = await db.execute(
        select(Resource, User)
        .join(resource_bookmarks, resource_bookmarks.c.resource_id == Resource.id)
        .join(User, Resource.uploaded_by == User.id)
        .where(resource_bookmarks.c.user_id == user.id, Resource.status == "approved")
        .order_by(desc(resource_bookmarks.c.created_at))
    )
    resources = [_to_response(r, u) for r, u in result.all()]
    return {"count": len(resources), "resources": resources}


@router.get("/user/my-uploads", response_model=ResourceList)
async def list_my_uploads(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Everything the caller uploaded, in any review state."""
    result = await db.execute(
        select(Resource)
        .where(Resource.uploaded_by == user.id)
        .order_by(desc(Resource.created_at))
    )
    resources = [_to_response(r, user) for r in result.scalars().all()]
    return {"count": len(resources), "resources": resources}


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(
    resource_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a resource. Unapproved ones are visible to their uploader and admins only."""
    result = await db.execute(
        select(Resource, User)
        .join(User, Resource.uploaded_by == User.id)
        .where(Resource.id == resource_id)
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=404, detail="Resource not found")
    resource, uploader = row
    if resource.status != "approved" and not (
        user and (user.id == resource.uploaded_by or user.role == "admin")
    ):
        raise HTTPException(status_code=403, detail="Access denied. Resource is not approved.")
    return _to_response(resource, uploader)


@router.post("/upload", response_model=ResourceResponse, status_code=201)
async def upload_resource(
    title: str = Form(...),
    description: str = Form(...),
    branch: str = Form(...),
    semester: int = Form(...),
    subject: str = Form(...),
    resource_type: str = Form(..., alias="type"),
    file: UploadFile = FastAPIFile(...),
    user: User = Depends(get_current_user),
    storage: StorageHandle = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Upload a PDF and create a resource awaiting admin approval."""
    title, description, subject = title.strip(), description.strip(), subject.strip()
    if not title or not description or not subject:
        raise HTTPException(status_code=400, detail="Please provide all required fields")
    if branch not in BRANCHES:
        raise HTTPException(status_code=400, detail=f"Invalid branch '{branch}'")
    if resource_type not in RESOURCE_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid resource type '{resource_type}'")
    if not 1 <= semester <= 8:
        raise HTTPException(status_code=400, detail="Semester must be between 1 and 8")

    try:
        metadata = await upload_blob(
            storage,
            file,
            file.filename,
            file.content_type,
            {"uploadedBy": str(user.id)},
        )
    finally:
        await file.close()

    resource = Resource(
        title=title,
        description=description,
        branch=branch,
        semester=semester,
        subject=subject,
        resource_type=resource_type,
        file_id=metadata.file_id,
        file_name=metadata.original_name,
        uploaded_by=user.id,
        status="pending",
    )
    try:
        db.add(resource)
        await db.commit()
        await db.refresh(resource)
    except Exception:
        # Don't leave an unreferenced blob behind
        await db.rollback()
        try:
            await delete_blob(storage, metadata.file_id)
        except BlobStoreError as e:
            logger.error("Could not remove file %s after failed resource insert: %s", metadata.file_id, e)
        raise

    logger.info(f"Resource {resource.id} created by {user.id} with file {metadata.file_id}")
    return _to_response(resource, user)


@router.post("/{resource_id}/like", response_model=ToggleResponse)
async def toggle_like(
    resource_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Like or unlike an approved resource."""
    resource = await _get_approved(db, resource_id, "like")
    existing = (await db.execute(
        select(resource_likes).where(
            resource_likes.c.user_id == user.id,
            resource_likes.c.resource_id == resource.id,
        )
    )).first()

    if existing:
        await db.execute(sql_delete(resource_likes).where(
            resource_likes.c.user_id == user.id,
            resource_likes.c.resource_id == resource.id,
        ))
        resource.likes_count = max(0, resource.likes_count - 1)
    else:
        await db.execute(insert(resource_likes).values(user_id=user.id, resource_id=resource.id))
        resource.likes_count += 1

    await db.commit()
    return {
        "message": "Resource unliked" if existing else "Resource liked",
        "liked": not existing,
        "likes_count": resource.likes_count,
    }


@router.post("/{resource_id}/bookmark", response_model=ToggleResponse)
async def toggle_bookmark(
    resource_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Bookmark or unbookmark an approved resource."""
    resource = await _get_approved(db, resource_id, "bookmark")
    existing = (await db.execute(
        select(resource_bookmarks).where(
            resource_bookmarks.c.user_id == user.id,
            resource_bookmarks.c.resource_id == resource.id,
        )
    )).first()

    if existing:
        await db.execute(sql_delete(resource_bookmarks).where(
            resource_bookmarks.c.user_id == user.id,
            resource_bookmarks.c.resource_id == resource.id,
        ))
    else:
        await db.execute(insert(resource_bookmarks).values(user_id=user.id, resource_id=resource.id))

    await db.commit()
    return {
        "message": "Bookmark removed" if existing else "Resource bookmarked",
        "bookmarked": not existing,
    }


async def _get_approved(db: AsyncSession, resource_id: UUID, action: str) -> Resource:
    resource = await db.get(Resource, resource_id)
    if not resource:
        raise HTTPException(status_code=404, detail="Resource not found")
    if resource.status != "approved":
        raise HTTPException(status_code=403, detail=f"Cannot {action} unapproved resources")
    return resource


def _to_response(resource: Resource, uploader: Optional[User] = None) -> dict:
    """Convert SQLAlchemy model to response dict."""
    return {
        "id": resource.id,
        "title": resource.title,
        "description": resource.description,
        "branch": resource.branch,
        "semester": resource.semester,
        "subject": resource.subject,
        "type": resource.resource_type,
        "file_id": resource.file_id,
        "file_url": resource.file_url,
        "file_name": resource.file_name,
        "uploaded_by": resource.uploaded_by,
        "uploader": {
            "id": uploader.id,
            "name": uploader.name,
            "branch": uploader.branch,
            "semester": uploader.semester,
        } if uploader else None,
        "status": resource.status,
        "rejection_reason": resource.rejection_reason or "",
        "likes_count": resource.likes_count,
        "created_at": resource.created_at,
        "updated_at": resource.updated_at,
    }
