"""Users router: the caller's profile, notifications and bookmarks."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ceg_connect.api.deps import CurrentUser, get_current_user, get_db
from ceg_connect.api.schemas import BookmarkCreate, ProfileUpdate
from ceg_connect.api.serializers import (
    serialize_bookmark,
    serialize_notification,
    serialize_user,
)
from ceg_connect.database.repository import (
    BookmarkRepository,
    NotificationRepository,
    UserRepository,
)

router = APIRouter(prefix="/api/users", tags=["users"])


# ── Profile ──────────────────────────────────────────────


@router.get("/profile")
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    record = await UserRepository(db).get(user.uid)
    if record is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    return serialize_user(record)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Update the profile fields present in the request body."""
    fields = body.model_dump(exclude_unset=True)
    record = await UserRepository(db).update_profile(user.uid, fields)
    if record is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    return {"message": "Profile updated successfully"}


# ── Notifications ────────────────────────────────────────


@router.get("/notifications")
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    notifications = await NotificationRepository(db).list_for_user(user.uid, limit, offset)
    return [serialize_notification(n) for n in notifications]


@router.put("/notifications/read-all")
async def mark_all_notifications_read(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await NotificationRepository(db).mark_all_read(user.uid)
    return {"message": "All notifications marked as read"}


@router.put("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not await NotificationRepository(db).mark_read(user.uid, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}


# ── Bookmarks ────────────────────────────────────────────


@router.get("/bookmarks")
async def list_bookmarks(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    bookmarks = await BookmarkRepository(db).list_for_user(user.uid, limit, offset)
    return [serialize_bookmark(b) for b in bookmarks]


@router.post("/bookmarks")
async def add_bookmark(
    body: BookmarkCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    bookmark = await BookmarkRepository(db).create(
        user_id=user.uid,
        post_id=body.post_id,
        community_id=body.community_id,
        post_type=body.post_type,
    )
    return {"id": bookmark.id, "message": "Bookmark added successfully"}


@router.delete("/bookmarks/{bookmark_id}")
async def remove_bookmark(
    bookmark_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not await BookmarkRepository(db).delete(user.uid, bookmark_id):
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return {"message": "Bookmark removed successfully"}
