"""Groups router: chat groups, membership and messages."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ceg_connect.api.deps import CurrentUser, get_current_user, get_db
from ceg_connect.api.schemas import GroupCreate, MessageCreate
from ceg_connect.api.serializers import serialize_group, serialize_message
from ceg_connect.database.repository import GroupRepository, MessageRepository
from ceg_connect.models.group import Group

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/groups", tags=["groups"])


async def _member_group(repo: GroupRepository, group_id: str, uid: str) -> Group:
    """Load the group, requiring *uid* to be a member."""
    group = await repo.get(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    if uid not in (group.members or []):
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return group


@router.get("")
async def list_groups(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    groups = await GroupRepository(db).list_page(limit, offset)
    return [serialize_group(g) for g in groups]


@router.get("/{group_id}")
async def get_group(
    group_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    group = await GroupRepository(db).get(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return serialize_group(group)


@router.post("")
async def create_group(
    body: GroupCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not body.name or not body.description:
        raise HTTPException(status_code=400, detail="Name and description are required")

    group = await GroupRepository(db).create(
        name=body.name,
        description=body.description,
        is_private=body.is_private,
        admin_id=user.uid,
    )
    logger.info("User %s created group %s", user.uid, group.id)
    return {"id": group.id, "message": "Group created successfully"}


@router.post("/{group_id}/join")
async def join_group(
    group_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = GroupRepository(db)
    group = await repo.get(group_id, for_update=True)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    if user.uid in (group.members or []):
        raise HTTPException(status_code=400, detail="Already a member of this group")

    await repo.add_member(group, user.uid)
    return {"message": "Successfully joined group"}


@router.post("/{group_id}/leave")
async def leave_group(
    group_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = GroupRepository(db)
    group = await repo.get(group_id, for_update=True)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    if user.uid not in (group.members or []):
        raise HTTPException(status_code=400, detail="Not a member of this group")
    if group.admin_id == user.uid:
        raise HTTPException(status_code=400, detail="Admin cannot leave the group")

    await repo.remove_member(group, user.uid)
    return {"message": "Successfully left group"}


# ── Messages ─────────────────────────────────────────────


@router.get("/{group_id}/messages")
async def list_messages(
    group_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    await _member_group(GroupRepository(db), group_id, user.uid)
    messages = await MessageRepository(db).list_for_group(group_id, limit, offset)
    return [serialize_message(m) for m in messages]


@router.post("/{group_id}/messages")
async def send_message(
    group_id: str,
    body: MessageCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not body.text and not body.file_url:
        raise HTTPException(status_code=400, detail="Message content is required")

    groups = GroupRepository(db)
    group = await _member_group(groups, group_id, user.uid)

    message = await MessageRepository(db).create(
        group_id=group_id,
        text=body.text or f"Shared a file: {body.file_name}",
        author_id=user.uid,
        type=body.type,
        file_url=body.file_url,
        file_name=body.file_name,
    )
    await groups.set_last_message(group, message)
    return {"id": message.id, "message": "Message sent successfully"}
