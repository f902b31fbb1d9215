"""Communities router: communities, their posts, follows and likes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ceg_connect.api.deps import CurrentUser, get_current_user, get_db
from ceg_connect.api.schemas import CommunityCreate, PostCreate
from ceg_connect.api.serializers import serialize_community, serialize_post
from ceg_connect.database.repository import CommunityRepository, PostRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/communities", tags=["communities"])


@router.get("")
async def list_communities(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    category: str | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    communities = await CommunityRepository(db).list_page(limit, offset, category)
    return [serialize_community(c, user.uid) for c in communities]


@router.get("/{community_id}")
async def get_community(
    community_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    community = await CommunityRepository(db).get(community_id)
    if community is None:
        raise HTTPException(status_code=404, detail="Community not found")
    return serialize_community(community, user.uid)


@router.post("")
async def create_community(
    body: CommunityCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not body.name or not body.description or not body.category:
        raise HTTPException(
            status_code=400, detail="Name, description, and category are required"
        )

    community = await CommunityRepository(db).create(
        name=body.name,
        description=body.description,
        category=body.category,
        admin_id=user.uid,
        admin_name=user.display_name,
    )
    logger.info("User %s created community %s", user.uid, community.id)
    return {"id": community.id, "message": "Community created successfully"}


@router.post("/{community_id}/follow")
async def toggle_follow(
    community_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = CommunityRepository(db)
    community = await repo.get(community_id, for_update=True)
    if community is None:
        raise HTTPException(status_code=404, detail="Community not found")

    following = await repo.toggle_follower(community, user.uid)
    if following:
        return {"message": "Following community", "isFollowing": True}
    return {"message": "Unfollowed community", "isFollowing": False}


# ── Posts ────────────────────────────────────────────────


@router.get("/{community_id}/posts")
async def list_posts(
    community_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    posts = await PostRepository(db).list_for_community(community_id, limit, offset)
    return [serialize_post(p, user.uid) for p in posts]


@router.post("/{community_id}/posts")
async def create_post(
    community_id: str,
    body: PostCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not body.text and not body.images:
        raise HTTPException(status_code=400, detail="Post content is required")

    communities = CommunityRepository(db)
    community = await communities.get(community_id)
    if community is None:
        raise HTTPException(status_code=404, detail="Community not found")
    if user.uid not in (community.followers or []):
        raise HTTPException(status_code=403, detail="Must follow community to post")

    post = await PostRepository(db).create(
        community_id=community_id,
        text=body.text,
        images=body.images,
        author_id=user.uid,
        author_name=user.display_name,
    )
    await communities.increment_post_count(community_id)
    return {"id": post.id, "message": "Post created successfully"}


@router.post("/{community_id}/posts/{post_id}/like")
async def toggle_like(
    community_id: str,
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = PostRepository(db)
    post = await repo.get(community_id, post_id, for_update=True)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")

    liked = await repo.toggle_like(post, user.uid)
    if liked:
        return {"message": "Post liked", "isLiked": True}
    return {"message": "Post unliked", "isLiked": False}
