"""Repositories: data access layer for every persisted collection.

Membership sets are JSON lists; toggles load the row ``FOR UPDATE`` and
assign a fresh list so the change is flushed as one column update.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ceg_connect.models.community import Community, Post
from ceg_connect.models.group import Group, Message
from ceg_connect.models.user import Bookmark, Notification, User


def _now() -> datetime:
    return datetime.now(UTC)


def _with(members: list[str] | None, uid: str) -> list[str]:
    members = list(members or [])
    if uid not in members:
        members.append(uid)
    return members


def _without(members: list[str] | None, uid: str) -> list[str]:
    return [m for m in (members or []) if m != uid]


class UserRepository:
    """Encapsulates all database queries related to user profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    async def create(self, email: str, name: str | None, email_verified: bool = False) -> User:
        user = User(email=email, name=name, email_verified=email_verified)
        self._session.add(user)
        await self._session.flush()
        return user

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> User | None:
        """Apply *fields* to the profile; ``None`` when the user does not exist."""
        user = await self.get(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = _now()
        await self._session.flush()
        return user


class CommunityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_page(
        self, limit: int, offset: int, category: str | None = None
    ) -> list[Community]:
        """Newest first; a category of ``All`` (or none) disables filtering."""
        stmt = select(Community).order_by(Community.created_at.desc())
        if category and category != "All":
            stmt = stmt.where(Community.category == category)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def get(self, community_id: str, *, for_update: bool = False) -> Community | None:
        stmt = select(Community).where(Community.id == community_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self, name: str, description: str, category: str, admin_id: str, admin_name: str
    ) -> Community:
        community = Community(
            name=name,
            description=description,
            category=category,
            followers=[admin_id],
            admin_id=admin_id,
            admin_name=admin_name,
            post_count=0,
        )
        self._session.add(community)
        await self._session.flush()
        return community

    async def toggle_follower(self, community: Community, uid: str) -> bool:
        """Flip *uid*'s membership; return ``True`` if now following."""
        following = uid not in (community.followers or [])
        community.followers = (
            _with(community.followers, uid) if following else _without(community.followers, uid)
        )
        community.updated_at = _now()
        await self._session.flush()
        return following

    async def increment_post_count(self, community_id: str) -> None:
        stmt = (
            update(Community)
            .where(Community.id == community_id)
            .values(post_count=Community.post_count + 1, updated_at=_now())
        )
        await self._session.execute(stmt)


class PostRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_community(self, community_id: str, limit: int, offset: int) -> list[Post]:
        stmt = (
            select(Post)
            .where(Post.community_id == community_id)
            .order_by(Post.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, community_id: str, post_id: str, *, for_update: bool = False) -> Post | None:
        stmt = select(Post).where(Post.id == post_id, Post.community_id == community_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        community_id: str,
        text: str | None,
        images: list[str],
        author_id: str,
        author_name: str,
        author_photo: str | None = None,
    ) -> Post:
        post = Post(
            community_id=community_id,
            text=text,
            images=list(images),
            author_id=author_id,
            author_name=author_name,
            author_photo=author_photo,
            likes=[],
            comments=0,
        )
        self._session.add(post)
        await self._session.flush()
        return post

    async def toggle_like(self, post: Post, uid: str) -> bool:
        """Flip *uid*'s like; return ``True`` if the post is now liked."""
        liked = uid not in (post.likes or [])
        post.likes = _with(post.likes, uid) if liked else _without(post.likes, uid)
        await self._session.flush()
        return liked


class GroupRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_page(self, limit: int, offset: int) -> list[Group]:
        stmt = select(Group).order_by(Group.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, group_id: str, *, for_update: bool = False) -> Group | None:
        stmt = select(Group).where(Group.id == group_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self, name: str, description: str, is_private: bool, admin_id: str
    ) -> Group:
        group = Group(
            name=name,
            description=description,
            is_private=is_private,
            members=[admin_id],
            admin_id=admin_id,
        )
        self._session.add(group)
        await self._session.flush()
        return group

    async def add_member(self, group: Group, uid: str) -> None:
        group.members = _with(group.members, uid)
        group.updated_at = _now()
        await self._session.flush()

    async def remove_member(self, group: Group, uid: str) -> None:
        group.members = _without(group.members, uid)
        group.updated_at = _now()
        await self._session.flush()

    async def set_last_message(self, group: Group, message: Message) -> None:
        group.last_message = {
            "text": message.text,
            "author": message.author_id,
            "timestamp": message.timestamp.isoformat(),
        }
        group.updated_at = _now()
        await self._session.flush()


class MessageRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_group(self, group_id: str, limit: int, offset: int) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.group_id == group_id)
            .order_by(Message.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create(
        self,
        group_id: str,
        text: str,
        author_id: str,
        type: str = "text",
        file_url: str | None = None,
        file_name: str | None = None,
    ) -> Message:
        message = Message(
            group_id=group_id,
            text=text,
            author_id=author_id,
            type=type,
            file_url=file_url,
            file_name=file_name,
            timestamp=_now(),
        )
        self._session.add(message)
        await self._session.flush()
        return message


class NotificationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: str, limit: int, offset: int) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, user_id: str, title: str, body: str | None = None) -> Notification:
        notification = Notification(user_id=user_id, title=title, body=body, read=False)
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one notification read; ``False`` if it is not the user's."""
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True, read_at=_now())
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=_now())
        )
        result = await self._session.execute(stmt)
        return result.rowcount


class BookmarkRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: str, limit: int, offset: int) -> list[Bookmark]:
        stmt = (
            select(Bookmark)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create(
        self,
        user_id: str,
        post_id: str | None,
        community_id: str | None,
        post_type: str | None,
    ) -> Bookmark:
        bookmark = Bookmark(
            user_id=user_id, post_id=post_id, community_id=community_id, post_type=post_type
        )
        self._session.add(bookmark)
        await self._session.flush()
        return bookmark

    async def delete(self, user_id: str, bookmark_id: str) -> bool:
        bookmark = await self._session.get(Bookmark, bookmark_id)
        if bookmark is None or bookmark.user_id != user_id:
            return False
        await self._session.delete(bookmark)
        await self._session.flush()
        return True
