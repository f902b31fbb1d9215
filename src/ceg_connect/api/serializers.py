from __future__ import annotations

from datetime import datetime
from typing import Any

from ceg_connect.models.community import Community, Post
from ceg_connect.models.group import Group, Message
from ceg_connect.models.user import Bookmark, Notification, User


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "emailVerified": bool(u.email_verified),
        "name": u.name,
        "regNo": u.reg_no,
        "department": u.department,
        "year": u.year,
        "photoURL": u.photo_url,
        "createdAt": _iso(u.created_at),
        "updatedAt": _iso(u.updated_at),
    }


def serialize_community(c: Community, uid: str) -> dict[str, Any]:
    followers = list(c.followers or [])
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "category": c.category,
        "followers": followers,
        "admin": c.admin_id,
        "adminName": c.admin_name,
        "postCount": c.post_count or 0,
        "createdAt": _iso(c.created_at),
        "updatedAt": _iso(c.updated_at),
        "isFollowing": uid in followers,
    }


def serialize_post(p: Post, uid: str) -> dict[str, Any]:
    likes = list(p.likes or [])
    return {
        "id": p.id,
        "communityId": p.community_id,
        "text": p.text,
        "images": list(p.images or []),
        "author": p.author_id,
        "authorName": p.author_name,
        "authorPhoto": p.author_photo,
        "likes": likes,
        "comments": p.comments or 0,
        "timestamp": _iso(p.timestamp),
        "isLiked": uid in likes,
    }


def serialize_group(g: Group) -> dict[str, Any]:
    return {
        "id": g.id,
        "name": g.name,
        "description": g.description,
        "isPrivate": bool(g.is_private),
        "members": list(g.members or []),
        "admin": g.admin_id,
        "lastMessage": g.last_message,
        "createdAt": _iso(g.created_at),
        "updatedAt": _iso(g.updated_at),
    }


def serialize_message(m: Message) -> dict[str, Any]:
    return {
        "id": m.id,
        "groupId": m.group_id,
        "text": m.text,
        "author": m.author_id,
        "type": m.type,
        "fileUrl": m.file_url,
        "fileName": m.file_name,
        "timestamp": _iso(m.timestamp),
    }


def serialize_notification(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "title": n.title,
        "body": n.body,
        "read": bool(n.read),
        "readAt": _iso(n.read_at),
        "timestamp": _iso(n.timestamp),
    }


def serialize_bookmark(b: Bookmark) -> dict[str, Any]:
    return {
        "id": b.id,
        "postId": b.post_id,
        "communityId": b.community_id,
        "postType": b.post_type,
        "createdAt": _iso(b.created_at),
    }
