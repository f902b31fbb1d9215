"""SQLAlchemy models for communities and their posts.

Membership sets (``followers``, ``likes``) are stored as JSON lists of
user ids, mirroring the document layout the mobile client expects.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ceg_connect.models.base import Base, new_id, utcnow


class Community(Base):
    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    followers: Mapped[list[str]] = mapped_column(JSON, default=list)
    admin_id: Mapped[str] = mapped_column(String(32), nullable=False)
    admin_name: Mapped[str] = mapped_column(String(256), nullable=False)
    post_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_communities_created_at", "created_at"),
        Index("ix_communities_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Community id={self.id} name={self.name!r}>"


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    community_id: Mapped[str] = mapped_column(ForeignKey("communities.id"), nullable=False)
    text: Mapped[str | None] = mapped_column(Text)
    images: Mapped[list[str]] = mapped_column(JSON, default=list)
    author_id: Mapped[str] = mapped_column(String(32), nullable=False)
    author_name: Mapped[str] = mapped_column(String(256), nullable=False)
    author_photo: Mapped[str | None] = mapped_column(Text)
    likes: Mapped[list[str]] = mapped_column(JSON, default=list)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_posts_community_ts", "community_id", "timestamp"),)
