"""Seed script: populates the database with sample students, communities and groups."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from ceg_connect.database.engine import async_session_factory, init_db
from ceg_connect.database.repository import (
    CommunityRepository,
    GroupRepository,
    NotificationRepository,
    PostRepository,
    UserRepository,
)

SAMPLE_USERS = [
    ("priya@ceg.edu", "Priya Sharma"),
    ("ravi@ceg.edu", "Ravi Kumar"),
    ("meena@ceg.edu", "Meena Iyer"),
]

SAMPLE_COMMUNITIES = [
    ("Robotics Club", "Design, build and race robots", "Technical"),
    ("Music Club", "Jams, gigs and open mics", "Cultural"),
    ("Placement Cell", "Drives, prep material and alumni talks", "Academic"),
]

SAMPLE_GROUPS = [
    ("DSA Prep", "One problem a day until placements", False),
    ("CSE 2025", "Batch announcements", True),
]


async def seed() -> None:
    """Insert sample data into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        users = UserRepository(session)
        admin = None
        for email, name in SAMPLE_USERS:
            user = await users.find_by_email(email) or await users.create(
                email=email, name=name, email_verified=True
            )
            admin = admin or user

        communities = CommunityRepository(session)
        posts = PostRepository(session)
        for name, description, category in SAMPLE_COMMUNITIES:
            community = await communities.create(
                name=name,
                description=description,
                category=category,
                admin_id=admin.id,
                admin_name=admin.name,
            )
            await posts.create(
                community_id=community.id,
                text=f"Welcome to {name}!",
                images=[],
                author_id=admin.id,
                author_name=admin.name,
            )
            await communities.increment_post_count(community.id)

        groups = GroupRepository(session)
        for name, description, is_private in SAMPLE_GROUPS:
            await groups.create(name, description, is_private, admin.id)

        await NotificationRepository(session).create(
            admin.id, "Welcome to CEG Connect", "Follow a community to get started."
        )
        await session.commit()

    print(
        f"✅ Seeded {len(SAMPLE_USERS)} users, {len(SAMPLE_COMMUNITIES)} communities "
        f"and {len(SAMPLE_GROUPS)} groups into the database."
    )


if __name__ == "__main__":
    asyncio.run(seed())
