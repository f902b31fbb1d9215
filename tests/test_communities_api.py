"""Tests for the communities and posts endpoints."""

from __future__ import annotations

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def community_id(client, login):
    headers = await login("priya@ceg.edu")
    resp = await client.post(
        "/api/communities",
        json={"name": "Robotics Club", "description": "Build bots", "category": "Technical"},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_create_community_requires_fields(client, login):
    headers = await login("priya@ceg.edu")
    resp = await client.post("/api/communities", json={"name": "Half"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"message": "Name, description, and category are required"}


@pytest.mark.asyncio
async def test_creator_is_admin_and_follower(client, login, community_id):
    headers = await login("priya@ceg.edu")
    resp = await client.get(f"/api/communities/{community_id}", headers=headers)

    body = resp.json()
    assert body["name"] == "Robotics Club"
    assert body["adminName"] == "priya"
    assert body["followers"] == [body["admin"]]
    assert body["isFollowing"] is True
    assert body["postCount"] == 0


@pytest.mark.asyncio
async def test_list_filters_by_category(client, login, community_id):
    headers = await login("priya@ceg.edu")
    await client.post(
        "/api/communities",
        json={"name": "Dance", "description": "Moves", "category": "Cultural"},
        headers=headers,
    )

    resp = await client.get("/api/communities", params={"category": "Technical"}, headers=headers)
    assert [c["id"] for c in resp.json()] == [community_id]

    resp = await client.get("/api/communities", params={"category": "All"}, headers=headers)
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_unknown_community_is_404(client, login):
    headers = await login("priya@ceg.edu")
    resp = await client.get("/api/communities/missing", headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"message": "Community not found"}


@pytest.mark.asyncio
async def test_follow_toggle(client, login, community_id):
    headers = await login("ravi@ceg.edu")

    resp = await client.post(f"/api/communities/{community_id}/follow", headers=headers)
    assert resp.json() == {"message": "Following community", "isFollowing": True}

    resp = await client.post(f"/api/communities/{community_id}/follow", headers=headers)
    assert resp.json() == {"message": "Unfollowed community", "isFollowing": False}


@pytest.mark.asyncio
async def test_posting_requires_following(client, login, community_id):
    headers = await login("ravi@ceg.edu")
    post = {"text": "Hello bots"}

    resp = await client.post(f"/api/communities/{community_id}/posts", json=post, headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"message": "Must follow community to post"}

    await client.post(f"/api/communities/{community_id}/follow", headers=headers)
    resp = await client.post(f"/api/communities/{community_id}/posts", json=post, headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"/api/communities/{community_id}", headers=headers)
    assert resp.json()["postCount"] == 1


@pytest.mark.asyncio
async def test_empty_post_is_rejected(client, login, community_id):
    headers = await login("priya@ceg.edu")
    resp = await client.post(
        f"/api/communities/{community_id}/posts", json={"text": ""}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json() == {"message": "Post content is required"}


@pytest.mark.asyncio
async def test_like_toggle(client, login, community_id):
    headers = await login("priya@ceg.edu")
    resp = await client.post(
        f"/api/communities/{community_id}/posts",
        json={"text": "First build night", "images": ["https://img/1.png"]},
        headers=headers,
    )
    post_id = resp.json()["id"]

    resp = await client.post(
        f"/api/communities/{community_id}/posts/{post_id}/like", headers=headers
    )
    assert resp.json() == {"message": "Post liked", "isLiked": True}

    resp = await client.get(f"/api/communities/{community_id}/posts", headers=headers)
    [post] = resp.json()
    assert post["isLiked"] is True
    assert post["images"] == ["https://img/1.png"]
    assert post["authorName"] == "priya"

    resp = await client.post(
        f"/api/communities/{community_id}/posts/{post_id}/like", headers=headers
    )
    assert resp.json() == {"message": "Post unliked", "isLiked": False}


@pytest.mark.asyncio
async def test_like_unknown_post_is_404(client, login, community_id):
    headers = await login("priya@ceg.edu")
    resp = await client.post(
        f"/api/communities/{community_id}/posts/missing/like", headers=headers
    )
    assert resp.status_code == 404
