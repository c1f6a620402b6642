import uuid

import pytest
from sqlalchemy import select

from bitbybit.models import Post, Reaction


async def _thread(client, headers, category, **overrides):
    payload = {
        "title": "First thread",
        "body": "Hello forum",
        "tags": "intro,hello",
        "category_id": str(category.id),
    }
    payload.update(overrides)
    resp = await client.post("/api/threads", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _post(client, headers, thread_id, content="A reply"):
    resp = await client.post(f"/api/threads/{thread_id}/posts", json={"content": content}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_categories_require_auth(client):
    assert (await client.get("/api/categories")).status_code == 401


@pytest.mark.asyncio
async def test_category_crud(client, make_user):
    headers = await make_user()

    resp = await client.post("/api/categories", json={"name": "Tech", "description": "Gadgets"}, headers=headers)
    assert resp.status_code == 201
    category_id = resp.json()["id"]

    resp = await client.get("/api/categories", headers=headers)
    assert [c["name"] for c in resp.json()] == ["Tech"]

    resp = await client.put(f"/api/categories/{category_id}", json={"description": "Computers"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Tech"
    assert resp.json()["description"] == "Computers"

    assert (await client.delete(f"/api/categories/{category_id}", headers=headers)).status_code == 204
    assert (await client.get(f"/api/categories/{category_id}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_category_name_is_unique(client, make_user, category):
    headers = await make_user()
    resp = await client.post("/api/categories", json={"name": "General Discussion"}, headers=headers)
    assert resp.status_code == 409
    assert resp.json() == {"error": "Category name already exists"}


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_thread_crud(client, make_user, category):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    assert thread["notification"] is False
    assert thread["category_id"] == str(category.id)

    resp = await client.get(f"/api/threads/{thread['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["title"] == "First thread"

    resp = await client.put(f"/api/threads/{thread['id']}", json={"title": "Renamed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["body"] == "Hello forum"

    assert (await client.delete(f"/api/threads/{thread['id']}", headers=headers)).status_code == 204
    assert (await client.get(f"/api/threads/{thread['id']}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_thread_requires_existing_category(client, make_user):
    headers = await make_user()
    resp = await client.post(
        "/api/threads",
        json={"title": "T", "body": "B", "category_id": str(uuid.uuid4())},
        headers=headers,
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "Validation failed"
    assert "category_id" in resp.json()["messages"]


@pytest.mark.asyncio
async def test_thread_list_paginates_and_filters(client, make_user, category):
    headers = await make_user()
    resp = await client.post("/api/categories", json={"name": "Other"}, headers=headers)
    other_id = resp.json()["id"]

    for i in range(3):
        await _thread(client, headers, category, title=f"General {i}")
    await _thread(client, headers, category, title="Elsewhere", category_id=other_id)

    resp = await client.get("/api/threads", params={"per_page": 2}, headers=headers)
    page = resp.json()
    assert page["total"] == 4
    assert page["last_page"] == 2
    assert [t["title"] for t in page["data"]] == ["General 0", "General 1"]

    resp = await client.get("/api/threads", params={"category_id": other_id}, headers=headers)
    assert [t["title"] for t in resp.json()["data"]] == ["Elsewhere"]


@pytest.mark.asyncio
async def test_only_owner_changes_thread(client, make_user, category):
    owner = await make_user()
    intruder = await make_user(name="Eve", email="eve@x.com")
    thread = await _thread(client, owner, category)

    resp = await client.put(f"/api/threads/{thread['id']}", json={"title": "Hijacked"}, headers=intruder)
    assert resp.status_code == 404
    assert (await client.delete(f"/api/threads/{thread['id']}", headers=intruder)).status_code == 404

    resp = await client.get(f"/api/threads/{thread['id']}", headers=intruder)
    assert resp.json()["title"] == "First thread"


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_posts_are_paginated_oldest_first(client, make_user, category):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    for i in range(20):
        await _post(client, headers, thread["id"], content=f"post {i}")

    first = (await client.get(f"/api/threads/{thread['id']}/posts", headers=headers)).json()
    assert first["per_page"] == 15
    assert first["total"] == 20
    assert first["last_page"] == 2
    assert [p["content"] for p in first["data"]] == [f"post {i}" for i in range(15)]
    assert first["data"][0]["user"]["name"] == "John"
    assert first["data"][0]["reactions"] == []

    second = (await client.get(f"/api/threads/{thread['id']}/posts", params={"page": 2}, headers=headers)).json()
    assert [p["content"] for p in second["data"]] == [f"post {i}" for i in range(15, 20)]

    again = (await client.get(f"/api/threads/{thread['id']}/posts", headers=headers)).json()
    assert [p["id"] for p in again["data"]] == [p["id"] for p in first["data"]]


@pytest.mark.asyncio
async def test_posts_for_missing_thread(client, make_user):
    headers = await make_user()
    missing = uuid.uuid4()
    assert (await client.get(f"/api/threads/{missing}/posts", headers=headers)).status_code == 404
    resp = await client.post(f"/api/threads/{missing}/posts", json={"content": "x"}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_post_update_marks_edited(client, make_user, category):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    post = await _post(client, headers, thread["id"])
    assert post["is_edited"] is False

    resp = await client.put(f"/api/posts/{post['id']}", json={"content": "Fixed typo"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["content"] == "Fixed typo"
    assert resp.json()["is_edited"] is True


@pytest.mark.asyncio
async def test_only_author_changes_post(client, make_user, category, session_maker):
    owner = await make_user()
    intruder = await make_user(name="Eve", email="eve@x.com")
    thread = await _thread(client, owner, category)
    post = await _post(client, owner, thread["id"], content="original")

    resp = await client.put(f"/api/posts/{post['id']}", json={"content": "defaced"}, headers=intruder)
    assert resp.status_code == 404
    assert (await client.delete(f"/api/posts/{post['id']}", headers=intruder)).status_code == 404

    async with session_maker() as db:
        row = await db.get(Post, uuid.UUID(post["id"]))
    assert row.content == "original"
    assert row.deleted_at is None


@pytest.mark.asyncio
async def test_deleted_post_is_trashed_and_hidden(client, make_user, category, session_maker):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    kept = await _post(client, headers, thread["id"], content="kept")
    gone = await _post(client, headers, thread["id"], content="gone")

    assert (await client.delete(f"/api/posts/{gone['id']}", headers=headers)).status_code == 204

    page = (await client.get(f"/api/threads/{thread['id']}/posts", headers=headers)).json()
    assert [p["id"] for p in page["data"]] == [kept["id"]]
    assert page["total"] == 1

    async with session_maker() as db:
        row = await db.get(Post, uuid.UUID(gone["id"]))
    assert row is not None
    assert row.deleted_at is not None

    assert (await client.put(f"/api/posts/{gone['id']}", json={"content": "x"}, headers=headers)).status_code == 404
    assert (await client.delete(f"/api/posts/{gone['id']}", headers=headers)).status_code == 404


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------


async def _react(client, headers, post_id, reaction_type):
    return await client.post(
        f"/api/posts/{post_id}/reactions",
        json={"reaction_type": reaction_type},
        headers=headers,
    )


async def _reaction_rows(session_maker, post_id):
    async with session_maker() as db:
        result = await db.execute(select(Reaction).where(Reaction.post_id == uuid.UUID(post_id)))
        return result.scalars().all()


@pytest.mark.asyncio
async def test_reacting_twice_keeps_one_row(client, make_user, category, session_maker):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    post = await _post(client, headers, thread["id"])

    first = await _react(client, headers, post["id"], "LIKE")
    assert first.status_code == 201
    second = await _react(client, headers, post["id"], "DISLIKE")
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["reaction_type"] == "DISLIKE"

    rows = await _reaction_rows(session_maker, post["id"])
    assert len(rows) == 1
    assert rows[0].reaction_type.value == "DISLIKE"

    page = (await client.get(f"/api/threads/{thread['id']}/posts", headers=headers)).json()
    assert [r["reaction_type"] for r in page["data"][0]["reactions"]] == ["DISLIKE"]


@pytest.mark.asyncio
async def test_reaction_is_restored_after_delete(client, make_user, category, session_maker):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    post = await _post(client, headers, thread["id"])
    first = (await _react(client, headers, post["id"], "LIKE")).json()

    assert (await client.delete(f"/api/posts/{post['id']}/reactions", headers=headers)).status_code == 204
    listing = (await client.get(f"/api/posts/{post['id']}/reactions", headers=headers)).json()
    assert listing["data"] == []
    assert (await client.delete(f"/api/posts/{post['id']}/reactions", headers=headers)).status_code == 404

    again = await _react(client, headers, post["id"], "DISLIKE")
    assert again.status_code == 201
    assert again.json()["id"] == first["id"]

    rows = await _reaction_rows(session_maker, post["id"])
    assert len(rows) == 1
    assert rows[0].deleted_at is None


@pytest.mark.asyncio
async def test_reaction_listing_includes_users(client, make_user, category):
    john = await make_user()
    eve = await make_user(name="Eve", email="eve@x.com")
    thread = await _thread(client, john, category)
    post = await _post(client, john, thread["id"])

    await _react(client, john, post["id"], "LIKE")
    await _react(client, eve, post["id"], "DISLIKE")

    listing = (await client.get(f"/api/posts/{post['id']}/reactions", headers=john)).json()
    assert listing["total"] == 2
    assert [(r["user"]["name"], r["reaction_type"]) for r in listing["data"]] == [
        ("John", "LIKE"),
        ("Eve", "DISLIKE"),
    ]


@pytest.mark.asyncio
async def test_cannot_delete_someone_elses_reaction(client, make_user, category):
    john = await make_user()
    eve = await make_user(name="Eve", email="eve@x.com")
    thread = await _thread(client, john, category)
    post = await _post(client, john, thread["id"])
    await _react(client, john, post["id"], "LIKE")

    assert (await client.delete(f"/api/posts/{post['id']}/reactions", headers=eve)).status_code == 404
    listing = (await client.get(f"/api/posts/{post['id']}/reactions", headers=john)).json()
    assert listing["total"] == 1


@pytest.mark.asyncio
async def test_reactions_on_missing_or_deleted_post(client, make_user, category, session_maker):
    headers = await make_user()
    assert (await _react(client, headers, uuid.uuid4(), "LIKE")).status_code == 404
    assert (await client.delete(f"/api/posts/{uuid.uuid4()}/reactions", headers=headers)).status_code == 404

    thread = await _thread(client, headers, category)
    post = await _post(client, headers, thread["id"])
    await _react(client, headers, post["id"], "LIKE")
    await client.delete(f"/api/posts/{post['id']}", headers=headers)
    assert (await _react(client, headers, post["id"], "LIKE")).status_code == 404
    assert (await client.get(f"/api/posts/{post['id']}/reactions", headers=headers)).status_code == 404
    assert (await client.delete(f"/api/posts/{post['id']}/reactions", headers=headers)).status_code == 404

    rows = await _reaction_rows(session_maker, post["id"])
    assert rows[0].deleted_at is None


@pytest.mark.asyncio
async def test_reaction_type_is_validated(client, make_user, category):
    headers = await make_user()
    thread = await _thread(client, headers, category)
    post = await _post(client, headers, thread["id"])
    assert (await _react(client, headers, post["id"], "LOVE")).status_code == 422
