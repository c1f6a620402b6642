import hashlib

import pytest
from sqlalchemy import select

from bitbybit.config import settings
from bitbybit.events import Verified, event_bus
from bitbybit.models import Profile, User
from bitbybit.services.auth_service import create_access_token, verify_password
from conftest import fetch_user, link_in, login, path_of, query_of, register, verify


@pytest.mark.asyncio
async def test_register_creates_unverified_user_with_profile(client, mailer, session_maker):
    resp = await register(client)
    assert resp.status_code == 200
    assert "token" not in resp.json()
    assert resp.json()["message"] == "User registered successfully. Please verify your email."

    user = await fetch_user(session_maker, "j@x.com")
    assert user.name == "John"
    assert user.email_verified_at is None
    assert user.hashed_password != "password123"
    assert verify_password("password123", user.hashed_password)

    async with session_maker() as db:
        profile = (await db.execute(select(Profile).where(Profile.user_id == user.id))).scalar_one()
    assert profile.first_name == "John"

    mail = mailer.last_to("j@x.com")
    assert mail.subject == "Verify Email Address"
    link = link_in(mail)
    assert f"/api/email/verify/{user.id}/{hashlib.sha1(b'j@x.com').hexdigest()}" in link
    assert {"expires", "signature"} <= set(query_of(link))


@pytest.mark.asyncio
async def test_login_before_verification_is_rejected(client):
    await register(client)
    resp = await login(client)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Email not verified"}


@pytest.mark.asyncio
async def test_login_for_unknown_email_uses_same_message(client):
    resp = await login(client, email="nobody@x.com")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Email not verified"}


@pytest.mark.asyncio
async def test_verify_then_login(client, mailer):
    await register(client)
    resp = await verify(client, mailer)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Email verified successfully"

    resp = await login(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["expires_in"] > 0


@pytest.mark.asyncio
async def test_login_with_wrong_password(client, mailer):
    await register(client)
    await verify(client, mailer)
    resp = await login(client, password="wrong-password")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_verification_is_idempotent(client, mailer):
    seen = []
    event_bus.subscribe(Verified, seen.append)
    try:
        await register(client)
        first = await verify(client, mailer)
        second = await verify(client, mailer)
    finally:
        event_bus.unsubscribe(Verified, seen.append)

    assert first.status_code == 200
    assert second.status_code == 200
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_verification_rejects_wrong_hash(client, mailer, session_maker):
    await register(client)
    link = link_in(mailer.last_to("j@x.com"))
    tampered = link.replace(hashlib.sha1(b"j@x.com").hexdigest(), hashlib.sha1(b"other@x.com").hexdigest())

    resp = await client.get(path_of(tampered))
    assert resp.status_code == 400
    assert (await fetch_user(session_maker, "j@x.com")).email_verified_at is None


@pytest.mark.asyncio
async def test_verification_requires_valid_signature(client, mailer):
    await register(client)
    url = path_of(link_in(mailer.last_to("j@x.com")))
    path = url.split("?")[0]

    assert (await client.get(path)).status_code == 400
    resp = await client.get(url.replace("signature=", "signature=0"))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid verification link"}


@pytest.mark.asyncio
async def test_verification_for_unknown_user(client):
    resp = await client.get(
        "/api/email/verify/00000000-0000-0000-0000-000000000000/abc?expires=1&signature=x"
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_register_rejects_taken_email_and_name(client):
    await register(client)

    resp = await register(client, name="Someone", email="j@x.com")
    assert resp.status_code == 409
    assert resp.json() == {"error": "Email already registered"}

    resp = await register(client, name="John", email="other@x.com")
    assert resp.status_code == 409
    assert resp.json() == {"error": "Username already exists"}


@pytest.mark.asyncio
async def test_register_validates_payload(client):
    resp = await client.post(
        "/api/register",
        json={"name": "John", "email": "not-an-email", "password": "password123", "password_confirmation": "password123"},
    )
    assert resp.status_code == 422

    resp = await client.post(
        "/api/register",
        json={"name": "John", "email": "j@x.com", "password": "short", "password_confirmation": "short"},
    )
    assert resp.status_code == 422

    resp = await client.post(
        "/api/register",
        json={"name": "John", "email": "j@x.com", "password": "password123", "password_confirmation": "password124"},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_register_rolls_back_when_mail_fails(client, mailer, session_maker):
    mailer.fail = True
    resp = await register(client)
    assert resp.status_code == 500

    async with session_maker() as db:
        assert (await db.execute(select(User))).scalars().all() == []

    mailer.fail = False
    assert (await register(client)).status_code == 200


@pytest.mark.asyncio
async def test_profile_requires_token(client, make_user):
    assert (await client.get("/api/profile")).status_code == 401
    assert (await client.get("/api/profile", headers={"Authorization": "Bearer garbage"})).status_code == 401

    headers = await make_user()
    resp = await client.get("/api/profile", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["email"] == "j@x.com"
    assert body["name"] == "John"
    assert "hashed_password" not in body


@pytest.mark.asyncio
async def test_logout_revokes_token(client, make_user):
    headers = await make_user()
    resp = await client.post("/api/logout", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Successfully logged out"}

    assert (await client.get("/api/profile", headers=headers)).status_code == 401
    assert (await client.post("/api/logout", headers=headers)).status_code == 401


@pytest.mark.asyncio
async def test_resend_verification(client, mailer, session_maker):
    await register(client)
    user = await fetch_user(session_maker, "j@x.com")
    headers = {"Authorization": f"Bearer {create_access_token(user)}"}
    sent_before = len(mailer.sent)

    resp = await client.post("/api/email/verification-notification", headers=headers)
    assert resp.status_code == 200
    assert len(mailer.sent) == sent_before + 1

    await verify(client, mailer)
    resp = await client.post("/api/email/verification-notification", headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email already verified"}


@pytest.mark.asyncio
async def test_resend_verification_requires_auth(client):
    assert (await client.post("/api/email/verification-notification")).status_code == 401


@pytest.mark.asyncio
async def test_check_username_and_email(client):
    await register(client)

    resp = await client.post("/api/check-username", json={"username": "John"})
    assert resp.status_code == 409
    assert resp.json() == {"error": "Username already exists"}
    resp = await client.post("/api/check-username", json={"username": "Jane"})
    assert resp.status_code == 200

    assert (await client.post("/api/check-email", json={"email": "j@x.com"})).status_code == 409
    assert (await client.post("/api/check-email", json={"email": "k@x.com"})).status_code == 200


@pytest.mark.asyncio
async def test_verification_link_expires(client, mailer, session_maker, monkeypatch):
    monkeypatch.setattr(settings, "verification_link_expire_minutes", -1)
    await register(client)

    resp = await verify(client, mailer)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Verification link has expired"}
    assert (await fetch_user(session_maker, "j@x.com")).email_verified_at is None


@pytest.mark.asyncio
async def test_verification_link_is_bound_to_its_user(client, mailer, session_maker):
    await register(client)
    await register(client, name="Jane", email="k@x.com")
    jane = await fetch_user(session_maker, "k@x.com")

    # John's signature replayed on Jane's path.
    johns = query_of(link_in(mailer.last_to("j@x.com")))
    resp = await client.get(
        f"/api/email/verify/{jane.id}/{hashlib.sha1(b'k@x.com').hexdigest()}",
        params=johns,
    )
    assert resp.status_code == 400
    assert (await fetch_user(session_maker, "k@x.com")).email_verified_at is None


@pytest.mark.asyncio
async def test_emails_are_case_insensitive(client, mailer, session_maker):
    assert (await register(client, email="John@X.com")).status_code == 200
    assert (await fetch_user(session_maker, "john@x.com")).name == "John"

    resp = await register(client, name="Johnny", email="john@x.com")
    assert resp.status_code == 409
    assert resp.json() == {"error": "Email already registered"}

    await verify(client, mailer, email="john@x.com")
    assert (await login(client, email="JOHN@x.com")).status_code == 200
    assert (await client.post("/api/check-email", json={"email": "JoHn@x.com"})).status_code == 409
