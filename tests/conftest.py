import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused.db")
os.environ.setdefault("MAIL_BACKEND", "log")
os.environ.setdefault("STORAGE_BACKEND", "local")

from io import BytesIO
from urllib.parse import parse_qs, urlsplit

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bitbybit.dependencies import get_db
from bitbybit.mail.base import Mailer, MailError, OutgoingMail, get_mailer
from bitbybit.main import app
from bitbybit.models import Base, Category, User
from bitbybit.storage.base import ImageUpload, StorageBackend, UploadFailed, get_storage_backend


class RecordingMailer(Mailer):
    def __init__(self):
        self.sent: list[OutgoingMail] = []
        self.fail = False

    async def send(self, mail: OutgoingMail) -> None:
        if self.fail:
            raise MailError("connection refused")
        self.sent.append(mail)

    def last_to(self, email: str) -> OutgoingMail:
        return [m for m in self.sent if m.to == email][-1]


class RecordingStorage(StorageBackend):
    def __init__(self):
        self.uploads: list[ImageUpload] = []
        self.fail = False

    async def upload(self, image: ImageUpload) -> str:
        if self.fail:
            raise UploadFailed("ImgBB returned 500")
        self.uploads.append(image)
        return f"https://i.ibb.co/test/{len(self.uploads)}.{image.extension}"


def link_in(mail: OutgoingMail) -> str:
    return next(line for line in mail.body.splitlines() if line.startswith("http"))


def path_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def png_bytes(size=(8, 8), fmt="PNG") -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'forum.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_maker, mailer, storage):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_storage_backend] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def register(client, name="John", email="j@x.com", password="password123"):
    return await client.post(
        "/api/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "password_confirmation": password,
        },
    )


async def verify(client, mailer, email="j@x.com"):
    return await client.get(path_of(link_in(mailer.last_to(email))))


async def login(client, email="j@x.com", password="password123"):
    return await client.post("/api/login", json={"email": email, "password": password})


@pytest_asyncio.fixture
async def make_user(client, mailer):
    """Register, verify and log in a user; returns auth headers."""

    async def _make(name="John", email="j@x.com", password="password123"):
        assert (await register(client, name, email, password)).status_code == 200
        assert (await verify(client, mailer, email)).status_code == 200
        resp = await login(client, email, password)
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _make


@pytest_asyncio.fixture
async def category(session_maker):
    async with session_maker() as db:
        row = Category(name="General Discussion", description="Talk about anything.")
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return row


async def fetch_user(session_maker, email) -> User:
    async with session_maker() as db:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one()
