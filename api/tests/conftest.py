from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

# Settings are read at import time; point everything at throwaway backends first
_TEST_DB = Path(tempfile.mkdtemp(prefix="vidshare-tests-")) / "vidshare.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ["DB_ADMIN_URL"] = os.environ["DATABASE_URL"]
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["REDIS_URL"] = ""
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["ENVIRONMENT"] = "test"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from vidshare.auth import create_access_token  # noqa: E402
from vidshare.db import Base, SessionLocal, engine  # noqa: E402
from vidshare.deps import get_media_host  # noqa: E402
from vidshare.main import app, run_startup_tasks  # noqa: E402
from vidshare.models import User, Video  # noqa: E402
from vidshare.services.accounts import hash_password  # noqa: E402
from vidshare.services.media_host import HostedAsset  # noqa: E402


class FakeMediaHost:
    """In-memory stand-in for the media host; records what was uploaded."""

    def __init__(self) -> None:
        self.videos: list[HostedAsset] = []
        self.images: list[HostedAsset] = []

    def upload_video(self, content: bytes, filename: str, folder: str = "videos") -> HostedAsset:
        n = len(self.videos) + 1
        asset = HostedAsset(
            asset_id=f"{folder}/clip{n}",
            url=f"https://media.test/{folder}/clip{n}.mp4",
            thumbnail_url=f"https://media.test/{folder}/clip{n}.jpg",
            bytes=len(content),
            duration=12,
            width=1280,
            height=720,
            format="mp4",
        )
        self.videos.append(asset)
        return asset

    def upload_image(self, content: bytes, filename: str, folder: str) -> HostedAsset:
        n = len(self.images) + 1
        asset = HostedAsset(asset_id=f"{folder}/img{n}", url=f"https://media.test/{folder}/img{n}.png")
        self.images.append(asset)
        return asset


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    run_startup_tasks()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def media_host() -> Generator[FakeMediaHost, None, None]:
    fake = FakeMediaHost()
    app.dependency_overrides[get_media_host] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_media_host, None)


@pytest.fixture()
def client(media_host: FakeMediaHost) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., User]:
    def _make(
        username: str,
        email: str | None = None,
        password: str | None = None,
        is_creator: bool = False,
        is_admin: bool = False,
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username.lower()}@example.com",
            password_hash=hash_password(password) if password else None,
            is_creator=is_creator,
            is_admin=is_admin,
            links=[],
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_video(db: Session) -> Callable[..., Video]:
    def _make(owner: User, title: str = "Test clip", visibility: str = "Public", **fields) -> Video:
        video = Video(
            user_id=owner.id,
            title=title,
            video_url=f"https://media.test/videos/{title.replace(' ', '_')}.mp4",
            visibility=visibility,
            **fields,
        )
        db.add(video)
        db.commit()
        db.refresh(video)
        return video

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers
