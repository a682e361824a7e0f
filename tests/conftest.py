import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./inkwell_test.db"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from datetime import datetime  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402

from app.core.clock import FixedClock, get_clock  # noqa: E402
from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import build_session_maker, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.enums import Role  # noqa: E402
from app.models.user import User  # noqa: E402
from app.schemas.blog import BlogCreate  # noqa: E402
from app.services import blog_service, events  # noqa: E402

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)
NOW = datetime(2026, 3, 14, 12, 0, 0)


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'inkwell.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture()
async def db(session_maker):
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture(autouse=True)
def dispatched(monkeypatch):
    """Events that left the process after a commit."""
    sent = []
    monkeypatch.setattr(events, "dispatch", sent.append)
    return sent


async def make_user(db, username: str, role: Role = Role.USER, **fields) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=PASSWORD_HASH,
        first_name=fields.pop("first_name", username.title()),
        last_name=fields.pop("last_name", "Tester"),
        role=role,
        **fields,
    )
    db.add(user)
    await db.flush()
    return user


async def make_blog(db, author: User, clock=None, title: str = "Hello world", publish: bool = True, **fields):
    blog = await blog_service.create_blog(
        db, author, BlogCreate(title=title, content=fields.pop("content", "Some words here"), **fields)
    )
    if publish:
        blog = await blog_service.publish_blog(db, blog.id, author, clock or FixedClock(NOW))
    return blog


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=Role(user.role).value)}"}


@pytest.fixture()
async def alice(db):
    return await make_user(db, "alice")


@pytest.fixture()
async def bob(db):
    return await make_user(db, "bob")


@pytest.fixture()
async def moderator(db):
    return await make_user(db, "mod", role=Role.MODERATOR)


@pytest.fixture()
async def admin(db):
    return await make_user(db, "admin", role=Role.ADMIN)


@pytest.fixture()
async def blog(db, alice, clock):
    return await make_blog(db, alice, clock)


@pytest.fixture()
async def client(session_maker, clock):
    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
