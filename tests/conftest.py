import io
import os
import sys
import tempfile
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Ensure project root on path before importing app modules
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Configure the app to use a local SQLite database during tests
_test_db_path = project_root / "test.db"
os.environ["APP_DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_path.as_posix()}"
os.environ["APP_DEBUG"] = "false"
os.environ["APP_MEDIA_DIR"] = tempfile.mkdtemp(prefix="forum-media-")
os.environ["APP_STORAGE_BACKEND"] = "local"
# Lowest bcrypt cost keeps the suite fast
os.environ["APP_PASSWORD_HASH_ROUNDS"] = "4"

# Start each test session from a clean database file
if _test_db_path.exists():
    _test_db_path.unlink()

DEFAULT_PASSWORD = "secret-password"


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create all tables for each test and drop them afterwards."""
    from restaurant_forum.database import create_tables, drop_tables

    await create_tables()
    yield
    await drop_tables()


@pytest_asyncio.fixture
async def test_session(setup_database):
    """Provide an async database session to tests that need direct access."""
    from restaurant_forum.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield session


def _new_client():
    from restaurant_forum.main import app

    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture
async def client(setup_database):
    async with _new_client() as ac:
        yield ac


@pytest_asyncio.fixture
async def other_client(setup_database):
    """A second browser with its own cookie jar."""
    async with _new_client() as ac:
        yield ac


@pytest.fixture
def create_user(test_session):
    """Insert a user directly, bypassing the sign-up form."""
    from restaurant_forum.models import User
    from restaurant_forum.services.auth_service import hash_password

    counter = {"n": 0}

    async def _create_user(name=None, email=None, password=DEFAULT_PASSWORD, is_admin=False, image=None):
        counter["n"] += 1
        user = User(
            name=name or f"user{counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password=hash_password(password),
            is_admin=is_admin,
            image=image,
        )
        test_session.add(user)
        await test_session.commit()
        return user

    return _create_user


@pytest.fixture
def create_restaurant(test_session):
    from restaurant_forum.models import Restaurant

    counter = {"n": 0}

    async def _create_restaurant(name=None, category=None, description=None):
        counter["n"] += 1
        restaurant = Restaurant(
            name=name or f"restaurant{counter['n']}",
            description=description,
            category_id=category.id if category is not None else None,
            view_count=0,
        )
        test_session.add(restaurant)
        await test_session.commit()
        return restaurant

    return _create_restaurant


async def sign_in(client, email, password=DEFAULT_PASSWORD):
    response = await client.post("/signin", data={"email": email, "password": password})
    assert response.status_code == 302
    assert response.headers["location"] == "/restaurants"
    return response


@pytest.fixture
def login():
    return sign_in


def make_png(size=(4, 4), color="red"):
    """Bytes of a small, valid PNG image."""
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()
