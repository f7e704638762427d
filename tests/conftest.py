import random
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise
from multiscim.config import settings
from multiscim.services import TenantService


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture(autouse=True)
async def initialize_db():
    # Initialize Tortoise ORM for tests
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["multiscim.models"]},
        use_tz=True,
    )
    await Tortoise.generate_schemas()

    yield

    await Tortoise.close_connections()


@pytest.fixture
def rng():
    return random.Random(20240611)


@pytest_asyncio.fixture
async def tenant():
    return await TenantService.create_tenant("acme-corp", "Acme Corporation")


@pytest_asyncio.fixture
async def other_tenant():
    return await TenantService.create_tenant("globex", "Globex Corporation")


@pytest_asyncio.fixture
async def client(monkeypatch):
    """Unauthenticated client; the tenant is selected with the tenant header."""
    monkeypatch.setattr(settings, "auth_enabled", False)
    from multiscim.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
