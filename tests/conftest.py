import os

# Settings are read at import time, give them something to read
os.environ.setdefault("DATABASE_URL", "mssql+aioodbc://tests@localhost/expenses_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-bytes-for-hs256")
os.environ.pop("AZURE_OPENAI_ENDPOINT", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402

from expensemgmt.ai_feature.client import get_chat_model  # noqa: E402
from expensemgmt.core.database import get_gateway  # noqa: E402
from expensemgmt.core.demo import DemoExpenseGateway  # noqa: E402
from expensemgmt.main import app  # noqa: E402
from tests.fakes import make_token  # noqa: E402


# Fresh in-memory store for every test
@pytest.fixture
def gateway():
    return DemoExpenseGateway()


@pytest.fixture
def chat_model():
    # Tests that need a model replace this with a ScriptedChatModel
    return None


# Client
@pytest_asyncio.fixture(scope="function")
async def client(gateway, chat_model):
    async def override_get_gateway():
        yield gateway

    app.dependency_overrides[get_gateway] = override_get_gateway
    app.dependency_overrides[get_chat_model] = lambda: chat_model

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# Token for Alice (Employee)
@pytest.fixture
def auth_headers_employee():
    token = make_token(1)
    return {"Authorization": f"Bearer {token}"}


# Token for Bob (Manager)
@pytest.fixture
def auth_headers_manager():
    token = make_token(2)
    return {"Authorization": f"Bearer {token}"}
