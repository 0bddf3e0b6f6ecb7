from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from node_registry.api_gateway.service import create_app
from node_registry.config import Settings
from node_registry.database.session import create_engine, create_session_factory, create_tables
from node_registry.registry.service import NodeRegistry


def make_node(node_id="n1", **overrides):
    payload = {
        "nodeID": node_id,
        "nodeIP": "10.0.0.1",
        "nodeKernel": "5.10",
        "nodeOS": "linux",
        "nodePxVersion": "1.2.3",
    }
    payload.update(overrides)
    return payload


def failing_session_factory():
    """Session factory whose sessions fail as if the store were unreachable."""
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
    )
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_cm)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        ENVIRONMENT="testing",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'nodes.db'}",
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def registry(engine):
    return NodeRegistry(create_session_factory(engine))


@pytest.fixture
async def client(registry):
    app = create_app(registry)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
