import pytest
from fastapi.testclient import TestClient

from relay.main import create_app
from relay.storage import HistoryStore


@pytest.fixture
def store() -> HistoryStore:
    return HistoryStore()


@pytest.fixture
def client(store):
    # Context manager runs the lifespan and keeps one event loop for HTTP + WS
    with TestClient(create_app(store=store)) as c:
        yield c
