from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from flowdesk.api import create_app
from flowdesk.store import AgentStore, FlowchartStore

from .builders import OPERATOR


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "flowdesk.db"


@pytest.fixture
def flowchart_store(db_path):
    store = FlowchartStore(db_path)
    asyncio.run(store.initialize())
    return store


@pytest.fixture
def agent_store(db_path):
    store = AgentStore(db_path)
    asyncio.run(store.initialize())
    return store


@pytest.fixture
def client(db_path):
    app = create_app(flowcharts=FlowchartStore(db_path), agents=AgentStore(db_path))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def agent_id(client):
    response = client.post("/agents", json={"name": "Support Bot"}, headers=OPERATOR)
    assert response.status_code == 201
    return response.json()["id"]
