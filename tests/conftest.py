"""
Shared fixtures: a fresh SQLite database per test, sample documents and a
mocked n8n API.
"""
import copy
import json

import httpx
import pytest

from workflow_hub.core.client import N8NClient
from workflow_hub.core.database import Database
from workflow_hub.models.records import WorkflowRecord


SAMPLE_DOCUMENT = {
    "name": "W",
    "nodes": [
        {"id": "n1", "name": "N1", "type": "t", "position": [0, 0]},
        {"id": "n2", "name": "N2", "type": "t", "position": [100, 0]},
    ],
    "connections": {"n1": [[{"node": "n2", "type": "main", "index": 0}]]},
}


def make_document(name: str = "W", **overrides) -> dict:
    document = copy.deepcopy(SAMPLE_DOCUMENT)
    document["name"] = name
    document.update(overrides)
    return document


@pytest.fixture
def sample_document():
    return make_document()


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'workflow_hub_test.db'}")
    await db.init_models()
    yield db
    await db.dispose()


@pytest.fixture
def seed_workflow(database):
    """Insert a bare workflow row (no versions yet) and return its id."""
    async def _seed(document=None, user_id: str = "user1") -> str:
        document = document or make_document()
        async with database.session() as session:
            async with session.begin():
                workflow = WorkflowRecord(
                    user_id=user_id,
                    name=document["name"],
                    document=document,
                    version=0
                )
                session.add(workflow)
            return workflow.id
    return _seed


class FakeN8N:
    """In-memory stand-in for the n8n public API, served through httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.workflows = {}
        self.fail_with = None
        self.executions = {}
        self._next_id = 1

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "boom"})

        path = request.url.path
        if request.method == "POST" and path.endswith("/workflows"):
            workflow_id = f"remote-{self._next_id}"
            self._next_id += 1
            self.workflows[workflow_id] = json.loads(request.content)
            return httpx.Response(200, json={"id": workflow_id, **self.workflows[workflow_id]})
        if request.method == "GET" and path.endswith("/workflows"):
            return httpx.Response(200, json={"data": []})
        if request.method == "PUT":
            workflow_id = path.rsplit("/", 1)[-1]
            self.workflows[workflow_id] = json.loads(request.content)
            return httpx.Response(200, json={"id": workflow_id})
        if request.method == "DELETE":
            self.workflows.pop(path.rsplit("/", 1)[-1], None)
            return httpx.Response(200, json={})
        if request.method == "POST" and path.endswith("/activate"):
            return httpx.Response(200, json={"active": True})
        if request.method == "POST" and path.endswith("/execute"):
            execution_id = f"exec-{len(self.executions) + 1}"
            self.executions[execution_id] = {"status": "running", "input": json.loads(request.content)}
            return httpx.Response(200, json={"executionId": execution_id})
        if request.method == "GET" and "/executions/" in path:
            execution = self.executions.get(path.rsplit("/", 1)[-1])
            if execution is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={k: v for k, v in execution.items() if k != "input"})
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def fake_n8n():
    return FakeN8N()


@pytest.fixture
async def n8n_client(fake_n8n):
    client = N8NClient(
        base_url="http://n8n.test/api/v1/",
        api_key="test-key",
        editor_url="http://n8n.test",
        transport=httpx.MockTransport(fake_n8n.handler)
    )
    yield client
    await client.close()
