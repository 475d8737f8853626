import httpx
import pytest

from workflow_hub.core.client import N8NClient, N8NClientError


def _client(handler) -> N8NClient:
    return N8NClient(
        base_url="http://n8n.test/api/v1/",
        api_key="secret",
        editor_url="http://n8n.test/",
        transport=httpx.MockTransport(handler)
    )


async def test_requests_carry_api_key_and_base_path():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    client = _client(handler)
    assert await client.test_connection() is True
    await client.close()

    assert seen[0].headers["X-N8N-API-KEY"] == "secret"
    assert seen[0].url.path == "/api/v1/workflows"
    assert seen[0].url.params["limit"] == "1"


async def test_http_error_keeps_upstream_status():
    client = _client(lambda request: httpx.Response(404, json={"message": "Not Found"}))

    with pytest.raises(N8NClientError) as excinfo:
        await client.get("workflows/abc")
    await client.close()

    assert excinfo.value.status_code == 404
    assert "Not Found" in excinfo.value.message


async def test_transport_failure_maps_to_503():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(N8NClientError) as excinfo:
        await client.get("workflows")
    assert await client.test_connection() is False
    await client.close()

    assert excinfo.value.status_code == 503
    assert excinfo.value.message == "Network/Connection Failure"


async def test_empty_body_is_empty_dict():
    client = _client(lambda request: httpx.Response(204))

    assert await client.delete("workflows/abc") == {}
    await client.close()


async def test_deploy_returns_id_and_editor_url(fake_n8n):
    client = _client(fake_n8n.handler)

    result = await client.deploy_workflow({"name": "W", "nodes": [], "connections": {}, "tags": ["x"]})
    await client.close()

    assert result == {"id": "remote-1", "url": "http://n8n.test/workflow/remote-1"}
    # only the fields n8n accepts are sent
    assert fake_n8n.workflows["remote-1"] == {
        "name": "W",
        "nodes": [],
        "connections": {},
        "settings": {},
        "staticData": None,
    }


async def test_execute_and_poll(fake_n8n):
    client = _client(fake_n8n.handler)

    execution_id = await client.execute_workflow("remote-9", {"a": 1})
    running = await client.get_execution_status(execution_id)
    fake_n8n.executions[execution_id].update(status="error", error="boom")
    failed = await client.get_execution_status(execution_id)
    await client.close()

    assert execution_id == "exec-1"
    assert ("POST", "/api/v1/workflows/remote-9/execute") in fake_n8n.requests
    assert fake_n8n.executions["exec-1"]["input"] == {"data": {"a": 1}}
    assert running == {"status": "running", "data": None, "error": None}
    assert failed == {"status": "error", "data": None, "error": "boom"}
