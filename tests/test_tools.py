import json

import pytest

from workflow_hub.services import tools
from workflow_hub.services.versioning import VersionController
from conftest import make_document


@pytest.fixture
def tool_database(database, n8n_client, monkeypatch):
    monkeypatch.setattr(tools, "get_database", lambda: database)
    monkeypatch.setattr(tools, "get_client", lambda: n8n_client)
    return database


async def test_validate_tool_accepts_json_string():
    result = json.loads(await tools.validate_workflow_document(json.dumps(make_document(connections={}))))

    assert result["isValid"] is True
    assert len(result["warnings"]) == 2


async def test_validate_tool_accepts_object():
    result = json.loads(await tools.validate_workflow_document({"name": "W"}))

    assert result["isValid"] is False
    assert "Workflow must have at least one node" in result["errors"]


async def test_validate_tool_reports_bad_json():
    result = json.loads(await tools.validate_workflow_document("{not json"))

    assert result["status"] == "error"
    assert result["code"] == "VALIDATION_ERROR"
    assert "Invalid JSON in 'workflow'" in result["message"]


async def test_history_tools_round_trip(tool_database, seed_workflow):
    workflow_id = await seed_workflow()
    controller = VersionController(tool_database)
    await controller.create_initial_version(workflow_id, make_document("one"), "user1")
    await controller.create_next_version(workflow_id, make_document("two"), "user1", "second")

    restored = json.loads(await tools.restore_workflow_version(workflow_id, 1, "user1"))
    listed = json.loads(await tools.list_workflow_versions(workflow_id, "user1"))

    assert restored["new_version"] == 3
    assert restored["validation"]["isValid"] is True
    assert listed["count"] == 3
    assert [v["version"] for v in listed["versions"]] == [3, 2, 1]
    assert listed["versions"][0]["created_by"] == "user1"
    assert listed["versions"][0]["change_log"] == "Restored from version 1"


async def test_unknown_workflow_is_error_json(tool_database):
    result = json.loads(await tools.list_workflow_versions("missing", "user1"))

    assert result["status"] == "error"
    assert result["code"] == "NOT_FOUND"


async def test_restore_tool_checks_ownership(tool_database, seed_workflow):
    workflow_id = await seed_workflow(user_id="user1")
    await VersionController(tool_database).create_initial_version(workflow_id, make_document(), "user1")

    result = json.loads(await tools.restore_workflow_version(workflow_id, 1, "intruder"))

    assert result["status"] == "error"
    assert result["code"] == "NOT_FOUND"
    versions = await VersionController(tool_database).list_versions(workflow_id)
    assert [v.version for v in versions] == [1]


async def test_history_tool_checks_ownership(tool_database, seed_workflow):
    workflow_id = await seed_workflow(user_id="user1")
    await VersionController(tool_database).create_initial_version(workflow_id, make_document(), "user1")

    result = json.loads(await tools.list_workflow_versions(workflow_id, "intruder"))

    assert result["code"] == "NOT_FOUND"
