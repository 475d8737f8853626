"""
MCP Tools - Workflow History & Validation
Thin JSON-returning wrappers registered on the FastMCP server.
"""
import json
from typing import Any, Dict, Union

from workflow_hub.core.client import get_client, safe_tool
from workflow_hub.core.database import get_database
from workflow_hub.core.logging import gateway_logger as logger
from workflow_hub.services.validator import validate_workflow
from workflow_hub.services.versioning import VersionController
from workflow_hub.services.workflows import WorkflowService


def _parse_json_safe(data: Union[str, Dict], field_name: str) -> Any:
    """
    Smart parser: accepts both JSON strings and native Python objects.
    Provides detailed error messages on parse failure.
    """
    if not isinstance(data, str):
        return data

    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in '{field_name}': {e.msg} at line {e.lineno}, column {e.colno}."
        )


def _service() -> WorkflowService:
    database = get_database()
    return WorkflowService(database, VersionController(database), get_client())


@safe_tool
async def validate_workflow_document(workflow: Union[str, Dict[str, Any]]) -> str:
    """
    Check a workflow document (nodes & connections) for structural problems.

    Args:
        workflow: The workflow document, as a JSON string or object.

    Returns:
        JSON string with the validation report.
    """
    report = validate_workflow(_parse_json_safe(workflow, "workflow"))
    logger.info(f"Validated workflow document: valid={report.is_valid}")
    return json.dumps(report.model_dump(by_alias=True), indent=2)


@safe_tool
async def list_workflow_versions(workflow_id: str, user_id: str) -> str:
    """
    List the version history of a stored workflow, newest first.

    Args:
        workflow_id: The ID of the workflow.
        user_id: Owner of the workflow.

    Returns:
        JSON string with version numbers, change logs and authors.
    """
    logger.info(f"Listing versions for workflow: {workflow_id}")
    versions = await _service().get_version_history(workflow_id, user_id)
    return json.dumps({
        "status": "success",
        "workflow_id": workflow_id,
        "count": len(versions),
        "versions": [
            {
                "version": v.version,
                "change_log": v.change_log,
                "created_by": v.created_by,
                "created_at": v.created_at.isoformat()
            }
            for v in versions
        ]
    }, indent=2)


@safe_tool
async def restore_workflow_version(workflow_id: str, version: int, user_id: str) -> str:
    """
    Restore an earlier version of a workflow as a new version.

    Args:
        workflow_id: The ID of the workflow.
        version: The version number to restore.
        user_id: Owner of the workflow, recorded as the author of the new version.

    Returns:
        JSON string with the new version number and the re-validation report.
    """
    logger.info(f"Restoring workflow {workflow_id} from version {version}")
    result = await _service().restore_version(workflow_id, user_id, version)
    return json.dumps({
        "status": "success",
        "workflow_id": workflow_id,
        "restored_from": version,
        "new_version": result.version.version,
        "validation": result.validation.model_dump(by_alias=True)
    }, indent=2)
