"""
Main Application Gateway
Exposes workflow validation, versioning and deployment over HTTP (FastAPI)
and the history tools over MCP (FastMCP).
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastmcp import FastMCP
from sqlalchemy import text

from workflow_hub.core.client import N8NClient, N8NClientError, close_client, get_client
from workflow_hub.core.config import settings
from workflow_hub.core.database import Database, get_database
from workflow_hub.core.errors import WorkflowHubError
from workflow_hub.core.logging import gateway_logger as logger
from workflow_hub.models.schemas import (
    WorkflowCreateRequest,
    WorkflowDeployRequest,
    WorkflowExecuteRequest,
    WorkflowUpdateRequest,
)
from workflow_hub.services.tools import (
    list_workflow_versions,
    restore_workflow_version,
    validate_workflow_document,
)
from workflow_hub.services.validator import validate_workflow
from workflow_hub.services.versioning import VersionController
from workflow_hub.services.workflows import WorkflowService

VERSION = "1.0.0"


# =============================================================================
# LIFESPAN MANAGER
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages the application lifecycle.
    - Startup: Create tables, log configuration
    - Shutdown: Close HTTP client and database engine
    """
    database = get_database()
    await database.init_models()

    logger.info("=" * 60)
    logger.info("🚀 Workflow Hub Starting")
    logger.info(f"📡 n8n API: {settings.api_url}")
    logger.info(f"🌐 Editor: {settings.n8n_editor_url}")
    logger.info(f"🗄️ Database: {database.engine.url.render_as_string(hide_password=True)}")
    logger.info("=" * 60)

    yield

    await close_client()
    await database.dispose()
    logger.info("👋 Workflow Hub Shutdown")


# =============================================================================
# FASTAPI APP INITIALIZATION
# =============================================================================
app = FastAPI(
    title="Workflow Hub API",
    description="Workflow validation, version history and n8n deployment.",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================
def get_workflow_service(
    database: Database = Depends(get_database),
    client: N8NClient = Depends(get_client)
) -> WorkflowService:
    return WorkflowService(database, VersionController(database), client)


def get_actor_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1)) -> str:
    return x_user_id


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


def fail(status_code: int, error: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================
@app.exception_handler(WorkflowHubError)
async def domain_exception_handler(request: Request, exc: WorkflowHubError):
    logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return fail(exc.status_code, jsonable_encoder(exc.to_dict()))


@app.exception_handler(N8NClientError)
async def n8n_exception_handler(request: Request, exc: N8NClientError):
    logger.error(f"n8n failure on {request.method} {request.url.path}: {exc.message}")
    return fail(502, {"code": "N8N_ERROR", "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return fail(400, {
        "code": "VALIDATION_ERROR",
        "message": "Invalid request data",
        "details": jsonable_encoder(exc.errors())
    })


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catches any unhandled error and returns it in Envelope format.
    """
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    message = str(exc) if settings.debug else "An unexpected error occurred"
    return fail(500, {"code": "INTERNAL_SERVER_ERROR", "message": message})


# =============================================================================
# HEALTH & INFO ENDPOINTS
# =============================================================================
@app.get("/health")
async def health_check(
    database: Database = Depends(get_database),
    client: N8NClient = Depends(get_client)
):
    """Check server, database and n8n connectivity status."""
    try:
        async with database.session() as session:
            await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)[:50]}"

    n8n_status = "connected" if await client.test_connection() else "unreachable"

    return {
        "status": "healthy",
        "database": db_status,
        "n8n_connection": n8n_status,
        "version": VERSION
    }


@app.get("/info")
async def server_info():
    """Get server configuration info."""
    return {
        "name": "Workflow Hub",
        "version": VERSION,
        "n8n_base_url": settings.n8n_base_url,
        "n8n_editor_url": settings.n8n_editor_url
    }


# =============================================================================
# WORKFLOW ENDPOINTS
# =============================================================================
API_PREFIX = "/api/v1/workflows"


@app.post(f"{API_PREFIX}/validate")
async def validate_document(document: Any = Body(None)):
    """Validate an ad-hoc document. Always 200: validation is a query."""
    return ok(validate_workflow(document))


@app.post(API_PREFIX)
async def create_workflow(
    body: WorkflowCreateRequest,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    workflow = await service.create_workflow(user_id, body.workflow, body.description)
    return ok(workflow, status_code=201)


@app.get(API_PREFIX)
async def list_workflows(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    return ok(await service.list_workflows(user_id, status=status, page=page, page_size=page_size))


@app.get(API_PREFIX + "/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    return ok(await service.get_workflow(workflow_id, user_id))


@app.put(API_PREFIX + "/{workflow_id}")
async def update_workflow(
    workflow_id: str,
    body: WorkflowUpdateRequest,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    workflow = await service.update_workflow(
        workflow_id,
        user_id,
        body.updates,
        change_log=body.change_log,
        expected_version=body.expected_version
    )
    return ok(workflow)


@app.delete(API_PREFIX + "/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    await service.delete_workflow(workflow_id, user_id)
    return ok({"message": "Workflow deleted successfully"})


@app.get(API_PREFIX + "/{workflow_id}/validate")
async def validate_stored_workflow(
    workflow_id: str,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    return ok(await service.validate_workflow(workflow_id, user_id))


@app.post(API_PREFIX + "/{workflow_id}/deploy")
async def deploy_workflow(
    workflow_id: str,
    body: Optional[WorkflowDeployRequest] = None,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    activate = body.activate if body else False
    return ok(await service.deploy_workflow(workflow_id, user_id, activate=activate))


@app.post(API_PREFIX + "/{workflow_id}/execute")
async def execute_workflow(
    workflow_id: str,
    body: Optional[WorkflowExecuteRequest] = None,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    input_data = body.input_data if body else None
    return ok(await service.execute_workflow(workflow_id, user_id, input_data=input_data))


@app.get("/api/v1/executions/{execution_id}")
async def get_execution_status(
    execution_id: str,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    return ok(await service.get_execution_status(execution_id, user_id))


@app.get(API_PREFIX + "/{workflow_id}/versions")
async def get_version_history(
    workflow_id: str,
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    versions = await service.get_version_history(workflow_id, user_id)
    return ok([v.model_dump(mode="json", by_alias=True) for v in versions])


@app.post(API_PREFIX + "/{workflow_id}/versions/{version}/restore")
async def restore_version(
    workflow_id: str,
    version: int,
    expected_version: Optional[int] = Query(None, alias="expectedVersion"),
    user_id: str = Depends(get_actor_id),
    service: WorkflowService = Depends(get_workflow_service)
):
    result = await service.restore_version(
        workflow_id, user_id, version, expected_version=expected_version
    )
    return ok(result)


# =============================================================================
# FASTMCP SERVER INITIALIZATION
# =============================================================================
mcp = FastMCP("Workflow Hub")

mcp.tool()(validate_workflow_document)
mcp.tool()(list_workflow_versions)
mcp.tool()(restore_workflow_version)


if __name__ == "__main__":
    mcp.run()
