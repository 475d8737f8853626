"""
Workflow Service - The Constructor
Handles creation, updating, deployment, execution and history of user workflows.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy import delete, func, select

from workflow_hub.core.client import N8NClient, N8NClientError
from workflow_hub.core.database import Database
from workflow_hub.core.errors import NotFoundError, WorkflowValidationError
from workflow_hub.core.logging import workflows_logger as logger
from workflow_hub.models.records import (
    ExecutionRecord,
    ExecutionStatus,
    WorkflowRecord,
    WorkflowStatus,
    WorkflowVersionRecord,
)
from workflow_hub.models.schemas import (
    DeployResult,
    ExecutionRead,
    RestoreResult,
    ValidationReport,
    WorkflowDetail,
    WorkflowDocument,
    WorkflowPage,
    WorkflowRead,
    WorkflowVersionRead,
)
from workflow_hub.services.validator import validate_workflow
from workflow_hub.services.versioning import VersionController


RECENT_VERSIONS = 10
RECENT_EXECUTIONS = 20


def _normalize(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate structure, then coerce into the canonical wire shape.
    Raises WorkflowValidationError carrying the report on failure.
    """
    report = validate_workflow(document)
    if not report.is_valid:
        raise WorkflowValidationError(
            f"Workflow validation failed: {', '.join(report.errors)}", report
        )
    try:
        return WorkflowDocument.model_validate(document).to_json()
    except ValidationError as e:
        raise WorkflowValidationError(
            f"Workflow validation failed: {e.error_count()} invalid field(s)",
            e.errors(include_url=False, include_context=False)
        ) from e


class WorkflowService:
    """User-facing workflow operations, each scoped to the owning user."""

    def __init__(self, database: Database, versions: VersionController, client: N8NClient):
        self._database = database
        self._versions = versions
        self._client = client

    async def _owned(self, session, workflow_id: str, user_id: str) -> WorkflowRecord:
        workflow = await session.scalar(
            select(WorkflowRecord).where(
                WorkflowRecord.id == workflow_id,
                WorkflowRecord.user_id == user_id
            )
        )
        if workflow is None:
            raise NotFoundError("Workflow not found or access denied")
        return workflow

    async def create_workflow(
        self,
        user_id: str,
        document: Dict[str, Any],
        description: Optional[str] = None
    ) -> WorkflowDetail:
        """Store a new DRAFT workflow together with its version 1."""
        normalized = _normalize(document)
        logger.info(f"Creating workflow '{normalized['name']}' for user {user_id}")

        async with self._database.session() as session:
            async with session.begin():
                workflow = WorkflowRecord(
                    user_id=user_id,
                    name=normalized["name"],
                    description=description,
                    document=normalized,
                    status=WorkflowStatus.DRAFT.value,
                    is_deployed=False,
                    version=0
                )
                session.add(workflow)
                await session.flush()
                await self._versions.write_initial_version(session, workflow.id, normalized, user_id)
            workflow_id = workflow.id

        logger.info(f"Workflow created: {workflow_id}")
        return await self.get_workflow(workflow_id, user_id)

    async def get_workflow(self, workflow_id: str, user_id: str) -> WorkflowDetail:
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
            versions = (await session.scalars(
                select(WorkflowVersionRecord)
                .where(WorkflowVersionRecord.workflow_id == workflow_id)
                .order_by(WorkflowVersionRecord.version.desc())
                .limit(RECENT_VERSIONS)
            )).all()
            executions = (await session.scalars(
                select(ExecutionRecord)
                .where(ExecutionRecord.workflow_id == workflow_id)
                .order_by(ExecutionRecord.started_at.desc())
                .limit(RECENT_EXECUTIONS)
            )).all()

        return WorkflowDetail(
            **WorkflowRead.model_validate(workflow).model_dump(),
            versions=[WorkflowVersionRead.model_validate(v) for v in versions],
            executions=[ExecutionRead.model_validate(e) for e in executions]
        )

    async def list_workflows(
        self,
        user_id: str,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> WorkflowPage:
        page = max(page, 1)
        page_size = max(page_size, 1)

        filters = [WorkflowRecord.user_id == user_id]
        if status:
            filters.append(WorkflowRecord.status == status)

        async with self._database.session() as session:
            total = await session.scalar(
                select(func.count()).select_from(WorkflowRecord).where(*filters)
            )
            rows = (await session.scalars(
                select(WorkflowRecord)
                .where(*filters)
                .order_by(WorkflowRecord.updated_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )).all()

        return WorkflowPage(
            items=[WorkflowRead.model_validate(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
            has_more=page * page_size < total
        )

    async def update_workflow(
        self,
        workflow_id: str,
        user_id: str,
        updates: Dict[str, Any],
        change_log: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> WorkflowDetail:
        """
        Merge top-level fields over the current document and append a version.

        The merge is only written on top of the version it was read from; if
        another writer got there first the update fails with ConflictError.
        """
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
            merged = {**workflow.document, **updates}
            base_version = workflow.version

        normalized = _normalize(merged)
        await self._versions.create_next_version(
            workflow_id,
            normalized,
            user_id,
            change_log or "Workflow updated",
            expected_version=expected_version if expected_version is not None else base_version
        )
        return await self.get_workflow(workflow_id, user_id)

    async def delete_workflow(self, workflow_id: str, user_id: str) -> None:
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
            remote_id = workflow.n8n_workflow_id

        if remote_id:
            try:
                await self._client.delete_workflow(remote_id)
            except N8NClientError as e:
                logger.warning(f"Failed to delete workflow {remote_id} from n8n: {e.message}")

        async with self._database.session() as session:
            async with session.begin():
                await session.execute(
                    delete(ExecutionRecord).where(ExecutionRecord.workflow_id == workflow_id)
                )
                await session.execute(
                    delete(WorkflowVersionRecord).where(WorkflowVersionRecord.workflow_id == workflow_id)
                )
                await session.execute(delete(WorkflowRecord).where(WorkflowRecord.id == workflow_id))

        logger.info(f"Workflow deleted: {workflow_id}")

    async def validate_workflow(self, workflow_id: str, user_id: str) -> ValidationReport:
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
        return validate_workflow(workflow.document)

    async def deploy_workflow(self, workflow_id: str, user_id: str, activate: bool = False) -> DeployResult:
        """
        Push the current document to n8n. Structural errors block deployment.
        An already deployed workflow is updated in place.
        """
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
            document = workflow.document
            remote_id = workflow.n8n_workflow_id

        report = validate_workflow(document)
        if not report.is_valid:
            raise WorkflowValidationError(
                f"Workflow validation failed: {', '.join(report.errors)}", report
            )

        if remote_id:
            await self._client.update_workflow(remote_id, document)
            deployed_url = self._client.editor_url(remote_id)
        else:
            created = await self._client.deploy_workflow(document)
            remote_id = created["id"]
            deployed_url = created["url"]

        if activate:
            await self._client.activate_workflow(remote_id)

        async with self._database.session() as session:
            async with session.begin():
                workflow = await self._owned(session, workflow_id, user_id)
                workflow.n8n_workflow_id = remote_id
                workflow.status = WorkflowStatus.DEPLOYED.value
                workflow.is_deployed = True

        logger.info(f"Workflow deployed: {workflow_id} → n8n {remote_id}")
        return DeployResult(
            workflow_id=workflow_id,
            n8n_workflow_id=remote_id,
            deployed_url=deployed_url,
            status=WorkflowStatus.DEPLOYED.value
        )

    async def get_version_history(self, workflow_id: str, user_id: str):
        async with self._database.session() as session:
            await self._owned(session, workflow_id, user_id)
        return await self._versions.list_versions(workflow_id)

    async def restore_version(
        self,
        workflow_id: str,
        user_id: str,
        version: int,
        expected_version: Optional[int] = None
    ) -> RestoreResult:
        async with self._database.session() as session:
            await self._owned(session, workflow_id, user_id)
        return await self._versions.restore_version(
            workflow_id, version, user_id, expected_version=expected_version
        )

    async def execute_workflow(
        self,
        workflow_id: str,
        user_id: str,
        input_data: Optional[Dict[str, Any]] = None
    ) -> ExecutionRead:
        """Start a manual run of the deployed workflow and record it as RUNNING."""
        async with self._database.session() as session:
            workflow = await self._owned(session, workflow_id, user_id)
            remote_id = workflow.n8n_workflow_id

        if not remote_id:
            raise NotFoundError("Workflow not deployed to n8n")

        n8n_execution_id = await self._client.execute_workflow(remote_id, input_data)

        async with self._database.session() as session:
            async with session.begin():
                execution = ExecutionRecord(
                    workflow_id=workflow_id,
                    user_id=user_id,
                    status=ExecutionStatus.RUNNING.value,
                    n8n_execution_id=n8n_execution_id,
                    input_data=input_data or {}
                )
                session.add(execution)

        logger.info(f"Workflow execution started: {workflow_id} → n8n execution {n8n_execution_id}")
        return ExecutionRead.model_validate(execution)

    async def get_execution_status(self, execution_id: str, user_id: str) -> ExecutionRead:
        """
        Return an execution, refreshing it from n8n while it is still RUNNING.
        Once n8n reports anything other than "running" the result is stored.
        """
        async with self._database.session() as session:
            async with session.begin():
                execution = await session.scalar(
                    select(ExecutionRecord).where(
                        ExecutionRecord.id == execution_id,
                        ExecutionRecord.user_id == user_id
                    )
                )
                if execution is None:
                    raise NotFoundError("Execution not found")

                if execution.status == ExecutionStatus.RUNNING.value and execution.n8n_execution_id:
                    remote = await self._client.get_execution_status(execution.n8n_execution_id)
                    remote_status = str(remote.get("status") or "running").upper()
                    if remote_status != ExecutionStatus.RUNNING.value:
                        execution.status = remote_status
                        execution.output_data = remote.get("data")
                        error = remote.get("error")
                        execution.error_message = str(error) if error is not None else None
                        execution.completed_at = datetime.now(timezone.utc)
                        logger.info(f"Execution {execution_id} finished: {remote_status}")

        return ExecutionRead.model_validate(execution)
