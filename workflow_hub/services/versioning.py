"""
Workflow Version Controller - Append-only History
Every structural change appends a numbered snapshot and moves the workflow's
"current" pointer to it. Restores append too; history is never rewritten.
"""
import copy
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workflow_hub.core.database import Database
from workflow_hub.core.errors import ConflictError, NotFoundError
from workflow_hub.core.logging import versioning_logger as logger
from workflow_hub.models.records import WorkflowRecord, WorkflowVersionRecord
from workflow_hub.models.schemas import RestoreResult, WorkflowVersionRead
from workflow_hub.services.validator import validate_workflow


INITIAL_CHANGE_LOG = "Initial version"


def _snapshot(document: Any) -> Dict[str, Any]:
    """Detached JSON copy of a document, so stored versions share no state with callers."""
    if hasattr(document, "to_json"):
        return document.to_json()
    return copy.deepcopy(dict(document))


class VersionController:
    """
    Maintains per-workflow version numbers 1, 2, 3, ... with no reuse.

    Numbering is guarded twice inside each transaction: the workflow row is
    only advanced if its counter still equals the value read at the start,
    and (workflow_id, version) is unique. Either failure is a ConflictError;
    retrying is up to the caller.
    """

    def __init__(self, database: Database):
        self._database = database

    async def _current_version(self, session: AsyncSession, workflow_id: str) -> Optional[int]:
        """Highest stored version number, or None before version 1 exists."""
        return await session.scalar(
            select(func.max(WorkflowVersionRecord.version))
            .where(WorkflowVersionRecord.workflow_id == workflow_id)
        )

    async def write_initial_version(
        self,
        session: AsyncSession,
        workflow_id: str,
        document: Any,
        actor_id: str,
        change_log: str = INITIAL_CHANGE_LOG
    ) -> WorkflowVersionRecord:
        """Write version 1 inside the caller's transaction."""
        workflow = await session.get(WorkflowRecord, workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")

        if await self._current_version(session, workflow_id) is not None:
            raise ConflictError(f"Workflow {workflow_id} already has versions")

        snapshot = _snapshot(document)
        workflow.document = snapshot
        workflow.version = 1

        record = WorkflowVersionRecord(
            workflow_id=workflow_id,
            version=1,
            document=copy.deepcopy(snapshot),
            change_log=change_log,
            created_by=actor_id
        )
        session.add(record)
        await session.flush()
        return record

    async def _append_version(
        self,
        session: AsyncSession,
        workflow_id: str,
        document: Dict[str, Any],
        actor_id: str,
        change_log: str,
        expected_version: Optional[int]
    ) -> WorkflowVersionRecord:
        current = await self._current_version(session, workflow_id)
        if current is None:
            raise NotFoundError(
                f"Workflow {workflow_id} has no versions; create the initial version first"
            )
        if expected_version is not None and expected_version != current:
            raise ConflictError(
                f"Workflow {workflow_id} is at version {current}, expected {expected_version}"
            )

        next_version = current + 1
        values: Dict[str, Any] = {"document": document, "version": next_version}
        if isinstance(document.get("name"), str) and document["name"].strip():
            values["name"] = document["name"]

        result = await session.execute(
            update(WorkflowRecord)
            .where(WorkflowRecord.id == workflow_id, WorkflowRecord.version == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Workflow {workflow_id} changed while writing version {next_version}"
            )

        record = WorkflowVersionRecord(
            workflow_id=workflow_id,
            version=next_version,
            document=copy.deepcopy(document),
            change_log=change_log,
            created_by=actor_id
        )
        session.add(record)
        await session.flush()
        return record

    async def create_initial_version(
        self,
        workflow_id: str,
        document: Any,
        actor_id: str,
        change_log: str = INITIAL_CHANGE_LOG
    ) -> WorkflowVersionRead:
        """
        Create version 1 for a newly created workflow.

        Raises:
            NotFoundError: the workflow record does not exist.
            ConflictError: the workflow already has versions.
        """
        async with self._database.session() as session:
            try:
                async with session.begin():
                    record = await self.write_initial_version(
                        session, workflow_id, document, actor_id, change_log
                    )
            except IntegrityError as e:
                raise ConflictError(f"Workflow {workflow_id} already has versions") from e

        logger.info(f"Created initial version for workflow {workflow_id}")
        return WorkflowVersionRead.model_validate(record)

    async def create_next_version(
        self,
        workflow_id: str,
        document: Any,
        actor_id: str,
        change_log: str,
        expected_version: Optional[int] = None
    ) -> WorkflowVersionRead:
        """
        Append version max + 1 and point the workflow at it, atomically.

        Args:
            expected_version: version the caller based its change on; a mismatch
                is reported as a conflict instead of silently building on newer state.

        Raises:
            NotFoundError: the workflow has no versions yet.
            ConflictError: another writer advanced the workflow concurrently.
        """
        snapshot = _snapshot(document)
        async with self._database.session() as session:
            try:
                async with session.begin():
                    record = await self._append_version(
                        session, workflow_id, snapshot, actor_id, change_log, expected_version
                    )
            except IntegrityError as e:
                raise ConflictError(
                    f"Concurrent version write detected for workflow {workflow_id}"
                ) from e

        logger.info(f"Workflow {workflow_id} advanced to version {record.version}: {change_log}")
        return WorkflowVersionRead.model_validate(record)

    async def restore_version(
        self,
        workflow_id: str,
        target_version: int,
        actor_id: str,
        expected_version: Optional[int] = None
    ) -> RestoreResult:
        """
        Make an earlier version current again by appending a copy of it.

        The restored document is re-validated. An invalid historical document is
        still restored; the report comes back to the caller.

        Raises:
            NotFoundError: no version `target_version` exists for the workflow.
            ConflictError: another writer advanced the workflow concurrently.
        """
        async with self._database.session() as session:
            try:
                async with session.begin():
                    target = await session.scalar(
                        select(WorkflowVersionRecord).where(
                            WorkflowVersionRecord.workflow_id == workflow_id,
                            WorkflowVersionRecord.version == target_version
                        )
                    )
                    if target is None:
                        raise NotFoundError(
                            f"Version {target_version} not found for workflow {workflow_id}"
                        )

                    report = validate_workflow(target.document)
                    if not report.is_valid:
                        logger.warning(
                            f"Restoring invalid version {target_version} of workflow "
                            f"{workflow_id}: {', '.join(report.errors)}"
                        )

                    record = await self._append_version(
                        session,
                        workflow_id,
                        copy.deepcopy(target.document),
                        actor_id,
                        f"Restored from version {target_version}",
                        expected_version
                    )
            except IntegrityError as e:
                raise ConflictError(
                    f"Concurrent version write detected for workflow {workflow_id}"
                ) from e

        logger.info(
            f"Workflow {workflow_id} restored from version {target_version} as version {record.version}"
        )
        return RestoreResult(version=WorkflowVersionRead.model_validate(record), validation=report)

    async def list_versions(self, workflow_id: str, limit: Optional[int] = None) -> List[WorkflowVersionRead]:
        """All versions of a workflow, newest first."""
        async with self._database.session() as session:
            workflow = await session.get(WorkflowRecord, workflow_id)
            if workflow is None:
                raise NotFoundError(f"Workflow {workflow_id} not found")

            query = (
                select(WorkflowVersionRecord)
                .where(WorkflowVersionRecord.workflow_id == workflow_id)
                .order_by(WorkflowVersionRecord.version.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            rows = (await session.scalars(query)).all()

        return [WorkflowVersionRead.model_validate(row) for row in rows]

    async def get_version(self, workflow_id: str, version: int) -> WorkflowVersionRead:
        async with self._database.session() as session:
            record = await session.scalar(
                select(WorkflowVersionRecord).where(
                    WorkflowVersionRecord.workflow_id == workflow_id,
                    WorkflowVersionRecord.version == version
                )
            )
        if record is None:
            raise NotFoundError(f"Version {version} not found for workflow {workflow_id}")
        return WorkflowVersionRead.model_validate(record)
