"""
Data Contracts - Pydantic Models
Defines the structure of workflow documents, validation reports and API payloads.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue


Coordinate = Union[int, float]


class Connection(BaseModel):
    """One wire into input port `index` of node `node`."""
    model_config = ConfigDict(extra="allow")

    node: str
    type: Optional[str] = None
    index: int = 0
    typeData: Optional[JsonValue] = None


class WorkflowNode(BaseModel):
    """Represents a single node in an n8n workflow."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    position: Tuple[Coordinate, Coordinate]
    parameters: Dict[str, JsonValue] = Field(default_factory=dict)
    typeVersion: Coordinate = 1
    notes: Optional[str] = None


class WorkflowDocument(BaseModel):
    """
    Full workflow document.
    `connections` maps a source node id to its output ports, each port
    holding the wires leaving it. Port index is the outer list position.
    """
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1, max_length=200)
    nodes: List[WorkflowNode] = Field(min_length=1)
    connections: Dict[str, List[List[Connection]]] = Field(default_factory=dict)
    settings: Optional[Dict[str, JsonValue]] = None
    staticData: Optional[Dict[str, JsonValue]] = None
    tags: Optional[List[JsonValue]] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class NodeResult(BaseModel):
    id: Any = None
    name: Any = None
    type: Any = None
    is_valid: bool = Field(serialization_alias="isValid")
    errors: List[str] = Field(default_factory=list)


class ConnectionResult(BaseModel):
    source: Any = Field(default=None, serialization_alias="from")
    target: Any = Field(default=None, serialization_alias="to")
    is_valid: bool = Field(serialization_alias="isValid")
    errors: List[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Outcome of a structural check. Warnings never affect `is_valid`."""
    is_valid: bool = Field(serialization_alias="isValid")
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    nodes: List[NodeResult] = Field(default_factory=list)
    connections: List[ConnectionResult] = Field(default_factory=list)


class WorkflowVersionRead(BaseModel):
    """An immutable snapshot in a workflow's history."""
    model_config = ConfigDict(from_attributes=True)

    workflow_id: str = Field(serialization_alias="workflowId")
    version: int
    document: Dict[str, Any]
    change_log: str = Field(serialization_alias="changeLog")
    created_by: str = Field(serialization_alias="createdBy")
    created_at: datetime = Field(serialization_alias="createdAt")


class RestoreResult(BaseModel):
    version: WorkflowVersionRead
    validation: ValidationReport


class WorkflowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str = Field(serialization_alias="userId")
    name: str
    description: Optional[str] = None
    document: Dict[str, Any]
    status: str
    is_deployed: bool = Field(serialization_alias="isDeployed")
    n8n_workflow_id: Optional[str] = Field(default=None, serialization_alias="n8nWorkflowId")
    version: int
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class ExecutionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str = Field(serialization_alias="workflowId")
    status: str
    n8n_execution_id: Optional[str] = Field(default=None, serialization_alias="n8nExecutionId")
    input_data: Dict[str, Any] = Field(default_factory=dict, serialization_alias="inputData")
    output_data: Optional[Any] = Field(default=None, serialization_alias="outputData")
    error_message: Optional[str] = Field(default=None, serialization_alias="errorMessage")
    started_at: datetime = Field(serialization_alias="startedAt")
    completed_at: Optional[datetime] = Field(default=None, serialization_alias="completedAt")


class WorkflowDetail(WorkflowRead):
    """A workflow with its most recent versions and executions."""
    versions: List[WorkflowVersionRead] = Field(default_factory=list)
    executions: List[ExecutionRead] = Field(default_factory=list)


class WorkflowPage(BaseModel):
    items: List[WorkflowRead]
    total: int
    page: int
    page_size: int = Field(serialization_alias="pageSize")
    has_more: bool = Field(serialization_alias="hasMore")


class DeployResult(BaseModel):
    """Result of a workflow deployment."""
    workflow_id: str = Field(serialization_alias="workflowId")
    n8n_workflow_id: str = Field(serialization_alias="n8nWorkflowId")
    deployed_url: str = Field(serialization_alias="deployedUrl")
    status: str


# Request bodies

class WorkflowCreateRequest(BaseModel):
    workflow: Dict[str, Any]
    description: Optional[str] = None


class WorkflowUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    updates: Dict[str, Any]
    change_log: Optional[str] = Field(default=None, alias="changeLog")
    expected_version: Optional[int] = Field(default=None, alias="expectedVersion")


class WorkflowDeployRequest(BaseModel):
    activate: bool = False


class WorkflowExecuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    input_data: Optional[Dict[str, Any]] = Field(default=None, alias="inputData")
