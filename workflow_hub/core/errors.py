"""
Domain Errors
Every error the service layer raises knows its HTTP status and envelope code.
"""
from typing import Any, Dict, Optional


class WorkflowHubError(Exception):
    """Base class for errors that surface to API and MCP callers."""
    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class NotFoundError(WorkflowHubError):
    """A workflow or (workflow, version) pair has no matching record."""
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(WorkflowHubError):
    """Version numbering could not be applied atomically, or version 1 already exists."""
    status_code = 409
    code = "CONFLICT"


class WorkflowValidationError(WorkflowHubError):
    """A command was refused because the workflow document has structural errors."""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, report: Any = None):
        self.report = report
        details = None
        if report is not None:
            details = report.model_dump(by_alias=True) if hasattr(report, "model_dump") else report
        super().__init__(message, details)
