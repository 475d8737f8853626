"""
HTTP Client Layer - n8n Automation Engine
Async httpx wrapper with standardized error handling and workflow-level helpers.
"""
import json
from functools import wraps
from typing import Any, Dict, Optional

import httpx

from workflow_hub.core.config import settings
from workflow_hub.core.errors import WorkflowHubError
from workflow_hub.core.logging import n8n_logger as logger


class N8NClientError(Exception):
    """Custom exception for n8n API errors."""
    def __init__(self, status_code: int, message: str, context: str = ""):
        self.status_code = status_code
        self.message = message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "code": self.status_code,
            "message": self.message,
            "context": self.context
        }


class N8NClient:
    """
    HTTP Client for the n8n public API.
    Manages connection lifecycle, headers, and error handling.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        editor_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url or settings.api_url
        self._editor_url = (editor_url or settings.n8n_editor_url).rstrip("/")
        self._headers = {
            "X-N8N-API-KEY": api_key if api_key is not None else settings.n8n_api_key,
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        self._timeout = httpx.Timeout(settings.http_timeout, read=60.0)
        self._client: Optional[httpx.AsyncClient] = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=transport
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def close(self):
        """Close the HTTP client connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Execute an HTTP request with standardized error handling.
        """
        try:
            response = await self._client.request(
                method=method,
                url=endpoint,
                json=json_data,
                params=params
            )
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

        except httpx.HTTPStatusError as e:
            try:
                error_detail = e.response.json()
            except ValueError:
                error_detail = e.response.text
            logger.error(f"n8n API error {e.response.status_code} on {method} {endpoint}: {error_detail}")
            raise N8NClientError(
                status_code=e.response.status_code,
                message=f"n8n API Error: {error_detail}",
                context=str(e)
            )

        except httpx.RequestError as e:
            logger.error(f"n8n unreachable on {method} {endpoint}: {e}")
            raise N8NClientError(
                status_code=503,
                message="Network/Connection Failure",
                context=str(e)
            )

    # Convenience methods
    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Dict[str, Any]:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: Optional[Dict] = None) -> Dict[str, Any]:
        return await self.request("POST", endpoint, json_data=json_data)

    async def put(self, endpoint: str, json_data: Optional[Dict] = None) -> Dict[str, Any]:
        return await self.request("PUT", endpoint, json_data=json_data)

    async def delete(self, endpoint: str) -> Dict[str, Any]:
        return await self.request("DELETE", endpoint)

    # Workflow operations
    def editor_url(self, workflow_id: str) -> str:
        return f"{self._editor_url}/workflow/{workflow_id}"

    @staticmethod
    def _payload(document: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": document.get("name"),
            "nodes": document.get("nodes", []),
            "connections": document.get("connections", {}),
            "settings": document.get("settings") or {},
            "staticData": document.get("staticData")
        }

    async def test_connection(self) -> bool:
        """Check that the n8n API answers with the configured key."""
        try:
            await self.get("workflows", params={"limit": 1})
            return True
        except N8NClientError as e:
            logger.error(f"n8n connection test failed: {e.message}")
            return False

    async def deploy_workflow(self, document: Dict[str, Any]) -> Dict[str, str]:
        """Create the workflow remotely and return its id and editor URL."""
        logger.info(f"Deploying workflow to n8n: '{document.get('name')}'")
        data = await self.post("workflows", json_data=self._payload(document))
        workflow_id = str(data["id"])
        url = self.editor_url(workflow_id)
        logger.info(f"Workflow created in n8n: {workflow_id} → {url}")
        return {"id": workflow_id, "url": url}

    async def update_workflow(self, workflow_id: str, document: Dict[str, Any]) -> None:
        logger.info(f"Updating workflow in n8n: {workflow_id}")
        await self.put(f"workflows/{workflow_id}", json_data=self._payload(document))

    async def delete_workflow(self, workflow_id: str) -> None:
        logger.info(f"Deleting workflow from n8n: {workflow_id}")
        await self.delete(f"workflows/{workflow_id}")

    async def activate_workflow(self, workflow_id: str) -> None:
        logger.info(f"Activating workflow in n8n: {workflow_id}")
        await self.post(f"workflows/{workflow_id}/activate")

    async def execute_workflow(self, workflow_id: str, input_data: Optional[Dict[str, Any]] = None) -> str:
        """Start a manual run and return the n8n execution id."""
        logger.info(f"Executing workflow in n8n: {workflow_id}")
        data = await self.post(f"workflows/{workflow_id}/execute", json_data={"data": input_data or {}})
        execution_id = str(data["executionId"])
        logger.info(f"Workflow execution started: {execution_id}")
        return execution_id

    async def get_execution_status(self, execution_id: str) -> Dict[str, Any]:
        """
        Returns:
            {"status": running | success | error | waiting, "data": ..., "error": ...}
        """
        data = await self.get(f"executions/{execution_id}")
        return {
            "status": data.get("status"),
            "data": data.get("data"),
            "error": data.get("error")
        }


_client: Optional[N8NClient] = None


def get_client() -> N8NClient:
    """Factory function to get the shared client instance."""
    global _client
    if _client is None:
        _client = N8NClient()
    return _client


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def safe_tool(func):
    """
    Decorator for MCP tools.
    Catches domain and n8n errors and returns a JSON error response instead of crashing.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except WorkflowHubError as e:
            return json.dumps({"status": "error", **e.to_dict()}, indent=2)
        except N8NClientError as e:
            return json.dumps(e.to_dict(), indent=2)
        except ValueError as e:
            return json.dumps({
                "status": "error",
                "code": "VALIDATION_ERROR",
                "message": f"Validation Error: {str(e)}"
            }, indent=2)
    return wrapper
