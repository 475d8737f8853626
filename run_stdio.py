"""
Stdio Entrypoint - For MCP Client Integration
Runs the FastMCP server in stdio mode for direct LLM integration.
"""
import asyncio

from workflow_hub.core.database import get_database
from workflow_hub.main import mcp

if __name__ == "__main__":
    asyncio.run(get_database().init_models())
    try:
        mcp.run()
    except KeyboardInterrupt:
        pass
