"""
Entrypoint - Server Launcher
"""
import uvicorn

from workflow_hub.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "workflow_hub.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=settings.debug
    )
