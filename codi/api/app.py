"""FastAPI application for Codi.

Errors map to status codes:
    InputError              400
    NamespaceNotFoundError  404
    StageError              502 (body names the failing stage)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from codi.api.routes import get_assistant
from codi.api.routes import router as repo_router
from codi.assistant import CodeAssistant
from codi.config import CodiConfig, get_config
from codi.errors import InputError, NamespaceNotFoundError, StageError

logger = logging.getLogger(__name__)


class SystemPromptRequest(BaseModel):
    prompt: str


async def _input_error(request: Request, exc: InputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _not_found(request: Request, exc: NamespaceNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": str(exc), "namespace": exc.namespace},
    )


async def _stage_error(request: Request, exc: StageError) -> JSONResponse:
    logger.error("%s", exc)
    content: dict[str, Any] = {"error": str(exc), "stage": exc.stage.value}
    chunks_written = getattr(exc, "chunks_written", None)
    if chunks_written:
        content["chunksWritten"] = chunks_written
    return JSONResponse(status_code=502, content=content)


def create_app(assistant: CodeAssistant | None = None, config: CodiConfig | None = None) -> FastAPI:
    """Build the API application.

    Args:
        assistant: Service to expose; built from config when omitted
        config: Configuration used to build the assistant
    """
    app = FastAPI(title="Codi")
    app.state.assistant = assistant or CodeAssistant.from_config(config or get_config())

    app.add_exception_handler(InputError, _input_error)
    app.add_exception_handler(NamespaceNotFoundError, _not_found)
    app.add_exception_handler(StageError, _stage_error)
    app.include_router(repo_router)

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Report whether the vector store is reachable."""
        status = await get_assistant(request).health_check()
        code = 200 if status["status"] == "healthy" else 503
        return JSONResponse(status_code=code, content=status)

    @app.get("/api/system-prompt")
    async def get_system_prompt(request: Request) -> dict[str, str]:
        return {"prompt": get_assistant(request).system_prompt}

    @app.put("/api/system-prompt")
    async def update_system_prompt(body: SystemPromptRequest, request: Request) -> JSONResponse:
        try:
            get_assistant(request).update_system_prompt(body.prompt)
        except ValueError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        return JSONResponse(content={"success": True})

    return app


def run_server(
    host: str | None = None,
    port: int | None = None,
    config: CodiConfig | None = None,
) -> None:
    """Run the API server."""
    import uvicorn

    config = config or get_config()
    app = create_app(config=config)
    uvicorn.run(app, host=host or config.server.host, port=port or config.server.port)
