from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import Principal, require_role
from .config import AppConfig, app_config
from .errors import FlowdeskError, StorageFault
from .flowchart.catalog import node_types
from .models import (
    Agent,
    CreateAgentRequest,
    CreateFlowchartRequest,
    DuplicateFlowchartRequest,
    Flowchart,
    UpdateFlowchartRequest,
    ValidateFlowchartRequest,
    ValidationResult,
)
from .service import FlowchartService
from .store import AgentStore, FlowchartStore

logger = logging.getLogger(__name__)

# header-safe: printable ASCII minus quote and backslash
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\x20-\x7e]|[\"\\]")

viewer = require_role("viewer")
operator = require_role("operator")
admin = require_role("admin")


def get_service(request: Request) -> FlowchartService:
    return request.app.state.service


def export_disposition(title: str) -> str:
    """Attachment header for an exported flowchart.

    Titles are free text, so the plain ``filename`` is reduced to header-safe
    ASCII and the exact name travels in ``filename*`` (RFC 6266).
    """
    filename = re.sub(r"\s+", "_", title) + "_flowchart.json"
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def create_app(
    config: AppConfig | None = None,
    flowcharts: FlowchartStore | None = None,
    agents: AgentStore | None = None,
) -> FastAPI:
    config = config or app_config
    logging.basicConfig(level=config.log_level())
    settings = config.api_settings()

    if flowcharts is None:
        flowcharts = FlowchartStore(
            config.db_path(),
            change_log_limit=config.change_log_limit(),
            export_version=config.export_version(),
        )
    if agents is None:
        agents = AgentStore(config.db_path())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await flowcharts.initialize()
        await agents.initialize()
        yield

    app = FastAPI(title=str(settings["title"]), version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings["cors_origins"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.service = FlowchartService(
        flowcharts,
        agents,
        layout_defaults=config.layout_defaults(),
        metadata_defaults=config.metadata_defaults(),
    )

    @app.exception_handler(FlowdeskError)
    async def flowdesk_error_handler(request: Request, exc: FlowdeskError) -> JSONResponse:
        if isinstance(exc, StorageFault):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.cause)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": details})

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/node-types")
    def list_node_types() -> list[str]:
        return node_types.list_types()

    @app.get("/node-catalog")
    def node_catalog() -> list[dict[str, object]]:
        return node_types.list_specs()

    @app.get("/config")
    def show_config(request: Request, _: Principal = Depends(viewer)) -> dict[str, object]:
        current: AppConfig = request.app.state.config
        return {
            "layout_defaults": current.layout_defaults(),
            "metadata_defaults": current.metadata_defaults(),
            "change_log_limit": current.change_log_limit(),
        }

    @app.get("/flowcharts", response_model=list[Flowchart], response_model_exclude_none=True)
    async def list_flowcharts(
        agent_id: str | None = Query(default=None, alias="agentId"),
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> list[Flowchart]:
        return await service.list_flowcharts(agent_id)

    @app.post("/agents", response_model=Agent, status_code=201)
    async def create_agent(
        request: CreateAgentRequest,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(operator),
    ) -> Agent:
        return await service.create_agent(request)

    @app.get("/agents", response_model=list[Agent])
    async def list_agents(
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> list[Agent]:
        return await service.list_agents()

    @app.get("/agents/{agent_id}", response_model=Agent)
    async def get_agent(
        agent_id: str,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> Agent:
        return await service.get_agent(agent_id)

    @app.delete("/agents/{agent_id}")
    async def delete_agent(
        agent_id: str,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(admin),
    ) -> dict[str, str]:
        await service.delete_agent(agent_id)
        return {"message": "Agent deleted successfully"}

    @app.get(
        "/agents/{agent_id}/flowchart",
        response_model=Flowchart,
        response_model_exclude_none=True,
    )
    async def get_flowchart(
        agent_id: str,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> Flowchart:
        return await service.get(agent_id)

    @app.post(
        "/agents/{agent_id}/flowchart",
        response_model=Flowchart,
        response_model_exclude_none=True,
        status_code=201,
    )
    async def create_flowchart(
        agent_id: str,
        request: CreateFlowchartRequest,
        service: FlowchartService = Depends(get_service),
        principal: Principal = Depends(operator),
    ) -> Flowchart:
        return await service.create(agent_id, request, user_id=principal.id)

    @app.put(
        "/agents/{agent_id}/flowchart",
        response_model=Flowchart,
        response_model_exclude_none=True,
    )
    async def update_flowchart(
        agent_id: str,
        request: UpdateFlowchartRequest,
        service: FlowchartService = Depends(get_service),
        principal: Principal = Depends(operator),
    ) -> Flowchart:
        return await service.update(agent_id, request, user_id=principal.id)

    @app.delete("/agents/{agent_id}/flowchart")
    async def delete_flowchart(
        agent_id: str,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(admin),
    ) -> dict[str, str]:
        await service.delete(agent_id)
        return {"message": "Flowchart deleted successfully"}

    @app.post("/agents/{agent_id}/flowchart/validate", response_model=ValidationResult)
    async def validate_flowchart(
        agent_id: str,
        request: ValidateFlowchartRequest,
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> ValidationResult:
        return await service.validate(agent_id, request)

    @app.post(
        "/agents/{agent_id}/flowchart/duplicate",
        response_model=Flowchart,
        response_model_exclude_none=True,
        status_code=201,
    )
    async def duplicate_flowchart(
        agent_id: str,
        request: DuplicateFlowchartRequest,
        service: FlowchartService = Depends(get_service),
        principal: Principal = Depends(operator),
    ) -> Flowchart:
        return await service.duplicate(agent_id, request.target_agent_id, user_id=principal.id)

    @app.get("/agents/{agent_id}/flowchart/export")
    async def export_flowchart(
        agent_id: str,
        export_format: str = Query(default="json", alias="format"),
        service: FlowchartService = Depends(get_service),
        _: Principal = Depends(viewer),
    ) -> JSONResponse:
        exported = await service.export(agent_id, export_format)
        return JSONResponse(
            content=exported.model_dump(mode="json", by_alias=True, exclude_none=True),
            headers={"Content-Disposition": export_disposition(exported.flowchart.metadata.title)},
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
