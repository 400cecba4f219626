"""Cross-entity rules around the flowchart store.

The store knows nothing about agents; this layer checks that agents exist,
keeps one flowchart per agent and cascades agent deletion.
"""

from __future__ import annotations

import logging
from typing import Any

from .errors import (
    ConflictError,
    FlowchartValidationError,
    NotFoundError,
    UnsupportedOperationError,
)
from .models import (
    Agent,
    CreateAgentRequest,
    CreateFlowchartRequest,
    Flowchart,
    FlowchartExport,
    UpdateFlowchartRequest,
    ValidateFlowchartRequest,
    ValidationResult,
)
from .store import AgentStore, FlowchartStore

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json",)
IMAGE_EXPORT_FORMATS = ("png", "svg")


class FlowchartService:
    def __init__(
        self,
        flowcharts: FlowchartStore,
        agents: AgentStore,
        *,
        layout_defaults: dict[str, Any] | None = None,
        metadata_defaults: dict[str, Any] | None = None,
    ) -> None:
        self.flowcharts = flowcharts
        self.agents = agents
        self.layout_defaults = dict(layout_defaults or {})
        self.metadata_defaults = dict(metadata_defaults or {})

    async def _require_agent(self, agent_id: str, message: str = "Agent not found") -> Agent:
        agent = await self.agents.get(agent_id)
        if agent is None:
            raise NotFoundError(message)
        return agent

    async def _require_flowchart(self, agent_id: str, message: str = "Flowchart not found") -> Flowchart:
        flowchart = await self.flowcharts.get_by_agent_id(agent_id)
        if flowchart is None:
            raise NotFoundError(message)
        return flowchart

    async def get(self, agent_id: str) -> Flowchart:
        return await self._require_flowchart(agent_id)

    async def list_flowcharts(self, agent_id: str | None = None) -> list[Flowchart]:
        agent_ids = [agent_id] if agent_id else None
        return await self.flowcharts.list_flowcharts(agent_ids)

    async def create(
        self,
        agent_id: str,
        request: CreateFlowchartRequest,
        user_id: str | None = None,
    ) -> Flowchart:
        agent = await self._require_agent(agent_id)
        if await self.flowcharts.get_by_agent_id(agent_id) is not None:
            raise ConflictError("Flowchart already exists for this agent")

        metadata = request.metadata
        if metadata is None:
            metadata = {**self.metadata_defaults, "title": f"{agent.name} Flowchart"}
        draft = {
            "agentId": agent_id,
            "version": request.version or "1.0.0",
            "nodes": request.nodes,
            "connections": request.connections,
            "layout": request.layout if request.layout is not None else dict(self.layout_defaults),
            "metadata": metadata,
        }
        return await self.flowcharts.create(draft, user_id=user_id)

    async def update(
        self,
        agent_id: str,
        request: UpdateFlowchartRequest,
        user_id: str | None = None,
    ) -> Flowchart:
        await self._require_agent(agent_id)
        flowchart = await self._require_flowchart(agent_id)
        return await self.flowcharts.update(
            flowchart.id,
            request.to_patch(),
            user_id=user_id,
            action=request.action,
        )

    async def delete(self, agent_id: str) -> None:
        flowchart = await self._require_flowchart(agent_id)
        await self.flowcharts.delete(flowchart.id)

    async def validate(self, agent_id: str, request: ValidateFlowchartRequest) -> ValidationResult:
        if request.nodes is None and request.connections is None:
            raise FlowchartValidationError(
                ["Nodes or connections data required for validation"],
                message="Invalid request data",
            )

        candidate: dict[str, Any] = {"nodes": request.nodes, "connections": request.connections}
        if request.nodes is None or request.connections is None:
            current = await self.flowcharts.get_by_agent_id(agent_id)
            if current is not None:
                stored = current.to_document()
                if request.nodes is None:
                    candidate["nodes"] = stored.get("nodes", [])
                if request.connections is None:
                    candidate["connections"] = stored.get("connections", [])
        return self.flowcharts.validate_only(candidate)

    async def duplicate(
        self,
        source_agent_id: str,
        target_agent_id: str,
        user_id: str | None = None,
    ) -> Flowchart:
        source = await self._require_flowchart(source_agent_id, "Source flowchart not found")
        await self._require_agent(target_agent_id, "Target agent not found")
        if await self.flowcharts.get_by_agent_id(target_agent_id) is not None:
            raise ConflictError("Target agent already has a flowchart")
        return await self.flowcharts.duplicate(source.id, target_agent_id, user_id=user_id)

    async def export(self, agent_id: str, export_format: str = "json") -> FlowchartExport:
        flowchart = await self._require_flowchart(agent_id)
        if export_format in IMAGE_EXPORT_FORMATS:
            raise UnsupportedOperationError("Image export formats not yet implemented")
        if export_format not in EXPORT_FORMATS:
            raise FlowchartValidationError(
                [f"Unsupported export format: {export_format}"],
                message="Unsupported export format",
            )
        return await self.flowcharts.export(flowchart.id)

    async def create_agent(self, request: CreateAgentRequest) -> Agent:
        return await self.agents.create(request)

    async def get_agent(self, agent_id: str) -> Agent:
        return await self._require_agent(agent_id)

    async def list_agents(self) -> list[Agent]:
        return await self.agents.list_agents()

    async def delete_agent(self, agent_id: str) -> None:
        await self.agents.delete(agent_id)
        await self.handle_agent_deleted(agent_id)

    async def handle_agent_deleted(self, agent_id: str) -> None:
        flowchart = await self.flowcharts.get_by_agent_id(agent_id)
        if flowchart is None:
            return
        await self.flowcharts.delete(flowchart.id)
        logger.info("flowchart %s removed with agent %s", flowchart.id, agent_id)
