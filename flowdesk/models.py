from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NodeType = Literal["start", "end", "process", "decision"]
PathType = Literal["straight", "curved", "stepped"]


class DocumentModel(BaseModel):
    """Base for everything that travels on the wire or into the store (camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Point(DocumentModel):
    x: float
    y: float


class Position(DocumentModel):
    x: float
    y: float
    z: int = 1


class Size(DocumentModel):
    width: float = 160
    height: float = 80


class ItemChronology(DocumentModel):
    order: int = 0
    created_at: str
    updated_at: str


class FlowchartNode(DocumentModel):
    id: str
    type: NodeType
    title: str
    description: str | None = None
    position: Position
    size: Size | None = None
    config: dict[str, Any] | None = None
    chronology: ItemChronology


class ConnectionPath(DocumentModel):
    type: PathType = "straight"
    points: list[Point] | None = None


class FlowchartConnection(DocumentModel):
    id: str
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    label: str | None = None
    condition: str | None = None
    path: ConnectionPath | None = None
    chronology: ItemChronology


class CanvasSize(DocumentModel):
    width: float = 1200
    height: float = 800


class FlowchartLayout(DocumentModel):
    canvas_size: CanvasSize = Field(default_factory=CanvasSize)
    zoom: float = 1
    pan: Point = Field(default_factory=lambda: Point(x=0, y=0))
    grid_size: int = 20
    snap_to_grid: bool = True


class FlowchartMetadata(DocumentModel):
    title: str
    description: str = ""
    layout_version: str = "v2.0"
    tags: list[str] = Field(default_factory=list)


class ChangeLogEntry(DocumentModel):
    timestamp: str
    user_id: str | None = None
    action: str
    details: str = ""


class FlowchartChronology(DocumentModel):
    created_at: str
    last_modified: str
    version: str
    change_log: list[ChangeLogEntry] = Field(default_factory=list)


class FlowchartDraft(DocumentModel):
    agent_id: str
    version: str = "1.0.0"
    nodes: list[FlowchartNode] = Field(default_factory=list)
    connections: list[FlowchartConnection] = Field(default_factory=list)
    layout: FlowchartLayout = Field(default_factory=FlowchartLayout)
    metadata: FlowchartMetadata


class Flowchart(FlowchartDraft):
    id: str
    chronology: FlowchartChronology


class ValidationResult(DocumentModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ExportData(DocumentModel):
    version: str
    exported_at: str
    format: str = "json"
    schema_name: str = Field(default="flowchart-v2.0", alias="schema")


class FlowchartExport(DocumentModel):
    flowchart: Flowchart
    export_data: ExportData


class Agent(DocumentModel):
    id: str
    name: str
    description: str = ""
    category: str = "Other"
    created_at: str


class CreateAgentRequest(DocumentModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    category: str = "Other"


class CreateFlowchartRequest(DocumentModel):
    version: str | None = None
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    connections: list[dict[str, Any]] = Field(default_factory=list)
    layout: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class UpdateFlowchartRequest(DocumentModel):
    version: str | None = None
    nodes: list[dict[str, Any]] | None = None
    connections: list[dict[str, Any]] | None = None
    layout: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    action: str | None = None

    def to_patch(self) -> dict[str, Any]:
        fields = self.model_dump(by_alias=True, exclude_unset=True, exclude={"action"})
        return {key: value for key, value in fields.items() if value is not None}


class ValidateFlowchartRequest(DocumentModel):
    nodes: list[dict[str, Any]] | None = None
    connections: list[dict[str, Any]] | None = None


class DuplicateFlowchartRequest(DocumentModel):
    target_agent_id: str = Field(min_length=1)
