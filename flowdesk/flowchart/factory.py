"""Constructors that stamp identity and chronology onto new flowchart items.

Nothing here checks graph structure; see ``validator.validate_flowchart``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..identifiers import generate_item_id, utc_timestamp
from ..models import (
    ConnectionPath,
    FlowchartConnection,
    FlowchartDraft,
    FlowchartLayout,
    FlowchartMetadata,
    FlowchartNode,
    ItemChronology,
    NodeType,
    Position,
    Size,
)


def _placeholder_chronology() -> ItemChronology:
    # order 0 means "not yet placed"; the store assigns the real order
    now = utc_timestamp()
    return ItemChronology(order=0, created_at=now, updated_at=now)


def create_node(
    type: NodeType,
    title: str,
    position: Position | dict[str, Any],
    *,
    description: str | None = None,
    size: Size | dict[str, Any] | None = None,
    config: dict[str, Any] | None = None,
) -> FlowchartNode:
    if not isinstance(position, Position):
        position = Position.model_validate({"z": 1, **position})
    if position.z < 1:
        position = position.model_copy(update={"z": 1})
    if size is None:
        size = Size()
    elif not isinstance(size, Size):
        size = Size.model_validate(size)

    return FlowchartNode(
        id=generate_item_id(type),
        type=type,
        title=title,
        description=description,
        position=position,
        size=size,
        config=config,
        chronology=_placeholder_chronology(),
    )


def create_connection(
    from_id: str,
    to_id: str,
    *,
    label: str | None = None,
    condition: str | None = None,
    path: ConnectionPath | dict[str, Any] | None = None,
) -> FlowchartConnection:
    if path is None:
        path = ConnectionPath(type="straight")
    elif not isinstance(path, ConnectionPath):
        path = ConnectionPath.model_validate(path)

    return FlowchartConnection(
        id=generate_item_id("conn"),
        source=from_id,
        target=to_id,
        label=label,
        condition=condition,
        path=path,
        chronology=_placeholder_chronology(),
    )


def create_flowchart(
    agent_id: str,
    title: str,
    *,
    version: str = "1.0.0",
    nodes: Iterable[FlowchartNode] = (),
    connections: Iterable[FlowchartConnection] = (),
    layout: FlowchartLayout | dict[str, Any] | None = None,
    metadata: FlowchartMetadata | dict[str, Any] | None = None,
) -> FlowchartDraft:
    """Build an unsaved flowchart; id and chronology are assigned on persist."""
    if layout is None:
        layout = FlowchartLayout()
    elif not isinstance(layout, FlowchartLayout):
        layout = FlowchartLayout.model_validate(layout)

    if metadata is None:
        metadata = FlowchartMetadata(
            title=title,
            description=f"Flowchart for {title}",
            layout_version="v2.0",
            tags=[],
        )
    elif not isinstance(metadata, FlowchartMetadata):
        metadata = FlowchartMetadata.model_validate({"title": title, **metadata})

    return FlowchartDraft(
        agent_id=agent_id,
        version=version,
        nodes=list(nodes),
        connections=list(connections),
        layout=layout,
        metadata=metadata,
    )
