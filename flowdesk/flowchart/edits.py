from __future__ import annotations

from typing import Any

from ..identifiers import utc_timestamp
from ..models import Flowchart, FlowchartConnection, FlowchartLayout, FlowchartNode
from .chronology import append_change, next_order


def _order_of(item: FlowchartNode | FlowchartConnection) -> int:
    return item.chronology.order


def add_node(flowchart: Flowchart, node: FlowchartNode, user_id: str | None = None) -> Flowchart:
    chronology = node.chronology.model_copy(update={"order": next_order(flowchart.nodes, _order_of)})
    placed = node.model_copy(update={"chronology": chronology})
    updated = flowchart.model_copy(update={"nodes": [*flowchart.nodes, placed]})
    return append_change(updated, "node_added", f"Added {node.type} node: {node.title}", user_id)


def add_connection(
    flowchart: Flowchart,
    connection: FlowchartConnection,
    user_id: str | None = None,
) -> Flowchart:
    chronology = connection.chronology.model_copy(
        update={"order": next_order(flowchart.connections, _order_of)}
    )
    placed = connection.model_copy(update={"chronology": chronology})
    updated = flowchart.model_copy(update={"connections": [*flowchart.connections, placed]})
    return append_change(
        updated,
        "connection_added",
        f"Added connection from {connection.source} to {connection.target}",
        user_id,
    )


def update_node(
    flowchart: Flowchart,
    node_id: str,
    user_id: str | None = None,
    **changes: Any,
) -> Flowchart:
    changes.pop("id", None)
    changes.pop("chronology", None)
    nodes: list[FlowchartNode] = []
    for node in flowchart.nodes:
        if node.id == node_id:
            chronology = node.chronology.model_copy(update={"updated_at": utc_timestamp()})
            merged = {**node.model_dump(), **changes, "chronology": chronology.model_dump()}
            node = FlowchartNode.model_validate(merged)
        nodes.append(node)
    updated = flowchart.model_copy(update={"nodes": nodes})
    return append_change(updated, "node_updated", f"Updated node: {node_id}", user_id)


def remove_node(flowchart: Flowchart, node_id: str, user_id: str | None = None) -> Flowchart:
    """Drop a node together with every connection that touches it."""
    nodes = [node for node in flowchart.nodes if node.id != node_id]
    connections = [
        conn for conn in flowchart.connections if conn.source != node_id and conn.target != node_id
    ]
    updated = flowchart.model_copy(update={"nodes": nodes, "connections": connections})
    return append_change(updated, "node_removed", f"Removed node: {node_id}", user_id)


def update_layout(flowchart: Flowchart, user_id: str | None = None, **changes: Any) -> Flowchart:
    layout = FlowchartLayout.model_validate({**flowchart.layout.model_dump(), **changes})
    updated = flowchart.model_copy(update={"layout": layout})
    return append_change(
        updated,
        "layout_updated",
        f"Layout updated: {', '.join(changes)}",
        user_id,
    )
