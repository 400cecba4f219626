"""Structural checks for flowchart graphs.

The validator works on loosely shaped input (pydantic models or raw JSON
mappings) because it runs on editor payloads before they are coerced into
models. It never raises: every violation becomes one message in the result.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from ..models import ValidationResult
from .catalog import node_types


def _as_mapping(item: Any) -> Mapping[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(by_alias=True)
    if isinstance(item, Mapping):
        return item
    return {}


def _as_items(value: Any) -> list[Mapping[str, Any]] | None:
    if value is None:
        return None
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [_as_mapping(item) for item in value]
    return []


def _ref(value: Any) -> Any:
    # ids from raw payloads may be lists or objects; keep them comparable
    if value is None or isinstance(value, (str, int, float)):
        return value
    return repr(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_title(title: Any) -> bool:
    return isinstance(title, str) and title.strip() != ""


def _has_position(node: Mapping[str, Any]) -> bool:
    position = node.get("position")
    if not isinstance(position, Mapping):
        return False
    return _is_number(position.get("x")) and _is_number(position.get("y"))


def validate_flowchart(flowchart: Any) -> ValidationResult:
    source = _as_mapping(flowchart)
    nodes = _as_items(source.get("nodes"))
    connections = _as_items(source.get("connections")) or []
    errors: list[str] = []

    if not nodes:
        errors.append("Flowchart must have at least one node")
    else:
        types = [node.get("type") for node in nodes]
        if "start" not in types:
            errors.append("Flowchart must have at least one start node")
        if "end" not in types:
            errors.append("Flowchart must have at least one end node")

        connected: set[Any] = set()
        for conn in connections:
            connected.add(_ref(conn.get("from")))
            connected.add(_ref(conn.get("to")))

        disconnected = [
            node
            for node in nodes
            if not node_types.is_terminal(node.get("type")) and _ref(node.get("id")) not in connected
        ]
        if disconnected:
            titles = ", ".join(str(node.get("title")) for node in disconnected)
            errors.append(f"Found {len(disconnected)} disconnected node(s): {titles}")

        for index, node in enumerate(nodes, start=1):
            if not _has_position(node):
                errors.append(f"Node {index} ({node.get('title')}) has invalid position coordinates")
            if not _has_title(node.get("title")):
                errors.append(f"Node {index} must have a title")

    node_ids = {_ref(node.get("id")) for node in nodes or []}
    for index, conn in enumerate(connections, start=1):
        source_id = _ref(conn.get("from"))
        target_id = _ref(conn.get("to"))
        if source_id not in node_ids:
            errors.append(f"Connection {index} references non-existent 'from' node: {source_id}")
        if target_id not in node_ids:
            errors.append(f"Connection {index} references non-existent 'to' node: {target_id}")
        if source_id == target_id:
            errors.append(f"Connection {index} creates a self-loop, which is not allowed")

    return ValidationResult(valid=not errors, errors=errors)
