"""Change history attached to a flowchart.

The change log is an audit trail only: nothing in the validator or the store
reads it back to make decisions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from ..identifiers import utc_timestamp
from ..models import ChangeLogEntry, Flowchart

T = TypeVar("T")

CHANGE_LOG_LIMIT = 50


def append_change(
    flowchart: Flowchart,
    action: str,
    details: str = "",
    user_id: str | None = None,
    *,
    limit: int = CHANGE_LOG_LIMIT,
) -> Flowchart:
    """Return a copy of ``flowchart`` with one more change-log entry.

    Only the most recent ``limit`` entries are kept; the oldest are dropped first.
    ``lastModified`` never moves backwards.
    """
    now = max(utc_timestamp(), flowchart.chronology.last_modified)
    entry = ChangeLogEntry(timestamp=now, user_id=user_id, action=action, details=details)
    change_log = [*flowchart.chronology.change_log, entry][-limit:]
    chronology = flowchart.chronology.model_copy(
        update={"last_modified": now, "change_log": change_log}
    )
    return flowchart.model_copy(update={"chronology": chronology})


def next_order(collection: Iterable[T], get_order: Callable[[T], int | None]) -> int:
    return max([0, *((get_order(item) or 0) for item in collection)]) + 1


def _raw_order(item: Any) -> int:
    if not isinstance(item, Mapping):
        return 0
    chronology = item.get("chronology")
    if not isinstance(chronology, Mapping):
        return 0
    order = chronology.get("order")
    if isinstance(order, bool) or not isinstance(order, int):
        return 0
    return order


def stamp_items(items: Sequence[Any], *, now: str | None = None) -> list[Any]:
    """Give chronology to raw nodes or connections that have not been placed yet.

    Items with a positive ``chronology.order`` keep it. The rest are numbered after
    the highest existing order, in list order.
    """
    timestamp = now or utc_timestamp()
    placed = [item for item in items if _raw_order(item) > 0]
    order = next_order(placed, _raw_order)

    stamped: list[Any] = []
    for item in items:
        if not isinstance(item, Mapping):
            # left for model coercion to reject
            stamped.append(item)
            continue
        copy = dict(item)
        if _raw_order(item) <= 0:
            existing = item.get("chronology")
            chronology = dict(existing) if isinstance(existing, Mapping) else {}
            chronology.setdefault("createdAt", timestamp)
            chronology.setdefault("updatedAt", timestamp)
            chronology["order"] = order
            order += 1
            copy["chronology"] = chronology
        stamped.append(copy)
    return stamped


def infer_action(current: Flowchart, patch: Mapping[str, Any]) -> str:
    """Best-effort label for an update, from before/after item counts.

    An add and a remove in the same patch cancel out and the label falls back
    to ``updated``; do not treat the label as an exact record.
    """
    if "nodes" in patch:
        before, after = len(current.nodes), len(patch["nodes"])
        if after > before:
            return "nodes_added"
        if after < before:
            return "nodes_removed"
    if "connections" in patch:
        before, after = len(current.connections), len(patch["connections"])
        if after > before:
            return "connections_added"
        if after < before:
            return "connections_removed"
    if "layout" in patch and "nodes" not in patch and "connections" not in patch:
        return "layout_updated"
    return "updated"


def describe_patch(patch: Mapping[str, Any]) -> str:
    return f"{', '.join(patch)} modified"
