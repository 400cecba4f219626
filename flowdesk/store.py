from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import ValidationError

from .errors import ConflictError, FlowchartValidationError, NotFoundError, StorageFault
from .flowchart.chronology import (
    CHANGE_LOG_LIMIT,
    append_change,
    describe_patch,
    infer_action,
    stamp_items,
)
from .flowchart.validator import validate_flowchart
from .identifiers import generate_agent_id, generate_flowchart_id, utc_timestamp
from .models import (
    Agent,
    ChangeLogEntry,
    CreateAgentRequest,
    ExportData,
    Flowchart,
    FlowchartChronology,
    FlowchartDraft,
    FlowchartExport,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# fields a patch may never overwrite
_IMMUTABLE_FIELDS = ("id", "agentId", "chronology")
# fields whose mappings are merged key by key instead of replaced
_MERGED_FIELDS = ("layout", "metadata")


def _field_errors(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


class _SQLiteDocuments:
    def __init__(self, db_path: str | Path = "data/flowdesk.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(self.db_path) as conn:
                conn.row_factory = aiosqlite.Row
                yield conn
                await conn.commit()
        except sqlite3.Error as exc:
            logger.exception("storage failure on %s", self.db_path)
            raise StorageFault(str(exc)) from exc


class FlowchartStore(_SQLiteDocuments):
    """Flowchart documents keyed by id, at most one per owning agent.

    Updates are read-merge-write with no version precondition: two concurrent
    writers to the same document both get a change-log entry, but only the last
    merged document survives.
    """

    def __init__(
        self,
        db_path: str | Path = "data/flowdesk.db",
        *,
        change_log_limit: int = CHANGE_LOG_LIMIT,
        export_version: str = "1.0",
    ) -> None:
        super().__init__(db_path)
        self.change_log_limit = change_log_limit
        self.export_version = export_version

    async def initialize(self) -> None:
        async with self._connect() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS flowcharts (
                    id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    document TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            await conn.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_flowcharts_agent_unique ON flowcharts(agent_id)"
            )

    def validate_only(self, partial: Any) -> ValidationResult:
        return validate_flowchart(partial)

    async def create(
        self,
        draft: FlowchartDraft | Mapping[str, Any],
        user_id: str | None = None,
    ) -> Flowchart:
        raw = draft.to_document() if isinstance(draft, FlowchartDraft) else dict(draft)
        self._check_structure(raw)

        now = utc_timestamp()
        raw["nodes"] = stamp_items(raw.get("nodes") or [], now=now)
        raw["connections"] = stamp_items(raw.get("connections") or [], now=now)
        raw["id"] = generate_flowchart_id()
        raw["chronology"] = {
            "createdAt": now,
            "lastModified": now,
            "version": raw.get("version") or "1.0.0",
            "changeLog": [
                {
                    "timestamp": now,
                    "userId": user_id,
                    "action": "created",
                    "details": "Flowchart created",
                }
            ],
        }
        flowchart = self._coerce(raw)

        async with self._connect() as conn:
            await self._insert(conn, flowchart)
        logger.info("flowchart created id=%s agent=%s", flowchart.id, flowchart.agent_id)
        return flowchart

    async def get(self, flowchart_id: str) -> Flowchart | None:
        async with self._connect() as conn:
            cursor = await conn.execute(
                "SELECT document FROM flowcharts WHERE id = ?",
                (flowchart_id,),
            )
            row = await cursor.fetchone()
        if not row:
            return None
        return Flowchart.model_validate_json(row["document"])

    async def get_by_agent_id(self, agent_id: str) -> Flowchart | None:
        async with self._connect() as conn:
            cursor = await conn.execute(
                "SELECT document FROM flowcharts WHERE agent_id = ? ORDER BY created_at LIMIT 1",
                (agent_id,),
            )
            row = await cursor.fetchone()
        if not row:
            return None
        return Flowchart.model_validate_json(row["document"])

    async def list_flowcharts(self, agent_ids: Iterable[str] | None = None) -> list[Flowchart]:
        query = "SELECT document FROM flowcharts"
        params: tuple[str, ...] = ()
        if agent_ids is not None:
            params = tuple(agent_ids)
            if not params:
                return []
            placeholders = ", ".join("?" for _ in params)
            query += f" WHERE agent_id IN ({placeholders})"
        query += " ORDER BY updated_at DESC"

        async with self._connect() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return [Flowchart.model_validate_json(row["document"]) for row in rows]

    async def update(
        self,
        flowchart_id: str,
        patch: Mapping[str, Any],
        user_id: str | None = None,
        action: str | None = None,
    ) -> Flowchart:
        current = await self.get(flowchart_id)
        if current is None:
            raise NotFoundError("Flowchart not found")

        changes = {key: value for key, value in patch.items() if key not in _IMMUTABLE_FIELDS}
        document = current.to_document()

        if "nodes" in changes or "connections" in changes:
            self._check_structure(
                {
                    "nodes": changes.get("nodes", document.get("nodes", [])),
                    "connections": changes.get("connections", document.get("connections", [])),
                }
            )
            now = utc_timestamp()
            for key in ("nodes", "connections"):
                if key in changes:
                    changes[key] = stamp_items(changes[key], now=now)

        for key, value in changes.items():
            existing = document.get(key)
            if key in _MERGED_FIELDS and isinstance(value, Mapping) and isinstance(existing, Mapping):
                document[key] = {**existing, **value}
            else:
                document[key] = value

        label = action or infer_action(current, changes)
        updated = append_change(
            self._coerce(document),
            label,
            describe_patch(changes),
            user_id,
            limit=self.change_log_limit,
        )

        async with self._connect() as conn:
            await conn.execute(
                "UPDATE flowcharts SET document = ?, updated_at = ? WHERE id = ?",
                (
                    updated.model_dump_json(by_alias=True, exclude_none=True),
                    updated.chronology.last_modified,
                    flowchart_id,
                ),
            )
        logger.info("flowchart updated id=%s action=%s", flowchart_id, label)
        return updated

    async def delete(self, flowchart_id: str) -> None:
        async with self._connect() as conn:
            cursor = await conn.execute("DELETE FROM flowcharts WHERE id = ?", (flowchart_id,))
            deleted = cursor.rowcount
        if not deleted:
            raise NotFoundError("Flowchart not found")
        logger.info("flowchart deleted id=%s", flowchart_id)

    async def duplicate(
        self,
        source_id: str,
        target_agent_id: str,
        user_id: str | None = None,
    ) -> Flowchart:
        source = await self.get(source_id)
        if source is None:
            raise NotFoundError("Source flowchart not found")

        now = utc_timestamp()
        chronology = FlowchartChronology(
            created_at=now,
            last_modified=now,
            version="1.0.0",
            change_log=[
                ChangeLogEntry(
                    timestamp=now,
                    user_id=user_id,
                    action="duplicated",
                    details=f"Duplicated from flowchart {source.id}",
                )
            ],
        )
        metadata = source.metadata.model_copy(update={"title": f"{source.metadata.title} (Copy)"})
        duplicated = source.model_copy(
            update={
                "id": generate_flowchart_id(),
                "agent_id": target_agent_id,
                "metadata": metadata,
                "chronology": chronology,
            },
            deep=True,
        )

        async with self._connect() as conn:
            await self._insert(conn, duplicated, conflict="Target agent already has a flowchart")
        logger.info(
            "flowchart duplicated source=%s id=%s agent=%s",
            source.id,
            duplicated.id,
            target_agent_id,
        )
        return duplicated

    async def export(self, flowchart_id: str) -> FlowchartExport:
        flowchart = await self.get(flowchart_id)
        if flowchart is None:
            raise NotFoundError("Flowchart not found")
        return FlowchartExport(
            flowchart=flowchart,
            export_data=ExportData(version=self.export_version, exported_at=utc_timestamp()),
        )

    def _check_structure(self, candidate: Mapping[str, Any]) -> None:
        result = validate_flowchart(candidate)
        if not result.valid:
            logger.warning("flowchart rejected: %s", "; ".join(result.errors))
            raise FlowchartValidationError(result.errors)

    def _coerce(self, document: Mapping[str, Any]) -> Flowchart:
        try:
            return Flowchart.model_validate(document)
        except ValidationError as exc:
            details = _field_errors(exc)
            logger.warning("flowchart rejected: %s", "; ".join(details))
            raise FlowchartValidationError(details) from exc

    async def _insert(
        self,
        conn: aiosqlite.Connection,
        flowchart: Flowchart,
        conflict: str = "Flowchart already exists for this agent",
    ) -> None:
        try:
            await conn.execute(
                """
                INSERT INTO flowcharts (id, agent_id, document, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    flowchart.id,
                    flowchart.agent_id,
                    flowchart.model_dump_json(by_alias=True, exclude_none=True),
                    flowchart.chronology.created_at,
                    flowchart.chronology.last_modified,
                ),
            )
        except sqlite3.IntegrityError as exc:
            # one flowchart per agent, enforced by idx_flowcharts_agent_unique
            logger.warning("flowchart rejected: agent %s already has one", flowchart.agent_id)
            raise ConflictError(conflict) from exc


class AgentStore(_SQLiteDocuments):
    """Minimal agent records; flowcharts only need existence and names."""

    async def initialize(self) -> None:
        async with self._connect() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    document TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

    async def create(self, request: CreateAgentRequest) -> Agent:
        agent = Agent(
            id=generate_agent_id(),
            name=request.name.strip(),
            description=request.description.strip(),
            category=request.category,
            created_at=utc_timestamp(),
        )
        async with self._connect() as conn:
            await conn.execute(
                "INSERT INTO agents (id, name, document, created_at) VALUES (?, ?, ?, ?)",
                (agent.id, agent.name, agent.model_dump_json(by_alias=True), agent.created_at),
            )
        logger.info("agent created id=%s", agent.id)
        return agent

    async def get(self, agent_id: str) -> Agent | None:
        async with self._connect() as conn:
            cursor = await conn.execute("SELECT document FROM agents WHERE id = ?", (agent_id,))
            row = await cursor.fetchone()
        if not row:
            return None
        return Agent.model_validate_json(row["document"])

    async def exists(self, agent_id: str) -> bool:
        return await self.get(agent_id) is not None

    async def list_agents(self) -> list[Agent]:
        async with self._connect() as conn:
            cursor = await conn.execute("SELECT document FROM agents ORDER BY created_at DESC")
            rows = await cursor.fetchall()
        return [Agent.model_validate_json(row["document"]) for row in rows]

    async def delete(self, agent_id: str) -> None:
        async with self._connect() as conn:
            cursor = await conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
            deleted = cursor.rowcount
        if not deleted:
            raise NotFoundError("Agent not found")
        logger.info("agent deleted id=%s", agent_id)
