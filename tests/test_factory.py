from __future__ import annotations

import re

from flowdesk.flowchart.factory import create_connection, create_flowchart, create_node
from flowdesk.models import Position

ITEM_ID = re.compile(r"^(?P<prefix>[a-z]+)-\d+-[0-9a-z]{9}$")


class TestCreateNode:
    def test_id_and_defaults(self):
        node = create_node("process", "Fetch", {"x": 10, "y": 20})
        match = ITEM_ID.match(node.id)
        assert match and match.group("prefix") == "process"
        assert node.position.z == 1
        assert (node.size.width, node.size.height) == (160, 80)
        assert node.chronology.order == 0
        assert node.chronology.created_at == node.chronology.updated_at

    def test_layer_is_clamped_to_lowest(self):
        node = create_node("start", "Start", Position(x=0, y=0, z=0))
        assert node.position.z == 1

    def test_optional_fields(self):
        node = create_node(
            "decision",
            "Route",
            {"x": 0, "y": 0, "z": 3},
            description="Pick a branch",
            size={"width": 200, "height": 100},
            config={"timeout": 5},
        )
        assert node.position.z == 3
        assert node.size.width == 200
        assert node.description == "Pick a branch"
        assert node.config == {"timeout": 5}

    def test_ids_are_unique(self):
        ids = {create_node("process", "P", {"x": 0, "y": 0}).id for _ in range(50)}
        assert len(ids) == 50


class TestCreateConnection:
    def test_defaults(self):
        conn = create_connection("a", "b")
        match = ITEM_ID.match(conn.id)
        assert match and match.group("prefix") == "conn"
        assert conn.path.type == "straight"
        assert conn.chronology.order == 0

    def test_serialises_endpoints_as_from_and_to(self):
        document = create_connection("a", "b", label="yes", condition="score > 0.5").to_document()
        assert document["from"] == "a"
        assert document["to"] == "b"
        assert document["label"] == "yes"
        assert document["condition"] == "score > 0.5"

    def test_custom_path(self):
        conn = create_connection("a", "b", path={"type": "stepped", "points": [{"x": 1, "y": 2}]})
        assert conn.path.type == "stepped"
        assert conn.path.points[0].x == 1


class TestCreateFlowchart:
    def test_defaults(self):
        draft = create_flowchart("agent-1", "Support Bot")
        assert draft.version == "1.0.0"
        assert draft.nodes == [] and draft.connections == []
        assert draft.layout.canvas_size.width == 1200
        assert draft.layout.canvas_size.height == 800
        assert draft.layout.zoom == 1
        assert (draft.layout.pan.x, draft.layout.pan.y) == (0, 0)
        assert draft.layout.grid_size == 20
        assert draft.layout.snap_to_grid is True
        assert draft.metadata.title == "Support Bot"
        assert draft.metadata.description == "Flowchart for Support Bot"
        assert draft.metadata.layout_version == "v2.0"
        assert draft.metadata.tags == []

    def test_partial_metadata_keeps_title(self):
        draft = create_flowchart("agent-1", "Bot", metadata={"tags": ["beta"]})
        assert draft.metadata.title == "Bot"
        assert draft.metadata.tags == ["beta"]

    def test_does_not_validate(self):
        draft = create_flowchart("agent-1", "Bot", nodes=[create_node("process", "Lonely", {"x": 0, "y": 0})])
        assert len(draft.nodes) == 1

    def test_wire_format_is_camel_case(self):
        document = create_flowchart("agent-1", "Bot").to_document()
        assert document["agentId"] == "agent-1"
        assert document["layout"]["canvasSize"] == {"width": 1200, "height": 800}
        assert document["metadata"]["layoutVersion"] == "v2.0"
