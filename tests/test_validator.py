from __future__ import annotations

from flowdesk.flowchart.factory import create_connection, create_flowchart, create_node
from flowdesk.flowchart.validator import validate_flowchart

from .builders import connection, linear_graph, node


class TestGraphRules:
    """Whole-graph rules: presence of nodes and terminals, orphans."""

    def test_linear_graph_is_valid(self):
        result = validate_flowchart(linear_graph())
        assert result.valid is True
        assert result.errors == []

    def test_empty_flowchart_reports_single_error(self):
        result = validate_flowchart({"nodes": [], "connections": []})
        assert result.valid is False
        assert result.errors == ["Flowchart must have at least one node"]

    def test_missing_start_and_end(self):
        graph = {
            "nodes": [node("a", "process", "A"), node("b", "process", "B")],
            "connections": [connection("c-1", "a", "b")],
        }
        assert validate_flowchart(graph).errors == [
            "Flowchart must have at least one start node",
            "Flowchart must have at least one end node",
        ]

    def test_disconnected_process_node(self):
        graph = {
            "nodes": [
                node("s", "start", "Start"),
                node("p", "process", "Fetch"),
                node("e", "end", "Done"),
            ],
            "connections": [],
        }
        assert validate_flowchart(graph).errors == ["Found 1 disconnected node(s): Fetch"]

    def test_terminal_nodes_may_stand_alone(self):
        graph = {"nodes": [node("s", "start", "Start"), node("e", "end", "Done")], "connections": []}
        assert validate_flowchart(graph).valid is True

    def test_disconnected_titles_listed_in_node_order(self):
        graph = {
            "nodes": [
                node("s", "start", "Start"),
                node("d", "decision", "Route"),
                node("p", "process", "Fetch"),
                node("e", "end", "Done"),
            ],
            "connections": [],
        }
        assert validate_flowchart(graph).errors == ["Found 2 disconnected node(s): Route, Fetch"]


class TestNodeRules:
    def test_non_numeric_position(self):
        graph = linear_graph()
        graph["nodes"][1]["position"] = {"x": "200", "y": 0}
        assert validate_flowchart(graph).errors == ["Node 2 (Fetch) has invalid position coordinates"]

    def test_boolean_coordinates_are_rejected(self):
        graph = linear_graph()
        graph["nodes"][0]["position"] = {"x": True, "y": 0}
        assert validate_flowchart(graph).errors == ["Node 1 (Start) has invalid position coordinates"]

    def test_missing_position(self):
        graph = linear_graph()
        del graph["nodes"][2]["position"]
        assert validate_flowchart(graph).errors == ["Node 3 (Done) has invalid position coordinates"]

    def test_blank_title(self):
        graph = linear_graph()
        graph["nodes"][1]["title"] = "   "
        assert validate_flowchart(graph).errors == ["Node 2 must have a title"]


class TestConnectionRules:
    def test_self_loop(self):
        graph = {
            "nodes": [
                node("s", "start", "Start"),
                node("p", "process", "Fetch"),
                node("e", "end", "Done"),
            ],
            "connections": [connection("c-1", "p", "p")],
        }
        assert validate_flowchart(graph).errors == [
            "Connection 1 creates a self-loop, which is not allowed"
        ]

    def test_dangling_endpoints(self):
        graph = linear_graph()
        graph["connections"].append(connection("c-3", "ghost", "n-end"))
        graph["connections"].append(connection("c-4", "n-start", "phantom"))
        assert validate_flowchart(graph).errors == [
            "Connection 3 references non-existent 'from' node: ghost",
            "Connection 4 references non-existent 'to' node: phantom",
        ]

    def test_checks_are_reported_per_connection(self):
        graph = linear_graph()
        graph["connections"] = [
            connection("c-1", "ghost", "ghost"),
            connection("c-2", "n-start", "n-work"),
            connection("c-3", "n-work", "n-end"),
        ]
        assert validate_flowchart(graph).errors == [
            "Connection 1 references non-existent 'from' node: ghost",
            "Connection 1 references non-existent 'to' node: ghost",
            "Connection 1 creates a self-loop, which is not allowed",
        ]


class TestInputShapes:
    """The validator takes whatever an editor sends and never raises."""

    def test_accepts_pydantic_models(self):
        start = create_node("start", "Start", {"x": 0, "y": 0})
        end = create_node("end", "Done", {"x": 100, "y": 0})
        draft = create_flowchart(
            "agent-1",
            "Bot",
            nodes=[start, end],
            connections=[create_connection(start.id, end.id)],
        )
        assert validate_flowchart(draft).valid is True

    def test_junk_input_is_reported_not_raised(self):
        assert validate_flowchart(None).errors == ["Flowchart must have at least one node"]
        assert validate_flowchart({"nodes": "abc"}).errors == ["Flowchart must have at least one node"]

        result = validate_flowchart({"nodes": [1, None], "connections": [{"from": ["x"], "to": {}}]})
        assert result.valid is False

    def test_result_is_deterministic(self):
        graph = linear_graph()
        graph["nodes"][1]["title"] = ""
        graph["connections"].append(connection("c-3", "n-end", "n-end"))
        assert validate_flowchart(graph) == validate_flowchart(graph)

    def test_input_is_not_mutated(self):
        graph = linear_graph()
        snapshot = repr(graph)
        validate_flowchart(graph)
        assert repr(graph) == snapshot
