from .catalog import NodeTypeCatalog, NodeTypeSpec, node_types
from .chronology import CHANGE_LOG_LIMIT, append_change, infer_action, next_order, stamp_items
from .edits import add_connection, add_node, remove_node, update_layout, update_node
from .factory import create_connection, create_flowchart, create_node
from .validator import validate_flowchart

__all__ = [
    "CHANGE_LOG_LIMIT",
    "NodeTypeCatalog",
    "NodeTypeSpec",
    "add_connection",
    "add_node",
    "append_change",
    "create_connection",
    "create_flowchart",
    "create_node",
    "infer_action",
    "next_order",
    "node_types",
    "remove_node",
    "stamp_items",
    "update_layout",
    "update_node",
    "validate_flowchart",
]
