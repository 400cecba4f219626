from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class NodeTypeSpec:
    type_name: str
    description: str
    terminal: bool = False


class NodeTypeCatalog:
    def __init__(self) -> None:
        self._types: dict[str, NodeTypeSpec] = {}

    def register(self, spec: NodeTypeSpec) -> None:
        self._types[spec.type_name] = spec

    def is_terminal(self, type_name: object) -> bool:
        spec = self._types.get(type_name) if isinstance(type_name, str) else None
        return spec is not None and spec.terminal

    def list_types(self) -> list[str]:
        return sorted(self._types)

    def list_specs(self) -> list[dict[str, object]]:
        return [
            {
                "type": self._types[key].type_name,
                "description": self._types[key].description,
                "terminal": self._types[key].terminal,
            }
            for key in sorted(self._types)
        ]


def register_builtin_types(catalog: NodeTypeCatalog) -> None:
    catalog.register(
        NodeTypeSpec(
            type_name="start",
            description="Entry point of the agent workflow.",
            terminal=True,
        )
    )
    catalog.register(
        NodeTypeSpec(
            type_name="end",
            description="Exit point of the agent workflow.",
            terminal=True,
        )
    )
    catalog.register(
        NodeTypeSpec(
            type_name="process",
            description="A single step the agent performs.",
        )
    )
    catalog.register(
        NodeTypeSpec(
            type_name="decision",
            description="A branch point; outgoing connections carry conditions.",
        )
    )


node_types = NodeTypeCatalog()
register_builtin_types(node_types)
