"""Read and write syntax trees in the parser's JSON layout."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models.node import SYNTHETIC, Node


def _strip_markers(node: Node) -> None:
    node.attributes.pop(SYNTHETIC, None)
    for _, value in node.iter_fields():
        for child in value if isinstance(value, list) else [value]:
            if isinstance(child, Node):
                _strip_markers(child)


def parse_tree(data: Any, strip_markers: bool = True) -> list[Node]:
    """
    Build nodes from decoded parser output.

    Args:
        data: A list of node dicts (or a single node dict)
        strip_markers: Drop rewrite markers, which only the validator may set

    Raises:
        ValueError: If the data is not a node list or holds unknown node kinds
    """
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of nodes, got {type(data).__name__}")
    try:
        nodes = [Node.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"Invalid syntax tree: {e}") from e
    if strip_markers:
        for node in nodes:
            _strip_markers(node)
    return nodes


def load_tree(path: Path, strip_markers: bool = True) -> list[Node]:
    """Load a syntax tree from a JSON file."""
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Syntax tree JSON decode error: {e}") from e
    return parse_tree(data, strip_markers=strip_markers)


def dump_tree(nodes: list[Node]) -> list[dict[str, Any]]:
    return [node.to_dict() for node in nodes]


def save_tree(nodes: list[Node], path: Path) -> None:
    """Write a syntax tree to a JSON file with indent=2."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(dump_tree(nodes), f, indent=2)
