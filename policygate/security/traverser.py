"""Depth-first, post-order syntax tree traversal.

Children are visited before their parent. After a node's children are done,
each visitor's ``leave_node`` decides what happens to the node:

- ``None``: keep it
- a ``Node``: replace it (the replacement is not visited again)
- ``REMOVE_NODE``: drop it (list fields only)
- a ``list`` of nodes: splice them in its place (list fields only)
"""

from __future__ import annotations

from typing import Any

from policygate.models.node import Node


class _RemoveNode:
    def __repr__(self) -> str:
        return "REMOVE_NODE"


REMOVE_NODE = _RemoveNode()


class TraversalError(Exception):
    """A visitor returned a result its position in the tree cannot take."""


class NodeVisitor:
    """Base visitor; every hook defaults to no change."""

    def before_traverse(self, nodes: list[Node]) -> list[Node] | None:
        return None

    def leave_node(self, node: Node) -> Node | list[Node] | _RemoveNode | None:
        return None

    def after_traverse(self, nodes: list[Node]) -> list[Node] | None:
        return None


class NodeTraverser:
    """Runs one or more visitors over a list of top-level nodes."""

    def __init__(self, *visitors: NodeVisitor) -> None:
        self.visitors: list[NodeVisitor] = list(visitors)

    def add_visitor(self, visitor: NodeVisitor) -> None:
        self.visitors.append(visitor)

    def traverse(self, nodes: list[Node]) -> list[Node]:
        for visitor in self.visitors:
            result = visitor.before_traverse(nodes)
            if result is not None:
                nodes = result

        nodes = self._traverse_list(nodes)

        for visitor in self.visitors:
            result = visitor.after_traverse(nodes)
            if result is not None:
                nodes = result
        return nodes

    def _traverse_node(self, node: Node) -> None:
        for field, value in list(node.iter_fields()):
            if isinstance(value, list):
                node.set(field, self._traverse_list(value))
            elif isinstance(value, Node):
                self._traverse_node(value)
                for visitor in self.visitors:
                    result = visitor.leave_node(value)
                    if result is None:
                        continue
                    if isinstance(result, Node):
                        value = result
                        node.set(field, value)
                    else:
                        raise TraversalError(
                            f"{type(visitor).__name__}.leave_node() may only remove or "
                            f"splice nodes held in a list, not {node.kind.value}.{field}"
                        )

    def _traverse_list(self, nodes: list[Any]) -> list[Any]:
        out: list[Any] = []
        for item in nodes:
            if not isinstance(item, Node):
                out.append(item)
                continue

            self._traverse_node(item)
            replacement: list[Any] = [item]
            for visitor in self.visitors:
                result = visitor.leave_node(item)
                if result is None:
                    continue
                if isinstance(result, Node):
                    item = result
                    replacement = [item]
                elif result is REMOVE_NODE:
                    replacement = []
                    break
                elif isinstance(result, list):
                    replacement = result
                    break
                else:
                    raise TraversalError(
                        f"{type(visitor).__name__}.leave_node() returned unsupported {result!r}"
                    )
            out.extend(replacement)
        return out
