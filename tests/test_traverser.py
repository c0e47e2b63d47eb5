"""Tests for the post-order tree traversal."""

import pytest

from policygate.models.node import Node, NodeKind, func_call, lnumber, make, string, variable
from policygate.security.traverser import REMOVE_NODE, NodeTraverser, NodeVisitor, TraversalError


class Recorder(NodeVisitor):
    """Records the order nodes are left in."""

    def __init__(self) -> None:
        self.seen: list[str] = []

    def leave_node(self, node: Node):
        label = node.get("name") if node.kind is NodeKind.EXPR_VARIABLE else node.kind.value
        self.seen.append(label)
        return None


class Rewriter(NodeVisitor):
    """Applies a fixed result to nodes of one kind."""

    def __init__(self, kind: NodeKind, result) -> None:
        self.kind = kind
        self.result = result

    def leave_node(self, node: Node):
        if node.kind is self.kind:
            return self.result(node) if callable(self.result) else self.result
        return None


class TestOrder:
    """Visiting order."""

    def test_children_before_parent(self) -> None:
        """Children are left before their parent, left to right."""
        recorder = Recorder()
        tree = [
            make(
                NodeKind.EXPR_BINARY_OP_PLUS,
                left=variable("a"),
                right=variable("b"),
            )
        ]
        NodeTraverser(recorder).traverse(tree)
        assert recorder.seen == ["a", "b", "Expr_BinaryOp_Plus"]

    def test_top_level_in_order(self) -> None:
        """Top-level statements are visited in source order."""
        recorder = Recorder()
        NodeTraverser(recorder).traverse([variable("x"), variable("y")])
        assert recorder.seen == ["x", "y"]

    def test_non_node_values_ignored(self) -> None:
        """Strings, numbers and None fields are not visited."""
        recorder = Recorder()
        NodeTraverser(recorder).traverse([make(NodeKind.STMT_INLINE_HTML, value="<p>", extra=None)])
        assert recorder.seen == ["Stmt_InlineHTML"]


class TestResults:
    """Applying leave_node results."""

    def test_replace_in_list(self) -> None:
        """A returned node replaces the visited one."""
        replacement = string("replaced")
        tree = NodeTraverser(Rewriter(NodeKind.EXPR_VARIABLE, replacement)).traverse([variable("x")])
        assert tree == [replacement]

    def test_replace_in_single_field(self) -> None:
        """Replacement also works for a node held in a single field."""
        replacement = string("replaced")
        stmt = make(NodeKind.STMT_RETURN, expr=variable("x"))
        NodeTraverser(Rewriter(NodeKind.EXPR_VARIABLE, replacement)).traverse([stmt])
        assert stmt.get("expr") is replacement

    def test_remove_from_list(self) -> None:
        """REMOVE_NODE drops the node."""
        tree = [variable("x"), lnumber(1), variable("y")]
        result = NodeTraverser(Rewriter(NodeKind.SCALAR_LNUMBER, REMOVE_NODE)).traverse(tree)
        assert [node.get("name") for node in result] == ["x", "y"]

    def test_splice_preserves_order(self) -> None:
        """A returned list is spliced in place, in order."""
        block = make(NodeKind.STMT_NAMESPACE, stmts=[variable("b"), variable("c")])
        tree = [variable("a"), block, variable("d")]
        rewriter = Rewriter(NodeKind.STMT_NAMESPACE, lambda node: list(node.get("stmts")))
        result = NodeTraverser(rewriter).traverse(tree)
        assert [node.get("name") for node in result] == ["a", "b", "c", "d"]

    def test_nested_list_splice(self) -> None:
        """Splices apply inside nested statement lists."""
        inner = make(NodeKind.STMT_NAMESPACE, stmts=[variable("x")])
        outer = make(NodeKind.STMT_IF, cond=variable("c"), stmts=[inner])
        rewriter = Rewriter(NodeKind.STMT_NAMESPACE, lambda node: list(node.get("stmts")))
        NodeTraverser(rewriter).traverse([outer])
        assert [node.get("name") for node in outer.get("stmts")] == ["x"]

    def test_remove_from_single_field_raises(self) -> None:
        """Removing a node held in a single field is an error."""
        stmt = make(NodeKind.STMT_RETURN, expr=variable("x"))
        with pytest.raises(TraversalError):
            NodeTraverser(Rewriter(NodeKind.EXPR_VARIABLE, REMOVE_NODE)).traverse([stmt])

    def test_unsupported_result_raises(self) -> None:
        """Results other than None, a node, a list or REMOVE_NODE are rejected."""
        with pytest.raises(TraversalError):
            NodeTraverser(Rewriter(NodeKind.EXPR_VARIABLE, 42)).traverse([variable("x")])

    def test_replacement_not_revisited(self) -> None:
        """Children of a replacement node are not traversed."""
        recorder = Recorder()
        replacement = func_call("f", [variable("inner")])
        traverser = NodeTraverser(Rewriter(NodeKind.EXPR_VARIABLE, replacement), recorder)
        traverser.traverse([variable("x")])
        assert recorder.seen == ["Expr_FuncCall"]


class TestHooks:
    """before_traverse and after_traverse."""

    def test_hooks_may_replace_top_level(self) -> None:
        """Hook results replace the top-level list."""

        class Framing(NodeVisitor):
            def before_traverse(self, nodes: list[Node]):
                return [variable("first"), *nodes]

            def after_traverse(self, nodes: list[Node]):
                return [*nodes, variable("last")]

        recorder = Recorder()
        result = NodeTraverser(Framing(), recorder).traverse([variable("x")])
        assert recorder.seen == ["first", "x"]
        assert [node.get("name") for node in result] == ["first", "x", "last"]


class TestFailFast:
    """Exceptions stop the walk."""

    def test_exception_stops_traversal(self) -> None:
        """Nodes after the failing one are never visited."""

        class Failing(NodeVisitor):
            def __init__(self) -> None:
                self.seen: list[str] = []

            def leave_node(self, node: Node):
                self.seen.append(node.get("name"))
                if node.get("name") == "bad":
                    raise RuntimeError("stop")

        visitor = Failing()
        with pytest.raises(RuntimeError):
            NodeTraverser(visitor).traverse([variable("ok"), variable("bad"), variable("later")])
        assert visitor.seen == ["ok", "bad"]
