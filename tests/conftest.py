"""Pytest fixtures for policygate tests."""

import json
from pathlib import Path

import pytest

from policygate.models.node import Node
from policygate.models.options import SandboxOptions
from policygate.security.store import PolicyStore
from policygate.security.traverser import NodeTraverser
from policygate.security.validator import ValidatorVisitor


@pytest.fixture
def store() -> PolicyStore:
    """A store with default (restrictive) options."""
    return PolicyStore()


@pytest.fixture
def open_store() -> PolicyStore:
    """A store with every gated feature enabled."""
    flags = {
        field: True
        for field in SandboxOptions.model_fields
        if field.startswith("allow_")
    }
    return PolicyStore(SandboxOptions(**flags))


@pytest.fixture
def validate():
    """Run the validation pass of a store over a list of nodes."""

    def run(store: PolicyStore, nodes: list[Node]) -> list[Node]:
        return NodeTraverser(ValidatorVisitor(store)).traverse(nodes)

    return run


@pytest.fixture
def tree_file(tmp_path: Path):
    """Write a parser JSON dump to a temp file and return its path."""

    def write(data, name: str = "tree.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data, indent=2))
        return path

    return write


@pytest.fixture
def add_function_tree() -> list[dict]:
    """Parser dump of: function add($a, $b) { return $a + $b; } add(1, 2);"""
    return [
        {
            "nodeType": "Stmt_Function",
            "byRef": False,
            "name": "add",
            "params": [
                {"nodeType": "Param", "name": "a", "default": None, "byRef": False},
                {"nodeType": "Param", "name": "b", "default": None, "byRef": False},
            ],
            "stmts": [
                {
                    "nodeType": "Stmt_Return",
                    "expr": {
                        "nodeType": "Expr_BinaryOp_Plus",
                        "left": {"nodeType": "Expr_Variable", "name": "a"},
                        "right": {"nodeType": "Expr_Variable", "name": "b"},
                    },
                }
            ],
            "attributes": {"startLine": 1},
        },
        {
            "nodeType": "Expr_FuncCall",
            "name": {"nodeType": "Name", "parts": ["add"]},
            "args": [
                {"nodeType": "Arg", "value": {"nodeType": "Scalar_LNumber", "value": 1}, "byRef": False, "unpack": False},
                {"nodeType": "Arg", "value": {"nodeType": "Scalar_LNumber", "value": 2}, "byRef": False, "unpack": False},
            ],
            "attributes": {"startLine": 2},
        },
    ]
