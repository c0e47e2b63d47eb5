"""Security module for policygate.

Provides the policy store and the tree passes that whitelist, validate and
rewrite sandboxed code.
"""

from .errors import SandboxViolation, Violation, ViolationGroup, ViolationKind
from .policy import ARG_FUNCS, DEFINED_FUNCS, SUPERGLOBALS
from .store import Category, PolicyStore
from .traverser import REMOVE_NODE, NodeTraverser, NodeVisitor, TraversalError
from .validator import ValidatorVisitor
from .whitelist import SandboxWhitelistVisitor, TrustedWhitelistVisitor

__all__ = [
    "ARG_FUNCS",
    "Category",
    "DEFINED_FUNCS",
    "NodeTraverser",
    "NodeVisitor",
    "PolicyStore",
    "REMOVE_NODE",
    "SUPERGLOBALS",
    "SandboxViolation",
    "SandboxWhitelistVisitor",
    "TraversalError",
    "TrustedWhitelistVisitor",
    "ValidatorVisitor",
    "Violation",
    "ViolationGroup",
    "ViolationKind",
]
