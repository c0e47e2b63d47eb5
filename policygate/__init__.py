"""policygate: capability-based policy enforcement over sandboxed syntax trees."""

from .gate import GateResult, PolicyGate
from .models.node import Node, NodeKind
from .models.options import SandboxConfig, SandboxOptions
from .security.errors import SandboxViolation, Violation, ViolationKind
from .security.store import Category, PolicyStore

__all__ = [
    "Category",
    "GateResult",
    "Node",
    "NodeKind",
    "PolicyGate",
    "PolicyStore",
    "SandboxConfig",
    "SandboxOptions",
    "SandboxViolation",
    "Violation",
    "ViolationKind",
]
