"""Policy gate: runs the whitelist and validation passes over sandboxed code.

Pass order:
1. Trusted-code whitelisting (optional prelude tree)
2. Auto-whitelisting of the sandboxed code's own definitions
3. Validation and rewrite of the sandboxed code
"""

from dataclasses import dataclass, field

from .audit import AuditLogger
from .models.node import Node
from .security.errors import SandboxViolation, Violation
from .security.store import PolicyStore
from .security.traverser import NodeTraverser
from .security.validator import ValidatorVisitor
from .security.whitelist import SandboxWhitelistVisitor, TrustedWhitelistVisitor


@dataclass
class GateResult:
    """Result of running the gate over one tree."""

    passed: bool
    tree: list[Node] = field(default_factory=list)
    violation: Violation | None = None


class PolicyGate:
    """Prepares sandboxed syntax trees for execution."""

    def __init__(self, store: PolicyStore, audit: AuditLogger | None = None) -> None:
        self.store = store
        self.audit = audit if audit is not None else store.audit

    def whitelist_trusted(self, tree: list[Node]) -> None:
        """Whitelist everything the trusted tree references."""
        NodeTraverser(TrustedWhitelistVisitor(self.store)).traverse(tree)

    def auto_whitelist(self, tree: list[Node]) -> None:
        """Whitelist the sandboxed tree's own definitions, where permitted."""
        NodeTraverser(SandboxWhitelistVisitor(self.store)).traverse(tree)

    def validate(self, tree: list[Node]) -> list[Node]:
        """Validate the sandboxed tree and return its rewritten form."""
        return NodeTraverser(ValidatorVisitor(self.store)).traverse(tree)

    def prepare(self, tree: list[Node], trusted: list[Node] | None = None) -> list[Node]:
        """
        Run every pass in order.

        Args:
            tree: Sandboxed syntax tree (top-level statements)
            trusted: Optional trusted prelude tree

        Returns:
            The rewritten sandboxed tree

        Raises:
            SandboxViolation: On the first policy violation
        """
        if trusted:
            self.whitelist_trusted(trusted)
        self.auto_whitelist(tree)
        rewritten = self.validate(tree)
        if self.audit:
            self.audit.log("VALIDATE", result="pass", nodes=len(rewritten))
        return rewritten

    def check(self, tree: list[Node], trusted: list[Node] | None = None) -> GateResult:
        """Like prepare(), but report a violation in the result instead of raising."""
        try:
            rewritten = self.prepare(tree, trusted)
        except SandboxViolation as e:
            if self.audit:
                self.audit.log("VALIDATE", result="fail", kind=e.kind.value)
            return GateResult(passed=False, violation=e.violation)
        return GateResult(passed=True, tree=rewritten)
