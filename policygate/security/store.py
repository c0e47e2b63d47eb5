"""Policy store: flags, name lists, predicates and definition tables of one sandbox."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, NoReturn

from policygate.audit import AuditLogger
from policygate.models.options import SandboxConfig, SandboxOptions

from .errors import SandboxViolation, Violation, ViolationKind


class Category(str, Enum):
    """Name categories with their own allow-list, deny-list and predicate."""

    FUNCTIONS = "functions"
    VARIABLES = "variables"
    GLOBALS = "globals"
    SUPERGLOBALS = "superglobals"
    CONSTANTS = "constants"
    MAGIC_CONSTANTS = "magic_constants"
    NAMESPACES = "namespaces"
    ALIASES = "aliases"
    CLASSES = "classes"
    INTERFACES = "interfaces"
    TRAITS = "traits"
    KEYWORDS = "keywords"
    OPERATORS = "operators"
    PRIMITIVES = "primitives"
    TYPES = "types"


CASE_INSENSITIVE = frozenset({
    Category.FUNCTIONS,
    Category.CLASSES,
    Category.INTERFACES,
    Category.TRAITS,
    Category.TYPES,
    Category.NAMESPACES,
    Category.ALIASES,
    Category.KEYWORDS,
    Category.PRIMITIVES,
})

Predicate = Callable[..., bool]


def normalize(category: Category, name: str) -> str:
    """Canonical spelling of a name within its category."""
    name = name.lstrip("\\")
    if category in (Category.SUPERGLOBALS, Category.MAGIC_CONSTANTS):
        return name.upper()
    if category in CASE_INSENSITIVE:
        return name.lower()
    return name


class PolicyStore:
    """Holds everything the sandbox passes consult and record.

    One store is built per sandbox and shared by every pass of an execution.
    Lists and definition tables only grow; nothing is reset between passes.
    """

    def __init__(self, options: SandboxOptions | None = None, audit: AuditLogger | None = None) -> None:
        self.options = options or SandboxOptions()
        self.audit = audit
        self._whitelist: dict[Category, set[str]] = {category: set() for category in Category}
        self._blacklist: dict[Category, set[str]] = {category: set() for category in Category}
        self._predicates: dict[Category, Predicate] = {}
        self._functions: dict[str, Callable[..., Any] | None] = {}
        self._declared_functions: set[str] = set()
        self._classes: dict[str, str] = {}
        self._namespaces: list[str] = []
        self._aliases: dict[str, str | None] = {}
        self._magic_constants: dict[str, Any] = {}
        # Nodes produced by the rewrite rules, keyed by id(); the node is kept
        # alive so its id is never reused
        self._rewritten: dict[int, Any] = {}

    @classmethod
    def from_config(cls, config: SandboxConfig, audit: AuditLogger | None = None) -> PolicyStore:
        """Build a store from a validated configuration."""
        store = cls(config.options, audit)
        for category, names in config.whitelist.items():
            store.whitelist(Category(category), *names)
        for category, names in config.blacklist.items():
            store.blacklist(Category(category), *names)

        definitions = config.definitions
        for func in definitions.functions:
            store.define_func(func)
        for const in definitions.magic_constants:
            store.define_magic_const(const)
        for class_name, substitute in definitions.classes.items():
            store.define_class(class_name, substitute)
        for namespace in definitions.namespaces:
            store.define_namespace(namespace)
        for alias_name, alias in definitions.aliases.items():
            store.define_alias(alias_name, alias)
        return store

    @property
    def name(self) -> str:
        """Name of the variable holding the sandbox runtime handle."""
        return self.options.name

    def flag(self, name: str) -> bool:
        if name == "name" or name not in SandboxOptions.model_fields:
            raise KeyError(f"Unknown sandbox flag: {name}")
        return bool(getattr(self.options, name))

    # Allow-lists and deny-lists

    def whitelist(self, category: Category, *names: str) -> None:
        category = Category(category)
        for raw in names:
            key = normalize(category, raw)
            if key and key not in self._whitelist[category]:
                self._whitelist[category].add(key)
                if self.audit:
                    self.audit.log("WHITELIST", category=category.value, name=key)

    def blacklist(self, category: Category, *names: str) -> None:
        category = Category(category)
        for raw in names:
            key = normalize(category, raw)
            if key:
                self._blacklist[category].add(key)

    def has_whitelist(self, category: Category) -> bool:
        return bool(self._whitelist[Category(category)])

    def has_blacklist(self, category: Category) -> bool:
        return bool(self._blacklist[Category(category)])

    def is_whitelisted(self, category: Category, name: str) -> bool:
        category = Category(category)
        return normalize(category, name) in self._whitelist[category]

    def is_blacklisted(self, category: Category, name: str) -> bool:
        category = Category(category)
        return normalize(category, name) in self._blacklist[category]

    def whitelisted(self, category: Category) -> frozenset[str]:
        return frozenset(self._whitelist[Category(category)])

    def blacklisted(self, category: Category) -> frozenset[str]:
        return frozenset(self._blacklist[Category(category)])

    # Predicates

    def set_validator(self, category: Category, predicate: Predicate | None) -> None:
        """Register the custom predicate of a category; None removes it."""
        category = Category(category)
        if predicate is None:
            self._predicates.pop(category, None)
        else:
            self._predicates[category] = predicate

    def check(self, category: Category, name: str, *extra: Any) -> bool:
        """
        Decide whether a name is permitted in a category.

        A non-empty deny-list rejects its members. Otherwise a non-empty
        allow-list rejects everything not on it. Lists only ever reject; the
        category's predicate, called as ``predicate(name, *extra)``, decides
        the rest and accepts when none is registered. With ``allow_variables``
        off, a variable must also be on the variable allow-list.
        """
        category = Category(category)
        key = normalize(category, name)
        if self._blacklist[category]:
            if key in self._blacklist[category]:
                return False
        elif self._whitelist[category] and key not in self._whitelist[category]:
            return False
        if (
            category is Category.VARIABLES
            and not self.options.allow_variables
            and key not in self._whitelist[category]
        ):
            return False
        predicate = self._predicates.get(category)
        if predicate is None:
            return True
        return bool(predicate(key, *extra))

    def check_namespace(self, name: str, node: Any = None) -> None:
        if not name or not self.check(Category.NAMESPACES, name):
            self.report_violation(
                "Namespace failed custom validation!", ViolationKind.VALID_NAMESPACE, node, name
            )

    def check_alias(self, name: str, node: Any = None) -> None:
        if not name or not self.check(Category.ALIASES, name):
            self.report_violation(
                "Alias failed custom validation!", ViolationKind.VALID_ALIAS, node, name
            )

    # Definition tables

    def define_func(self, name: str, implementation: Callable[..., Any] | None = None) -> None:
        """Register a runtime override for a function name."""
        self._functions[normalize(Category.FUNCTIONS, name)] = implementation

    def is_defined_func(self, name: str) -> bool:
        return normalize(Category.FUNCTIONS, name) in self._functions

    def declare_func(self, name: str) -> None:
        """Record a function declared by sandboxed or trusted code."""
        self._declared_functions.add(normalize(Category.FUNCTIONS, name))

    def is_declared_func(self, name: str) -> bool:
        return normalize(Category.FUNCTIONS, name) in self._declared_functions

    def define_class(self, name: str, substitute: str) -> None:
        """Remap a class name to the sandbox's substitute class."""
        self._classes[normalize(Category.CLASSES, name)] = substitute.lstrip("\\")

    def is_defined_class(self, name: str) -> bool:
        return normalize(Category.CLASSES, name) in self._classes

    def defined_class_substitute(self, name: str) -> str:
        return self._classes.get(normalize(Category.CLASSES, name), name)

    def define_namespace(self, name: str) -> None:
        if not self.is_defined_namespace(name):
            self._namespaces.append(name.lstrip("\\"))
            if self.audit:
                self.audit.log("NAMESPACE", name=name)

    def is_defined_namespace(self, name: str) -> bool:
        key = normalize(Category.NAMESPACES, name)
        return any(normalize(Category.NAMESPACES, ns) == key for ns in self._namespaces)

    @property
    def namespaces(self) -> list[str]:
        return list(self._namespaces)

    def define_alias(self, name: str, alias: str | None = None) -> None:
        key = normalize(Category.ALIASES, name)
        if key not in self._aliases:
            self._aliases[key] = alias
            if self.audit:
                self.audit.log("ALIAS", name=key, alias=alias)

    def is_defined_alias(self, name: str) -> bool:
        return normalize(Category.ALIASES, name) in self._aliases

    def defined_alias(self, name: str) -> str | None:
        return self._aliases.get(normalize(Category.ALIASES, name))

    def define_magic_const(self, name: str, value: Any = None) -> None:
        self._magic_constants[normalize(Category.MAGIC_CONSTANTS, name)] = value

    def is_defined_magic_const(self, name: str) -> bool:
        return normalize(Category.MAGIC_CONSTANTS, name) in self._magic_constants

    # Rewrite output

    def mark_rewritten(self, node: Any) -> Any:
        """Remember a node built by a rewrite rule; returns the node."""
        self._rewritten[id(node)] = node
        return node

    def is_rewritten(self, node: Any) -> bool:
        return self._rewritten.get(id(node)) is node

    # Violations

    def report_violation(
        self,
        message: str,
        kind: ViolationKind,
        node: Any = None,
        context: str | None = None,
    ) -> NoReturn:
        """Record a violation and abort the running pass."""
        violation = Violation(message=message, kind=kind, node=node, context=context)
        if self.audit:
            self.audit.log(
                "VIOLATION",
                kind=kind.value,
                message=message,
                context=context,
                line=violation.line,
            )
        raise SandboxViolation(violation)
