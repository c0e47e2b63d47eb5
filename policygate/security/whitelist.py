"""Passes that populate the allow-lists before validation.

``SandboxWhitelistVisitor`` runs over the sandboxed code and whitelists what
that code defines itself, when the sandbox permits it. ``TrustedWhitelistVisitor``
runs over fully trusted code and whitelists everything it references.
Neither pass ever adds to a category that has a deny-list.
"""

from __future__ import annotations

from policygate.models.node import Node, NodeKind as K, is_name, name_to_string

from .errors import ViolationKind
from .store import Category, PolicyStore
from .traverser import REMOVE_NODE, NodeVisitor


def defined_constant(node: Node) -> str | None:
    """Name of the constant a ``define('NAME', ...)`` call introduces, if literal."""
    args = node.get("args") or []
    if not args or args[0].kind is not K.ARG:
        return None
    value = args[0].get("value")
    if isinstance(value, Node) and value.kind is K.SCALAR_STRING:
        const = value.get("value")
        if isinstance(const, str) and const:
            return const
    return None


def _is_define_call(node: Node) -> bool:
    return node.kind is K.EXPR_FUNC_CALL and is_name(node.get("name")) and (
        name_to_string(node.get("name")).lower() == "define"
    )


def _declared_name(node: Node) -> str | None:
    declared = node.get("name")
    return declared if isinstance(declared, str) and declared else None


def _global_names(node: Node) -> list[str]:
    return [
        var.get("name")
        for var in node.get("vars") or []
        if var.kind is K.EXPR_VARIABLE and isinstance(var.get("name"), str)
    ]


class SandboxWhitelistVisitor(NodeVisitor):
    """Whitelists definitions made by the sandboxed code itself."""

    def __init__(self, store: PolicyStore) -> None:
        self.store = store

    def _enabled(self, feature: str, category: Category) -> bool:
        store = self.store
        return (
            store.flag(f"allow_{feature}")
            and store.flag(f"auto_whitelist_{feature}")
            and not store.has_blacklist(category)
        )

    def leave_node(self, node: Node):
        store = self.store
        kind = node.kind
        declared = _declared_name(node)

        if kind is K.STMT_CLASS and declared and self._enabled("classes", Category.CLASSES):
            store.whitelist(Category.CLASSES, declared)
            if not store.has_blacklist(Category.TYPES):
                store.whitelist(Category.TYPES, declared)
        elif kind is K.STMT_INTERFACE and declared and self._enabled("interfaces", Category.INTERFACES):
            store.whitelist(Category.INTERFACES, declared)
        elif kind is K.STMT_TRAIT and declared and self._enabled("traits", Category.TRAITS):
            store.whitelist(Category.TRAITS, declared)
        elif (
            _is_define_call(node)
            and self._enabled("constants", Category.CONSTANTS)
            and not store.is_defined_func("define")
        ):
            const = defined_constant(node)
            if const:
                store.whitelist(Category.CONSTANTS, const)
        elif (
            kind is K.STMT_GLOBAL
            and store.flag("allow_globals")
            and store.flag("auto_whitelist_globals")
            and store.has_whitelist(Category.VARIABLES)
            and not store.has_blacklist(Category.VARIABLES)
        ):
            store.whitelist(Category.VARIABLES, *_global_names(node))
        elif kind is K.STMT_FUNCTION and declared and self._enabled("functions", Category.FUNCTIONS):
            store.whitelist(Category.FUNCTIONS, declared)
        return None


class TrustedWhitelistVisitor(NodeVisitor):
    """Whitelists every name referenced by trusted code.

    Namespace and use declarations are registered with the store instead of
    whitelisted: namespaces are flattened into their statements and use
    declarations are dropped.
    """

    def __init__(self, store: PolicyStore) -> None:
        self.store = store

    def _harvest(self, category: Category, *names: str) -> None:
        if not self.store.has_blacklist(category):
            self.store.whitelist(category, *names)

    def _restricting_variables(self) -> bool:
        return self.store.has_whitelist(Category.VARIABLES) and not self.store.flag("allow_variables")

    def leave_node(self, node: Node):
        store = self.store
        kind = node.kind
        declared = _declared_name(node)

        if kind is K.EXPR_FUNC_CALL and is_name(node.get("name")):
            self._harvest(Category.FUNCTIONS, name_to_string(node.get("name")))
            if _is_define_call(node) and not store.is_defined_func("define"):
                const = defined_constant(node)
                if const:
                    self._harvest(Category.CONSTANTS, const)
        elif kind is K.STMT_FUNCTION and declared:
            if store.is_declared_func(declared):
                store.report_violation(
                    "Trusted code attempted to redefine function!",
                    ViolationKind.DUPLICATE_FUNC,
                    node,
                    declared,
                )
            store.declare_func(declared)
            self._harvest(Category.FUNCTIONS, declared)
        elif kind in (K.EXPR_VARIABLE, K.STMT_STATIC_VAR) and declared:
            if self._restricting_variables():
                self._harvest(Category.VARIABLES, declared)
        elif kind is K.EXPR_CONST_FETCH and is_name(node.get("name")):
            self._harvest(Category.CONSTANTS, name_to_string(node.get("name")))
        elif kind is K.STMT_CLASS and declared:
            self._harvest(Category.CLASSES, declared)
        elif kind is K.STMT_INTERFACE and declared:
            self._harvest(Category.INTERFACES, declared)
        elif kind is K.STMT_TRAIT and declared:
            self._harvest(Category.TRAITS, declared)
        elif kind is K.EXPR_NEW and is_name(node.get("class")):
            self._harvest(Category.TYPES, name_to_string(node.get("class")))
        elif kind is K.STMT_GLOBAL:
            if store.has_whitelist(Category.VARIABLES):
                self._harvest(Category.VARIABLES, *_global_names(node))
        elif kind is K.STMT_NAMESPACE:
            namespace = node.get("name")
            if is_name(namespace):
                namespace = name_to_string(namespace)
                store.check_namespace(namespace, node)
                if not store.is_defined_namespace(namespace):
                    store.define_namespace(namespace)
            return list(node.get("stmts") or [])
        elif kind is K.STMT_USE:
            for use in node.get("uses") or []:
                alias = use.get("alias")
                if use.kind is K.STMT_USE_USE and is_name(use.get("name")) and (
                    alias is None or isinstance(alias, str)
                ):
                    used = name_to_string(use.get("name"))
                    store.check_alias(used, node)
                    if not store.is_defined_alias(used):
                        store.define_alias(used, alias)
            return REMOVE_NODE
        return None
