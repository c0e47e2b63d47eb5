"""Tests for the auto-whitelist and trusted-code whitelist passes."""

import pytest

from policygate.models.node import (
    Node,
    NodeKind as K,
    arg,
    const_fetch,
    func_call,
    lnumber,
    make,
    name,
    new,
    string,
    variable,
)
from policygate.models.options import SandboxOptions
from policygate.security.errors import SandboxViolation, ViolationKind
from policygate.security.store import Category, PolicyStore
from policygate.security.traverser import NodeTraverser
from policygate.security.whitelist import (
    SandboxWhitelistVisitor,
    TrustedWhitelistVisitor,
    defined_constant,
)


def _auto(store: PolicyStore, nodes: list[Node]) -> list[Node]:
    return NodeTraverser(SandboxWhitelistVisitor(store)).traverse(nodes)


def _trusted(store: PolicyStore, nodes: list[Node]) -> list[Node]:
    return NodeTraverser(TrustedWhitelistVisitor(store)).traverse(nodes)


def _define(const: str, value: Node | None = None) -> Node:
    return func_call("define", [arg(string(const)), arg(value or lnumber(1))])


def _class(class_name: str) -> Node:
    return make(K.STMT_CLASS, name=class_name, extends=None, implements=[], stmts=[])


class TestDefinedConstant:
    """Reading the constant name out of define() calls."""

    def test_literal_name(self) -> None:
        """A string first argument is the constant name."""
        assert defined_constant(_define("FOO")) == "FOO"

    def test_dynamic_name(self) -> None:
        """Non-literal names are ignored."""
        assert defined_constant(func_call("define", [arg(variable("c")), arg(lnumber(1))])) is None

    def test_no_arguments(self) -> None:
        """define() without arguments defines nothing."""
        assert defined_constant(func_call("define")) is None


class TestAutoWhitelist:
    """Whitelisting the sandboxed code's own definitions."""

    def test_class_whitelisted_as_class_and_type(self, open_store: PolicyStore) -> None:
        """Declared classes become usable classes and types."""
        _auto(open_store, [_class("Foo")])
        assert open_store.is_whitelisted(Category.CLASSES, "foo")
        assert open_store.is_whitelisted(Category.TYPES, "foo")

    def test_types_blacklist_respected(self, open_store: PolicyStore) -> None:
        """Types are left alone when they have a deny-list."""
        open_store.blacklist(Category.TYPES, "Other")
        _auto(open_store, [_class("Foo")])
        assert open_store.is_whitelisted(Category.CLASSES, "Foo")
        assert not open_store.has_whitelist(Category.TYPES)

    def test_feature_disabled(self, store: PolicyStore) -> None:
        """Nothing is whitelisted for a feature the sandbox forbids."""
        _auto(store, [_class("Foo"), make(K.STMT_FUNCTION, name="f", byRef=False, params=[], stmts=[])])
        assert not store.has_whitelist(Category.CLASSES)
        assert not store.has_whitelist(Category.FUNCTIONS)

    def test_auto_whitelist_flag_off(self) -> None:
        """auto_whitelist_* turns the pass off per feature."""
        store = PolicyStore(SandboxOptions(allow_functions=True, auto_whitelist_functions=False))
        _auto(store, [make(K.STMT_FUNCTION, name="f", byRef=False, params=[], stmts=[])])
        assert not store.has_whitelist(Category.FUNCTIONS)

    def test_blacklisted_category_untouched(self, open_store: PolicyStore) -> None:
        """Categories with a deny-list never gain allow-list entries."""
        open_store.blacklist(Category.CLASSES, "Evil")
        _auto(open_store, [_class("Foo")])
        assert not open_store.has_whitelist(Category.CLASSES)

    def test_interface_and_trait(self, open_store: PolicyStore) -> None:
        """Declared interfaces and traits are whitelisted."""
        _auto(
            open_store,
            [
                make(K.STMT_INTERFACE, name="Shape", extends=[], stmts=[]),
                make(K.STMT_TRAIT, name="Loggable", stmts=[]),
            ],
        )
        assert open_store.is_whitelisted(Category.INTERFACES, "shape")
        assert open_store.is_whitelisted(Category.TRAITS, "loggable")

    def test_define_whitelists_constant(self, open_store: PolicyStore) -> None:
        """define('NAME', ...) whitelists NAME."""
        _auto(open_store, [_define("LIMIT")])
        assert open_store.is_whitelisted(Category.CONSTANTS, "LIMIT")

    def test_overridden_define_ignored(self, open_store: PolicyStore) -> None:
        """An overridden define() defines nothing on the host."""
        open_store.define_func("define")
        _auto(open_store, [_define("LIMIT")])
        assert not open_store.has_whitelist(Category.CONSTANTS)

    def test_globals_extend_variable_whitelist(self) -> None:
        """global names join a non-empty variable whitelist."""
        store = PolicyStore(SandboxOptions(allow_globals=True))
        store.whitelist(Category.VARIABLES, "a")
        _auto(store, [make(K.STMT_GLOBAL, vars=[variable("config")])])
        assert store.whitelisted(Category.VARIABLES) == {"a", "config"}

    def test_globals_without_variable_whitelist(self) -> None:
        """Without a variable whitelist globals are not recorded."""
        store = PolicyStore(SandboxOptions(allow_globals=True))
        _auto(store, [make(K.STMT_GLOBAL, vars=[variable("config")])])
        assert not store.has_whitelist(Category.VARIABLES)

    def test_tree_unchanged(self, open_store: PolicyStore) -> None:
        """The auto pass never rewrites the tree."""
        tree = [_class("Foo"), _define("X")]
        assert _auto(open_store, tree) == tree


class TestTrustedWhitelist:
    """Whitelisting everything trusted code references."""

    def test_references_harvested(self, store: PolicyStore) -> None:
        """Calls, declarations, constants and instantiations are whitelisted."""
        tree = [
            func_call("strlen", [arg(string("x"))]),
            make(K.STMT_FUNCTION, name="helper", byRef=False, params=[], stmts=[]),
            const_fetch("PHP_EOL"),
            _class("Base"),
            make(K.STMT_INTERFACE, name="Shape", extends=[], stmts=[]),
            make(K.STMT_TRAIT, name="Loggable", stmts=[]),
            new("DateTime"),
        ]
        _trusted(store, tree)
        assert store.whitelisted(Category.FUNCTIONS) == {"strlen", "helper"}
        assert store.whitelisted(Category.CONSTANTS) == {"PHP_EOL"}
        assert store.whitelisted(Category.CLASSES) == {"base"}
        assert store.whitelisted(Category.INTERFACES) == {"shape"}
        assert store.whitelisted(Category.TRAITS) == {"loggable"}
        assert store.whitelisted(Category.TYPES) == {"datetime"}
        assert store.is_declared_func("helper")

    def test_trusted_function_declared_twice(self, store: PolicyStore) -> None:
        """Trusted code cannot declare the same function twice."""
        helper = make(K.STMT_FUNCTION, name="helper", byRef=False, params=[], stmts=[])
        with pytest.raises(SandboxViolation) as exc_info:
            _trusted(store, [helper, helper.model_copy()])
        assert exc_info.value.kind is ViolationKind.DUPLICATE_FUNC

    def test_define_harvests_function_and_constant(self, store: PolicyStore) -> None:
        """define() whitelists both itself and the constant it defines."""
        _trusted(store, [_define("APP_ROOT")])
        assert store.is_whitelisted(Category.FUNCTIONS, "define")
        assert store.is_whitelisted(Category.CONSTANTS, "APP_ROOT")

    def test_variables_only_when_restricted(self) -> None:
        """Variables are harvested only while variables are restricted to a whitelist."""
        relaxed = PolicyStore()
        relaxed.whitelist(Category.VARIABLES, "a")
        _trusted(relaxed, [variable("b")])
        assert relaxed.whitelisted(Category.VARIABLES) == {"a"}

        restricted = PolicyStore(SandboxOptions(allow_variables=False))
        restricted.whitelist(Category.VARIABLES, "a")
        _trusted(restricted, [variable("b")])
        assert restricted.whitelisted(Category.VARIABLES) == {"a", "b"}

    def test_globals_join_variable_whitelist(self, store: PolicyStore) -> None:
        """global names are harvested when a variable whitelist exists."""
        store.whitelist(Category.VARIABLES, "a")
        _trusted(store, [make(K.STMT_GLOBAL, vars=[variable("db")])])
        assert "db" in store.whitelisted(Category.VARIABLES)

    def test_blacklisted_category_untouched(self, store: PolicyStore) -> None:
        """Allow-lists and deny-lists of a category never overlap."""
        store.blacklist(Category.FUNCTIONS, "exec")
        _trusted(store, [func_call("exec"), func_call("strlen")])
        for category in Category:
            assert not store.whitelisted(category) & store.blacklisted(category)
        assert not store.has_whitelist(Category.FUNCTIONS)

    def test_namespace_registered_and_flattened(self, store: PolicyStore) -> None:
        """Namespaces are registered and replaced by their statements."""
        call = func_call("boot")
        result = _trusted(store, [make(K.STMT_NAMESPACE, name=name("App\\Core"), stmts=[call])])
        assert result == [call]
        assert store.namespaces == ["App\\Core"]
        assert store.is_whitelisted(Category.FUNCTIONS, "boot")

    def test_namespace_predicate(self, store: PolicyStore) -> None:
        """Trusted namespaces still go through the namespaces predicate."""
        store.set_validator(Category.NAMESPACES, lambda ns: ns != "evil")
        with pytest.raises(SandboxViolation) as exc_info:
            _trusted(store, [make(K.STMT_NAMESPACE, name=name("Evil"), stmts=[])])
        assert exc_info.value.kind is ViolationKind.VALID_NAMESPACE

    def test_use_registered_and_removed(self, store: PolicyStore) -> None:
        """Use declarations become aliases and leave the tree."""
        use = make(K.STMT_USE, type=1, uses=[make(K.STMT_USE_USE, name=name("App\\User"), alias=None)])
        assert _trusted(store, [use]) == []
        assert store.is_defined_alias("App\\User")
        assert store.defined_alias("App\\User") is None
