"""Validation and rewrite pass over sandboxed code.

Every node is checked against the policy store once its children are done.
Gated constructs need their feature flag, names go through the category
predicates, and a few shapes are rewritten into calls on the sandbox runtime
handle so the runtime, not the host, decides what they do.
"""

from __future__ import annotations

from policygate.models.node import (
    SYNTHETIC,
    Node,
    NodeKind as K,
    is_name,
    name_to_string,
    synthetic,
)

from .errors import ViolationKind as V
from .policy import (
    ARG_FUNCS,
    CALL_FUNC,
    CAST_KINDS,
    CHECK_FUNC,
    DEFINED_FUNCS,
    GET_MAGIC_CONST,
    GET_SUPERGLOBAL,
    KEYWORDS,
    MAGIC_CONSTANTS,
    OPERATORS,
    PRIMITIVES,
    SUPERGLOBALS,
)
from .store import Category, PolicyStore
from .traverser import REMOVE_NODE, NodeVisitor


class ValidatorVisitor(NodeVisitor):
    """Enforces a policy store on sandboxed code and rewrites runtime-bound nodes."""

    # Node kinds with a dedicated handler; everything else goes through the
    # magic constant, keyword, operator and primitive tables.
    HANDLERS: dict[K, str] = {
        K.STMT_INLINE_HTML: "_escape",
        **{kind: "_cast" for kind in CAST_KINDS},
        K.STMT_FUNCTION: "_function",
        K.EXPR_CLOSURE: "_closure",
        K.EXPR_CLOSURE_USE: "_closure_use",
        K.STMT_CLASS: "_class",
        K.STMT_INTERFACE: "_interface",
        K.STMT_TRAIT: "_trait",
        K.STMT_TRAIT_USE: "_trait_use",
        K.EXPR_YIELD: "_yield",
        K.STMT_GLOBAL: "_global",
        K.STMT_STATIC_VAR: "_static_var",
        K.STMT_CONST: "_const",
        K.EXPR_ERROR_SUPPRESS: "_error_suppress",
        K.EXPR_ASSIGN_REF: "_assign_ref",
        K.STMT_HALT_COMPILER: "_halt",
        K.STMT_NAMESPACE: "_namespace",
        K.STMT_USE: "_use",
        K.EXPR_FUNC_CALL: "_func_call",
        K.EXPR_VARIABLE: "_variable",
        K.EXPR_CONST_FETCH: "_const_fetch",
        K.EXPR_CLASS_CONST_FETCH: "_class_access",
        K.EXPR_STATIC_CALL: "_class_access",
        K.EXPR_STATIC_PROPERTY_FETCH: "_class_access",
        K.EXPR_NEW: "_new",
        K.EXPR_SHELL_EXEC: "_shell_exec",
    }

    def __init__(self, store: PolicyStore) -> None:
        self.store = store

    def leave_node(self, node: Node):
        # Only nodes this store's rewrites built are exempt; the attribute
        # marker on input nodes is not trusted
        if self.store.is_rewritten(node):
            return None

        handler = self.HANDLERS.get(node.kind)
        if handler is not None:
            return getattr(self, handler)(node)

        if node.kind in MAGIC_CONSTANTS:
            return self._magic_const(node, MAGIC_CONSTANTS[node.kind])
        if node.kind in KEYWORDS:
            self._check_keyword(KEYWORDS[node.kind], node)
        elif node.kind in OPERATORS:
            self._check_operator(OPERATORS[node.kind], node)
        elif node.kind in PRIMITIVES:
            self._check_primitive(node)
        return None

    # Shared checks

    def _error(self, message: str, kind: V, node: Node, context: str | None = None):
        self.store.report_violation(message, kind, node, context)

    def _require(self, flag: str, message: str, kind: V, node: Node) -> None:
        if not self.store.flag(flag):
            self._error(message, kind, node)

    def _check_keyword(self, keyword: str, node: Node) -> None:
        if not self.store.check(Category.KEYWORDS, keyword):
            self._error("Keyword failed custom validation!", V.VALID_KEYWORD, node, keyword)

    def _check_operator(self, operator: str, node: Node) -> None:
        if not self.store.check(Category.OPERATORS, operator):
            self._error("Operator failed custom validation!", V.VALID_OPERATOR, node, operator)

    def _check_primitive(self, node: Node) -> None:
        # Cast nodes already passed the cast gate; the flag is checked again here.
        if node.kind in CAST_KINDS and not self.store.flag("allow_casting"):
            self._error("Sandboxed code attempted to cast!", V.CAST, node)
        primitive = PRIMITIVES.get(node.kind)
        if primitive and not self.store.check(Category.PRIMITIVES, primitive):
            self._error("Primitive failed custom validation!", V.VALID_PRIMITIVE, node, primitive)

    # Rewrite helpers

    def _synthetic(self, kind: K, attributes: dict | None = None, **fields) -> Node:
        return self.store.mark_rewritten(synthetic(kind, attributes, **fields))

    def _handle(self) -> Node:
        return self._synthetic(K.EXPR_VARIABLE, name=self.store.name)

    def _arg(self, value: Node) -> Node:
        return self._synthetic(K.ARG, value=value, byRef=False, unpack=False)

    def _string(self, value: str) -> Node:
        return self._synthetic(K.SCALAR_STRING, value=value)

    def _native_call(self, func: str) -> Node:
        return self._synthetic(K.EXPR_FUNC_CALL, name=self._synthetic(K.NAME, parts=[func]), args=[])

    def _runtime_call(self, method: str, args: list[Node], node: Node) -> Node:
        """Call ``method`` on the sandbox handle, keeping the node's position."""
        return self._synthetic(
            K.EXPR_METHOD_CALL, node.attributes, var=self._handle(), name=method, args=args
        )

    # Escapes

    def _escape(self, node: Node):
        self._require("allow_escaping", "Sandboxed code attempted to escape to HTML!", V.ESCAPE, node)

    def _shell_exec(self, node: Node):
        if self.store.is_defined_func("shell_exec"):
            args = [self._arg(self._string("shell_exec")), self._arg(self._command(node))]
            return self._runtime_call(CALL_FUNC, args, node)

        if self.store.has_blacklist(Category.FUNCTIONS):
            if self.store.is_blacklisted(Category.FUNCTIONS, "shell_exec"):
                self._error(
                    "Sandboxed code attempted to use shell execution backticks when the "
                    "shell_exec function is blacklisted!",
                    V.BACKTICKS,
                    node,
                )
        elif self.store.has_whitelist(Category.FUNCTIONS):
            if not self.store.is_whitelisted(Category.FUNCTIONS, "shell_exec"):
                self._error(
                    "Sandboxed code attempted to use shell execution backticks when the "
                    "shell_exec function is not whitelisted!",
                    V.BACKTICKS,
                    node,
                )
        self._require(
            "allow_backticks", "Sandboxed code attempted to use shell execution backticks!", V.BACKTICKS, node
        )
        return None

    def _command(self, node: Node) -> Node:
        parts = node.get("parts") or []
        if all(isinstance(part, str) or part.kind is K.SCALAR_ENCAPSED_STRING_PART for part in parts):
            text = "".join(part if isinstance(part, str) else part.get("value", "") for part in parts)
            return self._string(text)
        return self._synthetic(K.SCALAR_ENCAPSED, parts=list(parts))

    # Gated declarations and constructs

    def _cast(self, node: Node):
        self._require("allow_casting", "Sandboxed code attempted to cast!", V.CAST, node)
        self._check_primitive(node)

    def _function(self, node: Node):
        self._require("allow_functions", "Sandboxed code attempted to define function!", V.DEFINE_FUNC, node)
        self._check_keyword("function", node)
        func = node.get("name")
        if not func or not isinstance(func, str):
            self._error("Sandboxed code attempted to define unnamed function!", V.UNNAMED_FUNC, node, "")
        if self.store.is_defined_func(func) or self.store.is_declared_func(func):
            self._error("Sandboxed code attempted to redefine function!", V.DUPLICATE_FUNC, node, func)
        if node.get("byRef") and not self.store.flag("allow_references"):
            self._error(
                "Sandboxed code attempted to define function return by reference!", V.BYREF, node
            )
        self.store.declare_func(func)

    def _closure(self, node: Node):
        self._require("allow_closures", "Sandboxed code attempted to create a closure!", V.CLOSURE, node)
        uses = list(node.get("uses") or [])
        if any(use.get("var") == self.store.name for use in uses):
            return None
        rewritten = node.model_copy()
        rewritten.set("uses", [*uses, self._synthetic(K.EXPR_CLOSURE_USE, var=self.store.name, byRef=False)])
        return rewritten

    def _closure_use(self, node: Node):
        if node.get("var") == self.store.name:
            self._error(
                "Sandboxed code attempted to access the sandbox instance!", V.SANDBOX_ACCESS, node
            )

    def _class(self, node: Node):
        store = self.store
        self._require("allow_classes", "Sandboxed code attempted to define class!", V.DEFINE_CLASS, node)
        self._check_keyword("class", node)
        class_name = node.get("name")
        if not class_name or not isinstance(class_name, str):
            self._error("Sandboxed code attempted to define unnamed class!", V.UNNAMED_CLASS, node, "")
        if not store.check(Category.CLASSES, class_name, False):
            self._error("Class failed custom validation!", V.VALID_CLASS, node, class_name)

        extends = node.get("extends")
        if is_name(extends):
            self._check_keyword("extends", node)
            parent = name_to_string(extends)
            if not parent:
                self._error("Sandboxed code attempted to extend unnamed class!", V.UNNAMED_CLASS, node, "")
            if not store.check(Category.CLASSES, parent, True):
                self._error("Class extension failed custom validation!", V.VALID_CLASS, node, parent)

        implements = node.get("implements") or []
        if implements:
            self._check_keyword("implements", node)
            for implement in implements:
                interface = name_to_string(implement)
                if not interface:
                    self._error(
                        "Sandboxed code attempted to implement unnamed interface!",
                        V.UNNAMED_INTERFACE,
                        node,
                        "",
                    )
                if not store.check(Category.INTERFACES, interface):
                    self._error("Interface failed custom validation!", V.VALID_INTERFACE, node, interface)

    def _interface(self, node: Node):
        self._require(
            "allow_interfaces", "Sandboxed code attempted to define interface!", V.DEFINE_INTERFACE, node
        )
        self._check_keyword("interface", node)
        interface = node.get("name")
        if not interface or not isinstance(interface, str):
            self._error("Sandboxed code attempted to define unnamed interface!", V.UNNAMED_INTERFACE, node, "")
        if not self.store.check(Category.INTERFACES, interface):
            self._error("Interface failed custom validation!", V.VALID_INTERFACE, node, interface)
        for parent in node.get("extends") or []:
            parent_name = name_to_string(parent)
            if not self.store.check(Category.INTERFACES, parent_name):
                self._error("Interface failed custom validation!", V.VALID_INTERFACE, node, parent_name)

    def _trait(self, node: Node):
        self._require("allow_traits", "Sandboxed code attempted to define trait!", V.DEFINE_TRAIT, node)
        self._check_keyword("trait", node)
        trait = node.get("name")
        if not trait or not isinstance(trait, str):
            self._error("Sandboxed code attempted to define unnamed trait!", V.UNNAMED_TRAIT, node, "")
        if not self.store.check(Category.TRAITS, trait):
            self._error("Trait failed custom validation!", V.VALID_TRAIT, node, trait)

    def _trait_use(self, node: Node):
        self._check_keyword("use", node)
        for used in node.get("traits") or []:
            trait = name_to_string(used)
            if not trait:
                self._error("Sandboxed code attempted to use unnamed trait!", V.UNNAMED_TRAIT, node, "")
            if not self.store.check(Category.TRAITS, trait):
                self._error("Trait failed custom validation!", V.VALID_TRAIT, node, trait)

    def _yield(self, node: Node):
        self._require("allow_generators", "Sandboxed code attempted to create a generator!", V.GENERATOR, node)
        self._check_keyword("yield", node)

    def _global(self, node: Node):
        self._require("allow_globals", "Sandboxed code attempted to use global keyword!", V.GLOBALS, node)
        self._check_keyword("global", node)
        for var in node.get("vars") or []:
            var_name = var.get("name") if var.kind is K.EXPR_VARIABLE else None
            if not isinstance(var_name, str):
                self._error(
                    "Sandboxed code attempted to pass non-variable to global keyword!", V.DEFINE_GLOBAL, node
                )
            if not self.store.check(Category.GLOBALS, var_name):
                self._error("Global failed custom validation!", V.VALID_GLOBAL, node, var_name)

    def _static_var(self, node: Node):
        self._require(
            "allow_static_variables", "Sandboxed code attempted to create static variable!", V.STATIC_VAR, node
        )
        var_name = node.get("name")
        var = node.get("var")
        if var_name is None and isinstance(var, Node):
            var_name = var.get("name")
        if not isinstance(var_name, str):
            self._error(
                "Sandboxed code attempted dynamically-named static variable call!", V.DYNAMIC_STATIC_VAR, node
            )
        if not self.store.check(Category.VARIABLES, var_name):
            self._error("Variable failed custom validation!", V.VALID_VAR, node, var_name)

    def _const(self, node: Node):
        self._error("Sandboxed code cannot use const keyword in the global scope!", V.GLOBAL_CONST, node)

    def _error_suppress(self, node: Node):
        self._require(
            "allow_error_suppressing", "Sandboxed code attempted to suppress error!", V.ERROR_SUPPRESS, node
        )

    def _assign_ref(self, node: Node):
        self._require("allow_references", "Sandboxed code attempted to assign by reference!", V.BYREF, node)
        self._check_operator(OPERATORS[K.EXPR_ASSIGN_REF], node)

    def _halt(self, node: Node):
        self._require("allow_halting", "Sandboxed code attempted to halt compiler!", V.HALT, node)
        self._check_keyword("halt", node)

    def _namespace(self, node: Node):
        self._require(
            "allow_namespaces", "Sandboxed code attempted to define namespace!", V.DEFINE_NAMESPACE, node
        )
        self._check_keyword("namespace", node)
        namespace = node.get("name")
        if not is_name(namespace):
            self._error("Sandboxed code attempted use invalid namespace!", V.DEFINE_NAMESPACE, node)
        namespace = name_to_string(namespace)
        self.store.check_namespace(namespace, node)
        if not self.store.is_defined_namespace(namespace):
            self.store.define_namespace(namespace)
        return list(node.get("stmts") or [])

    def _use(self, node: Node):
        self._require(
            "allow_aliases", "Sandboxed code attempted to use namespace and/or alias!", V.DEFINE_ALIAS, node
        )
        self._check_keyword("use", node)
        for use in node.get("uses") or []:
            alias = use.get("alias")
            if use.kind is not K.STMT_USE_USE or not is_name(use.get("name")) or not (
                alias is None or isinstance(alias, str)
            ):
                self._error(
                    "Sandboxed code attempted use invalid namespace or alias!", V.DEFINE_ALIAS, node
                )
            used = name_to_string(use.get("name"))
            self.store.check_alias(used, node)
            if alias:
                self._check_keyword("as", node)
            if not self.store.is_defined_alias(used):
                self.store.define_alias(used, alias)
        return REMOVE_NODE

    # Name resolution

    def _func_call(self, node: Node):
        store = self.store
        func = node.get("name")
        if not is_name(func):
            check = self._runtime_call(CHECK_FUNC, [self._arg(func.model_copy(deep=True))], node)
            guarded = self.store.mark_rewritten(
                node.model_copy(update={"attributes": {**node.attributes, SYNTHETIC: True}})
            )
            null = self._synthetic(K.EXPR_CONST_FETCH, name=self._synthetic(K.NAME, parts=["null"]))
            return self._synthetic(K.EXPR_TERNARY, node.attributes, **{"cond": check, "if": guarded, "else": null})

        func_name = name_to_string(func)
        if not store.check(Category.FUNCTIONS, func_name):
            self._error("Function failed custom validation!", V.VALID_FUNC, node, func_name)

        key = func_name.lower()
        args = list(node.get("args") or [])
        if store.is_defined_func(func_name):
            return self._runtime_call(CALL_FUNC, [self._arg(self._string(func_name)), *args], node)
        if store.flag("overwrite_defined_funcs") and key in DEFINED_FUNCS:
            return self._runtime_call("_" + key, [self._arg(self._native_call(key))], node)
        if store.flag("overwrite_func_get_args") and key in ARG_FUNCS:
            call_args = [self._arg(self._native_call("func_get_args"))]
            if key == "func_get_arg":
                call_args.append(args[0] if args else self._arg(self._synthetic(K.SCALAR_LNUMBER, value=0)))
            return self._runtime_call("_" + key, call_args, node)
        return None

    def _variable(self, node: Node):
        store = self.store
        var_name = node.get("name")
        if not isinstance(var_name, str):
            self._error("Sandboxed code attempted dynamically-named variable call!", V.DYNAMIC_VAR, node)
        if var_name == store.name:
            self._error(
                "Sandboxed code attempted to access the sandbox instance!", V.SANDBOX_ACCESS, node
            )
        if var_name in SUPERGLOBALS:
            if not store.check(Category.SUPERGLOBALS, var_name):
                self._error("Superglobal failed custom validation!", V.VALID_SUPERGLOBAL, node, var_name)
            if store.flag("overwrite_superglobals"):
                return self._runtime_call(GET_SUPERGLOBAL, [self._arg(self._string(var_name))], node)
        elif not store.check(Category.VARIABLES, var_name):
            self._error("Variable failed custom validation!", V.VALID_VAR, node, var_name)
        return None

    def _const_fetch(self, node: Node):
        const = node.get("name")
        if not is_name(const):
            self._error("Sandboxed code attempted dynamically-named constant call!", V.DYNAMIC_CONST, node)
        const_name = name_to_string(const)
        if not self.store.check(Category.CONSTANTS, const_name):
            self._error("Constant failed custom validation!", V.VALID_CONST, node, const_name)

    def _resolve_class(self, node: Node) -> tuple[Node, str]:
        """Literal class name of ``node``, substituted when the runtime remaps it."""
        class_ = node.get("class")
        if not is_name(class_):
            self._error("Sandboxed code attempted dynamically-named class call!", V.DYNAMIC_CLASS, node)
        class_name = name_to_string(class_)
        if self.store.is_defined_class(class_name):
            class_name = self.store.defined_class_substitute(class_name)
            node = node.model_copy()
            node.set("class", self._literal_name(class_name, class_))
        return node, class_name

    def _class_access(self, node: Node):
        rewritten, class_name = self._resolve_class(node)
        if not self.store.check(Category.CLASSES, class_name, False):
            self._error("Class constant failed custom validation!", V.VALID_CLASS, node, class_name)
        return rewritten if rewritten is not node else None

    def _new(self, node: Node):
        self._require("allow_objects", "Sandboxed code attempted to create object!", V.CREATE_OBJECT, node)
        self._check_keyword("new", node)
        rewritten, class_name = self._resolve_class(node)
        if not self.store.check(Category.TYPES, class_name):
            self._error("Type failed custom validation!", V.VALID_TYPE, node, class_name)
        return rewritten if rewritten is not node else None

    def _magic_const(self, node: Node, const_name: str):
        if not self.store.check(Category.MAGIC_CONSTANTS, const_name):
            self._error("Magic constant failed custom validation!", V.VALID_MAGIC_CONST, node, const_name)
        if self.store.is_defined_magic_const(const_name):
            return self._runtime_call(GET_MAGIC_CONST, [self._arg(self._string(const_name))], node)
        return None

    def _literal_name(self, value: str, original: Node) -> Node:
        """Name node for ``value`` with the kind and position of ``original``."""
        return self._synthetic(original.kind, original.attributes, parts=value.split("\\"))
