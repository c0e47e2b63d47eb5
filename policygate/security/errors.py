"""Policy violations raised by the sandbox passes."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ViolationGroup(str, Enum):
    ESCAPE = "escape"
    DISALLOWED = "disallowed"
    DYNAMIC_NAME = "dynamic_name"
    PREDICATE = "predicate"
    STRUCTURAL = "structural"


class ViolationKind(str, Enum):
    """Closed set of reasons a pass can reject sandboxed code."""

    # Escapes
    ESCAPE = "escape"
    BACKTICKS = "backticks"

    # Disallowed constructs
    CAST = "cast"
    CLOSURE = "closure"
    DEFINE_FUNC = "define_func"
    DEFINE_CLASS = "define_class"
    DEFINE_INTERFACE = "define_interface"
    DEFINE_TRAIT = "define_trait"
    DEFINE_NAMESPACE = "define_namespace"
    DEFINE_ALIAS = "define_alias"
    GENERATOR = "generator"
    GLOBALS = "globals"
    STATIC_VAR = "static_var"
    CREATE_OBJECT = "create_object"
    ERROR_SUPPRESS = "error_suppress"
    BYREF = "byref"
    HALT = "halt"

    # Dynamic names
    DYNAMIC_VAR = "dynamic_var"
    DYNAMIC_STATIC_VAR = "dynamic_static_var"
    DYNAMIC_CONST = "dynamic_const"
    DYNAMIC_CLASS = "dynamic_class"

    # Custom predicate failures
    VALID_FUNC = "valid_func"
    VALID_CLASS = "valid_class"
    VALID_INTERFACE = "valid_interface"
    VALID_TRAIT = "valid_trait"
    VALID_VAR = "valid_var"
    VALID_CONST = "valid_const"
    VALID_GLOBAL = "valid_global"
    VALID_SUPERGLOBAL = "valid_superglobal"
    VALID_KEYWORD = "valid_keyword"
    VALID_OPERATOR = "valid_operator"
    VALID_PRIMITIVE = "valid_primitive"
    VALID_MAGIC_CONST = "valid_magic_const"
    VALID_TYPE = "valid_type"
    VALID_NAMESPACE = "valid_namespace"
    VALID_ALIAS = "valid_alias"

    # Structural errors
    UNNAMED_FUNC = "unnamed_func"
    UNNAMED_CLASS = "unnamed_class"
    UNNAMED_INTERFACE = "unnamed_interface"
    UNNAMED_TRAIT = "unnamed_trait"
    DEFINE_GLOBAL = "define_global"
    GLOBAL_CONST = "global_const"
    SANDBOX_ACCESS = "sandbox_access"
    DUPLICATE_FUNC = "duplicate_func"

    @property
    def group(self) -> ViolationGroup:
        return KIND_GROUPS[self]


KIND_GROUPS: dict[ViolationKind, ViolationGroup] = {
    ViolationKind.ESCAPE: ViolationGroup.ESCAPE,
    ViolationKind.BACKTICKS: ViolationGroup.ESCAPE,
    **{
        kind: ViolationGroup.DISALLOWED
        for kind in (
            ViolationKind.CAST,
            ViolationKind.CLOSURE,
            ViolationKind.DEFINE_FUNC,
            ViolationKind.DEFINE_CLASS,
            ViolationKind.DEFINE_INTERFACE,
            ViolationKind.DEFINE_TRAIT,
            ViolationKind.DEFINE_NAMESPACE,
            ViolationKind.DEFINE_ALIAS,
            ViolationKind.GENERATOR,
            ViolationKind.GLOBALS,
            ViolationKind.STATIC_VAR,
            ViolationKind.CREATE_OBJECT,
            ViolationKind.ERROR_SUPPRESS,
            ViolationKind.BYREF,
            ViolationKind.HALT,
        )
    },
    **{
        kind: ViolationGroup.DYNAMIC_NAME
        for kind in (
            ViolationKind.DYNAMIC_VAR,
            ViolationKind.DYNAMIC_STATIC_VAR,
            ViolationKind.DYNAMIC_CONST,
            ViolationKind.DYNAMIC_CLASS,
        )
    },
    **{kind: ViolationGroup.PREDICATE for kind in ViolationKind if kind.value.startswith("valid_")},
    **{
        kind: ViolationGroup.STRUCTURAL
        for kind in (
            ViolationKind.UNNAMED_FUNC,
            ViolationKind.UNNAMED_CLASS,
            ViolationKind.UNNAMED_INTERFACE,
            ViolationKind.UNNAMED_TRAIT,
            ViolationKind.DEFINE_GLOBAL,
            ViolationKind.GLOBAL_CONST,
            ViolationKind.SANDBOX_ACCESS,
            ViolationKind.DUPLICATE_FUNC,
        )
    },
}


@dataclass(frozen=True)
class Violation:
    """One rejected construct."""

    message: str
    kind: ViolationKind
    node: Any = None
    context: str | None = None

    @property
    def line(self) -> int | None:
        attributes = getattr(self.node, "attributes", None) or {}
        return attributes.get("startLine")

    def __str__(self) -> str:
        text = f"[{self.kind.value}] {self.message}"
        if self.context:
            text += f" ({self.context})"
        if self.line is not None:
            text += f" on line {self.line}"
        return text


class SandboxViolation(Exception):
    """Raised by a pass to abort on the first violation."""

    def __init__(self, violation: Violation) -> None:
        super().__init__(str(violation))
        self.violation = violation

    @property
    def kind(self) -> ViolationKind:
        return self.violation.kind
