"""Syntax tree node model.

Nodes mirror the JSON dump of the external parser: each node has a kind
(``nodeType`` in the dump), an ``attributes`` mapping holding source position
metadata, and kind-specific sub-node fields. Sub-node fields are kept as
model extras so one model covers every kind.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Attribute set on nodes produced by the rewrite rules
SYNTHETIC = "synthetic"


class NodeKind(str, Enum):
    """Every node kind the policy engine understands."""

    # Names and helpers
    NAME = "Name"
    NAME_FULLY_QUALIFIED = "Name_FullyQualified"
    NAME_RELATIVE = "Name_Relative"
    ARG = "Arg"
    PARAM = "Param"
    CONST = "Const"

    # Statements
    STMT_INLINE_HTML = "Stmt_InlineHTML"
    STMT_FUNCTION = "Stmt_Function"
    STMT_CLASS = "Stmt_Class"
    STMT_CLASS_METHOD = "Stmt_ClassMethod"
    STMT_CLASS_CONST = "Stmt_ClassConst"
    STMT_PROPERTY = "Stmt_Property"
    STMT_PROPERTY_PROPERTY = "Stmt_PropertyProperty"
    STMT_INTERFACE = "Stmt_Interface"
    STMT_TRAIT = "Stmt_Trait"
    STMT_TRAIT_USE = "Stmt_TraitUse"
    STMT_GLOBAL = "Stmt_Global"
    STMT_STATIC = "Stmt_Static"
    STMT_STATIC_VAR = "Stmt_StaticVar"
    STMT_CONST = "Stmt_Const"
    STMT_HALT_COMPILER = "Stmt_HaltCompiler"
    STMT_NAMESPACE = "Stmt_Namespace"
    STMT_USE = "Stmt_Use"
    STMT_USE_USE = "Stmt_UseUse"
    STMT_ECHO = "Stmt_Echo"
    STMT_EXPRESSION = "Stmt_Expression"
    STMT_NOP = "Stmt_Nop"
    STMT_GOTO = "Stmt_Goto"
    STMT_LABEL = "Stmt_Label"
    STMT_IF = "Stmt_If"
    STMT_ELSE_IF = "Stmt_ElseIf"
    STMT_ELSE = "Stmt_Else"
    STMT_BREAK = "Stmt_Break"
    STMT_CONTINUE = "Stmt_Continue"
    STMT_SWITCH = "Stmt_Switch"
    STMT_CASE = "Stmt_Case"
    STMT_TRY_CATCH = "Stmt_TryCatch"
    STMT_CATCH = "Stmt_Catch"
    STMT_FINALLY = "Stmt_Finally"
    STMT_THROW = "Stmt_Throw"
    STMT_UNSET = "Stmt_Unset"
    STMT_RETURN = "Stmt_Return"
    STMT_WHILE = "Stmt_While"
    STMT_DO = "Stmt_Do"
    STMT_FOR = "Stmt_For"
    STMT_FOREACH = "Stmt_Foreach"
    STMT_DECLARE = "Stmt_Declare"
    STMT_DECLARE_DECLARE = "Stmt_DeclareDeclare"

    # Calls, fetches and object access
    EXPR_FUNC_CALL = "Expr_FuncCall"
    EXPR_METHOD_CALL = "Expr_MethodCall"
    EXPR_STATIC_CALL = "Expr_StaticCall"
    EXPR_NEW = "Expr_New"
    EXPR_VARIABLE = "Expr_Variable"
    EXPR_CONST_FETCH = "Expr_ConstFetch"
    EXPR_CLASS_CONST_FETCH = "Expr_ClassConstFetch"
    EXPR_STATIC_PROPERTY_FETCH = "Expr_StaticPropertyFetch"
    EXPR_PROPERTY_FETCH = "Expr_PropertyFetch"
    EXPR_ARRAY_DIM_FETCH = "Expr_ArrayDimFetch"
    EXPR_CLOSURE = "Expr_Closure"
    EXPR_CLOSURE_USE = "Expr_ClosureUse"
    EXPR_ERROR_SUPPRESS = "Expr_ErrorSuppress"
    EXPR_SHELL_EXEC = "Expr_ShellExec"
    EXPR_YIELD = "Expr_Yield"
    EXPR_ARRAY = "Expr_Array"
    EXPR_ARRAY_ITEM = "Expr_ArrayItem"

    # Language constructs
    EXPR_EVAL = "Expr_Eval"
    EXPR_EXIT = "Expr_Exit"
    EXPR_INCLUDE = "Expr_Include"
    EXPR_PRINT = "Expr_Print"
    EXPR_CLONE = "Expr_Clone"
    EXPR_EMPTY = "Expr_Empty"
    EXPR_ISSET = "Expr_Isset"
    EXPR_INSTANCEOF = "Expr_Instanceof"
    EXPR_LIST = "Expr_List"

    # Assignment
    EXPR_ASSIGN = "Expr_Assign"
    EXPR_ASSIGN_REF = "Expr_AssignRef"
    EXPR_ASSIGN_OP_BITWISE_AND = "Expr_AssignOp_BitwiseAnd"
    EXPR_ASSIGN_OP_BITWISE_OR = "Expr_AssignOp_BitwiseOr"
    EXPR_ASSIGN_OP_BITWISE_XOR = "Expr_AssignOp_BitwiseXor"
    EXPR_ASSIGN_OP_CONCAT = "Expr_AssignOp_Concat"
    EXPR_ASSIGN_OP_DIV = "Expr_AssignOp_Div"
    EXPR_ASSIGN_OP_MINUS = "Expr_AssignOp_Minus"
    EXPR_ASSIGN_OP_MOD = "Expr_AssignOp_Mod"
    EXPR_ASSIGN_OP_MUL = "Expr_AssignOp_Mul"
    EXPR_ASSIGN_OP_PLUS = "Expr_AssignOp_Plus"
    EXPR_ASSIGN_OP_POW = "Expr_AssignOp_Pow"
    EXPR_ASSIGN_OP_SHIFT_LEFT = "Expr_AssignOp_ShiftLeft"
    EXPR_ASSIGN_OP_SHIFT_RIGHT = "Expr_AssignOp_ShiftRight"

    # Binary operators
    EXPR_BINARY_OP_BITWISE_AND = "Expr_BinaryOp_BitwiseAnd"
    EXPR_BINARY_OP_BITWISE_OR = "Expr_BinaryOp_BitwiseOr"
    EXPR_BINARY_OP_BITWISE_XOR = "Expr_BinaryOp_BitwiseXor"
    EXPR_BINARY_OP_BOOLEAN_AND = "Expr_BinaryOp_BooleanAnd"
    EXPR_BINARY_OP_BOOLEAN_OR = "Expr_BinaryOp_BooleanOr"
    EXPR_BINARY_OP_CONCAT = "Expr_BinaryOp_Concat"
    EXPR_BINARY_OP_DIV = "Expr_BinaryOp_Div"
    EXPR_BINARY_OP_EQUAL = "Expr_BinaryOp_Equal"
    EXPR_BINARY_OP_GREATER = "Expr_BinaryOp_Greater"
    EXPR_BINARY_OP_GREATER_OR_EQUAL = "Expr_BinaryOp_GreaterOrEqual"
    EXPR_BINARY_OP_IDENTICAL = "Expr_BinaryOp_Identical"
    EXPR_BINARY_OP_LOGICAL_AND = "Expr_BinaryOp_LogicalAnd"
    EXPR_BINARY_OP_LOGICAL_OR = "Expr_BinaryOp_LogicalOr"
    EXPR_BINARY_OP_LOGICAL_XOR = "Expr_BinaryOp_LogicalXor"
    EXPR_BINARY_OP_MINUS = "Expr_BinaryOp_Minus"
    EXPR_BINARY_OP_MOD = "Expr_BinaryOp_Mod"
    EXPR_BINARY_OP_MUL = "Expr_BinaryOp_Mul"
    EXPR_BINARY_OP_NOT_EQUAL = "Expr_BinaryOp_NotEqual"
    EXPR_BINARY_OP_NOT_IDENTICAL = "Expr_BinaryOp_NotIdentical"
    EXPR_BINARY_OP_PLUS = "Expr_BinaryOp_Plus"
    EXPR_BINARY_OP_POW = "Expr_BinaryOp_Pow"
    EXPR_BINARY_OP_SHIFT_LEFT = "Expr_BinaryOp_ShiftLeft"
    EXPR_BINARY_OP_SHIFT_RIGHT = "Expr_BinaryOp_ShiftRight"
    EXPR_BINARY_OP_SMALLER = "Expr_BinaryOp_Smaller"
    EXPR_BINARY_OP_SMALLER_OR_EQUAL = "Expr_BinaryOp_SmallerOrEqual"

    # Unary operators and the ternary
    EXPR_BITWISE_NOT = "Expr_BitwiseNot"
    EXPR_BOOLEAN_NOT = "Expr_BooleanNot"
    EXPR_POST_DEC = "Expr_PostDec"
    EXPR_POST_INC = "Expr_PostInc"
    EXPR_PRE_DEC = "Expr_PreDec"
    EXPR_PRE_INC = "Expr_PreInc"
    EXPR_UNARY_MINUS = "Expr_UnaryMinus"
    EXPR_UNARY_PLUS = "Expr_UnaryPlus"
    EXPR_TERNARY = "Expr_Ternary"

    # Casts
    EXPR_CAST_ARRAY = "Expr_Cast_Array"
    EXPR_CAST_BOOL = "Expr_Cast_Bool"
    EXPR_CAST_DOUBLE = "Expr_Cast_Double"
    EXPR_CAST_INT = "Expr_Cast_Int"
    EXPR_CAST_OBJECT = "Expr_Cast_Object"
    EXPR_CAST_STRING = "Expr_Cast_String"
    EXPR_CAST_UNSET = "Expr_Cast_Unset"

    # Scalars
    SCALAR_STRING = "Scalar_String"
    SCALAR_ENCAPSED = "Scalar_Encapsed"
    SCALAR_ENCAPSED_STRING_PART = "Scalar_EncapsedStringPart"
    SCALAR_DNUMBER = "Scalar_DNumber"
    SCALAR_LNUMBER = "Scalar_LNumber"
    SCALAR_MAGIC_CONST_CLASS = "Scalar_MagicConst_Class"
    SCALAR_MAGIC_CONST_DIR = "Scalar_MagicConst_Dir"
    SCALAR_MAGIC_CONST_FILE = "Scalar_MagicConst_File"
    SCALAR_MAGIC_CONST_FUNCTION = "Scalar_MagicConst_Function"
    SCALAR_MAGIC_CONST_LINE = "Scalar_MagicConst_Line"
    SCALAR_MAGIC_CONST_METHOD = "Scalar_MagicConst_Method"
    SCALAR_MAGIC_CONST_NAMESPACE = "Scalar_MagicConst_Namespace"
    SCALAR_MAGIC_CONST_TRAIT = "Scalar_MagicConst_Trait"


NAME_KINDS = frozenset({NodeKind.NAME, NodeKind.NAME_FULLY_QUALIFIED, NodeKind.NAME_RELATIVE})


def _coerce(value: Any) -> Any:
    """Turn nested parser dicts into nodes, leaving everything else alone."""
    if isinstance(value, dict) and ("kind" in value or "nodeType" in value):
        return Node.model_validate(value)
    if isinstance(value, list):
        return [_coerce(item) for item in value]
    return value


def _dump(value: Any) -> Any:
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class Node(BaseModel):
    """A syntax tree node of any kind."""

    model_config = ConfigDict(extra="allow")

    kind: NodeKind
    attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_subnodes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "kind" not in data and "nodeType" in data:
            data["kind"] = data.pop("nodeType")
        for key, value in data.items():
            if key not in ("kind", "attributes"):
                data[key] = _coerce(value)
        return data

    def iter_fields(self):
        """Yield ``(field, value)`` for every kind-specific field, in order."""
        yield from (self.__pydantic_extra__ or {}).items()

    def get(self, field: str, default: Any = None) -> Any:
        """Return a kind-specific field, or ``default`` when absent."""
        return (self.__pydantic_extra__ or {}).get(field, default)

    def set(self, field: str, value: Any) -> None:
        """Replace a kind-specific field."""
        self.__pydantic_extra__[field] = value

    @property
    def is_synthetic(self) -> bool:
        return bool(self.attributes.get(SYNTHETIC))

    @property
    def line(self) -> int | None:
        return self.attributes.get("startLine")

    def to_dict(self) -> dict[str, Any]:
        """Dump the node in the parser's JSON layout."""
        data: dict[str, Any] = {"nodeType": self.kind.value}
        for key, value in self.iter_fields():
            data[key] = _dump(value)
        data["attributes"] = dict(self.attributes)
        return data


def is_name(value: Any) -> bool:
    """True for a literal (compile-time) name node."""
    return isinstance(value, Node) and value.kind in NAME_KINDS


def name_to_string(node: Node) -> str:
    return "\\".join(node.get("parts") or [])


# Builders


def make(kind: NodeKind, attributes: dict[str, Any] | None = None, **fields: Any) -> Node:
    return Node(kind=kind, attributes=dict(attributes or {}), **fields)


def synthetic(kind: NodeKind, attributes: dict[str, Any] | None = None, **fields: Any) -> Node:
    """Build a node marked as produced by a rewrite rule."""
    return make(kind, {**(attributes or {}), SYNTHETIC: True}, **fields)


def name(value: str | list[str], **attrs: Any) -> Node:
    parts = value.split("\\") if isinstance(value, str) else list(value)
    return make(NodeKind.NAME, attrs, parts=parts)


def arg(value: Node, by_ref: bool = False, unpack: bool = False) -> Node:
    return make(NodeKind.ARG, value=value, byRef=by_ref, unpack=unpack)


def string(value: str, **attrs: Any) -> Node:
    return make(NodeKind.SCALAR_STRING, attrs, value=value)


def lnumber(value: int, **attrs: Any) -> Node:
    return make(NodeKind.SCALAR_LNUMBER, attrs, value=value)


def encapsed(parts: list[Any], **attrs: Any) -> Node:
    return make(NodeKind.SCALAR_ENCAPSED, attrs, parts=parts)


def variable(var_name: str | Node, **attrs: Any) -> Node:
    return make(NodeKind.EXPR_VARIABLE, attrs, name=var_name)


def func_call(func: str | Node, args: list[Node] | None = None, **attrs: Any) -> Node:
    if isinstance(func, str):
        func = name(func)
    return make(NodeKind.EXPR_FUNC_CALL, attrs, name=func, args=list(args or []))


def method_call(var: Node, method: str, args: list[Node] | None = None, **attrs: Any) -> Node:
    return make(NodeKind.EXPR_METHOD_CALL, attrs, var=var, name=method, args=list(args or []))


def const_fetch(const: str | Node, **attrs: Any) -> Node:
    if isinstance(const, str):
        const = name(const)
    return make(NodeKind.EXPR_CONST_FETCH, attrs, name=const)


def new(class_: str | Node, args: list[Node] | None = None, **attrs: Any) -> Node:
    if isinstance(class_, str):
        class_ = name(class_)
    return make(NodeKind.EXPR_NEW, attrs, **{"class": class_, "args": list(args or [])})


def ternary(cond: Node, if_: Node | None, else_: Node, **attrs: Any) -> Node:
    return make(NodeKind.EXPR_TERNARY, attrs, **{"cond": cond, "if": if_, "else": else_})


def closure_use(var: str, by_ref: bool = False, **attrs: Any) -> Node:
    return make(NodeKind.EXPR_CLOSURE_USE, attrs, var=var, byRef=by_ref)
