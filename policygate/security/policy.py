"""Policy tables shared by the sandbox passes.

Fixed name sets for intercepted built-ins and the classification of node
kinds into the keyword, operator, primitive and magic-constant buckets.
"""

from policygate.models.node import NodeKind as K

# Superglobal variable names
SUPERGLOBALS = frozenset({
    "GLOBALS", "_SERVER", "_GET", "_POST", "_FILES",
    "_COOKIE", "_SESSION", "_REQUEST", "_ENV",
})

# Built-ins that leak the host's state; rewritten to runtime handlers
DEFINED_FUNCS = frozenset({
    "get_defined_functions",
    "get_defined_vars",
    "get_defined_constants",
    "get_declared_classes",
    "get_declared_interfaces",
    "get_declared_traits",
    "get_included_files",
})

# Built-ins reading the caller's arguments; resolved by the runtime
ARG_FUNCS = frozenset({"func_get_args", "func_get_arg", "func_num_args"})

# Runtime entry points on the sandbox handle
CALL_FUNC = "call_func"
CHECK_FUNC = "check_func"
GET_SUPERGLOBAL = "_get_superglobal"
GET_MAGIC_CONST = "_get_magic_const"

MAGIC_CONSTANTS: dict[K, str] = {
    K.SCALAR_MAGIC_CONST_CLASS: "__CLASS__",
    K.SCALAR_MAGIC_CONST_DIR: "__DIR__",
    K.SCALAR_MAGIC_CONST_FILE: "__FILE__",
    K.SCALAR_MAGIC_CONST_FUNCTION: "__FUNCTION__",
    K.SCALAR_MAGIC_CONST_LINE: "__LINE__",
    K.SCALAR_MAGIC_CONST_METHOD: "__METHOD__",
    K.SCALAR_MAGIC_CONST_NAMESPACE: "__NAMESPACE__",
    K.SCALAR_MAGIC_CONST_TRAIT: "__TRAIT__",
}

# Constructs validated only through the keyword predicate. Companion forms
# (else, case, catch, label, ...) share the keyword of their construct.
KEYWORDS: dict[K, str] = {
    K.EXPR_EVAL: "eval",
    K.EXPR_EXIT: "exit",
    K.EXPR_INCLUDE: "include",
    K.STMT_ECHO: "echo",
    K.EXPR_PRINT: "echo",
    K.EXPR_CLONE: "clone",
    K.EXPR_EMPTY: "empty",
    K.STMT_GOTO: "goto",
    K.STMT_LABEL: "goto",
    K.STMT_IF: "if",
    K.STMT_ELSE: "if",
    K.STMT_ELSE_IF: "if",
    K.STMT_BREAK: "break",
    K.STMT_SWITCH: "switch",
    K.STMT_CASE: "switch",
    K.STMT_TRY_CATCH: "try",
    K.STMT_CATCH: "try",
    K.STMT_FINALLY: "try",
    K.STMT_THROW: "throw",
    K.STMT_UNSET: "unset",
    K.STMT_RETURN: "return",
    K.STMT_STATIC: "static",
    K.STMT_WHILE: "while",
    K.STMT_DO: "while",
    K.STMT_DECLARE: "declare",
    K.STMT_DECLARE_DECLARE: "declare",
    K.STMT_FOR: "for",
    K.STMT_FOREACH: "for",
    K.EXPR_INSTANCEOF: "instanceof",
    K.EXPR_ISSET: "isset",
    K.EXPR_LIST: "list",
}

OPERATORS: dict[K, str] = {
    K.EXPR_ASSIGN: "=",
    K.EXPR_ASSIGN_REF: "=&",
    K.EXPR_ASSIGN_OP_BITWISE_AND: "&=",
    K.EXPR_ASSIGN_OP_BITWISE_OR: "|=",
    K.EXPR_ASSIGN_OP_BITWISE_XOR: "^=",
    K.EXPR_ASSIGN_OP_CONCAT: ".=",
    K.EXPR_ASSIGN_OP_DIV: "/=",
    K.EXPR_ASSIGN_OP_MINUS: "-=",
    K.EXPR_ASSIGN_OP_MOD: "%=",
    K.EXPR_ASSIGN_OP_MUL: "*=",
    K.EXPR_ASSIGN_OP_PLUS: "+=",
    K.EXPR_ASSIGN_OP_POW: "**=",
    K.EXPR_ASSIGN_OP_SHIFT_LEFT: "<<=",
    K.EXPR_ASSIGN_OP_SHIFT_RIGHT: ">>=",
    K.EXPR_BINARY_OP_BITWISE_AND: "&",
    K.EXPR_BINARY_OP_BITWISE_OR: "|",
    K.EXPR_BINARY_OP_BITWISE_XOR: "^",
    K.EXPR_BINARY_OP_BOOLEAN_AND: "&&",
    K.EXPR_BINARY_OP_BOOLEAN_OR: "||",
    K.EXPR_BINARY_OP_CONCAT: ".",
    K.EXPR_BINARY_OP_DIV: "/",
    K.EXPR_BINARY_OP_EQUAL: "==",
    K.EXPR_BINARY_OP_GREATER: ">",
    K.EXPR_BINARY_OP_GREATER_OR_EQUAL: ">=",
    K.EXPR_BINARY_OP_IDENTICAL: "===",
    K.EXPR_BINARY_OP_LOGICAL_AND: "and",
    K.EXPR_BINARY_OP_LOGICAL_OR: "or",
    K.EXPR_BINARY_OP_LOGICAL_XOR: "xor",
    K.EXPR_BINARY_OP_MINUS: "-",
    K.EXPR_BINARY_OP_MOD: "%",
    K.EXPR_BINARY_OP_MUL: "*",
    K.EXPR_BINARY_OP_NOT_EQUAL: "!=",
    K.EXPR_BINARY_OP_NOT_IDENTICAL: "!==",
    K.EXPR_BINARY_OP_PLUS: "+",
    K.EXPR_BINARY_OP_POW: "**",
    K.EXPR_BINARY_OP_SHIFT_LEFT: "<<",
    K.EXPR_BINARY_OP_SHIFT_RIGHT: ">>",
    K.EXPR_BINARY_OP_SMALLER: "<",
    K.EXPR_BINARY_OP_SMALLER_OR_EQUAL: "<=",
    K.EXPR_BITWISE_NOT: "~",
    K.EXPR_BOOLEAN_NOT: "!",
    K.EXPR_POST_DEC: "n--",
    K.EXPR_POST_INC: "n++",
    K.EXPR_PRE_DEC: "--n",
    K.EXPR_PRE_INC: "++n",
    K.EXPR_UNARY_MINUS: "-n",
    K.EXPR_UNARY_PLUS: "+n",
    K.EXPR_TERNARY: "?",
}

CAST_KINDS = frozenset({
    K.EXPR_CAST_ARRAY,
    K.EXPR_CAST_BOOL,
    K.EXPR_CAST_DOUBLE,
    K.EXPR_CAST_INT,
    K.EXPR_CAST_OBJECT,
    K.EXPR_CAST_STRING,
    K.EXPR_CAST_UNSET,
})

# Unset casts have no primitive type; only the casting flag applies
PRIMITIVES: dict[K, str] = {
    K.EXPR_CAST_ARRAY: "array",
    K.EXPR_ARRAY: "array",
    K.EXPR_CAST_BOOL: "bool",
    K.EXPR_CAST_STRING: "string",
    K.SCALAR_STRING: "string",
    K.SCALAR_ENCAPSED: "string",
    K.EXPR_CAST_DOUBLE: "float",
    K.SCALAR_DNUMBER: "float",
    K.EXPR_CAST_INT: "int",
    K.SCALAR_LNUMBER: "int",
    K.EXPR_CAST_OBJECT: "object",
}

# Kinds carrying no policy of their own; their children are still checked
STRUCTURAL_KINDS = frozenset({
    K.NAME,
    K.NAME_FULLY_QUALIFIED,
    K.NAME_RELATIVE,
    K.ARG,
    K.PARAM,
    K.CONST,
    K.STMT_CLASS_METHOD,
    K.STMT_CLASS_CONST,
    K.STMT_PROPERTY,
    K.STMT_PROPERTY_PROPERTY,
    K.STMT_USE_USE,
    K.STMT_EXPRESSION,
    K.STMT_NOP,
    K.STMT_CONTINUE,
    K.EXPR_METHOD_CALL,
    K.EXPR_PROPERTY_FETCH,
    K.EXPR_ARRAY_DIM_FETCH,
    K.EXPR_ARRAY_ITEM,
    K.SCALAR_ENCAPSED_STRING_PART,
})
