"""Exact evaluation of Go constant expressions.

Integers are Python ints, floats are :class:`fractions.Fraction` so that
untyped arithmetic stays exact, complex values use Python complex numbers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Protocol

import tree_sitter

from apicompat.engine._types import Basic, TypeDesc, format_type
from apicompat.languages._utils import named_children, node_text

INT_BITS: dict[str, tuple[int, bool]] = {
    "int": (64, True),
    "int8": (8, True),
    "int16": (16, True),
    "int32": (32, True),
    "int64": (64, True),
    "uint": (64, False),
    "uint8": (8, False),
    "uint16": (16, False),
    "uint32": (32, False),
    "uint64": (64, False),
    "uintptr": (64, False),
}
FLOAT_TYPES = frozenset({"float32", "float64"})
COMPLEX_TYPES = frozenset({"complex64", "complex128"})

UNTYPED_INT = "untyped int"
UNTYPED_RUNE = "untyped rune"
UNTYPED_FLOAT = "untyped float"
UNTYPED_COMPLEX = "untyped complex"
UNTYPED_STRING = "untyped string"
UNTYPED_BOOL = "untyped bool"

_UNTYPED_RANK = {UNTYPED_INT: 0, UNTYPED_RUNE: 1, UNTYPED_FLOAT: 2, UNTYPED_COMPLEX: 3}

_DEFAULT_TYPES = {
    UNTYPED_INT: "int",
    UNTYPED_RUNE: "int32",
    UNTYPED_FLOAT: "float64",
    UNTYPED_COMPLEX: "complex128",
    UNTYPED_STRING: "string",
    UNTYPED_BOOL: "bool",
}

_COMPARISONS = frozenset({"==", "!=", "<", "<=", ">", ">="})


class ConstError(Exception):
    """A constant expression is invalid (overflow, mismatched types, ...)."""


class NotConstant(ConstError):
    """The expression depends on something whose value is unknown here."""


def category(basic: str) -> str | None:
    """Return ``int``, ``float``, ``complex``, ``string`` or ``bool`` for a basic type name."""
    if basic in INT_BITS or basic in (UNTYPED_INT, UNTYPED_RUNE):
        return "int"
    if basic in FLOAT_TYPES or basic == UNTYPED_FLOAT:
        return "float"
    if basic in COMPLEX_TYPES or basic == UNTYPED_COMPLEX:
        return "complex"
    if basic in ("string", UNTYPED_STRING):
        return "string"
    if basic in ("bool", UNTYPED_BOOL):
        return "bool"
    return None


def is_untyped(basic: str) -> bool:
    return basic.startswith("untyped ")


def default_type(basic: str) -> str:
    """The type an untyped constant takes when used as a value."""
    return _DEFAULT_TYPES.get(basic, basic)


@dataclass(frozen=True)
class Const:
    """An evaluated constant.

    ``type`` is what the declaration exposes (a Basic or a Named type);
    ``basic`` is the basic type underlying it, which drives arithmetic.
    """

    value: Any
    type: TypeDesc
    basic: str

    @classmethod
    def untyped(cls, value: Any, basic: str) -> Const:
        return cls(value, Basic(basic), basic)

    @property
    def kind(self) -> str | None:
        return category(self.basic)


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

_ESCAPES = {"a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"'}
_ESCAPE_RE = re.compile(r"\\(x[0-9A-Fa-f]{2}|u[0-9A-Fa-f]{4}|U[0-9A-Fa-f]{8}|[0-7]{3}|.)", re.DOTALL)


def _unescape(body: str) -> str:
    def repl(m: re.Match[str]) -> str:
        esc = m.group(1)
        if esc[0] in "xuU":
            return chr(int(esc[1:], 16))
        if esc[0] in "01234567" and len(esc) == 3:
            return chr(int(esc, 8))
        if esc in _ESCAPES:
            return _ESCAPES[esc]
        raise ConstError(f"unknown escape sequence \\{esc}")

    return _ESCAPE_RE.sub(repl, body)


def unquote_string(text: str) -> str:
    if text.startswith("`"):
        return text[1:-1].replace("\r", "")
    return _unescape(text[1:-1])


def unquote_rune(text: str) -> int:
    value = _unescape(text[1:-1])
    if len(value) != 1:
        raise ConstError(f"invalid rune literal {text}")
    return ord(value)


def parse_int(text: str) -> int:
    text = text.replace("_", "")
    if len(text) > 1 and text[0] == "0" and text[1].isdigit():
        return int(text, 8)  # legacy octal
    return int(text, 0)


def parse_float(text: str) -> Fraction:
    text = text.replace("_", "")
    if text[:2].lower() == "0x":
        return Fraction(float.fromhex(text))
    return Fraction(text)


def parse_imaginary(text: str) -> complex:
    body = text[:-1].replace("_", "")
    if "." in body or "e" in body.lower() or body[:2].lower() == "0x":
        return complex(0, float(parse_float(body)))
    if body.isdigit():
        return complex(0, int(body, 10))
    return complex(0, parse_int(body))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _go_quote(s: str) -> str:
    out = ['"']
    for ch in s:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _format_float(v: Fraction | float) -> str:
    if isinstance(v, Fraction) and v.denominator == 1:
        return str(v.numerator)
    return f"{float(v):.6g}"


def render(c: Const) -> str:
    """Render a constant value the way Go tooling prints it."""
    kind = c.kind
    if kind == "bool":
        return "true" if c.value else "false"
    if kind == "string":
        return _go_quote(c.value)
    if kind == "int":
        return str(c.value)
    if kind == "float":
        return _format_float(c.value)
    if kind == "complex":
        v = complex(c.value)
        return f"({_format_float(v.real)} + {_format_float(v.imag)}i)"
    return str(c.value)


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def representable(value: Any, basic: str) -> bool:
    """Return True if an integer *value* fits in basic integer type *basic*."""
    if basic not in INT_BITS:
        return True
    bits, signed = INT_BITS[basic]
    if signed:
        return -(1 << (bits - 1)) <= value < (1 << (bits - 1))
    return 0 <= value < (1 << bits)


def _type_name(c: Const) -> str:
    return format_type(c.type)


def _check(c: Const) -> Const:
    if c.kind == "int" and not representable(c.value, c.basic):
        raise ConstError(f"constant {c.value} overflows {_type_name(c)}")
    return c


def _coerce(value: Any, kind: str | None) -> Any:
    if kind == "int":
        if isinstance(value, Fraction):
            if value.denominator != 1:
                raise ConstError(f"constant {_format_float(value)} truncated to integer")
            return value.numerator
        if isinstance(value, complex):
            if value.imag != 0 or value.real != int(value.real):
                raise ConstError(f"constant {value} truncated to integer")
            return int(value.real)
        return int(value)
    if kind == "float":
        if isinstance(value, complex):
            if value.imag != 0:
                raise ConstError(f"constant {value} truncated to real")
            return Fraction(value.real)
        return Fraction(value)
    if kind == "complex":
        return complex(value)
    return value


def _match_operands(x: Const, y: Const) -> tuple[Const, Const, Const]:
    """Return (x, y, template) where template carries the result type."""
    if is_untyped(x.basic) and is_untyped(y.basic):
        if x.kind != y.kind and not (x.basic in _UNTYPED_RANK and y.basic in _UNTYPED_RANK):
            raise ConstError(f"mismatched types {x.basic} and {y.basic}")
        if x.basic in _UNTYPED_RANK and _UNTYPED_RANK[y.basic] > _UNTYPED_RANK[x.basic]:
            template = y
        else:
            template = x
    elif is_untyped(x.basic):
        template = y
    elif is_untyped(y.basic):
        template = x
    else:
        if x.type != y.type:
            raise ConstError(f"mismatched types {_type_name(x)} and {_type_name(y)}")
        template = x
    kind = template.kind
    if kind in ("int", "float", "complex"):
        if x.kind not in ("int", "float", "complex") or y.kind not in ("int", "float", "complex"):
            raise ConstError(f"mismatched types {_type_name(x)} and {_type_name(y)}")
    elif x.kind != y.kind:
        raise ConstError(f"mismatched types {_type_name(x)} and {_type_name(y)}")
    return (
        Const(_coerce(x.value, kind), template.type, template.basic),
        Const(_coerce(y.value, kind), template.type, template.basic),
        template,
    )


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _compare(op: str, a: Any, b: Any) -> bool:
    if op == "==":
        return a == b
    if op == "!=":
        return a != b
    if isinstance(a, complex) or isinstance(a, bool):
        raise ConstError(f"operator {op} not defined on constant")
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    return a >= b


def binary_op(op: str, x: Const, y: Const) -> Const:
    if op in ("<<", ">>"):
        return _shift(op, x, y)
    if op in ("&&", "||"):
        if x.kind != "bool" or y.kind != "bool":
            raise ConstError(f"operator {op} not defined on non-boolean constant")
        _, _, template = _match_operands(x, y)
        value = (x.value and y.value) if op == "&&" else (x.value or y.value)
        return Const(value, template.type, template.basic)

    x, y, template = _match_operands(x, y)
    if op in _COMPARISONS:
        return Const.untyped(_compare(op, x.value, y.value), UNTYPED_BOOL)

    kind = template.kind
    a, b = x.value, y.value
    if kind == "string":
        if op != "+":
            raise ConstError(f"operator {op} not defined on string constant")
        return Const(a + b, template.type, template.basic)
    if kind == "bool":
        raise ConstError(f"operator {op} not defined on boolean constant")

    if op == "+":
        value = a + b
    elif op == "-":
        value = a - b
    elif op == "*":
        value = a * b
    elif op == "/":
        if b == 0:
            raise ConstError("division by zero")
        value = _trunc_div(a, b) if kind == "int" else a / b
    elif op in ("%", "&", "|", "^", "&^"):
        if kind != "int":
            raise ConstError(f"operator {op} not defined on {template.basic} constant")
        if op == "%":
            if b == 0:
                raise ConstError("division by zero")
            value = a - b * _trunc_div(a, b)
        elif op == "&":
            value = a & b
        elif op == "|":
            value = a | b
        elif op == "^":
            value = a ^ b
        else:
            value = a & ~b
    else:
        raise ConstError(f"unknown operator {op}")
    return _check(Const(value, template.type, template.basic))


def _shift(op: str, x: Const, y: Const) -> Const:
    count = _coerce(y.value, "int") if y.kind in ("int", "float") else None
    if count is None or count < 0:
        raise ConstError(f"invalid shift count {render(y)}")
    if x.kind == "float" and is_untyped(x.basic):
        x = Const(_coerce(x.value, "int"), Basic(UNTYPED_INT), UNTYPED_INT)
    if x.kind != "int":
        raise ConstError(f"shifted operand {render(x)} must be integer")
    value = x.value << count if op == "<<" else x.value >> count
    return _check(Const(value, x.type, x.basic))


def unary_op(op: str, x: Const) -> Const:
    if op == "+":
        if x.kind not in ("int", "float", "complex"):
            raise ConstError(f"operator + not defined on {render(x)}")
        return x
    if op == "-":
        if x.kind not in ("int", "float", "complex"):
            raise ConstError(f"operator - not defined on {render(x)}")
        return _check(Const(-x.value, x.type, x.basic))
    if op == "!":
        if x.kind != "bool":
            raise ConstError(f"operator ! not defined on {render(x)}")
        return Const(not x.value, x.type, x.basic)
    if op == "^":
        if x.kind != "int":
            raise ConstError(f"operator ^ not defined on {render(x)}")
        if x.basic in INT_BITS and not INT_BITS[x.basic][1]:
            bits = INT_BITS[x.basic][0]
            return Const(x.value ^ ((1 << bits) - 1), x.type, x.basic)
        return _check(Const(~x.value, x.type, x.basic))
    raise NotConstant(f"operator {op} does not yield a constant")


def convert(x: Const, target: TypeDesc, basic: str) -> Const:
    """Convert constant *x* to *target*, whose underlying basic type is *basic*."""
    kind = category(basic)
    if kind is None:
        raise NotConstant(f"cannot convert to non-basic type {basic}")
    if kind == "string":
        if x.kind == "string":
            return Const(x.value, target, basic)
        if x.kind == "int":
            return Const(chr(x.value) if 0 <= x.value <= 0x10FFFF else "\ufffd", target, basic)
    elif kind == "bool":
        if x.kind == "bool":
            return Const(x.value, target, basic)
    elif x.kind in ("int", "float", "complex"):
        return _check(Const(_coerce(x.value, kind), target, basic))
    raise ConstError(f"cannot convert {render(x)} ({x.basic} constant) to type {basic}")


def assign(x: Const, target: TypeDesc, basic: str) -> Const:
    """Give constant *x* the declared type *target* of a typed constant declaration."""
    kind = category(basic)
    if kind is None:
        raise ConstError(f"invalid constant type {basic}")
    if not is_untyped(x.basic):
        if x.type != target:
            raise ConstError(
                f"cannot use {render(x)} (constant of type {_type_name(x)}) as {basic} value in constant declaration"
            )
        return x
    numeric = ("int", "float", "complex")
    if kind != x.kind and not (kind in numeric and x.kind in numeric):
        raise ConstError(
            f"cannot use {render(x)} ({x.basic} constant) as {basic} value in constant declaration"
        )
    return _check(Const(_coerce(x.value, kind), target, basic))


# ---------------------------------------------------------------------------
# Expression evaluation
# ---------------------------------------------------------------------------


class ConstScope(Protocol):
    """Name resolution needed while evaluating a constant expression."""

    def lookup_const(self, name: str) -> Const | None: ...

    def lookup_qualified_const(self, qualifier: str, name: str) -> Const | None: ...

    def conversion_target(self, node: tree_sitter.Node) -> tuple[TypeDesc, str] | None: ...


class ConstEvaluator:
    """Evaluates one constant expression tree. *iota* is None outside const specs."""

    def __init__(self, scope: ConstScope, iota: int | None = None) -> None:
        self.scope = scope
        self.iota = iota

    def eval(self, node: tree_sitter.Node) -> Const:
        t = node.type
        if t == "int_literal":
            return Const.untyped(parse_int(node_text(node)), UNTYPED_INT)
        if t == "float_literal":
            return Const.untyped(parse_float(node_text(node)), UNTYPED_FLOAT)
        if t == "imaginary_literal":
            return Const.untyped(parse_imaginary(node_text(node)), UNTYPED_COMPLEX)
        if t == "rune_literal":
            return Const.untyped(unquote_rune(node_text(node)), UNTYPED_RUNE)
        if t in ("interpreted_string_literal", "raw_string_literal"):
            return Const.untyped(unquote_string(node_text(node)), UNTYPED_STRING)
        if t in ("true", "false"):
            return Const.untyped(t == "true", UNTYPED_BOOL)
        if t == "iota":
            if self.iota is None:
                raise ConstError("cannot use iota outside constant declaration")
            return Const.untyped(self.iota, UNTYPED_INT)
        if t == "identifier":
            name = node_text(node)
            if name in ("true", "false"):
                return Const.untyped(name == "true", UNTYPED_BOOL)
            c = self.scope.lookup_const(name)
            if c is None:
                raise NotConstant(f"{name} is not constant")
            return c
        if t == "selector_expression":
            operand = node.child_by_field_name("operand")
            field = node.child_by_field_name("field")
            if operand is None or field is None or operand.type != "identifier":
                raise NotConstant(f"{node_text(node)} is not constant")
            c = self.scope.lookup_qualified_const(node_text(operand), node_text(field))
            if c is None:
                raise NotConstant(f"{node_text(node)} is not constant")
            return c
        if t == "parenthesized_expression":
            inner = named_children(node)
            if len(inner) != 1:
                raise ConstError(f"invalid expression {node_text(node)}")
            return self.eval(inner[0])
        if t == "unary_expression":
            op = node.child_by_field_name("operator")
            operand = node.child_by_field_name("operand")
            if op is None or operand is None:
                raise ConstError(f"invalid expression {node_text(node)}")
            return unary_op(node_text(op), self.eval(operand))
        if t == "binary_expression":
            left = node.child_by_field_name("left")
            op = node.child_by_field_name("operator")
            right = node.child_by_field_name("right")
            if left is None or op is None or right is None:
                raise ConstError(f"invalid expression {node_text(node)}")
            return binary_op(node_text(op), self.eval(left), self.eval(right))
        if t == "call_expression":
            return self._call(node)
        if t == "type_conversion_expression":
            type_node = node.child_by_field_name("type")
            operand = node.child_by_field_name("operand")
            if type_node is None or operand is None:
                raise ConstError(f"invalid expression {node_text(node)}")
            target = self.scope.conversion_target(type_node)
            if target is None:
                raise NotConstant(f"{node_text(node)} is not constant")
            return convert(self.eval(operand), *target)
        raise NotConstant(f"{node_text(node)} is not constant")

    def _call(self, node: tree_sitter.Node) -> Const:
        func = node.child_by_field_name("function")
        args_node = node.child_by_field_name("arguments")
        args = named_children(args_node) if args_node is not None else []
        if func is None:
            raise ConstError(f"invalid expression {node_text(node)}")
        if func.type == "identifier" and node_text(func) == "len" and len(args) == 1:
            arg = self.eval(args[0])
            if arg.kind != "string":
                raise NotConstant(f"{node_text(node)} is not constant")
            return Const.untyped(len(arg.value.encode("utf-8")), UNTYPED_INT)
        target = self.scope.conversion_target(func)
        if target is None or len(args) != 1:
            raise NotConstant(f"{node_text(node)} is not constant")
        return convert(self.eval(args[0]), *target)
