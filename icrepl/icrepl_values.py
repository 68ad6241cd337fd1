"""
Defines the typed values scripts compute with and the types used to
reinterpret them.

Values are immutable and compare structurally: a `Value` is equal to another
only if both the kind and the payload match, so `5 : int` and `5 : nat` are
different values until one of them is reinterpreted under the other's type.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from icrepl.icrepl_errors import AnnotationError
from icrepl.icrepl_principal import Principal

NAT_BITS = {"nat8": 8, "nat16": 16, "nat32": 32, "nat64": 64}
INT_BITS = {"int8": 8, "int16": 16, "int32": 32, "int64": 64}
INTEGRAL_KINDS = frozenset({"nat", "int", *NAT_BITS, *INT_BITS})
FLOAT_KINDS = frozenset({"float32", "float64"})
NUMERIC_KINDS = INTEGRAL_KINDS | FLOAT_KINDS
PRIMITIVE_KINDS = NUMERIC_KINDS | {"null", "bool", "text", "principal", "reserved"}


@dataclass(frozen=True)
class IDLType:
    kind: str
    inner: Optional["IDLType"] = None
    fields: Tuple[Tuple[str, "IDLType"], ...] = ()

    def __str__(self):
        match self.kind:
            case "opt" | "vec":
                return f"{self.kind} {self.inner}"
            case "record" | "variant":
                body = " ".join(
                    f"{name};" if self.kind == "variant" and t.kind == "null" else f"{name} : {t};"
                    for name, t in self.fields
                )
                return f"{self.kind} {{ {body} }}" if body else f"{self.kind} {{}}"
            case _:
                return self.kind


@dataclass(frozen=True)
class Value:
    """A typed value. The payload depends on the kind:

    - numeric kinds, text, bool: the Python scalar
    - null, reserved: None
    - principal: a `Principal`
    - opt: the inner `Value`, or None for `opt none`
    - vec: a tuple of `Value`
    - record: a tuple of (field name, `Value`) pairs, sorted by name
    - variant: a single (tag, `Value`) pair
    """
    type: str
    value: Any = None

    @classmethod
    def null(cls) -> "Value":
        return cls("null")

    @classmethod
    def reserved(cls) -> "Value":
        return cls("reserved")

    @classmethod
    def text(cls, s: str) -> "Value":
        return cls("text", s)

    @classmethod
    def boolean(cls, b) -> "Value":
        return cls("bool", bool(b))

    @classmethod
    def nat(cls, n: int) -> "Value":
        return reinterpret(cls("int", int(n)), IDLType("nat"))

    @classmethod
    def integer(cls, n) -> "Value":
        return cls("int", int(n))

    @classmethod
    def principal(cls, p: Principal) -> "Value":
        return cls("principal", p)

    @classmethod
    def opt(cls, inner: Optional["Value"]) -> "Value":
        return cls("opt", inner)

    @classmethod
    def vec(cls, items: Iterable["Value"]) -> "Value":
        return cls("vec", tuple(items))

    @classmethod
    def record(cls, fields: Dict[str, "Value"]) -> "Value":
        return cls("record", tuple(sorted(fields.items())))

    @classmethod
    def variant(cls, tag: str, payload: Optional["Value"] = None) -> "Value":
        return cls("variant", (tag, payload if payload is not None else cls.null()))

    def field(self, name: str) -> Optional["Value"]:
        if self.type != "record":
            return None
        for key, v in self.value:
            if key == name:
                return v
        return None

    def fields(self) -> Dict[str, "Value"]:
        return dict(self.value) if self.type == "record" else {}

    def __str__(self):
        from icrepl.icrepl_printer import Printer
        return Printer().pformat(self)


def value_type(v: Value) -> IDLType:
    """Derives the type a value would have if it were written without annotation."""
    match v.type:
        case "opt":
            return IDLType("opt", value_type(v.value) if v.value is not None else IDLType("null"))
        case "vec":
            return IDLType("vec", value_type(v.value[0]) if v.value else IDLType("reserved"))
        case "record":
            return IDLType("record", fields=tuple((k, value_type(x)) for k, x in v.value))
        case "variant":
            tag, payload = v.value
            return IDLType("variant", fields=((tag, value_type(payload)),))
        case _:
            return IDLType(v.type)


def _integral_in_range(kind: str, n: int) -> bool:
    if kind == "int":
        return True
    if kind == "nat":
        return n >= 0
    if kind in NAT_BITS:
        return 0 <= n < (1 << NAT_BITS[kind])
    bits = INT_BITS[kind]
    return -(1 << (bits - 1)) <= n < (1 << (bits - 1))


def reinterpret(v: Value, t: IDLType) -> Value:
    """Re-reads `v` as a value of type `t`, raising AnnotationError when it can't be."""
    kind = t.kind
    if kind == "reserved":
        return Value.reserved()
    if kind in INTEGRAL_KINDS:
        if v.type not in INTEGRAL_KINDS:
            raise AnnotationError(v, t)
        if not _integral_in_range(kind, v.value):
            raise AnnotationError(v, t, "out of range")
        return Value(kind, int(v.value))
    if kind in FLOAT_KINDS:
        if v.type not in NUMERIC_KINDS:
            raise AnnotationError(v, t)
        return Value(kind, float(v.value))
    if kind in PRIMITIVE_KINDS:
        if v.type != kind:
            raise AnnotationError(v, t)
        return v
    match kind:
        case "opt":
            if v.type == "null":
                return Value.opt(None)
            if v.type == "opt":
                if v.value is None:
                    return v
                return Value.opt(reinterpret(v.value, t.inner))
            return Value.opt(reinterpret(v, t.inner))
        case "vec":
            if v.type != "vec":
                raise AnnotationError(v, t)
            return Value.vec(reinterpret(item, t.inner) for item in v.value)
        case "record":
            if v.type != "record":
                raise AnnotationError(v, t)
            have = v.fields()
            out = {}
            for name, field_type in t.fields:
                if name in have:
                    out[name] = reinterpret(have[name], field_type)
                elif field_type.kind == "opt":
                    out[name] = Value.opt(None)
                elif field_type.kind in ("null", "reserved"):
                    out[name] = reinterpret(Value.null(), field_type)
                else:
                    raise AnnotationError(v, t, f"missing field {name}")
            return Value.record(out)
        case "variant":
            if v.type != "variant":
                raise AnnotationError(v, t)
            tag, payload = v.value
            for name, field_type in t.fields:
                if name == tag:
                    return Value.variant(tag, reinterpret(payload, field_type))
            raise AnnotationError(v, t, f"unknown tag {tag}")
    raise AnnotationError(v, t, f"unsupported type {kind}")
