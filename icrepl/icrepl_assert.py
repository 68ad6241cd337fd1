"""
Comparison rules used by the `assert` command.
"""
from icrepl.icrepl_ast import BinOp
from icrepl.icrepl_errors import AnnotationError, AssertionFailure
from icrepl.icrepl_values import Value, reinterpret, value_type


def sub_equal(left: Value, right: Value) -> bool:
    """The `~=` relation. Each step is tried in order and the first one that
    applies decides the result."""
    if left.type == "text" and right.type == "text":
        return right.value in left.value
    try:
        return reinterpret(left, value_type(right)) == right
    except AnnotationError:
        pass
    try:
        return left == reinterpret(right, value_type(left))
    except AnnotationError:
        pass
    # Payloads only, kinds ignored
    return left.value == right.value


def check_assertion(op: BinOp, left: Value, right: Value) -> None:
    match op:
        case BinOp.Equal:
            ok = left == right
        case BinOp.NotEqual:
            ok = left != right
        case BinOp.SubEqual:
            ok = sub_equal(left, right)
        case _:
            raise ValueError(f"unknown assertion operator {op!r}")
    if not ok:
        raise AssertionFailure(op.value, left, right)
