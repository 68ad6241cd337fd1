"""
Evaluates expressions against a session.
"""
from __future__ import annotations

import inspect
import logging
import operator
from typing import Callable, Dict, List

from icrepl.icrepl_ast import (
    Annotate, Apply, Call, Exp, FieldExp, IndexExp, Literal, OptExp, RecordExp,
    Var, VariantExp, VecExp,
)
from icrepl.icrepl_errors import EvalError, ScriptIOError
from icrepl.icrepl_values import (
    FLOAT_KINDS, IDLType, INTEGRAL_KINDS, NUMERIC_KINDS, Value, reinterpret,
)

logger = logging.getLogger(__name__)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class StdLib:
    """Python implementations of the builtin functions.

    Every method named `_<name>` is exposed to scripts as `<name>` and receives
    the session and the already-evaluated arguments.
    """

    def _arity(self, name: str, args: List[Value], n: int) -> List[Value]:
        if len(args) != n:
            raise EvalError(f"{name} expects {n} argument(s), got {len(args)}")
        return args

    def _numbers(self, name: str, args: List[Value]):
        a, b = self._arity(name, args, 2)
        if a.type not in NUMERIC_KINDS or b.type not in NUMERIC_KINDS:
            raise EvalError(f"{name} expects numbers, got {a.type} and {b.type}")
        return a, b

    def _arith(self, name: str, args: List[Value], op: Callable) -> Value:
        a, b = self._numbers(name, args)
        if a.type == b.type:
            kind = a.type
        elif a.type in FLOAT_KINDS or b.type in FLOAT_KINDS:
            kind = "float64"
        else:
            kind = "int"
        raw = op(a.value, b.value)
        source = Value("float64", float(raw)) if kind in FLOAT_KINDS else Value("int", raw)
        return reinterpret(source, IDLType(kind))

    def _bools(self, name: str, args: List[Value]) -> List[bool]:
        for a in args:
            if a.type != "bool":
                raise EvalError(f"{name} expects bool arguments, got {a.type}")
        return [a.value for a in args]

    def _compare(self, name: str, args: List[Value], op: Callable) -> Value:
        a, b = self._arity(name, args, 2)
        comparable = (a.type in NUMERIC_KINDS and b.type in NUMERIC_KINDS) or (a.type == b.type == "text")
        if not comparable:
            raise EvalError(f"{name} cannot compare {a.type} with {b.type}")
        return Value.boolean(op(a.value, b.value))

    # --- Arithmetic ---
    def _add(self, session, args): return self._arith("add", args, operator.add)
    def _sub(self, session, args): return self._arith("sub", args, operator.sub)
    def _mul(self, session, args): return self._arith("mul", args, operator.mul)

    def _div(self, session, args):
        a, b = self._numbers("div", args)
        if b.value == 0:
            raise EvalError("division by zero")
        if a.type in INTEGRAL_KINDS and b.type in INTEGRAL_KINDS:
            return self._arith("div", args, _trunc_div)
        return self._arith("div", args, operator.truediv)

    # --- Comparison and logic ---
    def _eq(self, session, args):
        a, b = self._arity("eq", args, 2)
        return Value.boolean(a == b)

    def _neq(self, session, args):
        a, b = self._arity("neq", args, 2)
        return Value.boolean(a != b)

    def _lt(self, session, args): return self._compare("lt", args, operator.lt)
    def _lte(self, session, args): return self._compare("lte", args, operator.le)
    def _gt(self, session, args): return self._compare("gt", args, operator.gt)
    def _gte(self, session, args): return self._compare("gte", args, operator.ge)

    def _and(self, session, args): return Value.boolean(all(self._bools("and", args)))
    def _or(self, session, args): return Value.boolean(any(self._bools("or", args)))

    def _not(self, session, args):
        (b,) = self._bools("not", self._arity("not", args, 1))
        return Value.boolean(not b)

    def _ite(self, session, args):
        cond, then, else_ = self._arity("ite", args, 3)
        (c,) = self._bools("ite", [cond])
        return then if c else else_

    # --- Text and collections ---
    def _concat(self, session, args):
        if not args:
            raise EvalError("concat expects at least one argument")
        kinds = {a.type for a in args}
        if kinds == {"text"}:
            return Value.text("".join(a.value for a in args))
        if kinds == {"vec"}:
            return Value.vec(item for a in args for item in a.value)
        raise EvalError("concat expects all text or all vec arguments")

    def _len(self, session, args):
        (v,) = self._arity("len", args, 1)
        if v.type in ("text", "vec"):
            return Value.nat(len(v.value))
        raise EvalError(f"len expects text or vec, got {v.type}")

    def _stringify(self, session, args):
        parts = [a.value if a.type == "text" else session.printer.pformat(a) for a in args]
        return Value.text("".join(parts))

    def _read_file(self, session, args):
        from icrepl.icrepl_loader import resolve_path
        (path,) = self._arity("read_file", args, 1)
        if path.type != "text":
            raise EvalError("read_file expects a text path")
        resolved = resolve_path(session.base_path, path.value)
        try:
            return Value.text(resolved.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise ScriptIOError(f"Cannot read {str(resolved)!r}: {e}", resolved) from e


def _collect_builtins() -> Dict[str, Callable]:
    stdlib = StdLib()
    builtins = {}
    for name, member in inspect.getmembers(stdlib):
        if not name.startswith("_") or name.startswith("__") or not callable(member):
            continue
        params = list(inspect.signature(member).parameters)
        # Builtins take (session, args); helpers take other parameters
        if params == ["session", "args"]:
            builtins[name[1:]] = member
    return builtins


BUILTINS = _collect_builtins()


def evaluate(exp: Exp, session) -> Value:
    match exp:
        case Literal(value=v):
            return v
        case Var(name=name):
            v = session.lookup(name)
            if v is None:
                raise EvalError(f"Undefined variable {name}")
            return v
        case Annotate(exp=inner, type=t):
            return reinterpret(evaluate(inner, session), t)
        case OptExp(exp=inner):
            return Value.opt(evaluate(inner, session))
        case VecExp(items=items):
            return Value.vec(evaluate(item, session) for item in items)
        case RecordExp(fields=fields):
            values = {}
            for name, e in fields:
                if name in values:
                    raise EvalError(f"duplicate record field {name}")
                values[name] = evaluate(e, session)
            return Value.record(values)
        case VariantExp(tag=tag, exp=inner):
            return Value.variant(tag, evaluate(inner, session) if inner is not None else None)
        case FieldExp(exp=inner, name=name):
            return _field(evaluate(inner, session), name)
        case IndexExp(exp=inner, index=index):
            return _index(evaluate(inner, session), evaluate(index, session))
        case Apply(func=func, args=args):
            return _apply(session, func, args)
        case Call(target=target, method=method, args=args):
            return _call_method(session, target, method, args)
    raise EvalError(f"cannot evaluate {exp!r}")


def _field(v: Value, name: str) -> Value:
    if v.type == "opt" and v.value is not None:
        v = v.value
    if v.type == "record":
        found = v.field(name)
        if found is not None:
            return found
    if v.type == "variant" and v.value[0] == name:
        return v.value[1]
    raise EvalError(f"{v} has no field {name}")


def _index(v: Value, index: Value) -> Value:
    if index.type not in INTEGRAL_KINDS:
        raise EvalError(f"index must be an integer, got {index.type}")
    if v.type not in ("vec", "text"):
        raise EvalError(f"cannot index into {v.type}")
    i = index.value
    if not 0 <= i < len(v.value):
        raise EvalError(f"index {i} out of bounds for length {len(v.value)}")
    return v.value[i] if v.type == "vec" else Value.text(v.value[i])


def _apply(session, func: str, args: List[Exp]) -> Value:
    if func in session.func_env:
        return _apply_user_function(session, func, [evaluate(a, session) for a in args])
    if func == "exist":
        # The one builtin that needs its argument unevaluated
        if len(args) != 1:
            raise EvalError(f"exist expects 1 argument, got {len(args)}")
        try:
            evaluate(args[0], session)
        except EvalError:
            return Value.boolean(False)
        return Value.boolean(True)
    builtin = BUILTINS.get(func)
    if builtin is None:
        raise EvalError(f"Unknown function {func}")
    return builtin(session, [evaluate(a, session) for a in args])


def _apply_user_function(session, name: str, args: List[Value]) -> Value:
    from icrepl.icrepl_commands import run_commands
    params, body = session.func_env[name]
    if len(params) != len(args):
        raise EvalError(f"{name} expects {len(params)} argument(s), got {len(args)}")
    saved = dict(session.env)
    session.env.pop("_", None)
    session.env.update(zip(params, args))
    try:
        run_commands(body, session)
        result = session.env.get("_", Value.null())
    finally:
        session.env = saved
    return result


def _call_method(session, target: Exp, method: str, args: List[Exp]) -> Value:
    callee = evaluate(target, session)
    if callee.type != "principal":
        raise EvalError(f"cannot call method {method} on {callee.type}, expected a canister principal")
    canister_id = callee.value
    info = session.canister_map.get(canister_id)
    if info is not None and not info.has_method(method):
        raise EvalError(f"method {method} not found in {info.did_path}")
    values = [evaluate(a, session) for a in args]
    logger.debug("calling %s.%s with %d argument(s)", canister_id, method, len(values))
    return session.agent.call(canister_id, method, values, info)
