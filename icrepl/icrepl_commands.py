"""
Executes commands against a session.

`execute` runs one command; `run_commands` runs a list in order and stops at
the first failure, which propagates to the caller unchanged.
"""
from __future__ import annotations

import logging
import shutil
import time
from typing import Iterable

from icrepl.icrepl_assert import check_assertion
from icrepl.icrepl_ast import (
    Assert, Command, Config, Func, Identity, If, Import, Let, Load, Show, While,
)
from icrepl.icrepl_canister import did_to_canister_info
from icrepl.icrepl_config import Configs, detect_format
from icrepl.icrepl_errors import EvalError, ScriptIOError, ScriptTypeError
from icrepl.icrepl_evaluator import evaluate
from icrepl.icrepl_identity import switch_identity
from icrepl.icrepl_loader import load_script, resolve_path
from icrepl.icrepl_session import Session, bind_value
from icrepl.icrepl_values import Value

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Renders an elapsed time with two decimals in the largest fitting unit."""
    if seconds >= 1:
        return f"{seconds:.2f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.2f}ms"
    if seconds >= 1e-6:
        return f"{seconds * 1e6:.2f}µs"
    return f"{seconds * 1e9:.2f}ns"


def _condition(exp, session: Session, what: str) -> bool:
    v = evaluate(exp, session)
    if v.type != "bool":
        raise ScriptTypeError(f"{what} condition is not a boolean expression")
    return v.value


def _apply_config(session: Session, text: str) -> None:
    fmt = detect_format(text)
    if fmt is None:
        session.config = Configs.parse(text)
        logger.debug("config replaced from inline text")
        return
    path = resolve_path(session.base_path, text)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScriptIOError(f"Cannot read {str(path)!r}: {e}", path) from e
    session.config = Configs.parse(source, fmt)
    logger.debug("config replaced from %s", path)


def execute(command: Command, session: Session) -> None:
    match command:
        case Config(text=text):
            _apply_config(session, text)
        case Show(exp=exp):
            start = time.perf_counter()
            v = evaluate(exp, session)
            elapsed = time.perf_counter() - start
            bind_value(session, "_", v, exp.is_call(), True)
            if session.verbose:
                width = shutil.get_terminal_size().columns
                print(f"({format_duration(elapsed)})".rjust(width))
        case Let(name=name, exp=exp):
            v = evaluate(exp, session)
            bind_value(session, name, v, exp.is_call(), False)
        case Assert(op=op, left=left, right=right):
            check_assertion(op, evaluate(left, session), evaluate(right, session))
        case Import(name=name, canister_id=canister_id, did=did):
            if did is not None:
                path = resolve_path(session.base_path, did)
                session.canister_map[canister_id] = did_to_canister_info(path)
                logger.debug("imported %s as %s with interface %s", canister_id, name, path)
            session.env[name] = Value.principal(canister_id)
        case Load(exp=exp):
            load_script(session, exp)
        case Identity(name=name, config=config):
            switch_identity(session, name, config)
        case Func(name=name, params=params, body=body):
            session.func_env[name] = (params, body)
        case If(cond=cond, then=then, else_=else_):
            if _condition(cond, session, "if"):
                run_commands(then, session)
            else:
                run_commands(else_, session)
        case While(cond=cond, body=body):
            while _condition(cond, session, "while"):
                run_commands(body, session)
        case _:
            raise EvalError(f"unknown command {command!r}")


def run_commands(commands: Iterable[Command], session: Session) -> None:
    for command in commands:
        execute(command, session)
