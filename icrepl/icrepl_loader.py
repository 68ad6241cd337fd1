"""
Script inclusion: the `load` command and the helpers it shares with the
runner.

A loaded script runs with the session's working directory set to the
directory holding it, so relative paths inside it resolve against its own
location. The previous directory is restored when the script finishes,
whether it succeeded or not.
"""
from __future__ import annotations

import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from icrepl.icrepl_ast import Exp, Script
from icrepl.icrepl_errors import ParseError, ScriptIOError, ScriptTypeError
from icrepl.icrepl_evaluator import evaluate
from icrepl.icrepl_parser import parse_script

logger = logging.getLogger(__name__)

FAIL_SAFE_SUFFIX = "?"
_ENV_VAR_RE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def resolve_path(base: Path, file: str) -> Path:
    """Resolves `file` against `base`. Absolute paths and `~` are honored."""
    expanded = os.path.expanduser(file)
    return Path(os.path.normpath(os.path.join(base, expanded)))


@contextmanager
def working_directory(session, directory: Path) -> Iterator[Path]:
    saved = session.base_path
    session.base_path = directory
    logger.debug("working directory %s -> %s", saved, directory)
    try:
        yield directory
    finally:
        session.base_path = saved
        logger.debug("working directory restored to %s", saved)


def strip_shebang(text: str) -> str:
    if not text.startswith("#!"):
        return text
    newline = text.find("\n")
    # Keep the newline so line numbers in errors still match the file
    return text[newline:] if newline >= 0 else ""


def substitute_env(text: str, filename: Optional[str] = None) -> str:
    """Replaces `$NAME` and `${NAME}` with environment variables."""
    def repl(m):
        name = m.group(1) or m.group(2)
        value = os.environ.get(name)
        if value is None:
            line = text.count("\n", 0, m.start()) + 1
            col = m.start() - (text.rfind("\n", 0, m.start()) + 1) + 1
            raise ParseError(f"environment variable {name} is not defined",
                             filename=filename, line=line, col=col)
        return value
    return _ENV_VAR_RE.sub(repl, text)


def read_script(path: Path) -> Script:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScriptIOError(f"Cannot read {str(path)!r}: {e}", path) from e
    filename = str(path)
    return parse_script(substitute_env(strip_shebang(text), filename), filename=filename)


def run_script(session, script: Script, directory: Path) -> None:
    """Runs a parsed script with `directory` as the working directory."""
    from icrepl.icrepl_commands import execute
    with working_directory(session, directory):
        for command, span in script:
            if session.verbose:
                print(f"> {script.text_of(span)}")
            execute(command, session)


def load_script(session, exp: Exp) -> None:
    target = evaluate(exp, session)
    if target.type != "text":
        raise ScriptTypeError("load needs to be a file path")
    file = target.value
    fail_safe = file.endswith(FAIL_SAFE_SUFFIX)
    path = resolve_path(session.base_path, file.rstrip(FAIL_SAFE_SUFFIX))
    try:
        script = read_script(path)
    except ScriptIOError as e:
        if fail_safe:
            logger.debug("skipping optional script %s: %s", path, e)
            return
        raise
    logger.debug("loading %s (%d commands)", path, len(script))
    run_script(session, script, path.parent)
