"""
Canister metadata and the network agent interface.

The agent is the boundary to the network layer: the interpreter only hands it
the active identity and asks it to perform calls. `OfflineAgent` is the
default and refuses to call anything.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from icrepl.icrepl_errors import EvalError, ParseError, ScriptIOError
from icrepl.icrepl_principal import Principal

logger = logging.getLogger(__name__)

_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_SERVICE_RE = re.compile(r"\bservice\b[^{]*:")
_METHOD_RE = re.compile(r'^\s*("(?:[^"\\]|\\.)*"|[A-Za-z_][A-Za-z0-9_]*)\s*:\s*(.+?)\s*$', re.DOTALL)


@dataclass
class CanisterInfo:
    """Interface information for one canister, read from its did file."""
    did_path: Optional[Path] = None
    source: str = ""
    methods: Dict[str, str] = field(default_factory=dict)

    def has_method(self, name: str) -> bool:
        return not self.methods or name in self.methods


def _split_top_level(body: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in body:
        if ch in "({":
            depth += 1
        elif ch in ")}":
            depth -= 1
        if ch == ";" and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if "".join(current).strip():
        parts.append("".join(current))
    return parts


def service_methods(source: str) -> Dict[str, str]:
    """Extracts `method name -> signature` from the service block of a did file."""
    text = _LINE_COMMENT_RE.sub("", source)
    m = _SERVICE_RE.search(text)
    if m is None:
        raise ParseError("no service definition found")
    # The method table is the last brace-delimited block after 'service'
    close = text.rfind("}")
    start, depth = None, 0
    for i in range(close, m.end() - 1, -1):
        if text[i] == "}":
            depth += 1
        elif text[i] == "{":
            depth -= 1
            if depth == 0:
                start = i
                break
    if start is None:
        raise ParseError("unbalanced braces in service definition")
    methods = {}
    for entry in _split_top_level(text[start + 1:close]):
        mm = _METHOD_RE.match(entry)
        if mm is None:
            continue
        name = mm.group(1)
        if name.startswith('"'):
            name = name[1:-1]
        methods[name] = " ".join(mm.group(2).split())
    return methods


def did_to_canister_info(path: Path) -> CanisterInfo:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScriptIOError(f"Cannot read {str(path)!r}: {e}", path) from e
    try:
        methods = service_methods(source)
    except ParseError as e:
        e.filename = str(path)
        raise
    logger.debug("read %d methods from %s", len(methods), path)
    return CanisterInfo(path, source, methods)


class Agent:
    """The interface the interpreter needs from the network layer."""

    def __init__(self):
        self.identity = None

    def set_identity(self, identity) -> None:
        self.identity = identity

    def call(self, canister_id: Principal, method: str, args: list, info: Optional[CanisterInfo] = None):
        raise NotImplementedError


class OfflineAgent(Agent):
    """An agent with no replica behind it. Every call fails."""

    def call(self, canister_id, method, args, info=None):
        raise EvalError(f"cannot call {canister_id}.{method}: no replica agent is configured")
