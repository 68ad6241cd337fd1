"""
Entry point for running icrepl scripts from Python.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from icrepl.icrepl_ast import Command, Literal as LiteralExp, Load
from icrepl.icrepl_canister import Agent, OfflineAgent
from icrepl.icrepl_commands import execute
from icrepl.icrepl_errors import ParseError, ReplError
from icrepl.icrepl_identity import AnonymousIdentity
from icrepl.icrepl_loader import run_script, working_directory
from icrepl.icrepl_parser import parse_script
from icrepl.icrepl_session import Session
from icrepl.icrepl_values import Value

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict] = None

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and 'line' in self.error_token:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Owns one session and runs scripts against it. State persists between
    calls, so a REPL can feed it one line at a time."""

    def __init__(self, agent: Optional[Agent] = None, verbose: bool = False):
        self.session = Session(agent=agent or OfflineAgent(), verbose=verbose)
        self.source_dir: Optional[Path] = None  # directory inline source is resolved against

        anonymous = AnonymousIdentity()
        self.session.identity_map[ANONYMOUS] = anonymous
        self.session.agent.set_identity(anonymous)
        self.session.current_identity = ANONYMOUS

    def _directory(self) -> Path:
        return Path(self.source_dir or os.getcwd())

    def _error_result(self, e: ReplError) -> ExecutionResult:
        token = None
        # Errors in inline source carry a position but no file name
        if isinstance(e, ParseError) and e.filename is None and e.line is not None:
            token = {'line': e.line, 'col': e.col}
            message = f"ParseError: {e.message}"
        else:
            message = f"{type(e).__name__}: {e}"
        logger.debug("script failed: %s", message)
        return ExecutionResult(status='error', error_message=message, error_token=token)

    def _success(self) -> ExecutionResult:
        return ExecutionResult(status='success', value=self.session.env.get("_"))

    def handle_script(self, source_code: str) -> ExecutionResult:
        """Parses and runs inline source."""
        try:
            script = parse_script(source_code)
            run_script(self.session, script, self._directory())
        except ReplError as e:
            return self._error_result(e)
        return self._success()

    def execute(self, command: Command) -> ExecutionResult:
        """Runs a single already-parsed command."""
        try:
            with working_directory(self.session, self._directory()):
                execute(command, self.session)
        except ReplError as e:
            return self._error_result(e)
        return self._success()

    def run_file(self, path: Union[str, Path]) -> ExecutionResult:
        """Runs a script file exactly as `load "<path>"` would."""
        return self.execute(Load(LiteralExp(Value.text(str(path)))))
