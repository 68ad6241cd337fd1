"""
Error types raised while parsing and executing icrepl scripts.
"""
from typing import Any, Optional


class ReplError(Exception):
    """Base class for every error the interpreter reports to the user."""


class ParseError(ReplError):
    def __init__(self, message: str, *, filename: Optional[str] = None,
                 line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.line = line
        self.col = col

    def __str__(self):
        where = self.filename or ""
        if self.line is not None:
            where += f":{self.line}" if where else f"line {self.line}"
            if self.col is not None:
                where += f":{self.col}"
        return f"{where}: {self.message}" if where else self.message


class EvalError(ReplError):
    pass


class AnnotationError(EvalError):
    def __init__(self, value: Any, target: Any, reason: str = ""):
        msg = f"cannot interpret {value} as {target}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.value = value
        self.target = target


class AssertionFailure(ReplError):
    def __init__(self, op: str, left: Any, right: Any):
        from icrepl.icrepl_printer import Printer
        printer = Printer()
        super().__init__(
            f"assertion failed: left {op} right\n"
            f"  left: {printer.pformat(left)}\n"
            f" right: {printer.pformat(right)}"
        )
        self.op = op
        self.left = left
        self.right = right


class ScriptTypeError(ReplError, TypeError):
    pass


class ScriptIOError(ReplError):
    def __init__(self, message: str, path: Any = None):
        super().__init__(message)
        self.path = path


class IdentityError(ReplError):
    pass


class ConfigError(ReplError):
    pass
