from icrepl.icrepl_ast import Script
from icrepl.icrepl_errors import (
    AnnotationError, AssertionFailure, ConfigError, EvalError, IdentityError,
    ParseError, ReplError, ScriptIOError, ScriptTypeError,
)
from icrepl.icrepl_parser import parse_script
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_runtime import ExecutionResult, ScriptRunner
from icrepl.icrepl_session import Session
from icrepl.icrepl_values import IDLType, Value

__all__ = [
    "AnnotationError", "AssertionFailure", "ConfigError", "EvalError", "ExecutionResult",
    "IDLType", "IdentityError", "ParseError", "Principal", "ReplError", "Script",
    "ScriptIOError", "ScriptRunner", "ScriptTypeError", "Session", "Value", "parse_script",
]
