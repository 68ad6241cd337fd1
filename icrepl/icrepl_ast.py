"""
Defines the command and expression trees produced by the parser.

Commands are a closed set of variants; the executor dispatches over them with
a `match` statement rather than through methods on the nodes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import IDLType, Value

# =================================================================
# Expressions
# =================================================================


class Exp:
    """Base class for expression nodes."""

    def is_call(self) -> bool:
        """True when evaluating this expression performs a canister call."""
        return False


@dataclass
class Literal(Exp):
    value: Value


@dataclass
class Var(Exp):
    name: str


@dataclass
class Annotate(Exp):
    exp: Exp
    type: IDLType


@dataclass
class OptExp(Exp):
    exp: Exp


@dataclass
class VecExp(Exp):
    items: List[Exp]


@dataclass
class RecordExp(Exp):
    fields: List[Tuple[str, Exp]]


@dataclass
class VariantExp(Exp):
    tag: str
    exp: Optional[Exp] = None


@dataclass
class FieldExp(Exp):
    exp: Exp
    name: str


@dataclass
class IndexExp(Exp):
    exp: Exp
    index: Exp


@dataclass
class Apply(Exp):
    func: str
    args: List[Exp]


@dataclass
class Call(Exp):
    target: Exp
    method: str
    args: List[Exp]

    def is_call(self) -> bool:
        return True


# =================================================================
# Commands
# =================================================================


class BinOp(Enum):
    Equal = "=="
    SubEqual = "~="
    NotEqual = "!="


@dataclass
class Empty:
    pass


@dataclass
class Pem:
    path: str


@dataclass
class Hsm:
    slot_index: int
    key_id: str


IdentityConfig = Empty | Pem | Hsm


class Command:
    """Base class for command nodes."""


@dataclass
class Config(Command):
    text: str


@dataclass
class Show(Command):
    exp: Exp


@dataclass
class Let(Command):
    name: str
    exp: Exp


@dataclass
class Assert(Command):
    op: BinOp
    left: Exp
    right: Exp


@dataclass
class Import(Command):
    name: str
    canister_id: Principal
    did: Optional[str] = None


@dataclass
class Load(Command):
    exp: Exp


@dataclass
class Identity(Command):
    name: str
    config: IdentityConfig = field(default_factory=Empty)


@dataclass
class Func(Command):
    name: str
    params: List[str]
    body: List[Command]


@dataclass
class While(Command):
    cond: Exp
    body: List[Command]


@dataclass
class If(Command):
    cond: Exp
    then: List[Command]
    else_: List[Command] = field(default_factory=list)


@dataclass
class Script:
    """A parsed command list with the source range of every top-level command."""
    source: str
    commands: List[Tuple[Command, Tuple[int, int]]]

    def text_of(self, span: Tuple[int, int]) -> str:
        start, end = span
        return self.source[start:end]

    def __iter__(self):
        return iter(self.commands)

    def __len__(self):
        return len(self.commands)
