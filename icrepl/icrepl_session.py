"""
The mutable state threaded through every command, and the binding policy that
is the only way values get written into it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from icrepl.icrepl_canister import Agent, CanisterInfo, OfflineAgent
from icrepl.icrepl_config import Configs
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_printer import Printer
from icrepl.icrepl_values import INTEGRAL_KINDS, Value

COST_FIELD = "__cost"
COST_VALUE_FIELD = "__value"
COST_PREFIX = "__cost_"


@dataclass
class Session:
    """One script run's state. Sessions share nothing with each other."""
    agent: Agent = field(default_factory=OfflineAgent)
    base_path: Path = field(default_factory=lambda: Path(os.getcwd()))
    verbose: bool = False
    config: Configs = field(default_factory=Configs)
    env: Dict[str, Value] = field(default_factory=dict)
    func_env: Dict[str, Tuple[List[str], list]] = field(default_factory=dict)
    identity_map: Dict[str, object] = field(default_factory=dict)
    canister_map: Dict[Principal, CanisterInfo] = field(default_factory=dict)
    current_identity: str = ""
    printer: Printer = field(default_factory=Printer)

    def lookup(self, name: str) -> Optional[Value]:
        return self.env.get(name)


def extract_cost(v: Value) -> Tuple[Value, Optional[int]]:
    """Splits a profiled call result `record { __cost; __value }` into its
    value and cost. Other values come back unchanged with no cost."""
    if v.type != "record":
        return v, None
    fields = v.fields()
    if set(fields) != {COST_FIELD, COST_VALUE_FIELD}:
        return v, None
    cost = fields[COST_FIELD]
    if cost.type not in INTEGRAL_KINDS:
        return v, None
    return fields[COST_VALUE_FIELD], int(cost.value)


def bind_value(session: Session, name: str, v: Value, is_call: bool, display: bool) -> None:
    if display:
        if session.verbose:
            print(session.printer.pformat(v))
        elif v.type == "text":
            print(v.value)
    if is_call:
        v, cost = extract_cost(v)
        if cost is not None:
            session.env[f"{COST_PREFIX}{name}"] = Value("int64", cost)
    session.env[name] = v
