"""
Session configuration: parsed from inline TOML text or from a TOML, YAML or
JSON file chosen by extension.
"""
from __future__ import annotations

import json
import os
import tomllib
from collections import UserDict
from typing import Any, Optional

import yaml

from icrepl.icrepl_errors import ConfigError

CONFIG_EXTENSIONS = {
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
}


class Configs(UserDict):
    """Configuration tables keyed by section name."""

    @classmethod
    def parse(cls, text: str, fmt: str = "toml") -> "Configs":
        return cls(deserialize(text, fmt=fmt))

    def section(self, name: str) -> dict:
        value = self.data.get(name, {})
        return value if isinstance(value, dict) else {}


def detect_format(locator: str) -> Optional[str]:
    """Returns the configuration format named by a file extension, if any."""
    ext = os.path.splitext(locator)[1].lower()
    return CONFIG_EXTENSIONS.get(ext)


def deserialize(text: str, *, fmt: str) -> dict:
    """
    Parse configuration text. Supported fmt: 'toml', 'yaml', 'json'.
    The top level must be a table.
    """
    try:
        if fmt == "toml":
            data: Any = tomllib.loads(text)
        elif fmt == "yaml":
            data = yaml.safe_load(text)
            if data is None:
                data = {}
        elif fmt == "json":
            data = json.loads(text)
        else:
            raise ConfigError(f"unsupported configuration format {fmt!r}")
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"invalid {fmt} configuration: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{fmt} configuration must be a table, got {type(data).__name__}")
    return data
