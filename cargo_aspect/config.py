"""
cargo_aspect.config
===================

``Aspect.toml`` – the per-crate list of pointcut / advice pairs.

File format::

    name = "logging"

    [[pointcuts]]
    condition = "call _x.iter() where _x: Vec<i32>"
    advice = "println!(\\"iterating {:?}\\", $);"

    [[pointcuts]]
    condition = "enter crate::main"
    advice = "println!(\\"start\\");"

The advice string is opaque here; it travels with its condition and is
only interpreted by the weaver.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "Aspect.toml"
MANIFEST_FILE_NAME = "Cargo.toml"


@dataclass(frozen=True)
class PointcutSpec:
    """One ``[[pointcuts]]`` entry: a condition string and its advice."""
    condition: str
    advice: str


@dataclass(frozen=True)
class AspectConfig:
    name: str
    pointcuts: Tuple[PointcutSpec, ...] = ()


def _require_str(table: Dict[str, Any], key: str, where: str) -> str:
    if key not in table:
        raise ConfigError(f"{where}: missing required key {key!r}")
    value = table[key]
    if not isinstance(value, str):
        raise ConfigError(
            f"{where}: {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def config_from_dict(data: Dict[str, Any]) -> AspectConfig:
    """Build an :class:`AspectConfig` from decoded TOML data."""
    name = _require_str(data, "name", CONFIG_FILE_NAME)
    raw = data.get("pointcuts", [])
    if not isinstance(raw, list):
        raise ConfigError(f"{CONFIG_FILE_NAME}: 'pointcuts' must be an array of tables")
    pointcuts = []
    for index, table in enumerate(raw):
        where = f"{CONFIG_FILE_NAME}: pointcuts[{index}]"
        if not isinstance(table, dict):
            raise ConfigError(f"{where} must be a table")
        pointcuts.append(PointcutSpec(
            condition=_require_str(table, "condition", where),
            advice=_require_str(table, "advice", where),
        ))
    return AspectConfig(name=name, pointcuts=tuple(pointcuts))


def parse_config(text: str) -> AspectConfig:
    """Parse the text of an ``Aspect.toml`` file."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{CONFIG_FILE_NAME}: {e}") from e
    return config_from_dict(data)


def load_config(path: Union[str, Path]) -> AspectConfig:
    """Load config from a TOML file."""
    p = Path(path)
    try:
        with open(p, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {p}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{p}: {e}") from e
    config = config_from_dict(data)
    logger.debug("loaded %s: %d pointcut(s)", p, len(config.pointcuts))
    return config


def find_config(root: Union[str, Path]) -> Path:
    """Locate ``Aspect.toml`` in the crate rooted at *root*.

    Raises
    ------
    ConfigError
        If *root* has no ``Cargo.toml`` (it is not a crate root) or no
        ``Aspect.toml``.
    """
    root = Path(root)
    if not (root / MANIFEST_FILE_NAME).is_file():
        raise ConfigError(f"{str(root)!r} does not look like a Rust/Cargo project")
    path = root / CONFIG_FILE_NAME
    if not path.is_file():
        raise ConfigError(f"no {CONFIG_FILE_NAME} in {root}")
    return path


__all__ = [
    "CONFIG_FILE_NAME", "MANIFEST_FILE_NAME",
    "PointcutSpec", "AspectConfig",
    "config_from_dict", "parse_config", "load_config", "find_config",
]
