"""
Configuration

Runtime settings from the environment and Terraform variable sources.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

import yaml

from atar.constants import (
    DEFAULT_TERRAFORM_BIN,
    ENV_DEBUG_FLAGS,
    ENV_LOG_DIR,
    ENV_TERRAFORM_BIN,
)
from atar.exceptions import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Process-wide settings."""

    terraform_bin: str = DEFAULT_TERRAFORM_BIN
    log_dir: Optional[Path] = None
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""
        environ = os.environ if environ is None else environ
        log_dir = environ.get(ENV_LOG_DIR)
        return cls(
            terraform_bin=environ.get(ENV_TERRAFORM_BIN) or DEFAULT_TERRAFORM_BIN,
            log_dir=Path(log_dir).expanduser() if log_dir else None,
            debug=any(environ.get(flag) for flag in ENV_DEBUG_FLAGS),
        )


def stringify(value) -> str:
    """Render a variable value the way Terraform's `-var` flag expects it."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def load_var_file(path: Path) -> Dict[str, str]:
    """
    Load Terraform variables from a YAML (or JSON) mapping.

    Args:
        path: Path to the variable file

    Returns:
        Ordered mapping of variable name to string value

    Raises:
        ConfigurationError: If the file is unreadable or not a mapping
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read variable file {path}", context=str(e))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid variable file {path}", context=str(e))

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid variable file {path}",
            context=f"Expected a mapping, got {type(data).__name__}",
        )
    return {str(key): stringify(value) for key, value in data.items()}


def parse_var_assignments(assignments: Iterable[str]) -> Dict[str, str]:
    """Parse `NAME=VALUE` strings (from repeated `--var`)."""
    variables: Dict[str, str] = {}
    for item in assignments:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(
                f"Invalid variable '{item}'", context="Expected NAME=VALUE"
            )
        variables[name.strip()] = value
    return variables


def parse_var_flags(args: Sequence[str]) -> Dict[str, str]:
    """
    Parse free-form `--<name> <value>` pairs into variables.

    `--name=value` is accepted as well.

    Raises:
        ConfigurationError: On a flag without value or a stray argument
    """
    variables: Dict[str, str] = {}
    i = 0
    while i < len(args):
        arg = args[i]
        if not arg.startswith("--") or arg == "--":
            raise ConfigurationError(f"Unexpected argument: {arg}")

        name = arg[2:]
        if "=" in name:
            name, value = name.split("=", 1)
        else:
            i += 1
            if i >= len(args):
                raise ConfigurationError(f"Flag {arg} requires a value")
            value = args[i]

        if not name:
            raise ConfigurationError(f"Unexpected argument: {arg}")
        variables[name] = value
        i += 1
    return variables


def collect_variables(
    var_file: Optional[Path] = None,
    assignments: Iterable[str] = (),
    extra_args: Sequence[str] = (),
) -> Dict[str, str]:
    """Merge variable sources; later sources win (file < --var < flags)."""
    variables: Dict[str, str] = {}
    if var_file is not None:
        variables.update(load_var_file(var_file))
    variables.update(parse_var_assignments(assignments))
    variables.update(parse_var_flags(extra_args))
    return variables
