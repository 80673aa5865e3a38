"""Configuration: ``.coderef.yml``, environment variables, then explicit overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from coderef.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".coderef.yml"

ENV_PROJECT_ROOT = "CODEREF_PROJECT_ROOT"
ENV_DOCS_DIR = "CODEREF_DOCS_DIR"
ENV_IGNORE_FILE = "CODEREF_IGNORE_FILE"
ENV_VERBOSE = "CODEREF_VERBOSE"
ENV_JOBS = "CODEREF_JOBS"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class CodeRefConfig:
    """Resolved settings for one run."""

    project_root: Path
    docs_dir: str = "docs"
    ignore_file: str = ".docsignore"
    ignore_patterns: tuple[str, ...] = field(default_factory=tuple)
    jobs: int = 1
    backup: bool = False
    verbose: bool = False
    ignore_trailing_whitespace: bool = False

    @property
    def docs_path(self) -> Path:
        return self.project_root / self.docs_dir

    @property
    def ignore_path(self) -> Path:
        return self.project_root / self.ignore_file


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got {value!r}"
    raise ConfigError(msg)


def _parse_jobs(value: Any, name: str) -> int:
    try:
        jobs = int(value)
    except (TypeError, ValueError):
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigError(msg) from None
    if isinstance(value, bool) or jobs < 1:
        msg = f"{name} must be a positive integer, got {value!r}"
        raise ConfigError(msg)
    return jobs


def _require_relative(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        msg = f"{name} must be a non-empty string"
        raise ConfigError(msg)
    if Path(value).is_absolute():
        msg = f"{name} must be relative to the project root, got {value!r}"
        raise ConfigError(msg)
    return value


def read_config_file(project_root: Path) -> dict[str, Any]:
    """Return the mapping stored in ``.coderef.yml``, or ``{}`` if absent.

    Raises
    ------
    ConfigError
        When the file exists but is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {config_path}: {exc}"
        raise ConfigError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{config_path} must contain a mapping"
        raise ConfigError(msg)
    return data


def _apply_file(config: CodeRefConfig, data: dict[str, Any]) -> CodeRefConfig:
    changes: dict[str, Any] = {}
    if "docs_dir" in data:
        changes["docs_dir"] = _require_relative(data["docs_dir"], "docs_dir")
    if "ignore_file" in data:
        changes["ignore_file"] = _require_relative(data["ignore_file"], "ignore_file")
    if "ignore_patterns" in data:
        patterns = data["ignore_patterns"] or []
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            msg = "ignore_patterns must be a list of strings"
            raise ConfigError(msg)
        changes["ignore_patterns"] = tuple(patterns)
    if "jobs" in data:
        changes["jobs"] = _parse_jobs(data["jobs"], "jobs")
    if "backup" in data:
        if not isinstance(data["backup"], bool):
            msg = "backup must be a boolean"
            raise ConfigError(msg)
        changes["backup"] = data["backup"]

    comparison = data.get("comparison")
    if comparison is not None:
        if not isinstance(comparison, dict):
            msg = "comparison must be a mapping"
            raise ConfigError(msg)
        flag = comparison.get("ignore_trailing_whitespace", False)
        if not isinstance(flag, bool):
            msg = "comparison.ignore_trailing_whitespace must be a boolean"
            raise ConfigError(msg)
        changes["ignore_trailing_whitespace"] = flag

    unknown = set(data) - {
        "docs_dir", "ignore_file", "ignore_patterns", "jobs", "backup", "comparison",
    }
    for key in sorted(unknown):
        logger.warning("Unknown key in %s: %s", CONFIG_FILENAME, key)
    return replace(config, **changes)


def _apply_env(config: CodeRefConfig, env: dict[str, str]) -> CodeRefConfig:
    changes: dict[str, Any] = {}
    if env.get(ENV_DOCS_DIR):
        changes["docs_dir"] = _require_relative(env[ENV_DOCS_DIR], ENV_DOCS_DIR)
    if env.get(ENV_IGNORE_FILE):
        changes["ignore_file"] = _require_relative(env[ENV_IGNORE_FILE], ENV_IGNORE_FILE)
    if ENV_VERBOSE in env:
        changes["verbose"] = _parse_bool(env[ENV_VERBOSE], ENV_VERBOSE)
    if env.get(ENV_JOBS):
        changes["jobs"] = _parse_jobs(env[ENV_JOBS], ENV_JOBS)
    return replace(config, **changes)


def load_config(
    project_root: Path | None = None,
    *,
    env: dict[str, str] | None = None,
    **overrides: Any,
) -> CodeRefConfig:
    """Build the effective configuration.

    Precedence, lowest first: built-in defaults, ``.coderef.yml`` at the
    project root, ``CODEREF_*`` environment variables, *overrides*.
    ``None`` overrides are ignored so CLI options can be passed through
    unconditionally.

    Parameters
    ----------
    project_root:
        Explicit project root.  Falls back to ``CODEREF_PROJECT_ROOT`` and
        then the current directory.
    env:
        Environment mapping; defaults to ``os.environ``.

    Raises
    ------
    ConfigError
        On unreadable config files or invalid values.
    """
    environ = dict(os.environ if env is None else env)

    if project_root is None:
        root_value = environ.get(ENV_PROJECT_ROOT)
        project_root = Path(root_value) if root_value else Path.cwd()
    project_root = Path(project_root).resolve()
    if not project_root.is_dir():
        msg = f"Project root is not a directory: {project_root}"
        raise ConfigError(msg)

    config = CodeRefConfig(project_root=project_root)
    config = _apply_file(config, read_config_file(project_root))
    config = _apply_env(config, environ)

    changes = {key: value for key, value in overrides.items() if value is not None}
    unknown = set(changes) - set(CodeRefConfig.__dataclass_fields__)
    if unknown:
        msg = f"Unknown configuration option(s): {', '.join(sorted(unknown))}"
        raise ConfigError(msg)
    if "docs_dir" in changes:
        _require_relative(changes["docs_dir"], "docs_dir")
    if "jobs" in changes:
        changes["jobs"] = _parse_jobs(changes["jobs"], "jobs")
    if "ignore_patterns" in changes:
        changes["ignore_patterns"] = tuple(changes["ignore_patterns"])
    config = replace(config, **changes)

    logger.debug("Configuration: %s", config)
    return config
