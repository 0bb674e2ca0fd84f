"""Configuration models and loaders for maketool."""

from __future__ import annotations

import json
import shutil
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from maketool.execution.base import ExecutorConfig

CONFIG_FILE_NAMES: tuple[str, ...] = ("maketool.yaml", "maketool.yml", "pyproject.toml")
DEFAULT_MAKE_BINARY = "make"
DEFAULT_TIMEOUT_S = 60
DEFAULT_MAX_CONCURRENCY = 4


class ConfigError(ValueError):
    """Raised when a configuration file cannot be parsed."""


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration for the application.

    Attributes:
        workspace_root: Root path of the project that holds the Makefile.
        make: Configuration for invoking make.
        help: Configuration for the help listing shown to callers.
        logging: Logging configuration.
    """

    workspace_root: Path = Path(".")
    make: MakeConfig = field(default_factory=lambda: MakeConfig())
    help: HelpConfig = field(default_factory=lambda: HelpConfig())
    logging: LoggingConfig = field(default_factory=lambda: LoggingConfig())


@dataclass(frozen=True)
class MakeConfig:
    """Configuration for the make executor.

    ``work_dir`` defaults to the workspace root when unset.
    """

    path: str = DEFAULT_MAKE_BINARY
    work_dir: Path | None = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY


@dataclass(frozen=True)
class HelpConfig:
    """Configuration for the help listing."""

    target: str = "help"
    preamble: str = ""


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for application logging."""

    level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load application configuration from disk.

    Args:
        path: Optional path to a configuration file or workspace directory.

    Returns:
        Parsed AppConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        if path is not None and path.is_dir():
            return AppConfig(workspace_root=path.resolve())
        return AppConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.name == "pyproject.toml" or config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ConfigError(f"Unsupported config file type: {config_path}")

    return _parse_app_config(raw_data, base_path=config_path.parent)


def config_to_dict(config: AppConfig) -> dict[str, Any]:
    """Serialize an AppConfig into a JSON-compatible dictionary."""

    return {
        "workspace_root": str(config.workspace_root),
        "make": {
            "path": config.make.path,
            "work_dir": str(config.make.work_dir) if config.make.work_dir else None,
            "timeout_s": config.make.timeout_s,
            "max_concurrency": config.make.max_concurrency,
        },
        "help": {
            "target": config.help.target,
            "preamble": config.help.preamble,
        },
        "logging": {"level": config.logging.level},
    }


def to_executor_config(config: AppConfig) -> ExecutorConfig:
    """Build a validated ExecutorConfig from the application config.

    Raises:
        InvalidArgumentError: If the resulting executor settings are invalid.
    """

    work_dir = config.make.work_dir or config.workspace_root
    return ExecutorConfig(
        make_path=resolve_make_path(config.make.path),
        work_dir=str(work_dir.resolve()),
        timeout_s=config.make.timeout_s,
        max_concurrency=config.make.max_concurrency,
    )


def resolve_make_path(path: str) -> str:
    """Resolve a bare binary name to an absolute path via ``PATH``.

    Paths that already contain a separator, and names not found on ``PATH``,
    are returned unchanged.
    """

    if not path or Path(path).is_absolute() or "/" in path:
        return path
    found = shutil.which(path)
    return found or path


def update_timeout(config: AppConfig, timeout_s: float) -> AppConfig:
    """Return a config copy with an updated make timeout."""

    return replace(config, make=replace(config.make, timeout_s=timeout_s))


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        candidate_paths.extend(Path(name) for name in CONFIG_FILE_NAMES)
    elif path.is_dir():
        candidate_paths.extend(path / name for name in CONFIG_FILE_NAMES)
    else:
        candidate_paths.append(path)

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("maketool", {})
        if not isinstance(tool_config, dict):
            raise ConfigError("tool.maketool must be a mapping.")
        return tool_config
    if not isinstance(data, dict):
        raise ConfigError("TOML configuration must be a mapping.")
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        if not isinstance(data, dict):
            raise ConfigError("YAML configuration must be a mapping.")
        return data
    import yaml

    parsed = yaml.safe_load(text)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigError("YAML configuration must be a mapping.")
    return parsed


def _parse_app_config(raw_data: dict[str, Any], base_path: Path) -> AppConfig:
    workspace_root = Path(raw_data.get("workspace_root", ".")) if raw_data else Path(".")
    if not workspace_root.is_absolute():
        workspace_root = (base_path / workspace_root).resolve()

    return AppConfig(
        workspace_root=workspace_root,
        make=_parse_make_config(raw_data.get("make", {}), base_path),
        help=_parse_help_config(raw_data.get("help", {})),
        logging=_parse_logging_config(raw_data.get("logging", {})),
    )


def _parse_make_config(raw: Any, base_path: Path) -> MakeConfig:
    if not isinstance(raw, dict):
        return MakeConfig()
    work_dir: Path | None = None
    raw_work_dir = _optional_str(raw.get("work_dir"))
    if raw_work_dir is not None:
        work_dir = Path(raw_work_dir)
        if not work_dir.is_absolute():
            work_dir = (base_path / work_dir).resolve()
    path = str(raw.get("path", DEFAULT_MAKE_BINARY))
    if "/" in path and not Path(path).is_absolute():
        path = str((base_path / path).resolve())
    return MakeConfig(
        path=path,
        work_dir=work_dir,
        timeout_s=float(raw.get("timeout_s", DEFAULT_TIMEOUT_S)),
        max_concurrency=int(raw.get("max_concurrency", DEFAULT_MAX_CONCURRENCY)),
    )


def _parse_help_config(raw: Any) -> HelpConfig:
    if not isinstance(raw, dict):
        return HelpConfig()
    return HelpConfig(
        target=str(raw.get("target", "help")),
        preamble=str(raw.get("preamble") or ""),
    )


def _parse_logging_config(raw: Any) -> LoggingConfig:
    if not isinstance(raw, dict):
        return LoggingConfig()
    return LoggingConfig(level=str(raw.get("level", "INFO")))


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
