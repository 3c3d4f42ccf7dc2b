"""contacts-bench configuration loading and validation.

Reads ``contacts_bench.toml`` and returns a validated ``BenchConfig``.
Connection settings absent from the file fall back to ``DATABASE_URL`` or the
``POSTGRES_*`` environment variables.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from contacts_bench.db import DEFAULT_DB_NAME, VALID_SSL_MODES, Database, db_params_from_env
from contacts_bench.models import SortHint

DEFAULT_CONFIG_PATH = Path("contacts_bench.toml")

# ${VAR_NAME} references; names are letters, digits and underscores.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class DatabaseConfig:
    """Connection settings from the [database] section."""

    name: str = DEFAULT_DB_NAME
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = "postgres"
    ssl: str | None = None
    min_pool_size: int = 1
    max_pool_size: int = 4

    def build(self) -> Database:
        return Database(
            db_name=self.name,
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            ssl=self.ssl,
            min_pool_size=self.min_pool_size,
            max_pool_size=self.max_pool_size,
        )


@dataclass
class SourceConfig:
    """Native source settings from the [source] section."""

    path: str = "contacts.json"
    sort_hint: SortHint = field(default_factory=SortHint)


@dataclass
class BenchConfig:
    """Parsed contacts_bench.toml."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _int_setting(section: dict[str, Any], key: str, default: int, *, prefix: str) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{prefix}.{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigError(f"{prefix}.{key} must be >= 1, got {value}")
    return value


def _parse_database(section: dict[str, Any]) -> DatabaseConfig:
    env = db_params_from_env()
    name = str(section.get("name") or env["db_name"] or DEFAULT_DB_NAME).strip()
    if not name:
        raise ConfigError("database.name must be a non-empty string")

    raw_ssl = section.get("sslmode", env["ssl"])
    ssl = (str(raw_ssl).strip().lower() or None) if raw_ssl else None
    if ssl is not None and ssl not in VALID_SSL_MODES:
        modes = ", ".join(sorted(VALID_SSL_MODES))
        raise ConfigError(f"database.sslmode must be one of {modes}, got {raw_ssl!r}")

    config = DatabaseConfig(
        name=name,
        host=str(section.get("host", env["host"])),
        port=_int_setting(section, "port", int(env["port"] or 5432), prefix="database"),
        user=str(section.get("user", env["user"])),
        password=str(section.get("password", env["password"])),
        ssl=ssl,
        min_pool_size=_int_setting(section, "min_pool_size", 1, prefix="database"),
        max_pool_size=_int_setting(section, "max_pool_size", 4, prefix="database"),
    )
    if config.min_pool_size > config.max_pool_size:
        raise ConfigError("database.min_pool_size must not exceed database.max_pool_size")
    return config


def _parse_source(section: dict[str, Any]) -> SourceConfig:
    path = str(section.get("path", "contacts.json")).strip()
    if not path:
        raise ConfigError("source.path must be a non-empty string")
    try:
        sort_hint = SortHint(
            sort_by=section.get("sort_by", "givenName"),
            sort_order=section.get("sort_order", "ascending"),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid [source] sort settings: {exc}") from exc
    return SourceConfig(path=path, sort_hint=sort_hint)


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    log_format = str(section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(f"logging.format must be 'text' or 'json', got {log_format!r}")
    log_root = section.get("log_root")
    return LoggingConfig(
        level=level,
        format=log_format,
        log_root=str(log_root) if log_root else None,
    )


def parse_config(data: dict[str, Any]) -> BenchConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)
    return BenchConfig(
        database=_parse_database(_section(data, "database")),
        source=_parse_source(_section(data, "source")),
        logging=_parse_logging(_section(data, "logging")),
    )


def load_config(path: Path | None = None) -> BenchConfig:
    """Load and validate the configuration file.

    Parameters
    ----------
    path:
        Explicit config file. When omitted, ``contacts_bench.toml`` in the
        working directory is used if present, else built-in defaults.

    Raises
    ------
    ConfigError
        If an explicit file is missing, or the file is invalid.
    """
    toml_path = path or DEFAULT_CONFIG_PATH
    if not toml_path.exists():
        if path is not None:
            raise ConfigError(f"Config file not found: {toml_path}")
        return parse_config({})

    try:
        data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc
    return parse_config(data)
