from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv
from jsonschema.exceptions import ValidationError

from ..models.config_models import BackendConfig, IntakeConfig, PollingConfig, PreviewConfig

"""Config loader.

Responsibilities:
- Load YAML config (e.g. config/intake.yml)
- Validate against config_schema.json shipped next to this module
- Apply defaults for absent keys
- Apply environment overrides (.env 読み込み後, 環境変数が YAML より優先)

Environment variables:
    INTAKE_BACKEND_URL      backend.base_url
    INTAKE_TIMEOUT_SECONDS  backend.timeout_seconds
    INTAKE_POLL_INTERVAL    polling.interval_seconds
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "apply_env_overrides",
    "default_config",
    "load_config",
    "load_env_file",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

ENV_BACKEND_URL = "INTAKE_BACKEND_URL"
ENV_TIMEOUT = "INTAKE_TIMEOUT_SECONDS"
ENV_POLL_INTERVAL = "INTAKE_POLL_INTERVAL"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def default_config() -> IntakeConfig:
    """Built-in defaults with environment overrides applied."""
    return apply_env_overrides(IntakeConfig())


def load_env_file(path: Path = Path(".env"), override: bool = True) -> bool:
    """Load a .env file into os.environ via python-dotenv.

    override=True: .env の値で既存の環境変数を上書きする
    Returns True when the file existed.
    """
    if not path.exists():
        return False
    load_dotenv(dotenv_path=path, override=override)
    return True


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number: {raw!r}") from e


def apply_env_overrides(cfg: IntakeConfig) -> IntakeConfig:
    backend = cfg.backend
    url = os.getenv(ENV_BACKEND_URL)
    if url:
        backend = replace(backend, base_url=url)
    timeout = _env_float(ENV_TIMEOUT)
    if timeout is not None:
        if timeout <= 0:
            raise ConfigError(f"{ENV_TIMEOUT} must be > 0")
        backend = replace(backend, timeout_seconds=timeout)

    polling = cfg.polling
    interval = _env_float(ENV_POLL_INTERVAL)
    if interval is not None:
        if interval < 0:
            raise ConfigError(f"{ENV_POLL_INTERVAL} must be >= 0")
        polling = replace(polling, interval_seconds=interval)
    return replace(cfg, backend=backend, polling=polling)


def load_config(path: Path) -> IntakeConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    defaults = IntakeConfig()
    # スキーマで additionalProperties: false を保証済みなのでそのまま展開
    backend = BackendConfig(**{**vars(defaults.backend), **data["backend"]})
    polling = PollingConfig(**{**vars(defaults.polling), **data.get("polling", {})})
    preview = PreviewConfig(**{**vars(defaults.preview), **data.get("preview", {})})
    cfg = IntakeConfig(
        backend=backend,
        polling=polling,
        preview=preview,
        logs_directory=data.get("logs_directory", defaults.logs_directory),
    )
    return apply_env_overrides(cfg)
