"""Configuration loading helpers: YAML file, bundled template, env overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from .models import AppConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "config.yaml"
TEMPLATE_NAME = "config.yaml"

# env var -> (section, key, caster)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "CHILE_COMPRA_API_KEY": ("source", "api_key", str),
    "CHILE_COMPRA_API_URL": ("source", "base_url", str),
    "API_DELAY_MS": ("source", "page_delay_seconds", lambda raw: int(raw) / 1000),
    "MONGODB_URI": ("database", "uri", str),
    "MONGODB_DB_NAME": ("database", "name", str),
    "EMAIL_SERVICE_URL": ("email", "service_url", str),
    "CRON_SCHEDULE": ("scheduler", "extraction_cron", str),
    "CLEANUP_DAYS": ("scheduler", "retention_days", int),
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def template_path(name: str = TEMPLATE_NAME) -> Path:
    path = Path(__file__).resolve().parent / "templates" / name
    if not path.exists():
        raise FileNotFoundError(f"Template not found: {path}")
    return path


def apply_env_overrides(payload: dict, environ: Mapping[str, str] | None = None) -> dict:
    """Return a copy of the raw payload with environment values layered on top."""

    env = os.environ if environ is None else environ
    data = {key: (dict(value) if isinstance(value, dict) else value) for key, value in payload.items()}
    for var, (section, key, caster) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw in (None, ""):
            continue
        try:
            value = caster(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc
        data.setdefault(section, {})
        data[section][key] = value

    fallback_recipient = env.get("EMAIL_TO")
    if fallback_recipient:
        lines = []
        for line in data.get("business_lines") or []:
            line = dict(line)
            if not line.get("recipients"):
                line["recipients"] = [fallback_recipient]
            lines.append(line)
        data["business_lines"] = lines
    return data


def require_api_key(config: AppConfig) -> None:
    if not config.source.api_key:
        raise ValueError(
            "Remote source API key missing: set CHILE_COMPRA_API_KEY or source.api_key in config.yaml"
        )


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("TENDER_DIGEST_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.locator = locator or ConfigLocator()
        self.environ = environ
        self._cache: AppConfig | None = None

    def load(self, path: Path | None = None) -> AppConfig:
        if self._cache is not None and path is None:
            return self._cache
        config_path = path or self.locator.config_path()
        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(f"Configuration not found: {config_path}")
            _write_file(config_path, _read_file(template_path()))
        payload = apply_env_overrides(_read_file(config_path), self.environ)
        try:
            config = AppConfig.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValueError(f"Invalid configuration in {config_path}:\n{exc}") from exc
        if path is None:
            self._cache = config
        return config

    def save(self, config: AppConfig, path: Path | None = None) -> Path:
        config_path = path or self.locator.config_path()
        _write_file(config_path, config.model_dump(mode="json"))
        return config_path


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "ENV_OVERRIDES",
    "apply_env_overrides",
    "require_api_key",
    "template_path",
]
