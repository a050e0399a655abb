from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

import yaml

from caststream.errors import InvalidConfigurationError


ENV_PREFIX = "CASTSTREAM_"
CONFIG_ENV = "CASTSTREAM_CONFIG"

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EncoderSettings:
    # Upper bound on how long partial bytes may be held before a forced flush.
    flush_delay_sec: float = 0.01
    # Debounce window for coalescing durable syncs.
    sync_delay_sec: float = 0.25
    sync_enabled: bool = True

    def __post_init__(self) -> None:
        for name in ("flush_delay_sec", "sync_delay_sec"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfigurationError(f"{name} must be a number, got {value!r}")
            if value < 0:
                raise InvalidConfigurationError(f"{name} must be >= 0, got {value}")
        if not isinstance(self.sync_enabled, bool):
            raise InvalidConfigurationError(f"sync_enabled must be a boolean, got {self.sync_enabled!r}")


def parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise InvalidConfigurationError(f"{name} must be a boolean, got {raw!r}")


def parse_float(name: str, raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def settings_from_mapping(cfg: Mapping[str, Any] | None, base: EncoderSettings | None = None) -> EncoderSettings:
    base = base or EncoderSettings()
    if not cfg:
        return base
    if not isinstance(cfg, Mapping):
        raise InvalidConfigurationError("encoder settings must be a mapping")
    known = {item.name for item in fields(EncoderSettings)}
    unknown = sorted(set(cfg) - known)
    if unknown:
        raise InvalidConfigurationError(f"unknown encoder settings: {', '.join(unknown)}")
    return replace(base, **dict(cfg))


def load_config(path: str) -> EncoderSettings:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            content = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise InvalidConfigurationError(f"unable to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise InvalidConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(content, dict):
        raise InvalidConfigurationError(f"config {path} must contain a mapping")
    return settings_from_mapping(content.get("encoder"))


def settings_from_env(environ: Mapping[str, str] | None = None) -> EncoderSettings:
    environ = os.environ if environ is None else environ
    config_path = (environ.get(CONFIG_ENV) or "").strip()
    settings = load_config(config_path) if config_path else EncoderSettings()

    overrides: dict[str, Any] = {}
    for name in ("flush_delay_sec", "sync_delay_sec"):
        env_name = ENV_PREFIX + name.upper()
        raw = environ.get(env_name)
        if raw is not None and raw.strip():
            overrides[name] = parse_float(env_name, raw)
    raw_sync = environ.get(ENV_PREFIX + "SYNC_ENABLED")
    if raw_sync is not None and raw_sync.strip():
        overrides["sync_enabled"] = parse_bool(ENV_PREFIX + "SYNC_ENABLED", raw_sync)
    return replace(settings, **overrides)
