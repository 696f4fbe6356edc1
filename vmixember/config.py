"""Bridge configuration: defaults, config files and environment overrides."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from vmixember.errors import ConfigError

ENV_VMIX_HOST = "VMIX_HOST"
ENV_VMIX_PORT = "VMIX_PORT"
ENV_EMBER_PORT = "EMBER_PORT"

# vMix reports at most this many inputs in a tally string
MAX_INPUT_COUNT = 32


@dataclass(slots=True)
class BridgeConfig:
    """Top-level configuration for the bridge process."""

    vmix_host: str = "localhost"
    vmix_port: int = 8099
    ember_port: int = 9000
    input_count: int = 32
    retry_delays: Tuple[float, ...] = field(default=(2.0, 4.0, 16.0))
    max_retry_delay: float = 30.0
    max_line_length: Optional[int] = None

    def validate(self) -> None:
        if not self.vmix_host:
            raise ConfigError("vMix host must not be empty")
        for name in ("vmix_port", "ember_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ConfigError(f"{name} out of range: {port}")
        if not 1 <= self.input_count <= MAX_INPUT_COUNT:
            raise ConfigError(f"input_count out of range: {self.input_count}")
        if any(d <= 0 for d in self.retry_delays) or self.max_retry_delay <= 0:
            raise ConfigError("Retry delays must be positive")
        if list(self.retry_delays) != sorted(self.retry_delays):
            raise ConfigError("Retry delays must not decrease")
        if self.retry_delays and self.max_retry_delay < self.retry_delays[-1]:
            raise ConfigError("max_retry_delay must not be shorter than the last retry delay")
        if self.max_line_length is not None and self.max_line_length <= 0:
            raise ConfigError("max_line_length must be positive")

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        """Return a copy with VMIX_HOST / VMIX_PORT / EMBER_PORT applied."""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        if env.get(ENV_VMIX_HOST):
            overrides["vmix_host"] = env[ENV_VMIX_HOST]
        if env.get(ENV_VMIX_PORT):
            overrides["vmix_port"] = _parse_int(ENV_VMIX_PORT, env[ENV_VMIX_PORT])
        if env.get(ENV_EMBER_PORT):
            overrides["ember_port"] = _parse_int(ENV_EMBER_PORT, env[ENV_EMBER_PORT])
        config = replace(self, **overrides)
        config.validate()
        return config

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        return cls().with_env(environ)


def _parse_int(name: str, text: Any) -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {text!r}") from None


def config_from_dict(raw: Mapping[str, Any]) -> BridgeConfig:
    """Build a config from a parsed mapping; unknown keys are rejected."""
    vmix = dict(raw.get("vmix", {}) or {})
    reconnect = dict(raw.get("reconnect", {}) or {})
    known = {"vmix", "reconnect", "ember_port", "input_count", "max_line_length"}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    defaults = BridgeConfig()
    max_line_length = raw.get("max_line_length")
    try:
        config = BridgeConfig(
            vmix_host=str(vmix.get("host", defaults.vmix_host)),
            vmix_port=_parse_int("vmix.port", vmix.get("port", defaults.vmix_port)),
            ember_port=_parse_int("ember_port", raw.get("ember_port", defaults.ember_port)),
            input_count=_parse_int("input_count", raw.get("input_count", defaults.input_count)),
            retry_delays=tuple(float(d) for d in reconnect.get("delays", defaults.retry_delays)),
            max_retry_delay=float(reconnect.get("max_delay", defaults.max_retry_delay)),
            max_line_length=(
                _parse_int("max_line_length", max_line_length) if max_line_length is not None else None
            ),
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"Invalid configuration value: {e}") from e
    config.validate()
    return config


def load_config(
    path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BridgeConfig:
    """Load a YAML/JSON config file (if given), then apply environment overrides."""
    if path is None:
        return BridgeConfig.from_env(environ)

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text) or {}
        else:
            raw = json.loads(text or "{}")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse {file_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be an object/dict")

    return config_from_dict(raw).with_env(environ)
