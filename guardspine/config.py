"""
GuardSpine — Configuration Snapshot

Immutable configuration read from the process environment, optionally
layered over a YAML file. A fresh snapshot can be derived at any time;
identical environments produce equal snapshots.

Priority (highest wins):
  1. GUARDSPINE_* environment variables
  2. YAML file named by GUARDSPINE_CONFIG_FILE (keys are field names)
  3. Built-in defaults

Environment variables:
    GUARDSPINE_API_URL         — API base URL (default: http://localhost:8000)
    GUARDSPINE_API_KEY         — bearer token for API auth
    GUARDSPINE_MODE            — enforce | audit | off (default: audit)
    GUARDSPINE_RISK_THRESHOLD  — escalation level that blocks (default: L3)
    GUARDSPINE_RUBRIC_PACK     — rubric pack id (default: nomotic)
    GUARDSPINE_LOG_LEVEL       — debug | info | warn | error (default: info)
    GUARDSPINE_CLASSIFICATION  — auto | L0..L4 forced classification
    GUARDSPINE_BACKEND         — auto | litellm | openrouter | ollama
    GUARDSPINE_MODEL           — LLM model name routed to the backend
    GUARDSPINE_CALLBACK_URL    — approval / escalation webhook URL

Usage:
    from guardspine.config import GuardSpineConfig

    cfg = GuardSpineConfig.from_env()
    if cfg.mode == "off":
        ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping

import yaml

logger = logging.getLogger("guardspine.config")

MODES = ("enforce", "audit", "off")
LOG_LEVELS = ("debug", "info", "warn", "error")
ESCALATION_LEVELS = ("L0", "L1", "L2", "L3", "L4")
CLASSIFICATIONS = ("auto",) + ESCALATION_LEVELS
BACKENDS = ("auto", "litellm", "openrouter", "ollama")

CONFIG_FILE_ENV = "GUARDSPINE_CONFIG_FILE"
CALLBACK_URL_ENV = "GUARDSPINE_CALLBACK_URL"

# field name → environment variable
ENV_VARS = {
    "api_url": "GUARDSPINE_API_URL",
    "api_key": "GUARDSPINE_API_KEY",
    "mode": "GUARDSPINE_MODE",
    "risk_threshold": "GUARDSPINE_RISK_THRESHOLD",
    "rubric_pack": "GUARDSPINE_RUBRIC_PACK",
    "log_level": "GUARDSPINE_LOG_LEVEL",
    "classification": "GUARDSPINE_CLASSIFICATION",
    "backend": "GUARDSPINE_BACKEND",
    "model": "GUARDSPINE_MODEL",
    "callback_url": CALLBACK_URL_ENV,
}

# field name → allowed values
_CHOICES = {
    "mode": MODES,
    "risk_threshold": ESCALATION_LEVELS,
    "log_level": LOG_LEVELS,
    "classification": CLASSIFICATIONS,
    "backend": BACKENDS,
}


@dataclass(frozen=True)
class GuardSpineConfig:
    """One immutable snapshot of the hook configuration."""
    api_url: str = "http://localhost:8000"
    api_key: str = ""
    mode: str = "audit"
    risk_threshold: str = "L3"
    rubric_pack: str = "nomotic"
    log_level: str = "info"
    classification: str = "auto"
    backend: str = "auto"
    model: str = ""
    callback_url: str = ""

    def __post_init__(self):
        defaults = {f.name: f.default for f in fields(self)}
        for name, allowed in _CHOICES.items():
            value = getattr(self, name)
            if value not in allowed:
                logger.warning(
                    "Ignoring invalid %s=%r (allowed: %s), using %r",
                    name, value, ", ".join(allowed), defaults[name],
                )
                object.__setattr__(self, name, defaults[name])
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GuardSpineConfig:
        """Build a snapshot from the environment (and the optional YAML file)."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        config_file = env.get(CONFIG_FILE_ENV, "")
        if config_file:
            values.update(_load_config_file(config_file))

        for name, var in ENV_VARS.items():
            # Empty strings count as unset
            raw = env.get(var)
            if raw:
                values[name] = raw

        return cls(**values)

    @property
    def enabled(self) -> bool:
        return self.mode != "off"

    @property
    def enforcing(self) -> bool:
        return self.mode == "enforce"

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        if redact and d["api_key"]:
            d["api_key"] = "***"
        return d


def _load_config_file(path: str) -> dict[str, Any]:
    """
    Load a YAML mapping of config field names.
    Unknown keys and unreadable files are logged and skipped.
    """
    known = set(ENV_VARS)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, ignored", path)
        return {}

    values = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Unknown config key %r in %s", key, path)
            continue
        if value is None:
            continue
        values[key] = str(value)
    logger.debug("Loaded config file: %s (%d keys)", path, len(values))
    return values


def current_callback_url(environ: Mapping[str, str] | None = None) -> str:
    """Callback URL as configured at call time."""
    env = os.environ if environ is None else environ
    return env.get(CALLBACK_URL_ENV, "")
