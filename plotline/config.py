"""Runtime configuration (semantic matcher connection, matching thresholds).

Resolution order: built-in defaults, then a JSON file (the `path`
argument or `PLOTLINE_CONFIG`), then `PLOTLINE_MATCHER_*` environment
variables. Entry points load `.env` with python-dotenv before calling
`get_config()`.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from plotline.llm import HttpLLM
from plotline.matcher.semantic import LLMSemanticMatcher

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "matcher": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "openai",
        "model": "",
        "timeout": 30.0,
    },
    "min_confidence": 0.7,
    "min_keyword_score": 1,
    "max_steps": 200,
}

_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "PLOTLINE_MATCHER_URL": ("provider_url", str),
    "PLOTLINE_MATCHER_API_KEY": ("api_key", str),
    "PLOTLINE_MATCHER_FORMAT": ("provider_format", str),
    "PLOTLINE_MATCHER_MODEL": ("model", str),
    "PLOTLINE_MATCHER_TIMEOUT": ("timeout", float),
}


class ConfigError(ValueError):
    """Raised when the config file or an override cannot be read."""


def _config_path(path: Path | str | None) -> Path | None:
    if path is not None:
        return Path(path)
    env = os.getenv("PLOTLINE_CONFIG", "")
    return Path(env) if env else None


def get_config(path: Path | str | None = None) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = {
        "matcher": dict(_CONFIG_DEFAULTS["matcher"]),
        "min_confidence": _CONFIG_DEFAULTS["min_confidence"],
        "min_keyword_score": _CONFIG_DEFAULTS["min_keyword_score"],
        "max_steps": _CONFIG_DEFAULTS["max_steps"],
    }

    config_path = _config_path(path)
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            stored = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
        if isinstance(stored.get("matcher"), dict):
            config["matcher"].update(stored["matcher"])
        for key in ("min_confidence", "min_keyword_score", "max_steps"):
            if key in stored:
                config[key] = stored[key]

    for env, (key, cast) in _ENV_OVERRIDES.items():
        value = os.getenv(env)
        if value is None or value == "":
            continue
        try:
            config["matcher"][key] = cast(value)
        except ValueError as e:
            raise ConfigError(f"{env}={value!r} is not a valid {cast.__name__}") from e

    return config


def build_semantic_matcher(config: dict[str, Any]) -> LLMSemanticMatcher | None:
    """LLM-backed semantic matcher, or None when no provider is configured."""
    matcher = config.get("matcher") or {}
    url = matcher.get("provider_url", "")
    if not url:
        logger.debug("no matcher provider configured, semantic fallback disabled")
        return None
    llm = HttpLLM(
        provider_url=url,
        api_key=matcher.get("api_key", ""),
        provider_format=matcher.get("provider_format", "openai"),
        model=matcher.get("model", ""),
        timeout=float(matcher.get("timeout", 30.0)),
    )
    return LLMSemanticMatcher(llm)
