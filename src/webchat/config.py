"""Configuration loading utilities for the chat backend.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable WEBCHAT_CONFIG
3. Fallback to "config/default.yaml"

Whatever the file provides is merged over :data:`DEFAULTS`. Optional
overrides come from environment variables with prefix ``WEBCHAT__``
(e.g., WEBCHAT__COMPLETION__TEMPERATURE=0.5), and the two secrets are read
from ``OPENAI_API_KEY`` and ``GOOGLE_CLIENT_ID``.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "WEBCHAT__"

DEFAULTS: Dict[str, Any] = {
    "server": {"cors_origins": ["*"], "static_dir": "public"},
    "history": {"data_dir": "data"},
    "identity": {"google_client_id": ""},
    "completion": {
        "api_key": "",
        "api_base": "https://api.openai.com/v1",
        "model": "gpt-3.5-turbo",
        "system_prompt": "You are a helpful assistant with a friendly sci-fi persona.",
        "max_tokens": 600,
        "temperature": 0.8,
        "timeout": None,
    },
    "logging": {"level": "INFO"},
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix WEBCHAT__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., WEBCHAT__HISTORY__DATA_DIR -> cfg["history"]["data_dir"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        leaf = parts[-1]
        # Attempt to parse simple types (bool, int, float)
        if value.lower() in {"true", "false"}:
            sub[leaf] = value.lower() == "true"
        else:
            try:
                if "." in value:
                    sub[leaf] = float(value)
                else:
                    sub[leaf] = int(value)
            except ValueError:
                sub[leaf] = value
    return cfg


def _apply_secrets(cfg: Dict[str, Any]) -> Dict[str, Any]:
    api_key = os.environ.get("OPENAI_API_KEY")
    if api_key:
        cfg.setdefault("completion", {})["api_key"] = api_key
    client_id = os.environ.get("GOOGLE_CLIENT_ID")
    if client_id:
        cfg.setdefault("identity", {})["google_client_id"] = client_id
    return cfg


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the chat backend.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``WEBCHAT_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Defaults merged with the file, then env overrides and secrets.
    """
    if path is None:
        path = os.environ.get("WEBCHAT_CONFIG", "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        file_cfg: Dict[str, Any] = {}
    else:
        with path_obj.open("r", encoding="utf-8") as f:
            try:
                file_cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e

        if not isinstance(file_cfg, dict):
            raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    cfg = _deep_merge(DEFAULTS, file_cfg)
    return _apply_secrets(_apply_env_overrides(cfg))
