"""
csp_collector/services/config_loader.py

Loads and caches collector settings from config/collector.yaml.
Keys missing from the file fall back to built-in defaults, so the service
also starts when no config file is bundled.

CLI validation:
    python -m csp_collector.services.config_loader --validate
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# ---------------------------------------------------------------------------
# Module-level cache — populated on first call, avoids repeated disk I/O.
# ---------------------------------------------------------------------------
_CACHE: Optional[Dict[str, Any]] = None

_DEFAULT_CONFIG_PATH = (
    Path(__file__).resolve().parents[2] / "config" / "collector.yaml"
)

DEFAULTS: Dict[str, Any] = {
    "storage_dir": "csp-reports",
    "max_report_size": 100 * 1024,
    "max_field_length": 2048,
    "top_offenders_limit": 20,
    "rotation_interval_seconds": 24 * 60 * 60,
    "rotation_first_delay_seconds": 60 * 60,
    "trust_forwarded_for": False,
}

_POSITIVE_INT_KEYS = [
    "max_report_size",
    "max_field_length",
    "top_offenders_limit",
    "rotation_interval_seconds",
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_config(force_reload: bool = False) -> Dict[str, Any]:
    """Load and cache collector settings.

    Reads CSP_COLLECTOR_CONFIG_PATH env var if set, otherwise uses the bundled
    config/collector.yaml. An explicitly configured path that does not exist
    raises RuntimeError; a missing bundled file just means defaults. A file
    whose top level is not a mapping always raises RuntimeError.
    """
    global _CACHE
    if _CACHE is not None and not force_reload:
        return _CACHE

    config_path_str = os.environ.get("CSP_COLLECTOR_CONFIG_PATH")
    config_path = Path(config_path_str) if config_path_str else _DEFAULT_CONFIG_PATH

    data: Any = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    elif config_path_str:
        raise RuntimeError(
            f"Collector config not found at: {config_path}. "
            "Unset CSP_COLLECTOR_CONFIG_PATH to use the bundled defaults."
        )

    if not isinstance(data, dict):
        raise RuntimeError(
            f"Collector config at {config_path} must be a YAML mapping at the top level."
        )

    merged = dict(DEFAULTS)
    merged.update(data)

    storage_override = os.environ.get("CSP_COLLECTOR_STORAGE_DIR")
    if storage_override:
        merged["storage_dir"] = storage_override

    _CACHE = merged
    return _CACHE


def get_setting(key: str) -> Any:
    return load_config().get(key, DEFAULTS.get(key))


def storage_dir() -> Path:
    return Path(get_setting("storage_dir"))


# ---------------------------------------------------------------------------
# Validation logic (used by both the CLI and tests)
# ---------------------------------------------------------------------------

def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate a settings dict. Returns a list of error strings.

    Rules:
    - storage_dir must be a non-empty string.
    - Size, limit and interval keys must be positive integers.
    - rotation_first_delay_seconds must be a non-negative integer.
    - trust_forwarded_for must be a boolean.
    - Unknown keys are reported so typos do not go unnoticed.
    """
    errors: List[str] = []

    storage = config.get("storage_dir")
    if not isinstance(storage, str) or not storage.strip():
        errors.append("'storage_dir' must be a non-empty string.")

    for key in _POSITIVE_INT_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"'{key}' must be a positive integer, got {value!r}.")

    delay = config.get("rotation_first_delay_seconds")
    if isinstance(delay, bool) or not isinstance(delay, int) or delay < 0:
        errors.append(f"'rotation_first_delay_seconds' must be a non-negative integer, got {delay!r}.")

    if not isinstance(config.get("trust_forwarded_for"), bool):
        errors.append("'trust_forwarded_for' must be true or false.")

    for key in config:
        if key not in DEFAULTS:
            errors.append(f"Unknown setting '{key}'.")

    return errors


# ---------------------------------------------------------------------------
# CLI entry point: python -m csp_collector.services.config_loader --validate
# ---------------------------------------------------------------------------

def _main() -> None:
    if "--validate" not in sys.argv:
        print("Usage: python -m csp_collector.services.config_loader --validate", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(force_reload=True)
    except (RuntimeError, yaml.YAMLError) as exc:
        print(f"FAIL  Config load error: {exc}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)

    print(f"Storage directory: {config.get('storage_dir')}")
    print(f"Settings checked: {', '.join(sorted(DEFAULTS))}")

    if errors:
        for err in errors:
            print(f"FAIL  {err}", file=sys.stderr)
        sys.exit(1)

    print("OK    All checks passed.")


if __name__ == "__main__":
    _main()
