import json
import logging
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "allocation": {"strategy": "first_available", "ideal_threshold": 0.9},
    "io": {"format": "csv"},
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        "datefmt": "%H:%M:%S",
    },
}


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_flow_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the flow runtime configuration.
    If no path is provided, looks for flow_config.json in the config directory.
    Keys missing from the file fall back to DEFAULT_CONFIG.
    """
    if config_path is None:
        # Default to the file next to this script
        final_path = Path(__file__).parent / "flow_config.json"
    else:
        final_path = Path(config_path)

    with open(final_path) as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return _merge(DEFAULT_CONFIG, data)


def configure_logging(config: dict[str, Any], level: str | None = None) -> None:
    """Apply the ``logging`` section via logging.basicConfig."""
    log_config = config.get("logging", {})
    logging.basicConfig(
        level=(level or log_config.get("level", "INFO")).upper(),
        format=log_config.get("format", DEFAULT_CONFIG["logging"]["format"]),
        datefmt=log_config.get("datefmt", DEFAULT_CONFIG["logging"]["datefmt"]),
    )
