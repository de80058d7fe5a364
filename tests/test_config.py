import json
import logging

import pytest

from stowage.config.loader import DEFAULT_CONFIG, configure_logging, load_flow_config


def test_packaged_config_loads():
    config = load_flow_config()
    assert config["allocation"]["strategy"] == "first_available"
    assert config["allocation"]["ideal_threshold"] == 0.9
    assert config["io"]["format"] == "csv"


def test_partial_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "flow.json"
    path.write_text(json.dumps({"allocation": {"strategy": "equal_distribution"}}))

    config = load_flow_config(str(path))

    assert config["allocation"]["strategy"] == "equal_distribution"
    assert config["allocation"]["ideal_threshold"] == 0.9
    assert config["logging"] == DEFAULT_CONFIG["logging"]
    # Defaults are not mutated by the merge
    assert DEFAULT_CONFIG["allocation"]["strategy"] == "first_available"


def test_non_object_config_rejected(tmp_path):
    path = tmp_path / "flow.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(TypeError):
        load_flow_config(str(path))


def test_configure_logging_level_override(monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

    configure_logging(DEFAULT_CONFIG, "debug")

    assert calls["level"] == "DEBUG"
    assert calls["format"] == DEFAULT_CONFIG["logging"]["format"]
