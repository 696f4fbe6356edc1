import json
from pathlib import Path

import pytest

from vmixember.config import BridgeConfig, config_from_dict, load_config
from vmixember.errors import ConfigError


def test_defaults_match_deployment():
    cfg = BridgeConfig()
    assert cfg.vmix_host == "localhost"
    assert cfg.vmix_port == 8099
    assert cfg.ember_port == 9000
    assert cfg.retry_delays == (2.0, 4.0, 16.0)
    assert cfg.max_retry_delay == 30.0
    assert cfg.max_line_length is None


def test_from_env_overrides():
    cfg = BridgeConfig.from_env({"VMIX_HOST": "10.0.0.5", "VMIX_PORT": "18099"})
    assert cfg.vmix_host == "10.0.0.5"
    assert cfg.vmix_port == 18099


def test_empty_env_values_are_ignored():
    cfg = BridgeConfig.from_env({"VMIX_HOST": "", "VMIX_PORT": ""})
    assert cfg.vmix_host == "localhost"
    assert cfg.vmix_port == 8099


@pytest.mark.parametrize("env", [{"VMIX_PORT": "abc"}, {"VMIX_PORT": "0"}, {"EMBER_PORT": "70000"}])
def test_invalid_env_rejected(env):
    with pytest.raises(ConfigError):
        BridgeConfig.from_env(env)


def test_load_yaml_then_env(tmp_path: Path):
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "vmix:\n"
        "  host: studio-a\n"
        "  port: 8100\n"
        "input_count: 8\n"
        "reconnect:\n"
        "  delays: [1, 2]\n"
        "  max_delay: 5\n"
        "max_line_length: 65536\n",
        encoding="utf-8",
    )
    cfg = load_config(path, environ={"VMIX_PORT": "8200"})
    assert cfg.vmix_host == "studio-a"
    assert cfg.vmix_port == 8200
    assert cfg.input_count == 8
    assert cfg.retry_delays == (1.0, 2.0)
    assert cfg.max_retry_delay == 5.0
    assert cfg.max_line_length == 65536


def test_load_json(tmp_path: Path):
    path = tmp_path / "bridge.json"
    path.write_text(json.dumps({"vmix": {"host": "studio-b"}}), encoding="utf-8")
    cfg = load_config(path, environ={})
    assert cfg.vmix_host == "studio-b"
    assert cfg.vmix_port == 8099


def test_load_without_path_uses_env():
    cfg = load_config(None, environ={"VMIX_HOST": "studio-c"})
    assert cfg.vmix_host == "studio-c"


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_non_mapping_file_rejected(tmp_path: Path):
    path = tmp_path / "bridge.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_unparseable_file_rejected(tmp_path: Path):
    path = tmp_path / "bridge.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


@pytest.mark.parametrize(
    "raw",
    [
        {"unknown": 1},
        {"reconnect": {"delays": [4, 2]}},
        {"reconnect": {"delays": [2, 40], "max_delay": 30}},
        {"reconnect": {"delays": [0]}},
        {"input_count": 0},
        {"input_count": 33},
        {"vmix": {"port": "x"}},
        {"max_line_length": -1},
    ],
)
def test_invalid_values_rejected(raw):
    with pytest.raises(ConfigError):
        config_from_dict(raw)
