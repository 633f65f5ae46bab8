from __future__ import annotations

from pathlib import Path

import pytest

from tests.fakes import FakeRegistry
from wslenv.domain.errors import ConfigError
from wslenv.infrastructure.config import WslEnvConfig, load_config
from wslenv.infrastructure.wiring import build_services


@pytest.mark.core
def test_defaults_without_file_or_env(tmp_path: Path):
    config = load_config(tmp_path, env={})
    assert config == WslEnvConfig()
    assert config.layout(tmp_path).backing_disk == tmp_path / "local-data" / "wsl" / "ext4.vhdx"


@pytest.mark.core
def test_yaml_file_in_install_root_is_picked_up(tmp_path: Path):
    (tmp_path / "wslenv.yaml").write_text("base_name: devbox\nmax_name_attempts: 7\n", encoding="utf-8")
    config = load_config(tmp_path, env={})
    assert config.base_name == "devbox"
    assert config.max_name_attempts == 7


@pytest.mark.core
def test_precedence_yaml_then_env_then_overrides(tmp_path: Path):
    (tmp_path / "wslenv.yaml").write_text("base_name: fromyaml\nwsl_executable: yaml.exe\n", encoding="utf-8")
    env = {"WSLENV_BASE_NAME": "fromenv", "WSLENV_MAX_NAME_ATTEMPTS": "12"}

    config = load_config(tmp_path, env=env, overrides={"base_name": "fromflag", "local_data_dir": None})

    assert config.base_name == "fromflag"
    assert config.max_name_attempts == 12
    assert config.wsl_executable == "yaml.exe"
    assert config.local_data_dir == "local-data"


@pytest.mark.core
def test_config_path_from_env(tmp_path: Path):
    other = tmp_path / "cfg" / "alt.yaml"
    other.parent.mkdir()
    other.write_text("local_data_dir: data\n", encoding="utf-8")
    config = load_config(tmp_path, env={"WSLENV_CONFIG": str(other)})
    assert config.local_data_dir == "data"


@pytest.mark.core
def test_empty_yaml_file_means_defaults(tmp_path: Path):
    (tmp_path / "wslenv.yaml").write_text("", encoding="utf-8")
    assert load_config(tmp_path, env={}) == WslEnvConfig()


@pytest.mark.core
@pytest.mark.parametrize(
    "content",
    [
        "unknown_key: 1\n",
        "max_name_attempts: many\n",
        "max_name_attempts: 0\n",
        "max_name_attempts: true\n",
        "base_name: ''\n",
        "base_name: 'bad name'\n",
        "- a\n- b\n",
        "base_name: [unclosed\n",
        "local_data_dir: ../outside\n",
        "local_data_dir: data/../../x\n",
        "local_data_dir: /var/lib/wslenv\n",
        "local_data_dir: 'C:\\\\data'\n",
        "state_file_name: sub/state.json\n",
        "archive_file_name: ..\n",
        "disk_file_name: other.vhdx\n",
    ],
)
def test_invalid_yaml_values_raise_config_error(tmp_path: Path, content: str):
    (tmp_path / "wslenv.yaml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path, env={})


@pytest.mark.core
def test_explicit_missing_config_file_is_an_error(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(tmp_path, config_path=tmp_path / "nope.yaml", env={})


@pytest.mark.core
def test_invalid_env_value_is_an_error(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(tmp_path, env={"WSLENV_MAX_NAME_ATTEMPTS": "-3"})


@pytest.mark.core
def test_build_services_wires_layout_and_store(tmp_path: Path):
    registry = FakeRegistry()
    services = build_services(tmp_path / "App", env={}, registry=registry)

    assert services.registry is registry
    assert services.layout.install_root == (tmp_path / "App").absolute()
    assert services.store.path == services.layout.state_file


@pytest.mark.core
def test_nested_relative_local_data_dir_is_accepted(tmp_path: Path):
    (tmp_path / "wslenv.yaml").write_text("local_data_dir: data/wslenv\n", encoding="utf-8")
    config = load_config(tmp_path, env={})
    layout = config.layout(tmp_path)
    assert layout.contains(layout.backing_disk)
