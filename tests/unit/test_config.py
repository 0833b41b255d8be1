"""Unit tests for KEL103 connection settings."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from kel103.config import LoadConfig, _get_search_paths, find_config, load_config


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults(self) -> None:
        config = LoadConfig()
        assert config.port == ""
        assert config.baud_rate == 9600
        assert config.timeout == 1.0
        assert config.model == "KEL103"
        assert config.backend == "serial"
        assert config.source_path is None

    def test_frozen(self) -> None:
        config = LoadConfig(port="/dev/ttyACM0")
        with pytest.raises(AttributeError):
            config.port = "COM3"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"baud_rate": 0},
            {"timeout": 0.0},
            {"model": ""},
            {"backend": "udp"},
        ],
    )
    def test_invalid(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            LoadConfig(**kwargs)  # type: ignore[arg-type]


class TestFromYaml:
    def test_full(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.yaml",
            """
kel103:
  port: "/dev/ttyACM0"
  baud_rate: 115200
  timeout: 0.5
  model: "KEL103"
  backend: "visa"
""",
        )
        config = LoadConfig.from_yaml(path)
        assert config.port == "/dev/ttyACM0"
        assert config.baud_rate == 115200
        assert config.timeout == 0.5
        assert config.backend == "visa"
        assert config.source_path == path

    def test_partial_uses_defaults(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", "kel103:\n  port: COM3\n")
        config = LoadConfig.from_yaml(path)
        assert config.port == "COM3"
        assert config.baud_rate == 9600

    def test_empty_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", "")
        assert LoadConfig.from_yaml(path) == LoadConfig(source_path=path)

    def test_section_not_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", "kel103: [1, 2]\n")
        with pytest.raises(ValueError, match="mapping"):
            LoadConfig.from_yaml(path)

    def test_top_level_not_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", "- port\n")
        with pytest.raises(ValueError, match="mapping"):
            LoadConfig.from_yaml(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.yaml", "kel103: {port: [\n")
        with pytest.raises(yaml.YAMLError):
            LoadConfig.from_yaml(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            LoadConfig.from_yaml(tmp_path / "nope.yaml")


class TestSearch:
    def test_env_path_first(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("KEL103_CONFIG_PATH", f"{tmp_path / 'a'}:{tmp_path / 'b'}")
        paths = _get_search_paths()
        assert paths[0] == tmp_path / "a"
        assert paths[1] == tmp_path / "b"
        assert paths[-1] == Path("/etc/kel103")

    def test_find_first_match(self, tmp_path: Path) -> None:
        _write(tmp_path / "b" / "config.yml", "kel103: {}\n")
        expected = _write(tmp_path / "a" / "config.yaml", "kel103: {}\n")
        assert find_config([tmp_path / "missing", tmp_path / "a", tmp_path / "b"]) == expected

    def test_yml_extension(self, tmp_path: Path) -> None:
        expected = _write(tmp_path / "config.yml", "kel103: {}\n")
        assert find_config([tmp_path]) == expected

    def test_not_found(self, tmp_path: Path) -> None:
        assert find_config([tmp_path]) is None
        assert load_config(search_paths=[tmp_path]) is None

    def test_load_from_search_path(self, tmp_path: Path) -> None:
        _write(tmp_path / "config.yaml", "kel103:\n  port: /dev/ttyUSB0\n")
        config = load_config(search_paths=[tmp_path])
        assert config is not None
        assert config.port == "/dev/ttyUSB0"

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "bench.yaml", "kel103:\n  baud_rate: 57600\n")
        config = load_config(path)
        assert config is not None
        assert config.baud_rate == 57600
