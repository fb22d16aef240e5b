"""Config 单元测试"""

from __future__ import annotations

import pytest
import yaml

from gceimage.core.config import Config, parse_duration
from gceimage.core.exceptions import ConfigError


class TestParseDuration:
    @pytest.mark.parametrize(("value", "expected"), [
        (30, 30.0), (1.5, 1.5), ("45", 45.0), ("30s", 30.0),
        ("5m", 300.0), ("1h", 3600.0), (" 2m ", 120.0),
    ])
    def test_valid(self, value, expected) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["5x", "m", "", "-1s", True])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)


class TestConfig:
    def test_defaults_filled(self, raw_config) -> None:
        raw = dict(raw_config)
        del raw["image_name"]
        del raw["instance_name"]
        cfg = Config.from_dict(raw)
        assert cfg.validate() == []
        assert cfg.image_name.startswith("gceimage-")
        assert cfg.instance_name.startswith("gceimage-")
        assert cfg.machine_type == "n1-standard-1"
        assert cfg.state_timeout_seconds == 300.0

    def test_required_fields(self) -> None:
        with pytest.raises(ConfigError) as exc:
            Config().validate()
        details = exc.value.details
        assert any("project_id" in d for d in details)
        assert any("source_image" in d for d in details)
        assert any("zone" in d for d in details)
        assert "project_id" in str(exc.value)

    def test_later_raw_wins(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"zone": "europe-west1-b"})
        assert cfg.zone == "europe-west1-b"

    def test_unknown_keys_are_warnings(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"colour": "blue"})
        assert cfg.extra == {"colour": "blue"}
        assert cfg.validate() == ["未知配置项: colour"]

    @pytest.mark.parametrize("name", ["Bad-Name", "1image", "image_", "a" * 64, "ends-"])
    def test_invalid_image_name(self, raw_config, name) -> None:
        cfg = Config.from_dict(raw_config, {"image_name": name})
        with pytest.raises(ConfigError, match="构建配置无效"):
            cfg.validate()

    def test_invalid_communicator(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"communicator": "telnet"})
        with pytest.raises(ConfigError) as exc:
            cfg.validate()
        assert any("communicator" in d for d in exc.value.details)

    def test_invalid_timeout(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"state_timeout": "soon"})
        with pytest.raises(ConfigError):
            cfg.validate()

    def test_startup_script_conflict(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {
            "startup_script_file": "s.sh",
            "metadata": {"startup-script": "echo"},
        })
        with pytest.raises(ConfigError):
            cfg.validate()

    def test_omit_external_ip_requires_internal(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"omit_external_ip": True})
        with pytest.raises(ConfigError):
            cfg.validate()
        cfg = Config.from_dict(raw_config, {"omit_external_ip": True, "use_internal_ip": True})
        assert cfg.validate() == []

    def test_provisioners_without_communicator_warns(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"provisioners": ["echo hi"]})
        warnings = cfg.validate()
        assert any("provisioners" in w for w in warnings)

    def test_has_startup_script(self, raw_config) -> None:
        assert Config.from_dict(raw_config).has_startup_script is False
        assert Config.from_dict(
            raw_config, {"startup_script_file": "s.sh"},
        ).has_startup_script is True
        assert Config.from_dict(
            raw_config, {"metadata": {"startup-script": "x"}},
        ).has_startup_script is True

    def test_from_file(self, raw_config, tmp_path) -> None:
        path = tmp_path / "template.yml"
        path.write_text(yaml.dump(raw_config), encoding="utf-8")
        cfg = Config.from_file(str(path), {"disk_size": 20})
        assert cfg.project_id == "demo-project"
        assert cfg.disk_size == 20

    def test_from_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="读取模板失败"):
            Config.from_file(str(tmp_path / "nope.yml"))

    def test_to_dict(self, config) -> None:
        data = config.to_dict()
        assert data["image_name"] == "test-image"
        assert data["communicator"] == "none"


class TestFieldTypes:
    @pytest.mark.parametrize(("override", "field_name"), [
        ({"disk_size": "ten"}, "disk_size"),
        ({"disk_size": True}, "disk_size"),
        ({"metadata": None}, "metadata"),
        ({"image_name": 123}, "image_name"),
        ({"tags": "web"}, "tags"),
        ({"provisioners": ["echo", 1]}, "provisioners"),
        ({"preemptible": "yes"}, "preemptible"),
    ])
    def test_wrong_type_is_config_error(self, raw_config, override, field_name) -> None:
        cfg = Config.from_dict(raw_config, override)
        with pytest.raises(ConfigError) as exc:
            cfg.validate()
        assert any(d.startswith(field_name) for d in exc.value.details)

    def test_all_type_errors_reported(self, raw_config) -> None:
        cfg = Config.from_dict(raw_config, {"disk_size": "ten", "metadata": None})
        with pytest.raises(ConfigError) as exc:
            cfg.validate()
        assert len(exc.value.details) == 2
