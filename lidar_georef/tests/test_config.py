"""
Tests for configuration loading and validation.
"""

import pytest
import yaml

from lidar_georef.config import GeorefConfig, DEFAULT_CHUNK_SIZE
from lidar_georef.errors import InvalidCalibrationSpec
from lidar_georef.rotations import RotationOrder

CONFIG_YAML = """
georef:
  utm_zone: 6
  time_offset: 0.5
  chunk_size: 250
  limit: 1000
calibration:
  boresight:
    roll: 0.1
    pitch: -0.2
    yaw: 0.3
  lever_arm:
    x: 0.25
    y: -0.5
    z: 1.0
  socs_map: ["-z", "x", "y"]
  rotation_order: ["r3(yaw)", "r2(pitch)", "r1(roll)"]
"""


class TestGeorefConfig:
    """Tests for GeorefConfig."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)
        return path

    def test_from_yaml(self, config_file):
        config = GeorefConfig.from_yaml(str(config_file))

        assert config.utm_zone == 6
        assert config.time_offset == 0.5
        assert config.chunk_size == 250
        assert config.limit == 1000
        assert config.calibration.boresight.pitch == pytest.approx(-0.2)
        assert config.calibration.lever_arm.z == pytest.approx(1.0)
        assert config.calibration.socs_map == ["-z", "x", "y"]
        assert config.calibration.rotation_order == ["r3(yaw)", "r2(pitch)", "r1(roll)"]

    def test_defaults(self):
        config = GeorefConfig.from_dict({'georef': {'utm_zone': 32}})

        assert config.time_offset == 0.0
        assert config.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.limit is None
        assert config.calibration.socs_map == ["x", "y", "z"]
        assert config.validate() == RotationOrder.default()

    def test_yaml_round_trip(self, config_file, tmp_path):
        config = GeorefConfig.from_yaml(str(config_file))
        out_path = tmp_path / "saved.yaml"
        config.to_yaml(str(out_path))

        with open(out_path) as f:
            assert yaml.safe_load(f) == config.to_dict()
        assert GeorefConfig.from_yaml(str(out_path)) == config

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            GeorefConfig.from_yaml(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="utm_zone"):
            GeorefConfig.from_yaml(str(path))

    def test_missing_zone(self):
        with pytest.raises(ValueError, match="utm_zone"):
            GeorefConfig.from_dict({'calibration': {}})

    @pytest.mark.parametrize("georef", [
        {'utm_zone': 6, 'chunk_size': 0},
        {'utm_zone': 6, 'chunk_size': -5},
        {'utm_zone': 6, 'limit': 0},
        {'utm_zone': 6, 'chunk_size': 2.5},
        {'utm_zone': True},
        {'utm_zone': 'six'},
        {'utm_zone': 6, 'time_offset': 'soon'},
    ])
    def test_invalid_values(self, georef):
        with pytest.raises(ValueError):
            GeorefConfig.from_dict({'georef': georef})

    def test_not_a_mapping(self):
        with pytest.raises(ValueError):
            GeorefConfig.from_dict(["georef"])


class TestValidate:
    """Tests for GeorefConfig.validate."""

    def make_config(self, **calibration):
        return GeorefConfig.from_dict({'georef': {'utm_zone': 6}, 'calibration': calibration})

    def test_valid(self):
        order = self.make_config(rotation_order=["-r1(roll)", "r2(pitch)", "r3(yaw)"]).validate()
        assert order.tokens() == ["-r1(roll)", "r2(pitch)", "r3(yaw)"]

    @pytest.mark.parametrize("zone", [0, 61])
    def test_bad_zone(self, zone):
        config = GeorefConfig.from_dict({'georef': {'utm_zone': zone}})
        with pytest.raises(InvalidCalibrationSpec):
            config.validate()

    def test_bad_socs_map(self):
        with pytest.raises(InvalidCalibrationSpec):
            self.make_config(socs_map=["x", "y", "q"]).validate()

    def test_bad_rotation_order(self):
        with pytest.raises(InvalidCalibrationSpec):
            self.make_config(rotation_order=["r3(yaw)", "r2(pitch)", "r9(roll)"]).validate()

    def test_short_rotation_order(self):
        with pytest.raises(InvalidCalibrationSpec):
            self.make_config(rotation_order=["r3(yaw)"]).validate()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
