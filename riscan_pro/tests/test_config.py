"""
Tests for YAML configuration loading.
"""

import pytest

from riscan_pro.config import (
    CameraIntrinsics,
    ProjectConfig,
    parse_matrix,
)
from riscan_pro.errors import ConfigurationInvalidError

SAMPLE_YAML = """
name: project.RiSCAN
transform: "1 0 0 -515000  0 1 0 -5519000  0 0 1 3143000  0 0 0 1"
camera:
  name: Nikon D700
  fx: 1000.0
  fy: 1000.0
  cx: 500.0
  cy: 500.0
  k1: -0.1
  image_width: 1000
  image_height: 1000
scan_positions:
  - name: SP01
    transform: [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]
    scans:
      - name: "151120_150404"
    images:
      - name: SP01 - Image001
        transform: [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]
      - name: SP01 - Image002
        transform: "1 0 0 0  0 1 0 0  0 0 1 0  0 0 0 1"
        camera:
          fx: 2000.0
          fy: 2000.0
          cx: 1000.0
          cy: 1000.0
          image_width: 2000
          image_height: 2000
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "project.yaml"
    path.write_text(SAMPLE_YAML)
    return str(path)


class TestParseMatrix:
    """Tests for the accepted matrix spellings."""

    def test_nested(self):
        rows = parse_matrix([[1, 0, 0, 5], [0, 1, 0, 6], [0, 0, 1, 7], [0, 0, 0, 1]], "m")
        assert rows[0] == [1.0, 0.0, 0.0, 5.0]

    def test_flat(self):
        rows = parse_matrix(list(range(16)), "m")
        assert rows[3] == [12.0, 13.0, 14.0, 15.0]

    def test_text(self):
        rows = parse_matrix("1 0 0 5\n0 1 0 6\n0 0 1 7\n0 0 0 1", "m")
        assert rows[2] == [0.0, 0.0, 1.0, 7.0]

    @pytest.mark.parametrize("value", [
        "1 2 3",
        list(range(15)),
        [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
        "a b c d e f g h i j k l m n o p",
        None,
    ])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationInvalidError):
            parse_matrix(value, "m")


class TestCameraIntrinsics:
    """Tests for camera calibration parsing."""

    def test_distortion_defaults(self):
        camera = CameraIntrinsics.from_dict({
            'fx': 1000, 'fy': 1000, 'cx': 500, 'cy': 500,
            'image_width': 1000, 'image_height': 1000,
        })
        assert (camera.k1, camera.k2, camera.k3, camera.p1, camera.p2) == (0.0,) * 5
        assert camera.model == "pinhole_brown"

    def test_missing_field(self):
        with pytest.raises(ConfigurationInvalidError):
            CameraIntrinsics.from_dict({'fx': 1000, 'fy': 1000, 'cx': 500, 'cy': 500})

    def test_bad_value(self):
        with pytest.raises(ConfigurationInvalidError):
            CameraIntrinsics.from_dict({
                'fx': 'wide', 'fy': 1000, 'cx': 500, 'cy': 500,
                'image_width': 1000, 'image_height': 1000,
            })


class TestProjectConfig:
    """Tests for loading and saving project configuration."""

    def test_from_yaml(self, config_file):
        config = ProjectConfig.from_yaml(config_file)

        assert config.name == "project.RiSCAN"
        assert config.transform[0][3] == -515000.0
        assert len(config.cameras) == 1
        assert config.cameras[0].k1 == -0.1

        sp = config.scan_positions[0]
        assert sp.name == "SP01"
        assert [s.name for s in sp.scans] == ["151120_150404"]
        assert [i.name for i in sp.images] == ["SP01 - Image001", "SP01 - Image002"]
        assert sp.images[0].camera is None
        assert sp.images[1].camera.fx == 2000.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProjectConfig.from_yaml(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("transform: [1, 2\n")
        with pytest.raises(ConfigurationInvalidError):
            ProjectConfig.from_yaml(str(path))

    def test_missing_project_transform(self):
        with pytest.raises(ConfigurationInvalidError):
            ProjectConfig.from_dict({'scan_positions': []})

    def test_missing_scan_position_transform(self):
        with pytest.raises(ConfigurationInvalidError):
            ProjectConfig.from_dict({
                'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1",
                'scan_positions': [{'name': 'SP01'}],
            })

    def test_missing_image_transform(self):
        with pytest.raises(ConfigurationInvalidError):
            ProjectConfig.from_dict({
                'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1",
                'scan_positions': [{
                    'name': 'SP01',
                    'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1",
                    'images': [{'name': 'img'}],
                }],
            })

    @pytest.mark.parametrize("section", [
        "scans:\n      - name: 151120_150404",
        "images:\n      - name: 2015\n        transform: \"1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1\"",
    ])
    def test_unquoted_numeric_names_rejected(self, tmp_path, section):
        path = tmp_path / "unquoted.yaml"
        path.write_text(
            "transform: \"1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1\"\n"
            "scan_positions:\n"
            "  - name: SP01\n"
            "    transform: \"1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1\"\n"
            f"    {section}\n"
        )
        with pytest.raises(ConfigurationInvalidError, match="quote"):
            ProjectConfig.from_yaml(str(path))

    def test_numeric_scan_position_name_rejected(self):
        with pytest.raises(ConfigurationInvalidError):
            ProjectConfig.from_dict({
                'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1",
                'scan_positions': [{'name': 1, 'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1"}],
            })

    def test_camera_and_cameras_are_combined(self):
        camera = {'fx': 1, 'fy': 1, 'cx': 0, 'cy': 0, 'image_width': 1, 'image_height': 1}
        config = ProjectConfig.from_dict({
            'transform': "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1",
            'camera': dict(camera, name='first'),
            'cameras': [dict(camera, name='second')],
        })
        assert [c.name for c in config.cameras] == ['first', 'second']

    def test_save_and_reload(self, config_file, tmp_path):
        config = ProjectConfig.from_yaml(config_file)
        out = tmp_path / "saved.yaml"
        config.to_yaml(str(out))

        assert ProjectConfig.from_yaml(str(out)) == config


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
