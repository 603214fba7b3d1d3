"""
Tests for the project model: construction from configuration, lookups,
and the end-to-end value query.
"""

import pytest
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from numpy.testing import assert_allclose

from riscan_pro.config import ProjectConfig
from riscan_pro.errors import (
    ConfigurationInvalidError,
    DuplicateCameraError,
    UnknownScanPositionError,
)
from riscan_pro.project import Image, Project, Scan, ScanPosition
from riscan_pro.sampling import ArrayRasterSampler
from riscan_pro.transforms import Frame, RigidTransform

IDENTITY = [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]

CAMERA = {
    'name': 'Nikon D700',
    'fx': 1000.0,
    'fy': 1000.0,
    'cx': 500.0,
    'cy': 500.0,
    'image_width': 1000,
    'image_height': 1000,
}


def project_data(**overrides):
    data = {
        'name': 'project.RiSCAN',
        'transform': IDENTITY,
        'camera': CAMERA,
        'scan_positions': [
            {
                'name': 'SP01',
                'transform': IDENTITY,
                'scans': [{'name': '151120_150404'}],
                'images': [
                    {'name': 'SP01 - Image001', 'transform': IDENTITY},
                    {'name': 'SP01 - Image002', 'transform': IDENTITY},
                ],
            },
            {
                'name': 'SP02',
                'transform': '1 0 0 100  0 1 0 0  0 0 1 0  0 0 0 1',
                'images': [],
            },
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def project():
    return Project.from_config(ProjectConfig.from_dict(project_data()))


@pytest.fixture
def sampler():
    """Raster with a known value at the pixel the reference point hits."""
    raster = np.zeros((1000, 1000))
    raster[525, 550] = 22.49
    return ArrayRasterSampler({'SP01 - Image001': raster, 'SP01 - Image002': raster + 1})


class TestProjectFromConfig:
    """Tests for building a project out of parsed configuration."""

    def test_scan_positions(self, project):
        assert project.scan_position('SP01') is not None
        assert project.scan_position('SP02') is not None
        assert project.scan_position('SP03') is None
        assert [sp.name for sp in project.scan_positions()] == ['SP01', 'SP02']

    def test_image_lookup(self, project):
        image = project.image('SP01', 'SP01 - Image001')
        assert image is not None
        assert image.name == 'SP01 - Image001'
        assert project.image('SP01', 'missing') is None
        assert project.image('SP03', 'SP01 - Image001') is None

    def test_scans(self, project):
        sp = project.scan_position('SP01')
        assert sp.scan('151120_150404') == Scan('151120_150404')
        assert sp.scan('other') is None
        assert project.scan_position('SP02').scans() == ()

    def test_images_share_project_camera(self, project):
        images = project.scan_position('SP01').images()
        assert images[0].camera is project.camera
        assert images[1].camera is project.camera

    def test_embedded_camera(self):
        data = project_data()
        data['scan_positions'][0]['images'][1]['camera'] = dict(CAMERA, fx=2000.0, fy=2000.0)
        project = Project.from_config(ProjectConfig.from_dict(data))

        second = project.image('SP01', 'SP01 - Image002')
        assert second.camera is not project.camera
        assert second.camera.fx == 2000.0

    def test_images_keep_load_order(self):
        data = project_data()
        data['scan_positions'][0]['images'] = [
            {'name': 'b', 'transform': IDENTITY},
            {'name': 'a', 'transform': IDENTITY},
            {'name': 'c', 'transform': IDENTITY},
        ]
        project = Project.from_config(ProjectConfig.from_dict(data))

        assert [i.name for i in project.scan_position('SP01').images()] == ['b', 'a', 'c']

    def test_duplicate_camera(self):
        data = project_data(cameras=[dict(CAMERA, name='second')])
        with pytest.raises(DuplicateCameraError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_duplicate_camera_is_configuration_error(self):
        data = project_data(camera=None, cameras=[CAMERA, CAMERA])
        with pytest.raises(ConfigurationInvalidError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_image_without_any_camera(self):
        data = project_data(camera=None)
        with pytest.raises(ConfigurationInvalidError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_project_without_camera_but_embedded(self):
        data = project_data(camera=None)
        for image in data['scan_positions'][0]['images']:
            image['camera'] = CAMERA
        project = Project.from_config(ProjectConfig.from_dict(data))
        assert project.camera is None

    def test_duplicate_scan_position_name(self):
        data = project_data()
        data['scan_positions'][1]['name'] = 'SP01'
        with pytest.raises(ConfigurationInvalidError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_duplicate_image_name(self):
        data = project_data()
        data['scan_positions'][0]['images'][1]['name'] = 'SP01 - Image001'
        with pytest.raises(ConfigurationInvalidError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_singular_transform(self):
        data = project_data()
        data['scan_positions'][0]['transform'] = [[0] * 4] * 4
        with pytest.raises(ConfigurationInvalidError):
            Project.from_config(ProjectConfig.from_dict(data))

    def test_from_yaml(self, tmp_path):
        path = tmp_path / 'project.yaml'
        ProjectConfig.from_dict(project_data()).to_yaml(str(path))

        project = Project.from_yaml(str(path))
        assert project.name == 'project.RiSCAN'
        assert_allclose(project.scan_position_origin('SP02'), [100, 0, 0])


class TestScanPosition:
    """Tests for scan position construction and frame conversion."""

    def test_origin(self, project):
        assert_allclose(project.scan_position('SP02').origin(), [100, 0, 0])
        assert_allclose(project.scan_position_origin('SP01'), [0, 0, 0])

    def test_socs_glcs_round_trip(self, project):
        sp = project.scan_position('SP02')
        point = np.array([1.0, 2.0, 3.0])
        assert_allclose(sp.socs_to_glcs(point), [101, 2, 3])
        assert_allclose(sp.glcs_to_socs(sp.socs_to_glcs(point)), point)

    def test_empty_name(self):
        with pytest.raises(ConfigurationInvalidError):
            ScanPosition('', RigidTransform.identity(Frame.SOCS, Frame.PRCS))

    def test_wrong_transform_frames(self):
        with pytest.raises(ConfigurationInvalidError):
            ScanPosition('SP01', RigidTransform.identity(Frame.PRCS, Frame.GLCS))

    def test_wrong_mounting_frames(self, project):
        with pytest.raises(ConfigurationInvalidError):
            Image('img', RigidTransform.identity(Frame.SOCS, Frame.PRCS), project.camera)

    def test_image_requires_camera(self):
        with pytest.raises(ConfigurationInvalidError):
            Image('img', RigidTransform.identity(Frame.SOCS, Frame.CMCS), None)

    def test_detached_scan_position(self):
        sp = ScanPosition('SP01', RigidTransform.identity(Frame.SOCS, Frame.PRCS))
        with pytest.raises(ConfigurationInvalidError):
            sp.glcs_to_socs([0, 0, 0])

    def test_cannot_join_two_projects(self, project):
        sp = project.scan_position('SP01')
        with pytest.raises(ConfigurationInvalidError):
            Project(RigidTransform.identity(Frame.PRCS, Frame.GLCS), [sp])


class TestValueAt:
    """End-to-end value queries."""

    def test_reference_point(self, project, sampler):
        assert project.value_at((0.1, 0.05, 2.0), 'SP01', sampler) == 22.49

    def test_reference_pixel(self, project):
        assert project.project_point((0.1, 0.05, 2.0), 'SP01', 'SP01 - Image001') == (550.0, 525.0)

    def test_behind_camera(self, project, sampler):
        assert project.value_at((0.1, 0.05, -1.0), 'SP01', sampler) is None
        assert project.project_point((0.1, 0.05, -1.0), 'SP01', 'SP01 - Image001') is None

    def test_first_image_wins(self, project, sampler):
        # Image002 holds raster + 1 everywhere, so a hit there would differ
        values = {project.value_at((0.1, 0.05, 2.0), 'SP01', sampler) for _ in range(20)}
        assert values == {22.49}

    def test_unknown_scan_position_is_distinct_from_no_projection(self, project, sampler):
        with pytest.raises(UnknownScanPositionError):
            project.value_at((0.1, 0.05, 2.0), 'SP99', sampler)

        # SP02 exists but has no photographs
        assert project.value_at((0.1, 0.05, 2.0), 'SP02', sampler) is None

    def test_unknown_image(self, project):
        with pytest.raises(KeyError):
            project.project_point((0, 0, 1), 'SP01', 'missing')

    def test_concurrent_readers(self, project, sampler):
        rng = np.random.default_rng(3)
        points = np.column_stack([
            rng.uniform(-1, 1, 200), rng.uniform(-1, 1, 200), rng.uniform(-1, 3, 200)
        ])

        sequential = [project.value_at(p, 'SP01', sampler) for p in points]
        with ThreadPoolExecutor(max_workers=8) as pool:
            concurrent = list(pool.map(lambda p: project.value_at(p, 'SP01', sampler), points))

        assert concurrent == sequential


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
