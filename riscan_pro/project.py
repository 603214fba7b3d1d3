"""
In-memory model of a RiSCAN Pro project.

A Project owns its scan positions; each scan position owns its scans and
images. Everything is built once and only read afterwards, so a single
Project can be queried from any number of threads without locking.

Example usage:
    project = Project.from_yaml("project.yaml")
    origin = project.scan_position_origin("SP01")
    value = project.value_at((x, y, z), "SP01", sampler)
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import logging

import numpy as np

from .camera import CameraModel, PixelCoord
from .config import ProjectConfig
from .errors import (
    ConfigurationInvalidError,
    DuplicateCameraError,
    UnknownScanPositionError,
)
from .frames import FrameGraph, check_frames
from .lookup import RasterSampler, ScanPositionColorLookup
from .projector import project_point
from .transforms import Frame, RigidTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scan:
    """A point-cloud capture; positioned by its scan position."""
    name: str

    def __post_init__(self):
        _check_name(self.name, "scan")


@dataclass(frozen=True, eq=False)
class Image:
    """
    Geometry of a single photograph.

    Attributes:
        name: Unique within the owning scan position
        mounting_transform: SOCS → CMCS
        camera: Calibration, either shared with the project or its own
    """
    name: str
    mounting_transform: RigidTransform
    camera: CameraModel

    def __post_init__(self):
        _check_name(self.name, "image")
        check_frames(self.mounting_transform, Frame.SOCS, Frame.CMCS,
                     f"mounting transform of image {self.name!r}")
        if not isinstance(self.camera, CameraModel):
            raise ConfigurationInvalidError(f"Image {self.name!r} has no camera model")


class ScanPosition:
    """
    A fixed station where scans and photographs were taken.

    The scan position refers back to its project to reach the project
    transform. The reference is set once, when the project is built.
    """

    def __init__(
        self,
        name: str,
        transform: RigidTransform,
        images: Iterable[Image] = (),
        scans: Iterable[Scan] = (),
    ):
        """
        Args:
            name: Station name, unique within the project
            transform: SOP, SOCS → PRCS
            images: Photographs in load order
            scans: Scans in load order
        """
        _check_name(name, "scan position")
        check_frames(transform, Frame.SOCS, Frame.PRCS, f"transform of scan position {name!r}")
        self.name = name
        self.transform = transform
        self._images = _unique_by_name(images, f"image in scan position {name!r}")
        self._scans = _unique_by_name(scans, f"scan in scan position {name!r}")
        self._project: Optional["Project"] = None
        self._lookup: Optional[ScanPositionColorLookup] = None

    def _attach(self, project: "Project") -> None:
        if self._project is not None:
            raise ConfigurationInvalidError(
                f"Scan position {self.name!r} already belongs to a project"
            )
        self._project = project
        self._lookup = ScanPositionColorLookup(self)

    @property
    def project(self) -> "Project":
        if self._project is None:
            raise ConfigurationInvalidError(
                f"Scan position {self.name!r} is not part of a project"
            )
        return self._project

    def images(self) -> Tuple[Image, ...]:
        """Images in load order."""
        return tuple(self._images.values())

    def image(self, name: str) -> Optional[Image]:
        return self._images.get(name)

    def scans(self) -> Tuple[Scan, ...]:
        return tuple(self._scans.values())

    def scan(self, name: str) -> Optional[Scan]:
        return self._scans.get(name)

    def socs_to_glcs(self, point: np.ndarray) -> np.ndarray:
        """
        Converts SOCS coordinates to GLCS coordinates.

        Convert (0, 0, 0) to get the scanner's origin in GLCS.
        """
        return self.project.frames.scan_local_to_global(point, self.name)

    def glcs_to_socs(self, point: np.ndarray) -> np.ndarray:
        """Converts GLCS coordinates to SOCS coordinates."""
        return self.project.frames.global_to_scan_local(point, self.name)

    def origin(self) -> np.ndarray:
        """Scanner position in GLCS."""
        return self.project.frames.scan_position_origin(self.name)

    def lookup(self) -> ScanPositionColorLookup:
        """First-hit lookup over this scan position's images."""
        if self._lookup is None:
            raise ConfigurationInvalidError(
                f"Scan position {self.name!r} is not part of a project"
            )
        return self._lookup

    def color(self, point_glcs: np.ndarray, raster_sampler: RasterSampler) -> Optional[Any]:
        """Value of the first image covering the point, or None."""
        return self.lookup().sample_value(point_glcs, raster_sampler)

    def __repr__(self) -> str:
        return (
            f"ScanPosition(name={self.name!r}, images={len(self._images)}, "
            f"scans={len(self._scans)})"
        )


class Project:
    """
    Top-level owner of a project's geometry.

    Attributes:
        name: Project name (may be empty)
        transform: POP, PRCS → GLCS
        camera: The project's camera calibration, if any
        frames: Frame graph over the project and all scan positions
    """

    def __init__(
        self,
        transform: RigidTransform,
        scan_positions: Iterable[ScanPosition] = (),
        camera: Optional[CameraModel] = None,
        name: str = "",
    ):
        """
        Raises:
            ConfigurationInvalidError: On duplicate scan position names,
                frame mismatches, or a scan position already in a project
        """
        self.name = name
        self.transform = transform
        self.camera = camera
        self._scan_positions = _unique_by_name(scan_positions, "scan position")
        for scan_position in self._scan_positions.values():
            if scan_position._project is not None:
                raise ConfigurationInvalidError(
                    f"Scan position {scan_position.name!r} already belongs to a project"
                )
        self.frames = FrameGraph(
            transform,
            {sp.name: sp.transform for sp in self._scan_positions.values()},
        )
        for scan_position in self._scan_positions.values():
            scan_position._attach(self)

        logger.info(f"Project {name!r} built with {len(self._scan_positions)} scan positions")

    @classmethod
    def from_config(cls, config: ProjectConfig) -> "Project":
        """
        Build a project from parsed configuration.

        Images without an embedded calibration share the project camera.

        Raises:
            DuplicateCameraError: If the configuration has more than one camera
            ConfigurationInvalidError: On any malformed geometry
        """
        if len(config.cameras) > 1:
            raise DuplicateCameraError(
                f"A project may have only one camera calibration, got {len(config.cameras)}"
            )
        camera = CameraModel(config.cameras[0]) if config.cameras else None

        scan_positions = []
        for sp_config in config.scan_positions:
            images = []
            for image_config in sp_config.images:
                if image_config.camera is not None:
                    image_camera = CameraModel(image_config.camera)
                elif camera is not None:
                    image_camera = camera
                else:
                    raise ConfigurationInvalidError(
                        f"Image {image_config.name!r} in {sp_config.name!r} has no camera "
                        f"and the project has no camera calibration"
                    )
                images.append(Image(
                    name=image_config.name,
                    mounting_transform=RigidTransform(
                        image_config.transform, Frame.SOCS, Frame.CMCS
                    ),
                    camera=image_camera,
                ))
            scan_positions.append(ScanPosition(
                name=sp_config.name,
                transform=RigidTransform(sp_config.transform, Frame.SOCS, Frame.PRCS),
                images=images,
                scans=[Scan(s.name) for s in sp_config.scans],
            ))

        return cls(
            transform=RigidTransform(config.transform, Frame.PRCS, Frame.GLCS),
            scan_positions=scan_positions,
            camera=camera,
            name=config.name,
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "Project":
        """Load and build a project from a YAML configuration file."""
        return cls.from_config(ProjectConfig.from_yaml(config_path))

    def scan_positions(self) -> Tuple[ScanPosition, ...]:
        """Scan positions in load order."""
        return tuple(self._scan_positions.values())

    def scan_position(self, name: str) -> Optional[ScanPosition]:
        """Scan position with the provided name, or None."""
        return self._scan_positions.get(name)

    def image(self, scan_position: str, image: str) -> Optional[Image]:
        """Image of the provided name in the specified scan position, or None."""
        sp = self.scan_position(scan_position)
        return sp.image(image) if sp is not None else None

    def _require(self, name: str) -> ScanPosition:
        sp = self._scan_positions.get(name)
        if sp is None:
            raise UnknownScanPositionError(name)
        return sp

    def scan_position_origin(self, name: str) -> np.ndarray:
        """Scanner position of a scan position in GLCS."""
        return self.frames.scan_position_origin(name)

    def project_point(
        self, point_glcs: np.ndarray, scan_position: str, image: str
    ) -> Optional[PixelCoord]:
        """
        Pixel of one image that depicts a global point.

        Raises:
            UnknownScanPositionError: If the scan position does not exist
            KeyError: If the image does not exist in that scan position
        """
        sp = self._require(scan_position)
        img = sp.image(image)
        if img is None:
            raise KeyError(f"Unknown image {image!r} in scan position {scan_position!r}")
        return project_point(point_glcs, sp, img)

    def value_at(
        self,
        point_glcs: np.ndarray,
        scan_position: str,
        raster_sampler: RasterSampler,
    ) -> Optional[Any]:
        """
        Sampled value of the first photograph of a scan position covering a point.

        Args:
            point_glcs: Point (x, y, z) in the global frame
            scan_position: Scan position name
            raster_sampler: Collaborator that reads pixel values

        Returns:
            The sampled value, or None if no photograph covers the point

        Raises:
            UnknownScanPositionError: If the scan position does not exist
        """
        return self._require(scan_position).color(point_glcs, raster_sampler)

    def __repr__(self) -> str:
        return f"Project(name={self.name!r}, scan_positions={list(self._scan_positions)})"


def _check_name(name: str, what: str) -> None:
    if not isinstance(name, str) or not name:
        raise ConfigurationInvalidError(f"A {what} name must be a non-empty string, got {name!r}")


def _unique_by_name(items: Iterable[Any], what: str) -> Mapping[str, Any]:
    by_name: Dict[str, Any] = {}
    for item in items:
        if item.name in by_name:
            raise ConfigurationInvalidError(f"Duplicate {what} name: {item.name!r}")
        by_name[item.name] = item
    return MappingProxyType(by_name)
