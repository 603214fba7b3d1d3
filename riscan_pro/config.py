"""
Configuration module for RiSCAN Pro project geometry.

Handles loading and saving of project geometry from YAML files. The
records defined here are plain parsed values; turning them into a
validated, immutable ``Project`` is done by ``Project.from_config``.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from .errors import ConfigurationInvalidError

logger = logging.getLogger(__name__)

Matrix = List[List[float]]

PINHOLE_BROWN = "pinhole_brown"


@dataclass(frozen=True)
class CameraIntrinsics:
    """Camera intrinsic parameters."""
    fx: float  # Focal length in x (pixels)
    fy: float  # Focal length in y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)
    image_width: int  # Image width in pixels
    image_height: int  # Image height in pixels
    k1: float = 0.0  # Radial distortion coefficient
    k2: float = 0.0  # Radial distortion coefficient
    k3: float = 0.0  # Radial distortion coefficient
    p1: float = 0.0  # Tangential distortion coefficient
    p2: float = 0.0  # Tangential distortion coefficient
    name: str = ""
    model: str = PINHOLE_BROWN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CameraIntrinsics":
        """Build intrinsics from a mapping, defaulting distortion to zero."""
        if not isinstance(data, dict):
            raise ConfigurationInvalidError(f"Camera calibration must be a mapping, got {data!r}")
        try:
            return cls(
                fx=float(data['fx']),
                fy=float(data['fy']),
                cx=float(data['cx']),
                cy=float(data['cy']),
                image_width=int(data['image_width']),
                image_height=int(data['image_height']),
                k1=float(data.get('k1', 0.0)),
                k2=float(data.get('k2', 0.0)),
                k3=float(data.get('k3', 0.0)),
                p1=float(data.get('p1', 0.0)),
                p2=float(data.get('p2', 0.0)),
                name=str(data.get('name', '')),
                model=str(data.get('model', PINHOLE_BROWN)),
            )
        except KeyError as e:
            raise ConfigurationInvalidError(f"Camera calibration is missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationInvalidError(f"Invalid camera calibration value: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'model': self.model,
            'fx': self.fx,
            'fy': self.fy,
            'cx': self.cx,
            'cy': self.cy,
            'k1': self.k1,
            'k2': self.k2,
            'k3': self.k3,
            'p1': self.p1,
            'p2': self.p2,
            'image_width': self.image_width,
            'image_height': self.image_height,
        }


@dataclass(frozen=True)
class ScanConfig:
    """A point-cloud capture. Carries no geometry of its own."""
    name: str


@dataclass(frozen=True)
class ImageConfig:
    """
    A photograph's geometry record.

    Attributes:
        name: Image name, unique within its scan position
        transform: 4x4 mounting matrix, scanner-local (SOCS) → camera-local (CMCS)
        camera: Embedded calibration; None to use the project's camera
    """
    name: str
    transform: Matrix
    camera: Optional[CameraIntrinsics] = None


@dataclass(frozen=True)
class ScanPositionConfig:
    """
    A scan station.

    Attributes:
        name: Station name, unique within the project
        transform: 4x4 SOP matrix, scanner-local (SOCS) → project (PRCS)
        scans: Scans taken at this station, in file order
        images: Photographs taken at this station, in file order
    """
    name: str
    transform: Matrix
    scans: List[ScanConfig] = field(default_factory=list)
    images: List[ImageConfig] = field(default_factory=list)


@dataclass
class ProjectConfig:
    """
    Parsed project geometry.

    Attributes:
        transform: 4x4 POP matrix, project (PRCS) → global (GLCS)
        cameras: Camera calibrations found in the file. A project may only
            have one; the list form exists so a second one can be reported.
        scan_positions: Scan positions in file order
        name: Optional project name
    """
    transform: Matrix
    cameras: List[CameraIntrinsics] = field(default_factory=list)
    scan_positions: List[ScanPositionConfig] = field(default_factory=list)
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        """
        Build a configuration from a parsed mapping.

        A single ``camera`` mapping is accepted as shorthand for a one
        element ``cameras`` list.
        """
        if not isinstance(data, dict):
            raise ConfigurationInvalidError("Project configuration must be a mapping")
        if 'transform' not in data:
            raise ConfigurationInvalidError("Project configuration is missing 'transform'")

        cameras_data = list(data.get('cameras') or [])
        if data.get('camera') is not None:
            cameras_data.insert(0, data['camera'])
        cameras = [CameraIntrinsics.from_dict(c) for c in cameras_data]

        scan_positions = [
            _parse_scan_position(sp) for sp in (data.get('scan_positions') or [])
        ]

        return cls(
            transform=parse_matrix(data['transform'], "project transform"),
            cameras=cameras,
            scan_positions=scan_positions,
            name=str(data.get('name', '')),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "ProjectConfig":
        """
        Load project geometry from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            ProjectConfig with parsed values

        Example YAML structure:
            name: project.RiSCAN
            transform: "1 0 0 0  0 1 0 0  0 0 1 0  0 0 0 1"
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
                    transform: "1 0 0 0  0 1 0 0  0 0 1 0  0 0 0 1"
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationInvalidError(f"Cannot parse {config_path}: {e}") from e

        logger.info(f"Loading project configuration from {config_path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'transform': [list(row) for row in self.transform],
            'cameras': [c.to_dict() for c in self.cameras],
            'scan_positions': [
                {
                    'name': sp.name,
                    'transform': [list(row) for row in sp.transform],
                    'scans': [{'name': s.name} for s in sp.scans],
                    'images': [_image_to_dict(image) for image in sp.images],
                }
                for sp in self.scan_positions
            ],
        }

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")


def parse_matrix(value: Any, what: str) -> Matrix:
    """
    Parse a 4x4 matrix given as nested lists, a flat list of 16 numbers,
    or a whitespace-separated string of 16 numbers (row-major).
    """
    if isinstance(value, str):
        value = value.split()
    try:
        if isinstance(value, (list, tuple)) and value and all(
            isinstance(row, (list, tuple)) for row in value
        ):
            rows = [[float(x) for x in row] for row in value]
        else:
            flat = [float(x) for x in value]
            rows = [flat[i:i + 4] for i in range(0, len(flat), 4)]
    except (TypeError, ValueError) as e:
        raise ConfigurationInvalidError(f"Invalid {what}: {e}") from e

    if len(rows) != 4 or any(len(row) != 4 for row in rows):
        raise ConfigurationInvalidError(f"Invalid {what}: expected a 4x4 matrix")
    return rows


def _parse_scan_position(data: Dict[str, Any]) -> ScanPositionConfig:
    if not isinstance(data, dict) or 'name' not in data:
        raise ConfigurationInvalidError(f"Scan position is missing 'name': {data!r}")
    name = _name(data['name'], "scan position")
    if 'transform' not in data:
        raise ConfigurationInvalidError(f"Scan position {name!r} is missing 'transform'")

    scans = []
    for scan in data.get('scans') or []:
        if not isinstance(scan, dict) or 'name' not in scan:
            raise ConfigurationInvalidError(f"Scan in {name!r} is missing 'name'")
        scans.append(ScanConfig(name=_name(scan['name'], f"scan in {name!r}")))

    images = []
    for image in data.get('images') or []:
        if not isinstance(image, dict) or 'name' not in image:
            raise ConfigurationInvalidError(f"Image in {name!r} is missing 'name'")
        image_name = _name(image['name'], f"image in {name!r}")
        if 'transform' not in image:
            raise ConfigurationInvalidError(
                f"Image {image_name!r} in {name!r} is missing 'transform'"
            )
        camera = image.get('camera')
        images.append(ImageConfig(
            name=image_name,
            transform=parse_matrix(image['transform'], f"mounting transform of {image_name!r}"),
            camera=CameraIntrinsics.from_dict(camera) if camera is not None else None,
        ))

    return ScanPositionConfig(
        name=name,
        transform=parse_matrix(data['transform'], f"transform of scan position {name!r}"),
        scans=scans,
        images=images,
    )


def _name(value: Any, what: str) -> str:
    # Unquoted YAML like 151120_150404 loads as an int and would lose its underscore
    if not isinstance(value, str):
        raise ConfigurationInvalidError(
            f"The {what} name must be a string, got {value!r}; quote it in the YAML file"
        )
    return value


def _image_to_dict(image: ImageConfig) -> Dict[str, Any]:
    data = {
        'name': image.name,
        'transform': [list(row) for row in image.transform],
    }
    if image.camera is not None:
        data['camera'] = image.camera.to_dict()
    return data
