"""
RiSCAN Pro project geometry package.

Locates the pixel of a calibrated photograph that depicts a 3D point of a
terrestrial laser scan project, and samples that pixel.

Coordinate System Chain:
    GLCS --POP⁻¹--> PRCS --SOP⁻¹--> SOCS --mounting--> CMCS --camera--> (u, v)

Conventions:
    - 4x4 row-major matrices, column vectors: p' = M @ [x, y, z, 1]^T
    - Camera looks along +Z; image origin at the top-left corner
    - Distortion coefficients in order (k1, k2, k3, p1, p2)
    - Photographs of a scan position are tried in load order; first hit wins
"""

from .errors import (
    RiscanError,
    ConfigurationInvalidError,
    DuplicateCameraError,
    UnknownScanPositionError,
    FrameMismatchError,
)
from .config import (
    ProjectConfig,
    ScanPositionConfig,
    ImageConfig,
    ScanConfig,
    CameraIntrinsics,
)
from .transforms import Frame, RigidTransform, compose, invert, apply
from .camera import CameraModel
from .frames import FrameGraph
from .projector import ImageProjector, project_point
from .lookup import RasterSampler, ScanPositionColorLookup, sample_value
from .project import Project, ScanPosition, Image, Scan
from .sampling import ArrayRasterSampler

__version__ = "0.1.0"
__all__ = [
    "RiscanError",
    "ConfigurationInvalidError",
    "DuplicateCameraError",
    "UnknownScanPositionError",
    "FrameMismatchError",
    "ProjectConfig",
    "ScanPositionConfig",
    "ImageConfig",
    "ScanConfig",
    "CameraIntrinsics",
    "Frame",
    "RigidTransform",
    "compose",
    "invert",
    "apply",
    "CameraModel",
    "FrameGraph",
    "ImageProjector",
    "project_point",
    "RasterSampler",
    "ScanPositionColorLookup",
    "sample_value",
    "Project",
    "ScanPosition",
    "Image",
    "Scan",
    "ArrayRasterSampler",
]
