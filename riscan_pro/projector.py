"""
Projection of global points into one photograph.

Transformation chain for a single image:
    GLCS → SOCS (scan position frame graph) → CMCS (mounting) → (u, v) (camera)
"""

import numpy as np
from typing import TYPE_CHECKING, Optional
import logging

from .camera import PixelCoord

if TYPE_CHECKING:
    from .project import Image, ScanPosition

logger = logging.getLogger(__name__)


class ImageProjector:
    """
    Maps scanner-local points to pixels of one image.

    Combines the image's mounting transform (SOCS → CMCS) with its camera
    model. Holds no state beyond the immutable image it wraps.
    """

    def __init__(self, image: "Image"):
        self.image = image
        self.mounting_transform = image.mounting_transform
        self.camera = image.camera

    @property
    def name(self) -> str:
        return self.image.name

    def to_camera(self, point_socs: np.ndarray) -> np.ndarray:
        """Scanner-local point(s) to camera-local point(s)."""
        return self.mounting_transform.apply(point_socs)

    def project_scan_local(self, point_socs: np.ndarray) -> Optional[PixelCoord]:
        """
        Project a scanner-local point into the image.

        Returns:
            (u, v) if the point is in front of the camera and inside the
            raster, otherwise None
        """
        return self.camera.project(self.to_camera(point_socs))

    def project(self, point_glcs: np.ndarray, scan_position: "ScanPosition") -> Optional[PixelCoord]:
        """Project a global point, using the scan position's frame chain."""
        return self.project_scan_local(scan_position.glcs_to_socs(point_glcs))


def project_point(
    point_glcs: np.ndarray,
    scan_position: "ScanPosition",
    image: "Image",
) -> Optional[PixelCoord]:
    """
    Pixel of ``image`` that depicts a global point.

    Args:
        point_glcs: Point (x, y, z) in the global frame
        scan_position: Scan position that owns the image
        image: Image to project into

    Returns:
        (u, v) pixel coordinates, or None if the point is behind the camera
        or outside the image
    """
    return ImageProjector(image).project(point_glcs, scan_position)
