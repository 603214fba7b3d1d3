"""
Camera model module for projecting 3D points to image coordinates.

Implements the pinhole camera model with Brown-Conrady lens distortion.

Coordinate System:
    - Camera frame (CMCS): looking along +Z, points with Z <= 0 are behind
    - Image frame: u-right, v-down, origin at the top-left corner of the
      raster; pixel i covers [i, i + 1)

Projection Model:
    1. Perspective projection: x' = X/Z, y' = Y/Z
    2. Distortion: apply radial (k1, k2, k3) and tangential (p1, p2) terms
    3. Pixel mapping: u = fx*x'' + cx, v = fy*y'' + cy
    4. Bounds: keep only 0 <= u < width and 0 <= v < height
"""

import numpy as np
from typing import Optional, Tuple
import logging

from .config import CameraIntrinsics, PINHOLE_BROWN
from .errors import ConfigurationInvalidError

logger = logging.getLogger(__name__)

PixelCoord = Tuple[float, float]


class CameraModel:
    """
    Camera projection model implementing pinhole projection with distortion.

    The distortion model follows OpenCV conventions:
        - Radial distortion: k1, k2, k3
        - Tangential distortion: p1, p2

    Distortion equations (applied to normalized coordinates x', y'):
        r² = x'² + y'²
        x'' = x'(1 + k1*r² + k2*r⁴ + k3*r⁶) + 2*p1*x'*y' + p2*(r² + 2*x'²)
        y'' = y'(1 + k1*r² + k2*r⁴ + k3*r⁶) + p1*(r² + 2*y'²) + 2*p2*x'*y'

    Instances are immutable once built and may be shared between images.
    """

    __slots__ = (
        "intrinsics", "fx", "fy", "cx", "cy",
        "k1", "k2", "k3", "p1", "p2",
        "image_width", "image_height", "has_distortion",
    )

    def __init__(self, intrinsics: CameraIntrinsics):
        """
        Initialize camera model with intrinsic parameters.

        Args:
            intrinsics: Camera intrinsic parameters

        Raises:
            ConfigurationInvalidError: If focal lengths or image dimensions
                are not positive, or the model tag is unsupported
        """
        if intrinsics.model != PINHOLE_BROWN:
            raise ConfigurationInvalidError(f"Unsupported camera model: {intrinsics.model!r}")
        if not (intrinsics.fx > 0 and intrinsics.fy > 0):
            raise ConfigurationInvalidError(
                f"Focal lengths must be positive, got fx={intrinsics.fx}, fy={intrinsics.fy}"
            )
        if intrinsics.image_width <= 0 or intrinsics.image_height <= 0:
            raise ConfigurationInvalidError(
                f"Image dimensions must be positive, got "
                f"{intrinsics.image_width}x{intrinsics.image_height}"
            )
        values = [
            intrinsics.fx, intrinsics.fy, intrinsics.cx, intrinsics.cy,
            intrinsics.k1, intrinsics.k2, intrinsics.k3, intrinsics.p1, intrinsics.p2,
        ]
        if not np.all(np.isfinite(values)):
            raise ConfigurationInvalidError("Camera calibration contains non-finite values")

        self.intrinsics = intrinsics
        self.fx = intrinsics.fx
        self.fy = intrinsics.fy
        self.cx = intrinsics.cx
        self.cy = intrinsics.cy

        # Distortion coefficients
        self.k1 = intrinsics.k1
        self.k2 = intrinsics.k2
        self.k3 = intrinsics.k3
        self.p1 = intrinsics.p1
        self.p2 = intrinsics.p2

        # Image dimensions
        self.image_width = intrinsics.image_width
        self.image_height = intrinsics.image_height

        # All-zero coefficients reduce to the plain pinhole model
        self.has_distortion = any(c != 0.0 for c in self.distortion)

        logger.debug(f"Camera model initialized: fx={self.fx}, fy={self.fy}")
        logger.debug(f"Principal point: ({self.cx}, {self.cy})")
        logger.debug(f"Distortion enabled: {self.has_distortion}")

    @classmethod
    def pinhole(
        cls, fx: float, fy: float, cx: float, cy: float, width: int, height: int
    ) -> "CameraModel":
        """Distortion-free camera."""
        return cls(CameraIntrinsics(
            fx=fx, fy=fy, cx=cx, cy=cy, image_width=width, image_height=height
        ))

    @property
    def name(self) -> str:
        return self.intrinsics.name

    @property
    def distortion(self) -> Tuple[float, float, float, float, float]:
        """Distortion coefficients in fixed order (k1, k2, k3, p1, p2)."""
        return (self.k1, self.k2, self.k3, self.p1, self.p2)

    def in_bounds(self, u: float, v: float) -> bool:
        return 0 <= u < self.image_width and 0 <= v < self.image_height

    def project(self, point_camera: np.ndarray) -> Optional[PixelCoord]:
        """
        Project a 3D point in camera frame to image coordinates.

        Args:
            point_camera: 3D point in camera frame

        Returns:
            (u, v) pixel coordinates, or None if the point is behind the
            camera plane or falls outside the raster
        """
        X, Y, Z = (float(c) for c in point_camera)

        if not Z > 0:
            logger.debug(f"Point behind camera: Z={Z}")
            return None

        # Perspective projection to normalized coordinates
        x_norm = X / Z
        y_norm = Y / Z

        if self.has_distortion:
            x_dist, y_dist = self._apply_distortion(x_norm, y_norm)
        else:
            x_dist, y_dist = x_norm, y_norm

        u = self.fx * x_dist + self.cx
        v = self.fy * y_dist + self.cy

        if not self.in_bounds(u, v):
            logger.debug(f"Projection ({u:.2f}, {v:.2f}) outside "
                         f"{self.image_width}x{self.image_height} image")
            return None

        return u, v

    def _apply_distortion(self, x_norm, y_norm):
        """
        Apply lens distortion to normalized coordinates.

        Works on scalars and on numpy arrays alike.

        Args:
            x_norm: Normalized x coordinate (X/Z)
            y_norm: Normalized y coordinate (Y/Z)

        Returns:
            Distorted (x, y) normalized coordinates
        """
        r2 = x_norm ** 2 + y_norm ** 2
        r4 = r2 ** 2
        r6 = r2 ** 3

        radial = 1 + self.k1 * r2 + self.k2 * r4 + self.k3 * r6

        x_tangential = 2 * self.p1 * x_norm * y_norm + self.p2 * (r2 + 2 * x_norm ** 2)
        y_tangential = self.p1 * (r2 + 2 * y_norm ** 2) + 2 * self.p2 * x_norm * y_norm

        x_dist = x_norm * radial + x_tangential
        y_dist = y_norm * radial + y_tangential

        return x_dist, y_dist

    def project_points_batch(
        self, points_camera: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Project multiple 3D points to image coordinates.

        Args:
            points_camera: Nx3 array of camera frame coordinates

        Returns:
            Tuple of:
                - u_coords: N-element array of u coordinates (NaN where invalid)
                - v_coords: N-element array of v coordinates (NaN where invalid)
                - valid: N-element boolean array indicating valid projections
        """
        points = np.atleast_2d(np.asarray(points_camera, dtype=np.float64))
        n_points = len(points)
        u_coords = np.full(n_points, np.nan)
        v_coords = np.full(n_points, np.nan)

        front = points[:, 2] > 0
        if not np.any(front):
            return u_coords, v_coords, front

        X, Y, Z = points[front].T
        x_norm = X / Z
        y_norm = Y / Z
        if self.has_distortion:
            x_norm, y_norm = self._apply_distortion(x_norm, y_norm)

        u_coords[front] = self.fx * x_norm + self.cx
        v_coords[front] = self.fy * y_norm + self.cy

        with np.errstate(invalid='ignore'):
            valid = (
                front
                & (u_coords >= 0) & (u_coords < self.image_width)
                & (v_coords >= 0) & (v_coords < self.image_height)
            )
        u_coords[~valid] = np.nan
        v_coords[~valid] = np.nan

        return u_coords, v_coords, valid

    def __repr__(self) -> str:
        return (
            f"CameraModel(name={self.name!r}, fx={self.fx}, fy={self.fy}, "
            f"cx={self.cx}, cy={self.cy}, "
            f"size={self.image_width}x{self.image_height})"
        )
