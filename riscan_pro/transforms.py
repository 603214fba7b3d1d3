"""
Homogeneous transform module for moving points between reference frames.

Coordinate System Definitions:
    - GLCS: Global coordinate system (project independent)
    - PRCS: Project reference coordinate system
    - SOCS: Scanner's own coordinate system (one per scan position)
    - CMCS: Camera coordinate system (one per photograph)

Matrix Conventions:
    - 4x4 homogeneous matrices, stored row-major
    - Column-vector convention: p' = M @ [x, y, z, 1]^T
    - compose(a, b) applies b first, then a (a ∘ b)

Every transform is tagged with its source and target frame. Composition
checks the tags so a SOCS → PRCS transform cannot be chained onto a
point that is already in GLCS.
"""

import numpy as np
from enum import Enum
from typing import Sequence, Union
import logging

from scipy.spatial.transform import Rotation

from .errors import ConfigurationInvalidError, FrameMismatchError

logger = logging.getLogger(__name__)

# Linear blocks with a condition number above this are treated as singular
MAX_CONDITION_NUMBER = 1.0 / np.finfo(np.float64).eps


class Frame(str, Enum):
    """Named reference frames of a RiSCAN Pro project."""
    GLCS = "GLCS"
    PRCS = "PRCS"
    SOCS = "SOCS"
    CMCS = "CMCS"


FrameLike = Union[Frame, str]


class RigidTransform:
    """
    Immutable 4x4 homogeneous transform from one frame to another.

    The matrix is usually a rotation plus translation, but any invertible
    affine matrix is accepted. The inverse is computed once when the
    transform is built, so a singular matrix fails here rather than in the
    middle of a lookup.

    Attributes:
        source: Frame that input points are expressed in
        target: Frame that output points are expressed in
    """

    __slots__ = ("_matrix", "_inverse", "_source", "_target")

    def __init__(
        self,
        matrix: Union[np.ndarray, Sequence[Sequence[float]]],
        source: FrameLike,
        target: FrameLike,
    ):
        """
        Build a transform from a 4x4 matrix.

        Args:
            matrix: 4x4 row-major homogeneous matrix
            source: Frame of the points the matrix is applied to
            target: Frame of the resulting points

        Raises:
            ConfigurationInvalidError: If the matrix is not 4x4, contains
                non-finite values, or is singular
        """
        try:
            m = np.array(matrix, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ConfigurationInvalidError(f"Transform matrix is not numeric: {e}") from e

        if m.shape != (4, 4):
            raise ConfigurationInvalidError(
                f"Transform matrix must be 4x4, got shape {m.shape}"
            )
        if not np.all(np.isfinite(m)):
            raise ConfigurationInvalidError("Transform matrix contains non-finite values")
        # Invertibility depends on the linear block only; translations may be large
        if np.linalg.cond(m[:3, :3]) > MAX_CONDITION_NUMBER:
            raise ConfigurationInvalidError(f"Transform matrix is singular:\n{m}")

        try:
            inverse = np.linalg.inv(m)
        except np.linalg.LinAlgError as e:
            raise ConfigurationInvalidError(f"Transform matrix is singular: {e}") from e
        if not np.all(np.isfinite(inverse)):
            raise ConfigurationInvalidError(f"Transform matrix is singular:\n{m}")

        self._set(m, inverse, Frame(source), Frame(target))

    def _set(self, matrix: np.ndarray, inverse: np.ndarray, source: Frame, target: Frame) -> None:
        matrix.setflags(write=False)
        inverse.setflags(write=False)
        self._matrix = matrix
        self._inverse = inverse
        self._source = source
        self._target = target

    @classmethod
    def _from_parts(
        cls, matrix: np.ndarray, inverse: np.ndarray, source: Frame, target: Frame
    ) -> "RigidTransform":
        """Build a transform whose inverse is already known."""
        obj = cls.__new__(cls)
        obj._set(matrix, inverse, source, target)
        return obj

    @classmethod
    def identity(cls, source: FrameLike, target: FrameLike) -> "RigidTransform":
        """Identity transform between two frames."""
        return cls(np.eye(4), source, target)

    @classmethod
    def from_rotation_translation(
        cls,
        rotation: np.ndarray,
        translation: Sequence[float],
        source: FrameLike,
        target: FrameLike,
    ) -> "RigidTransform":
        """
        Build a transform from a 3x3 rotation matrix and a translation.

        Args:
            rotation: 3x3 rotation (or general linear) matrix
            translation: Translation (x, y, z), applied after the rotation
            source: Source frame
            target: Target frame
        """
        rotation = np.asarray(rotation, dtype=np.float64)
        translation = np.asarray(translation, dtype=np.float64)
        if rotation.shape != (3, 3) or translation.shape != (3,):
            raise ConfigurationInvalidError(
                f"Expected 3x3 rotation and 3-vector translation, got "
                f"{rotation.shape} and {translation.shape}"
            )
        m = np.eye(4)
        m[:3, :3] = rotation
        m[:3, 3] = translation
        return cls(m, source, target)

    @classmethod
    def from_euler(
        cls,
        angles: Sequence[float],
        translation: Sequence[float],
        source: FrameLike,
        target: FrameLike,
        order: str = "xyz",
        degrees: bool = True,
    ) -> "RigidTransform":
        """
        Build a transform from Euler angles and a translation.

        Args:
            angles: Rotation angles, interpreted by scipy in the given order
            translation: Translation (x, y, z)
            source: Source frame
            target: Target frame
            order: Euler axis sequence (scipy convention)
            degrees: True if angles are in degrees
        """
        r = Rotation.from_euler(order, angles, degrees=degrees)
        return cls.from_rotation_translation(r.as_matrix(), translation, source, target)

    @classmethod
    def from_text(cls, text: str, source: FrameLike, target: FrameLike) -> "RigidTransform":
        """
        Parse 16 whitespace-separated numbers (row-major), as RiSCAN stores them.

        Example:
            RigidTransform.from_text("1 0 0 10  0 1 0 0  0 0 1 0  0 0 0 1",
                                     Frame.SOCS, Frame.PRCS)
        """
        try:
            values = [float(token) for token in text.split()]
        except ValueError as e:
            raise ConfigurationInvalidError(f"Cannot parse transform matrix text: {e}") from e
        if len(values) != 16:
            raise ConfigurationInvalidError(
                f"Transform matrix text must contain 16 numbers, got {len(values)}"
            )
        return cls(np.array(values).reshape(4, 4), source, target)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 4x4 matrix."""
        return self._matrix

    @property
    def source(self) -> Frame:
        return self._source

    @property
    def target(self) -> Frame:
        return self._target

    @property
    def rotation(self) -> np.ndarray:
        """Upper-left 3x3 block."""
        return self._matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self._matrix[:3, 3]

    @property
    def is_rigid(self) -> bool:
        """True if the matrix is a proper rotation plus translation."""
        return (
            validate_rotation_matrix(self.rotation)
            and np.allclose(self._matrix[3], [0.0, 0.0, 0.0, 1.0])
        )

    def inverse(self) -> "RigidTransform":
        """Inverse transform, target → source."""
        return RigidTransform._from_parts(
            self._inverse, self._matrix, self._target, self._source
        )

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """
        Return self ∘ other: apply ``other`` first, then ``self``.

        Raises:
            FrameMismatchError: If other.target is not self.source
        """
        if other.target != self.source:
            raise FrameMismatchError(
                f"Cannot compose {self.source.value}→{self.target.value} after "
                f"{other.source.value}→{other.target.value}"
            )
        return RigidTransform._from_parts(
            self._matrix @ other._matrix,
            other._inverse @ self._inverse,
            other.source,
            self.target,
        )

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        return self.compose(other)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """
        Transform a point or an Nx3 array of points.

        Points are lifted to homogeneous coordinates with w=1 and the result
        is divided by the resulting w.

        Args:
            points: 3-element point or Nx3 array in the source frame

        Returns:
            Point(s) in the target frame, same shape as the input
        """
        pts = np.asarray(points, dtype=np.float64)
        if pts.shape[-1] != 3 or pts.ndim > 2:
            raise ValueError(f"Expected a 3-vector or Nx3 array, got shape {pts.shape}")

        single = pts.ndim == 1
        pts = np.atleast_2d(pts)
        homogeneous = np.hstack([pts, np.ones((len(pts), 1))])
        result = homogeneous @ self._matrix.T
        result = result[:, :3] / result[:, 3:4]

        return result[0] if single else result

    def allclose(self, other: "RigidTransform", atol: float = 1e-9) -> bool:
        """Compare frames exactly and matrices within tolerance."""
        return (
            self.source == other.source
            and self.target == other.target
            and np.allclose(self._matrix, other._matrix, atol=atol)
        )

    def __repr__(self) -> str:
        return (
            f"RigidTransform({self._source.value}→{self._target.value}, "
            f"translation={self.translation.tolist()})"
        )


def compose(a: RigidTransform, b: RigidTransform) -> RigidTransform:
    """Return a ∘ b (apply b, then a)."""
    return a.compose(b)


def invert(a: RigidTransform) -> RigidTransform:
    """Return the inverse of a."""
    return a.inverse()


def apply(a: RigidTransform, points: np.ndarray) -> np.ndarray:
    """Apply a to a point or an Nx3 array of points."""
    return a.apply(points)


def validate_rotation_matrix(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Validate that a matrix is a proper rotation matrix.

    A proper rotation matrix must:
        1. Be orthogonal: R @ R.T = I
        2. Have determinant = +1 (not a reflection)

    Args:
        R: 3x3 matrix to validate
        tol: Numerical tolerance

    Returns:
        True if R is a valid rotation matrix
    """
    R = np.asarray(R)
    if R.shape != (3, 3):
        return False

    if not np.allclose(R @ R.T, np.eye(3), atol=tol):
        return False

    return bool(np.isclose(np.linalg.det(R), 1.0, atol=tol))
