"""
Frame graph for a RiSCAN Pro project.

The transformation chain is:
    SOCS --SOP--> PRCS --POP--> GLCS

where POP is the project's orientation and position and SOP is the
orientation and position of one scan position. The forward chain for a
scan position is therefore ``POP ∘ SOP``; the reverse chain is its exact
inverse. Both are composed once, when the graph is built.
"""

import numpy as np
from typing import Dict, Iterator, Mapping, Optional
import logging

from .errors import ConfigurationInvalidError, UnknownScanPositionError
from .transforms import Frame, FrameLike, RigidTransform

logger = logging.getLogger(__name__)

# Frames a FrameGraph can convert between; CMCS belongs to images
GRAPH_FRAMES = (Frame.GLCS, Frame.PRCS, Frame.SOCS)

# Position along the SOCS → PRCS → GLCS chain
FRAME_LEVEL = {Frame.SOCS: 0, Frame.PRCS: 1, Frame.GLCS: 2}


class FrameGraph:
    """
    Holds the project transform and every scan position transform.

    Example usage:
        graph = FrameGraph(pop, {"SP01": sop})
        origin = graph.scan_position_origin("SP01")
        local = graph.global_to_scan_local(point, "SP01")
    """

    def __init__(
        self,
        project_transform: RigidTransform,
        scan_position_transforms: Mapping[str, RigidTransform],
    ):
        """
        Args:
            project_transform: POP, PRCS → GLCS
            scan_position_transforms: Scan position name → SOP (SOCS → PRCS),
                in load order

        Raises:
            ConfigurationInvalidError: If a transform has the wrong frames
        """
        check_frames(project_transform, Frame.PRCS, Frame.GLCS, "project transform")
        self.project_transform = project_transform

        self._scan_position_transforms: Dict[str, RigidTransform] = {}
        self._to_global: Dict[str, RigidTransform] = {}
        self._to_local: Dict[str, RigidTransform] = {}

        for name, sop in scan_position_transforms.items():
            check_frames(sop, Frame.SOCS, Frame.PRCS, f"transform of scan position {name!r}")
            forward = project_transform @ sop
            self._scan_position_transforms[name] = sop
            self._to_global[name] = forward
            self._to_local[name] = forward.inverse()

        logger.debug(f"Frame graph built for {len(self._to_global)} scan positions")

    def __contains__(self, name: str) -> bool:
        return name in self._scan_position_transforms

    def __iter__(self) -> Iterator[str]:
        return iter(self._scan_position_transforms)

    def __len__(self) -> int:
        return len(self._scan_position_transforms)

    def scan_position_transform(self, name: str) -> RigidTransform:
        """SOP of a scan position."""
        try:
            return self._scan_position_transforms[name]
        except KeyError:
            raise UnknownScanPositionError(name) from None

    def scan_local_to_global_transform(self, name: str) -> RigidTransform:
        """Composed POP ∘ SOP for a scan position."""
        try:
            return self._to_global[name]
        except KeyError:
            raise UnknownScanPositionError(name) from None

    def global_to_scan_local_transform(self, name: str) -> RigidTransform:
        """Inverse of POP ∘ SOP for a scan position."""
        try:
            return self._to_local[name]
        except KeyError:
            raise UnknownScanPositionError(name) from None

    def scan_local_to_global(self, point: np.ndarray, name: str) -> np.ndarray:
        """Convert SOCS point(s) of a scan position to GLCS."""
        return self.scan_local_to_global_transform(name).apply(point)

    def global_to_scan_local(self, point: np.ndarray, name: str) -> np.ndarray:
        """Convert GLCS point(s) to the SOCS of a scan position."""
        return self.global_to_scan_local_transform(name).apply(point)

    def scan_position_origin(self, name: str) -> np.ndarray:
        """
        Position of a scanner in GLCS.

        Feeds the SOCS origin (0, 0, 0) through the forward chain.
        """
        return self.scan_local_to_global(np.zeros(3), name)

    def transform_between(
        self,
        source: FrameLike,
        target: FrameLike,
        name: Optional[str] = None,
    ) -> RigidTransform:
        """
        Composed transform between any two of GLCS, PRCS and SOCS.

        Args:
            source: Frame of the input points
            target: Frame of the output points
            name: Scan position, required whenever SOCS is involved

        Returns:
            RigidTransform from source to target
        """
        source, target = Frame(source), Frame(target)
        for frame in (source, target):
            if frame not in GRAPH_FRAMES:
                raise ValueError(f"Frame {frame.value} is not part of the project frame graph")

        if Frame.SOCS in (source, target) and name is None:
            raise ValueError("A scan position name is required to convert to or from SOCS")

        if source == target:
            return RigidTransform.identity(source, target)

        if FRAME_LEVEL[source] < FRAME_LEVEL[target]:
            return self._upstream(source, target, name)
        return self._upstream(target, source, name).inverse()

    def _upstream(self, low: Frame, high: Frame, name: Optional[str]) -> RigidTransform:
        if low == Frame.PRCS:
            return self.project_transform
        if high == Frame.PRCS:
            return self.scan_position_transform(name)
        return self.scan_local_to_global_transform(name)

    def convert(
        self,
        point: np.ndarray,
        source: FrameLike,
        target: FrameLike,
        name: Optional[str] = None,
    ) -> np.ndarray:
        """Convert point(s) between two project frames."""
        return self.transform_between(source, target, name).apply(point)


def check_frames(transform: RigidTransform, source: Frame, target: Frame, what: str) -> None:
    if transform.source != source or transform.target != target:
        raise ConfigurationInvalidError(
            f"The {what} must map {source.value}→{target.value}, "
            f"got {transform.source.value}→{transform.target.value}"
        )
