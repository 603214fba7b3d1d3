"""
Value lookup across the photographs of one scan position.

Images are tried in the order they were loaded. The first image that
yields an in-bounds, front-facing pixel with a sampled value answers the
query; there is no attempt to pick a better view among several hits, and
no occlusion test.
"""

import numpy as np
from typing import TYPE_CHECKING, Any, Iterator, Optional, Tuple
import logging

from .camera import PixelCoord
from .projector import ImageProjector

if TYPE_CHECKING:
    from .project import ScanPosition

logger = logging.getLogger(__name__)


class RasterSampler:
    """
    Reads raster values for projected pixels.

    Implementations own image decoding and storage. Any object with a
    matching ``sample`` method can be used.
    """

    def sample(self, image_name: str, pixel: PixelCoord) -> Optional[Any]:
        """
        image_name: name of the image within its scan position
        pixel: (u, v) continuous pixel coordinates, inside the raster
        Returns: the value at that pixel, or None if unavailable
        """
        raise NotImplementedError


class ScanPositionColorLookup:
    """
    First-hit lookup over the images of a scan position.

    Example usage:
        lookup = ScanPositionColorLookup(project.scan_position("SP01"))
        value = lookup.sample_value((x, y, z), sampler)
    """

    def __init__(self, scan_position: "ScanPosition"):
        self.scan_position = scan_position
        self.projectors = tuple(ImageProjector(image) for image in scan_position.images())

    def projections(self, point_glcs: np.ndarray) -> Iterator[Tuple[str, PixelCoord]]:
        """
        Yield (image name, pixel) for every image covering the point, in load order.
        """
        point_socs = self.scan_position.glcs_to_socs(point_glcs)
        for projector in self.projectors:
            pixel = projector.project_scan_local(point_socs)
            if pixel is not None:
                yield projector.name, pixel

    def first_projection(self, point_glcs: np.ndarray) -> Optional[Tuple[str, PixelCoord]]:
        """First (image name, pixel) covering the point, or None."""
        return next(self.projections(point_glcs), None)

    def sample_value(self, point_glcs: np.ndarray, raster_sampler: RasterSampler) -> Optional[Any]:
        """
        Value of the first image that covers the point.

        An image whose sampler returns None is skipped and the next image
        is tried.

        Args:
            point_glcs: Point (x, y, z) in the global frame
            raster_sampler: Collaborator that reads pixel values

        Returns:
            Sampled value, or None if no image covers the point
        """
        for image_name, pixel in self.projections(point_glcs):
            value = raster_sampler.sample(image_name, pixel)
            if value is not None:
                logger.debug(f"{self.scan_position.name}: {image_name} at "
                             f"({pixel[0]:.2f}, {pixel[1]:.2f})")
                return value
            logger.debug(f"{self.scan_position.name}: no raster value for {image_name}")
        return None


def sample_value(
    point_glcs: np.ndarray,
    scan_position: "ScanPosition",
    raster_sampler: RasterSampler,
) -> Optional[Any]:
    """Sample the first photograph of ``scan_position`` that covers ``point_glcs``."""
    return ScanPositionColorLookup(scan_position).sample_value(point_glcs, raster_sampler)
