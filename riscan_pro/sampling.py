"""
In-memory raster sampler.

Reads values out of already-decoded images held as numpy arrays. Decoding
and storage of image files is left to the caller.

Pixel convention: pixel (i, j) covers u in [i, i + 1) and v in [j, j + 1),
so its centre is at (i + 0.5, j + 0.5).
"""

import numpy as np
from typing import Any, Mapping, Optional
import logging

from .camera import PixelCoord
from .lookup import RasterSampler

logger = logging.getLogger(__name__)

SAMPLING_METHODS = ("nearest", "bilinear")


class ArrayRasterSampler(RasterSampler):
    """
    Samples HxW or HxWxC arrays keyed by image name.

    Example usage:
        sampler = ArrayRasterSampler({"SP01 - Image001": rgb}, method="bilinear")
        value = project.value_at((x, y, z), "SP01", sampler)
    """

    def __init__(self, rasters: Mapping[str, np.ndarray], method: str = "nearest"):
        if method not in SAMPLING_METHODS:
            raise ValueError(f"Unknown sampling method {method!r}, expected one of {SAMPLING_METHODS}")
        self.rasters = {name: np.asarray(raster) for name, raster in rasters.items()}
        self.method = method

    def sample(self, image_name: str, pixel: PixelCoord) -> Optional[Any]:
        raster = self.rasters.get(image_name)
        if raster is None:
            logger.debug(f"No raster loaded for {image_name}")
            return None

        u, v = pixel
        H, W = raster.shape[:2]
        if not (0 <= u < W and 0 <= v < H):
            return None

        if self.method == "nearest":
            return _value(raster[int(np.floor(v)), int(np.floor(u))])
        return _value(self._bilinear(raster, u, v))

    @staticmethod
    def _bilinear(raster: np.ndarray, u: float, v: float) -> np.ndarray:
        H, W = raster.shape[:2]
        # Continuous index relative to pixel centres, clamped at the edges
        x = min(max(u - 0.5, 0.0), W - 1.0)
        y = min(max(v - 0.5, 0.0), H - 1.0)
        x0, y0 = int(np.floor(x)), int(np.floor(y))
        x1, y1 = min(x0 + 1, W - 1), min(y0 + 1, H - 1)
        dx, dy = x - x0, y - y0

        def at(row, col):
            return np.asarray(raster[row, col], dtype=np.float64)

        top = at(y0, x0) * (1 - dx) + at(y0, x1) * dx
        bottom = at(y1, x0) * (1 - dx) + at(y1, x1) * dx
        return top * (1 - dy) + bottom * dy


def _value(sample: np.ndarray) -> Any:
    """Scalars come back as Python numbers, multi-channel samples as arrays."""
    sample = np.asarray(sample)
    return sample.item() if sample.ndim == 0 else sample
