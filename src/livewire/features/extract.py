"""
Per-pixel edge features for live-wire cost synthesis.

Converts a raster image into grayscale, Sobel gradients, normalized gradient
magnitude, a normalized absolute Laplacian and a zero-crossing flag.

Boundary policy: Sobel gradients are evaluated everywhere with out-of-image
samples read as 0. The Laplacian and zero-crossing test only run on interior
pixels; the border is left at 0 / not-crossing and is pinned to maximum cost
downstream.
"""

from dataclasses import dataclass

import cv2
import numpy as np
from scipy.ndimage import maximum_filter, minimum_filter

from livewire.config import CostConfig
from livewire.errors import InvalidConfigurationError
from livewire.tracer import get_tracer, trace


LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

SOBEL_X = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1],
], dtype=np.float64)

SOBEL_Y = SOBEL_X.T.copy()

# 4-neighbour Laplacian: top + bottom + left + right - 4 * center
LAPLACIAN_KERNEL = np.array([
    [0, 1, 0],
    [1, -4, 1],
    [0, 1, 0],
], dtype=np.float64)

# 8-neighbourhood without the center
NEIGHBOR_FOOTPRINT = np.array([
    [1, 1, 1],
    [1, 0, 1],
    [1, 1, 1],
], dtype=bool)


@dataclass(frozen=True)
class FeatureMaps:
    """Read-only per-pixel feature fields, all indexed [y, x]."""
    gray: np.ndarray
    gradient_x: np.ndarray
    gradient_y: np.ndarray
    gradient_magnitude: np.ndarray
    laplacian: np.ndarray
    zero_crossing: np.ndarray

    @property
    def shape(self):
        return self.gray.shape

    def fields(self):
        """Name -> array mapping, in construction order."""
        return {
            "gray": self.gray,
            "gradient_x": self.gradient_x,
            "gradient_y": self.gradient_y,
            "gradient_magnitude": self.gradient_magnitude,
            "laplacian": self.laplacian,
            "zero_crossing": self.zero_crossing,
        }


def _read_only(arr):
    arr.setflags(write=False)
    return arr


def to_grayscale(image):
    """
    Convert a raster image to float64 luma.

    Accepts (H, W), (H, W, 1), (H, W, 3) and (H, W, 4) arrays in RGB order;
    an alpha channel is ignored. The input is never modified.
    """
    image = np.asarray(image)

    if image.ndim not in (2, 3):
        raise InvalidConfigurationError(f"Expected a 2D raster, got array with {image.ndim} dims")
    if image.shape[0] < 1 or image.shape[1] < 1:
        raise InvalidConfigurationError(f"Image has non-positive dimensions: {image.shape[:2]}")

    if image.ndim == 2:
        return image.astype(np.float64)

    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0].astype(np.float64)
    if channels in (3, 4):
        return image[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS

    raise InvalidConfigurationError(f"Unsupported channel count: {channels}")


def sobel_gradients(gray):
    """Sobel gradients with implicit zero padding outside the image."""
    gx = cv2.filter2D(gray, cv2.CV_64F, SOBEL_X, borderType=cv2.BORDER_CONSTANT)
    gy = cv2.filter2D(gray, cv2.CV_64F, SOBEL_Y, borderType=cv2.BORDER_CONSTANT)
    return gx, gy


def normalized_magnitude(gx, gy):
    """
    Gradient magnitude divided by its global maximum.

    A flat image (maximum 0) yields an all-zero field.
    """
    magnitude = np.sqrt(gx * gx + gy * gy)
    max_magnitude = magnitude.max()
    if max_magnitude > 0:
        magnitude /= max_magnitude
    return magnitude


def normalized_laplacian(gray):
    """
    Absolute 4-neighbour Laplacian on interior pixels, normalized to [0, 1].

    Border entries stay 0.
    """
    lap = np.zeros_like(gray)
    height, width = gray.shape
    if height < 3 or width < 3:
        return lap

    response = cv2.filter2D(gray, cv2.CV_64F, LAPLACIAN_KERNEL, borderType=cv2.BORDER_CONSTANT)
    lap[1:-1, 1:-1] = np.abs(response[1:-1, 1:-1])

    max_lap = lap.max()
    if max_lap > 0:
        lap /= max_lap
    return lap


def detect_zero_crossings(lap, threshold=0.5):
    """
    Flag interior pixels whose 8-neighbourhood contains a Laplacian value
    differing from their own by more than threshold.
    """
    crossing = np.zeros(lap.shape, dtype=bool)
    height, width = lap.shape
    if height < 3 or width < 3:
        return crossing

    # Largest deviation in either direction across the 8 neighbours
    neighbor_max = maximum_filter(lap, footprint=NEIGHBOR_FOOTPRINT, mode="nearest")
    neighbor_min = minimum_filter(lap, footprint=NEIGHBOR_FOOTPRINT, mode="nearest")
    deviates = (neighbor_max - lap > threshold) | (lap - neighbor_min > threshold)

    crossing[1:-1, 1:-1] = deviates[1:-1, 1:-1]
    return crossing


class PixelFeatureExtractor:
    """Builds FeatureMaps from a raster image."""

    def __init__(self, config=None):
        self.config = config or CostConfig()

    @trace(label="extract_features")
    def extract(self, image, debug_writer=None):
        tracer = get_tracer()

        with tracer.span("grayscale", module="extract"):
            gray = to_grayscale(image)

        with tracer.span("gradients", module="extract"):
            gx, gy = sobel_gradients(gray)
            magnitude = normalized_magnitude(gx, gy)
            tracer.event("Gradient magnitude", magnitude=magnitude)

        with tracer.span("laplacian", module="extract"):
            lap = normalized_laplacian(gray)
            crossing = detect_zero_crossings(lap, self.config.zero_crossing_threshold)
            tracer.event(f"Zero crossings: {int(crossing.sum())}")

        features = FeatureMaps(
            gray=_read_only(gray),
            gradient_x=_read_only(gx),
            gradient_y=_read_only(gy),
            gradient_magnitude=_read_only(magnitude),
            laplacian=_read_only(lap),
            zero_crossing=_read_only(crossing),
        )

        if debug_writer:
            debug_writer.save_image(_to_uint8(gray, 255.0), "features", "01_gray.png")
            debug_writer.save_image(_to_uint8(magnitude, 1.0), "features", "02_gradient_magnitude.png")
            debug_writer.save_image(_to_uint8(lap, 1.0), "features", "03_laplacian.png")
            debug_writer.save_image(crossing.astype(np.uint8) * 255, "features", "04_zero_crossings.png")
            debug_writer.save_json({
                "width": gray.shape[1],
                "height": gray.shape[0],
                "zero_crossing_ratio": round(float(crossing.mean()), 4),
                "mean_gradient_magnitude": round(float(magnitude.mean()), 4),
            }, "features", "features_metrics.json")

        return features


def _to_uint8(field, scale):
    return np.clip(field / scale * 255.0, 0, 255).astype(np.uint8)
