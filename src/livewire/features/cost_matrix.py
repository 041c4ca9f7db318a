"""
Static traversal cost for live-wire search.

Each interior pixel gets a weighted sum of three factors:

    fZ  zero-crossing factor, 0 on a Laplacian zero crossing else 1
    fG  1 - normalized gradient magnitude (strong edges are cheap)
    fD  gradient-direction coherence: mean over the 8 link directions of
        min(|d x gC|, |d x gN|) with unit gradients at the pixel (gC) and
        at the neighbour (gN)

clamped to [0, 1]. Border pixels are pinned to 1.0. Link costs between
8-neighbours are derived on demand as target cost times step length.
"""

import math

import numpy as np

from livewire.config import CostConfig
from livewire.errors import InvalidConfigurationError
from livewire.features.extract import PixelFeatureExtractor
from livewire.models import Pixel
from livewire.tracer import get_tracer, trace


BORDER_COST = 1.0
OUT_OF_BOUNDS_COST = float("inf")
DIAGONAL_STEP = math.sqrt(2.0)

# (dx, dy) for the 8 neighbours, row-major around the center
NEIGHBOR_OFFSETS = [
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1),  (0, 1),  (1, 1),
]


def step_weight(dx, dy):
    """1 for axis-aligned links, sqrt(2) for diagonal ones."""
    return DIAGONAL_STEP if dx != 0 and dy != 0 else 1.0


def unit_gradients(gx, gy):
    """Normalize gradient vectors; zero-length vectors stay zero."""
    length = np.sqrt(gx * gx + gy * gy)
    safe = np.where(length > 0, length, 1.0)
    return gx / safe, gy / safe


def direction_cost(gx, gy):
    """
    Gradient-direction coherence factor fD for every pixel.

    A neighbour outside the image contributes the maximum sub-cost 1.0.
    """
    height, width = gx.shape
    ux, uy = unit_gradients(gx, gy)

    # Pad by one so every pixel has 8 addressable neighbours
    ux_pad = np.pad(ux, 1)
    uy_pad = np.pad(uy, 1)
    inside = np.pad(np.ones((height, width), dtype=bool), 1)

    total = np.zeros((height, width), dtype=np.float64)
    for dx, dy in NEIGHBOR_OFFSETS:
        length = math.hypot(dx, dy)
        link_x = dx / length
        link_y = dy / length

        rows = slice(1 + dy, 1 + dy + height)
        cols = slice(1 + dx, 1 + dx + width)
        nx = ux_pad[rows, cols]
        ny = uy_pad[rows, cols]

        # |d x g| is the perpendicularity of link and gradient
        dp_center = np.abs(link_x * uy - link_y * ux)
        dp_neighbor = np.abs(link_x * ny - link_y * nx)
        total += np.where(inside[rows, cols], np.minimum(dp_center, dp_neighbor), 1.0)

    return total / len(NEIGHBOR_OFFSETS)


class CostMatrix:
    """
    Per-pixel traversal cost built once per image.

    Read-only after construction; safe to share between concurrent searches.
    """

    def __init__(self, features, config=None):
        self.config = config or CostConfig()
        _validate_weights(self.config)
        _validate_features(features)

        self.features = features
        self.height, self.width = features.shape

        cost = np.full((self.height, self.width), BORDER_COST, dtype=np.float64)
        if self.height >= 3 and self.width >= 3:
            f_z = np.where(features.zero_crossing, 0.0, 1.0)
            f_g = 1.0 - features.gradient_magnitude
            f_d = direction_cost(features.gradient_x, features.gradient_y)

            combined = (
                self.config.laplacian_weight * f_z
                + self.config.gradient_magnitude_weight * f_g
                + self.config.gradient_direction_weight * f_d
            )
            cost[1:-1, 1:-1] = np.clip(combined[1:-1, 1:-1], 0.0, 1.0)

        cost.setflags(write=False)
        self._cost = cost

    @property
    def shape(self):
        return (self.height, self.width)

    @property
    def cost_field(self):
        """The full read-only cost array, indexed [y, x]."""
        return self._cost

    @property
    def gradient_x(self):
        return self.features.gradient_x

    @property
    def gradient_y(self):
        return self.features.gradient_y

    @property
    def gradient_magnitude(self):
        return self.features.gradient_magnitude

    @property
    def zero_crossing(self):
        return self.features.zero_crossing

    def contains(self, x, y):
        return 0 <= x < self.width and 0 <= y < self.height

    def cost(self, x, y):
        """Traversal cost at (x, y); infinite outside the image."""
        if not self.contains(x, y):
            return OUT_OF_BOUNDS_COST
        return float(self._cost[y, x])

    def link_cost(self, source, target):
        """
        Cost of stepping from source to an adjacent target pixel.

        Infinite when target lies outside the image or is not an 8-neighbour.
        """
        dx = target[0] - source[0]
        dy = target[1] - source[1]
        if max(abs(dx), abs(dy)) != 1:
            return OUT_OF_BOUNDS_COST
        return self.cost(target[0], target[1]) * step_weight(dx, dy)

    def gradient_magnitude_at(self, x, y):
        if not self.contains(x, y):
            return 0.0
        return float(self.features.gradient_magnitude[y, x])

    def snap_to_edge(self, point, radius):
        """
        Move point to the strongest-gradient pixel in a (2r+1)^2 window.

        Ties keep the first maximum in row-major order; radius 0 is a no-op.
        """
        x, y = point
        if radius <= 0 or not self.contains(x, y):
            return Pixel(x, y)

        best = Pixel(x, y)
        best_grad = -1.0
        for ny in range(y - radius, y + radius + 1):
            for nx in range(x - radius, x + radius + 1):
                if not self.contains(nx, ny):
                    continue
                grad = self.gradient_magnitude_at(nx, ny)
                if grad > best_grad:
                    best_grad = grad
                    best = Pixel(nx, ny)
        return best

    def to_visual(self):
        """Cost field as uint8 (cost * 255) for display."""
        return (self._cost * 255).astype(np.uint8)


def _validate_weights(config):
    weights = {
        "laplacian_weight": config.laplacian_weight,
        "gradient_magnitude_weight": config.gradient_magnitude_weight,
        "gradient_direction_weight": config.gradient_direction_weight,
    }
    for name, value in weights.items():
        if not math.isfinite(value) or value < 0:
            raise InvalidConfigurationError(f"{name} must be a non-negative number, got {value}")
    if config.zero_crossing_threshold < 0:
        raise InvalidConfigurationError(
            f"zero_crossing_threshold must be non-negative, got {config.zero_crossing_threshold}"
        )


def _validate_features(features):
    height, width = features.shape
    if height < 1 or width < 1:
        raise InvalidConfigurationError(f"Feature maps have non-positive dimensions: {features.shape}")
    for name, field in features.fields().items():
        if field.shape != (height, width):
            raise InvalidConfigurationError(
                f"Feature map '{name}' has shape {field.shape}, expected {(height, width)}"
            )


@trace(label="build_cost_matrix")
def build_cost_matrix(image, config=None, debug_writer=None):
    """
    Build the cost matrix for an image.

    Blocking and pure; run it off the interactive thread for large images
    (see livewire.features.background) and only start a session once it
    returns.

    Raises InvalidConfigurationError for unusable images or weights.
    """
    tracer = get_tracer()
    cost_config = config or CostConfig()

    features = PixelFeatureExtractor(cost_config).extract(image, debug_writer)

    with tracer.span("combine_costs", module="cost_matrix"):
        matrix = CostMatrix(features, cost_config)
        tracer.event("Cost field", cost=matrix.cost_field)

    if debug_writer:
        debug_writer.save_image(matrix.to_visual(), "features", "05_cost.png")

    return matrix
