"""
Selection export for closed live-wire boundaries.

Fills the concatenated segment polyline into a binary mask, derives a padded
bounding box and cuts an alpha-masked RGBA sub-image out of the source.
"""

from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from livewire.tracer import get_tracer, trace


@dataclass
class SelectionMask:
    """Binary selection (uint8, 255 = selected) and its padded bbox."""
    mask: np.ndarray
    bbox: Optional[List[int]]

    @property
    def area(self):
        return int(np.count_nonzero(self.mask))


def rasterize_boundary(boundary, width, height):
    """
    Fill the boundary polygon into a width x height uint8 mask.

    Boundaries with fewer than three distinct pixels produce an empty mask.
    """
    mask = np.zeros((height, width), dtype=np.uint8)
    polyline = boundary.polyline()
    if len(set(polyline)) < 3:
        return mask

    pts = np.array(polyline, dtype=np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(mask, [pts], 255)
    return mask


def selection_bbox(mask, padding=5):
    """
    Bounding box [min_x, min_y, max_x, max_y] of selected pixels.

    Expanded by padding on every side and clamped to the image; None when
    nothing is selected.
    """
    ys, xs = np.nonzero(mask)
    if xs.size == 0:
        return None

    height, width = mask.shape
    return [
        max(0, int(xs.min()) - padding),
        max(0, int(ys.min()) - padding),
        min(width - 1, int(xs.max()) + padding),
        min(height - 1, int(ys.max()) + padding),
    ]


def extract_cutout(image, mask, bbox):
    """
    Crop image to bbox as RGBA with alpha taken from the mask.

    Pixels outside the selection are fully transparent.
    """
    image = np.asarray(image)
    if image.ndim == 2:
        rgb = np.repeat(image[:, :, None], 3, axis=2)
    elif image.shape[2] == 1:
        rgb = np.repeat(image, 3, axis=2)
    else:
        rgb = image[:, :, :3]

    rgba = np.zeros(rgb.shape[:2] + (4,), dtype=np.uint8)
    selected = mask > 0
    rgba[selected, :3] = np.clip(rgb[selected], 0, 255).astype(np.uint8)
    rgba[selected, 3] = 255

    if bbox is None:
        return rgba
    min_x, min_y, max_x, max_y = bbox
    return rgba[min_y:max_y + 1, min_x:max_x + 1].copy()


@trace(label="export_selection")
def export_selection(boundary, width, height, padding=5):
    """Rasterize a closed boundary into a SelectionMask."""
    mask = rasterize_boundary(boundary, width, height)
    bbox = selection_bbox(mask, padding)
    get_tracer().event(f"Selection area: {int(np.count_nonzero(mask))}", bbox=bbox)
    return SelectionMask(mask=mask, bbox=bbox)
