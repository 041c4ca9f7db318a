"""
Artifact saving utilities for live-wire tracing.

Handles writing masks, cut-outs, overlays, JSON documents and debug
feature maps.
"""

import json
import os

import cv2
import numpy as np

from livewire.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_image(img, path, max_edge=None):
    """
    Save an image to disk.

    Optionally downscales to max_edge while preserving aspect ratio.
    Converts RGB/RGBA to OpenCV's BGR/BGRA channel order.
    """
    tracer = get_tracer()

    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (int(img.shape[1] * scale), int(img.shape[0] * scale))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_AREA)

    if img.ndim == 3 and img.shape[2] == 3:
        img_out = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    elif img.ndim == 3 and img.shape[2] == 4:
        img_out = cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)
    else:
        img_out = img

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, img_out)
    tracer.event(f"Saved image: {path}")


def save_json(data, path, indent=2):
    """
    Save a dictionary or Pydantic model to JSON.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}")


def draw_boundary_overlay(base_img, segments=None, preview=None, seeds=None,
                          segment_color=(0, 255, 0), preview_color=(255, 0, 0),
                          seed_color=(0, 0, 255)):
    """
    Draw frozen segments, an optional live preview and seed markers.

    Colors are RGB; returns a new RGB image.
    """
    if base_img.ndim == 2:
        overlay = cv2.cvtColor(base_img, cv2.COLOR_GRAY2RGB)
    else:
        overlay = np.ascontiguousarray(base_img[:, :, :3]).copy()

    for points in segments or []:
        if len(points) < 2:
            continue
        pts = np.array(points, dtype=np.int32)
        cv2.polylines(overlay, [pts], isClosed=False, color=segment_color, thickness=1)

    if preview and len(preview) >= 2:
        pts = np.array(preview, dtype=np.int32)
        cv2.polylines(overlay, [pts], isClosed=False, color=preview_color, thickness=1)

    for seed in seeds or []:
        cv2.circle(overlay, (int(seed[0]), int(seed[1])), 3, seed_color, -1)

    return overlay


def get_debug_dir(out_dir, stage_name):
    """
    Get the debug directory path for a stage.

    Creates the directory if it does not exist.
    """
    debug_dir = os.path.join(out_dir, "debug", stage_name)
    ensure_dir(debug_dir)
    return debug_dir


class DebugArtifactWriter:
    """
    Writes intermediate feature maps and metrics under out_dir/debug/<stage>.

    Every method is a no-op when the writer is disabled.
    """

    def __init__(self, out_dir, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.enabled = enabled
        self.max_edge = max_edge

    def get_stage_dir(self, stage_name):
        return get_debug_dir(self.out_dir, stage_name)

    def save_image(self, img, stage_name, filename):
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_image(img, path, max_edge=self.max_edge)

    def save_json(self, data, stage_name, filename):
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_json(data, path)
