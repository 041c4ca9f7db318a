"""
Image and script loading for live-wire tracing.

Decoding is delegated to OpenCV; images come back in RGB order as the
feature extractor expects.
"""

import json
import os

import cv2
import numpy as np
from pydantic import ValidationError

from livewire.models import ImageMeta, TraceScript
from livewire.tracer import get_tracer, trace


SUPPORTED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp"]


@trace(label="load_image")
def load_image(path):
    """
    Load an image from disk.

    Returns a tuple of (image, meta) where image is an RGB numpy array
    (H, W, 3), or (H, W) for single-channel files, and meta is an ImageMeta.

    Raises FileNotFoundError if path does not exist.
    Raises ValueError if image cannot be decoded.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError(f"Failed to load image: {path}")

    img = _to_rgb(img)
    height, width = img.shape[:2]
    channels = 1 if img.ndim == 2 else img.shape[2]

    tracer.event(f"Loaded image: {width}x{height}, channels={channels}")

    meta = ImageMeta(
        width=width,
        height=height,
        channels=channels,
        source_path=os.path.abspath(path),
    )
    return img, meta


def decode_image(data):
    """
    Decode an in-memory encoded image (e.g. an upload) to RGB.

    Raises ValueError if the bytes are not a decodable image.
    """
    buffer = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Failed to decode image data")
    return _to_rgb(img)


def _to_rgb(img):
    # 16-bit inputs are scaled down to 8 bits
    if img.dtype == np.uint16:
        img = (img / 257).astype(np.uint8)

    if img.ndim == 2:
        return img
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGB)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    return img[:, :, 0]


def validate_image_input(path):
    """
    Validate that an input path exists and has a supported extension.

    Returns a list of error messages (empty if valid).
    """
    errors = []

    if not os.path.exists(path):
        errors.append(f"File not found: {path}")
        return errors

    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        errors.append(f"Unsupported image format: {path}")

    return errors


def load_trace_script(path):
    """
    Load a replayable interaction script.

    Accepts {"events": [...]} or the shorthand {"clicks": [[x, y], ...]}.
    Raises ValueError for malformed scripts.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Script not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid script JSON: {e}") from e

    if isinstance(data, dict) and "clicks" in data and "events" not in data:
        try:
            data = {"events": [{"kind": "click", "x": x, "y": y} for x, y in data["clicks"]]}
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid click list: {e}") from e

    try:
        return TraceScript.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid trace script: {e}") from e
