"""
Data models for live-wire tracing.

Pixels are lightweight named tuples so they work as dict keys and heap
payloads; frozen segments, boundaries and trace documents are validated
pydantic models so they serialize straight to JSON.
Content-based ID generation keeps outputs deterministic.
"""

import hashlib
import math
from datetime import datetime
from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class Pixel(NamedTuple):
    """Integer pixel coordinate, origin top-left."""
    x: int
    y: int


class FreezeReason(str, Enum):
    """Why a previewed path was committed to the boundary."""
    CLICK = "click"
    STABILITY = "stability"
    CLOSURE = "closure"


class EventKind(str, Enum):
    """Interactive events a trace script can replay."""
    CLICK = "click"
    MOVE = "move"
    RESET = "reset"
    WAIT = "wait"


class Segment(BaseModel):
    """A frozen path, seed first."""
    segment_id: str
    points: List[Pixel] = Field(default_factory=list)
    reason: FreezeReason = FreezeReason.CLICK

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def start(self):
        return self.points[0] if self.points else None

    @property
    def end(self):
        return self.points[-1] if self.points else None


class Boundary(BaseModel):
    """
    Ordered frozen segments plus the first seed used for closure testing.

    Only ever grows by appending; reset by replacing the instance.
    """
    first_seed: Optional[Pixel] = None
    segments: List[Segment] = Field(default_factory=list)
    closed: bool = False

    model_config = ConfigDict(extra="forbid")

    def append(self, segment, closing=False):
        """Append a frozen segment; a closing segment marks the boundary closed."""
        if self.closed:
            raise ValueError("Boundary is already closed")
        self.segments.append(segment)
        if closing:
            self.closed = True

    def polyline(self):
        """
        Concatenate segment points into one polyline.

        Consecutive segments share their joint pixel; it is emitted once.
        """
        points = []
        for segment in self.segments:
            for point in segment.points:
                if points and points[-1] == point:
                    continue
                points.append(point)
        return points


class ImageMeta(BaseModel):
    """Metadata for a traced image."""
    width: int
    height: int
    channels: int = 3
    source_path: str = ""

    model_config = ConfigDict(extra="forbid")


class TraceEvent(BaseModel):
    """A single replayable interaction."""
    kind: EventKind
    x: int = 0
    y: int = 0
    wait_ms: int = 0

    model_config = ConfigDict(extra="forbid")


class TraceScript(BaseModel):
    """A sequence of interactions to replay against a session."""
    events: List[TraceEvent] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class TraceDocument(BaseModel):
    """Result of replaying a trace script on one image."""
    doc_id: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    image_meta: ImageMeta
    boundary: Boundary = Field(default_factory=Boundary)
    selection_bbox: Optional[List[int]] = None
    events_processed: int = 0

    model_config = ConfigDict(extra="forbid")


# ID generation functions for deterministic outputs

def generate_segment_id(points, index):
    """
    Generate deterministic segment ID from its position and pixels.
    """
    if not points:
        return f"seg_{index}_empty"

    data = f"{index}:{[tuple(p) for p in points]}"
    h = hashlib.sha256(data.encode()).hexdigest()[:12]
    return f"seg_{h}"


def generate_doc_id(source_path):
    """
    Generate deterministic document ID from the input image path.
    """
    h = hashlib.sha256(str(source_path).encode()).hexdigest()[:16]
    return f"doc_{h}"


def pixel_distance(a, b):
    """Euclidean distance between two pixels."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def is_adjacent(a, b):
    """True when b is one of the 8 grid neighbours of a."""
    dx = abs(a[0] - b[0])
    dy = abs(a[1] - b[1])
    return max(dx, dy) == 1

