"""
Interactive boundary-building on top of per-seed live-wire searches.

The session is a plain object driven by explicit calls: seed clicks, cursor
moves and resets from whatever delivers events (a GUI, the HTTP adapter, a
replayed script). It owns the boundary and the one active search state.

Protocol:
    first click          -> first seed, boundary cleared
    cursor move          -> preview path current seed -> cursor
    later click / settle -> freeze; within closure_threshold of the first
                            seed the boundary closes and input stops until
                            reset
"""

import time

from livewire.config import SessionConfig, ExportConfig
from livewire.export.selection_mask import export_selection
from livewire.models import Boundary, FreezeReason, Pixel, Segment, generate_segment_id, pixel_distance
from livewire.search.livewire_search import LiveWireSearch
from livewire.session.stability import StabilityMonitor
from livewire.tracer import get_tracer


class LiveWireSession:
    """Seed/preview/freeze state machine over one CostMatrix."""

    def __init__(self, cost_matrix, config=None, export_config=None, clock=time.monotonic):
        self.cost_matrix = cost_matrix
        self.config = config or SessionConfig()
        self.export_config = export_config or ExportConfig()
        self.search = LiveWireSearch(cost_matrix)
        self.stability = StabilityMonitor(self.config.settle_interval_ms, clock=clock)

        self.boundary = Boundary()
        self.current_seed = None
        self.cursor = None
        self.preview = []
        self._generation = 0
        self._searched = None  # (seed, generation) of the committed search

    @property
    def first_seed(self):
        return self.boundary.first_seed

    @property
    def generation(self):
        return self._generation

    @property
    def accepting_input(self):
        return not self.boundary.closed

    def _invalidate(self):
        """Bump the generation so any in-flight search for an old seed is dropped."""
        self._generation += 1
        self._searched = None
        self.search.reset()
        self.preview = []

    def _in_image(self, point):
        return point is not None and self.cost_matrix.contains(point[0], point[1])

    def _ensure_search(self):
        """Run the search for current_seed unless it is already cached."""
        key = (self.current_seed, self._generation)
        if self._searched == key:
            return True

        generation = self._generation
        state = self.search.compute(
            self.current_seed,
            should_abort=lambda: self._generation != generation,
        )
        if state is None or generation != self._generation:
            return False

        self._searched = key
        return True

    # Session operations

    def set_first_seed(self, point):
        """Start a new boundary at point. Out-of-image points are ignored."""
        if not self._in_image(point):
            return False

        point = Pixel(int(point[0]), int(point[1]))
        self._invalidate()
        self.boundary = Boundary(first_seed=point)
        self.current_seed = point
        self.cursor = None
        self.stability.clear()
        get_tracer().event("First seed set", seed=point)
        return True

    def preview_to(self, cursor):
        """
        Live (unfrozen) path from the current seed to cursor.

        Empty when no seed is active, the boundary is closed, or cursor is
        outside the image.
        """
        if self.current_seed is None or self.boundary.closed or not self._in_image(cursor):
            return []

        cursor = self.cost_matrix.snap_to_edge(
            Pixel(int(cursor[0]), int(cursor[1])),
            self.config.cursor_snap_radius,
        )
        if not self._ensure_search():
            return []

        self.cursor = cursor
        self.preview = self.search.path_to(cursor)
        return self.preview

    def freeze(self, point, reason=FreezeReason.CLICK):
        """
        Commit a segment ending at point.

        Returns the appended Segment, or None when nothing was frozen.
        """
        tracer = get_tracer()
        if self.current_seed is None or self.boundary.closed or not self._in_image(point):
            return None

        point = Pixel(int(point[0]), int(point[1]))
        first_seed = self.boundary.first_seed

        if pixel_distance(point, first_seed) <= self.config.closure_threshold:
            if not self._ensure_search():
                return None
            path = self.search.path_to(first_seed)
            segment = self._make_segment(path, FreezeReason.CLOSURE)
            self.boundary.append(segment, closing=True)

            self._invalidate()
            self.current_seed = None
            self.stability.clear()
            tracer.event(f"Boundary closed with {len(self.boundary.segments)} segments")
            return segment

        path = self.preview_to(point)
        segment = None
        if path:
            segment = self._make_segment(path, reason)
            self.boundary.append(segment)

        self._invalidate()
        self.current_seed = path[-1] if path else point
        tracer.event(f"Segment frozen ({reason.value})", seed=self.current_seed)
        return segment

    def reset(self):
        """Discard the boundary and any active search."""
        self._invalidate()
        self.boundary = Boundary()
        self.current_seed = None
        self.cursor = None
        self.stability.clear()
        get_tracer().event("Session reset")

    def poll_auto_freeze(self):
        """
        Freeze at the cursor if the preview has been stable for a settle interval.

        Call periodically (e.g. from a UI timer). No-op unless auto_freeze is on.
        """
        if not self.config.auto_freeze or self.cursor is None or self.current_seed is None:
            return None
        if not self.stability.poll(self.preview):
            return None
        return self.freeze(self.cursor, reason=FreezeReason.STABILITY)

    def _make_segment(self, path, reason):
        index = len(self.boundary.segments)
        return Segment(
            segment_id=generate_segment_id(path, index),
            points=list(path),
            reason=reason,
        )

    # Event entry points for an interactive surface

    def on_seed_click(self, x, y):
        """First click sets the first seed; later clicks freeze."""
        if self.boundary.closed:
            return None
        if self.current_seed is None:
            self.set_first_seed((x, y))
            return None
        return self.freeze((x, y), reason=FreezeReason.CLICK)

    def on_cursor_move(self, x, y):
        path = self.preview_to((x, y))
        if path:
            self.stability.restart()
        return path

    def on_reset_requested(self):
        self.reset()

    # Read-only views for rendering

    def frozen_segments(self):
        return list(self.boundary.segments)

    def is_closed(self):
        return self.boundary.closed

    def is_near_first_seed(self, point):
        """True when a freeze at point would close the boundary."""
        first_seed = self.boundary.first_seed
        if first_seed is None or point is None:
            return False
        return pixel_distance(point, first_seed) <= self.config.closure_threshold

    def export_mask(self):
        """
        Selection mask and padded bounding box of a closed boundary.

        Returns (mask, bbox) or None while the boundary is open.
        """
        if not self.boundary.closed:
            return None
        selection = export_selection(
            self.boundary,
            self.cost_matrix.width,
            self.cost_matrix.height,
            padding=self.export_config.crop_padding,
        )
        return selection.mask, selection.bbox
