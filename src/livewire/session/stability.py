"""
Path-stability detection for hands-free tracing.

Behaves like a repeating timer that is restarted by every cursor move: once
the cursor has been still for one settle interval, each tick compares the
current preview path with the snapshot taken at the previous tick. Two
identical consecutive snapshots (pixel for pixel) mean the path is stable.
"""

import time


class StabilityMonitor:
    """Exact-equality path stability over a fixed settle interval."""

    def __init__(self, settle_interval_ms=600, clock=time.monotonic):
        self.settle_interval = settle_interval_ms / 1000.0
        self.clock = clock
        self._next_tick = None
        self._snapshot = []

    def restart(self):
        """Cursor moved: push the next tick out by one full interval."""
        self._next_tick = self.clock() + self.settle_interval

    def clear(self):
        """Stop ticking until the next restart."""
        self._next_tick = None
        self._snapshot = []

    def poll(self, current_path):
        """
        Advance the timer and report whether current_path has settled.

        Returns True at most once per tick. Paths shorter than two pixels are
        never reported: right after a freeze the preview is the single seed
        pixel, which would otherwise freeze again on every tick.
        """
        if self._next_tick is None:
            return False

        now = self.clock()
        if now < self._next_tick:
            return False
        self._next_tick = now + self.settle_interval

        if len(current_path) >= 2 and list(current_path) == self._snapshot:
            self._snapshot = []
            return True

        self._snapshot = list(current_path)
        return False
