"""
Off-thread cost matrix construction.

Cost synthesis is O(width x height) and too slow for an event thread on
large images. CostMatrixBuilder runs it on a single worker and tags every
request with a generation number; a result whose generation has been
superseded by a newer request is never handed out.
"""

import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor

from livewire.features.cost_matrix import build_cost_matrix
from livewire.tracer import get_tracer


class CostMatrixBuilder:
    """Single-worker background builder with stale-result suppression."""

    def __init__(self, config=None, executor=None):
        self.config = config
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="livewire-cost")
        self._lock = threading.Lock()
        self._generation = 0
        self._future = None

    @property
    def generation(self):
        return self._generation

    def submit(self, image):
        """
        Start building a cost matrix for image, superseding any earlier request.

        Returns the generation number of this request.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._future is not None:
                self._future.cancel()
            self._future = self._executor.submit(build_cost_matrix, image, self.config)

        get_tracer().event(f"Cost build submitted: generation={generation}")
        return generation

    def is_ready(self):
        with self._lock:
            return self._future is not None and self._future.done()

    def result(self, generation=None, timeout=None):
        """
        Wait for the latest build and return its CostMatrix.

        Returns None when generation is given and is no longer current, or
        when nothing was submitted. Construction errors propagate.
        """
        with self._lock:
            future = self._future
            current = self._generation

        if future is None:
            return None
        if generation is not None and generation != current:
            return None

        try:
            matrix = future.result(timeout=timeout)
        except CancelledError:
            # Only a newer submit cancels a pending build
            return None

        # A newer submit may have landed while we waited
        if generation is not None and generation != self._generation:
            return None
        return matrix

    def shutdown(self, wait=True):
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
