"""
Single-source shortest paths over the implicit 8-connected pixel grid.

One search per seed produces a distance field and predecessor pointers;
every cursor position is then answered by walking predecessors back to the
seed, in O(path length).

Link weight from p to neighbour q is cost(q) times 1 (axial) or sqrt(2)
(diagonal). Heap entries are (distance, flat_index), so ties resolve by
row-major pixel order and repeated runs are deterministic.
"""

import heapq
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from livewire.features.cost_matrix import DIAGONAL_STEP, NEIGHBOR_OFFSETS
from livewire.models import Pixel
from livewire.tracer import get_tracer, trace


NO_PREDECESSOR = -1

# How many heap pops between abort checks
ABORT_CHECK_INTERVAL = 4096


class SearchStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    SETTLED = "settled"


@dataclass
class SearchState:
    """
    Result of one search from one seed.

    predecessor is a dense flat-index array (y * width + x) rather than
    pointers stored on pixel objects; NO_PREDECESSOR marks the seed and
    unreached pixels.
    """
    seed: Pixel
    width: int
    height: int
    distance: np.ndarray
    visited: np.ndarray
    predecessor: np.ndarray
    status: SearchStatus = SearchStatus.RUNNING
    exhausted: bool = False
    settled_count: int = 0
    settle_order: list = field(default_factory=list, repr=False)

    def index_of(self, pixel):
        return pixel[1] * self.width + pixel[0]

    def pixel_at(self, index):
        return Pixel(index % self.width, index // self.width)

    def predecessors(self):
        """Sparse Pixel -> Pixel view of the predecessor field."""
        flat = self.predecessor.ravel()
        reached = np.nonzero(flat != NO_PREDECESSOR)[0]
        return {self.pixel_at(int(i)): self.pixel_at(int(flat[i])) for i in reached}


class LiveWireSearch:
    """
    Dijkstra search bound to one cost matrix.

    compute() replaces any previous state; nothing is reused across seeds.
    """

    def __init__(self, cost_matrix, record_order=False):
        self.cost_matrix = cost_matrix
        self.width = cost_matrix.width
        self.height = cost_matrix.height
        self.record_order = record_order
        self.state = None
        self._running = False
        # Flat Python list: indexing it is much faster than numpy scalars in the hot loop
        self._flat_cost = cost_matrix.cost_field.ravel().tolist()

    @property
    def status(self):
        if self._running:
            return SearchStatus.RUNNING
        if self.state is None:
            return SearchStatus.UNINITIALIZED
        return self.state.status

    @property
    def seed(self):
        return self.state.seed if self.state is not None else None

    def reset(self):
        self.state = None

    @trace(label="livewire_search")
    def compute(self, seed, target=None, should_abort=None):
        """
        Run the search from seed.

        Stops when the queue empties, or early once target is settled.
        Returns the new SearchState, or None when seed is outside the image
        or should_abort() turned true (the partial state is discarded).
        """
        self._running = True
        try:
            return self._run(seed, target, should_abort)
        finally:
            self._running = False

    def _run(self, seed, target, should_abort):
        tracer = get_tracer()
        self.state = None

        seed = Pixel(int(seed[0]), int(seed[1]))
        if not self.cost_matrix.contains(seed.x, seed.y):
            tracer.event("Seed outside image, search skipped", seed=seed)
            return None

        width = self.width
        height = self.height
        n = width * height
        costs = self._flat_cost

        distance = [float("inf")] * n
        visited = [False] * n
        predecessor = [NO_PREDECESSOR] * n
        order = [] if self.record_order else None

        seed_index = seed.y * width + seed.x
        target_index = None
        if target is not None and self.cost_matrix.contains(target[0], target[1]):
            target_index = target[1] * width + target[0]

        distance[seed_index] = 0.0
        heap = [(0.0, seed_index)]
        steps = [(dx, dy, dy * width + dx, DIAGONAL_STEP if dx and dy else 1.0)
                 for dx, dy in NEIGHBOR_OFFSETS]

        settled = 0
        exhausted = True
        while heap:
            dist, index = heapq.heappop(heap)
            if visited[index]:
                continue  # stale entry
            visited[index] = True
            settled += 1
            if order is not None:
                order.append(index)

            if index == target_index:
                exhausted = not heap
                break

            if should_abort is not None and settled % ABORT_CHECK_INTERVAL == 0 and should_abort():
                tracer.event(f"Search aborted after {settled} pixels", level="DEBUG")
                return None

            x = index % width
            y = index // width
            for dx, dy, offset, weight in steps:
                nx = x + dx
                ny = y + dy
                if nx < 0 or ny < 0 or nx >= width or ny >= height:
                    continue
                neighbor = index + offset
                if visited[neighbor]:
                    continue
                candidate = dist + costs[neighbor] * weight
                if candidate < distance[neighbor]:
                    distance[neighbor] = candidate
                    predecessor[neighbor] = index
                    heapq.heappush(heap, (candidate, neighbor))

        if should_abort is not None and should_abort():
            return None

        self.state = SearchState(
            seed=seed,
            width=width,
            height=height,
            distance=np.array(distance, dtype=np.float64).reshape(height, width),
            visited=np.array(visited, dtype=bool).reshape(height, width),
            predecessor=np.array(predecessor, dtype=np.int64).reshape(height, width),
            status=SearchStatus.SETTLED,
            exhausted=exhausted,
            settled_count=settled,
            settle_order=order or [],
        )
        tracer.event(f"Settled {settled} of {n} pixels", seed=seed, exhausted=exhausted)
        return self.state

    def distance_to(self, target):
        """Shortest known cost from the seed to target; inf when unknown."""
        state = self.state
        if state is None or not self.cost_matrix.contains(target[0], target[1]):
            return float("inf")
        if not state.exhausted and not state.visited[target[1], target[0]]:
            return float("inf")
        return float(state.distance[target[1], target[0]])

    def path_to(self, target):
        """
        Path from the seed to target, seed first.

        Empty when no search has run, target lies outside the image, or
        target was never reached. A search that stopped early only answers
        for pixels it settled.
        """
        state = self.state
        if state is None:
            return []

        tx, ty = int(target[0]), int(target[1])
        if not self.cost_matrix.contains(tx, ty):
            return []

        target = Pixel(tx, ty)
        if target == state.seed:
            return [state.seed]

        if not state.exhausted and not state.visited[ty, tx]:
            return []

        flat = state.predecessor.ravel()
        current = state.index_of(target)
        if flat[current] == NO_PREDECESSOR:
            return []

        seed_index = state.index_of(state.seed)
        path = []
        while current != seed_index:
            path.append(state.pixel_at(current))
            current = int(flat[current])
        path.append(state.seed)
        path.reverse()
        return path
