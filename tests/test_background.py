"""Tests for off-thread cost matrix construction."""

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest


def test_result_matches_direct_build(square_image):
    from livewire.features.background import CostMatrixBuilder
    from livewire.features.cost_matrix import build_cost_matrix

    with CostMatrixBuilder() as builder:
        generation = builder.submit(square_image)
        matrix = builder.result(generation, timeout=30)

    assert np.array_equal(matrix.cost_field, build_cost_matrix(square_image).cost_field)


def test_nothing_submitted():
    from livewire.features.background import CostMatrixBuilder

    with CostMatrixBuilder() as builder:
        assert not builder.is_ready()
        assert builder.result() is None


def test_superseded_generation_returns_none(flat_image, square_image):
    from livewire.features.background import CostMatrixBuilder

    with CostMatrixBuilder() as builder:
        stale = builder.submit(flat_image)
        current = builder.submit(square_image)

        assert current == stale + 1
        assert builder.result(stale, timeout=30) is None
        assert builder.result(current, timeout=30).shape == (60, 60)


def test_result_dropped_when_superseded_mid_wait(flat_image, square_image):
    from livewire.features.background import CostMatrixBuilder

    gate = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)
    executor.submit(gate.wait)  # hold the worker until the second submit lands

    builder = CostMatrixBuilder(executor=executor)
    try:
        first = builder.submit(flat_image)
        results = []
        waiter = threading.Thread(target=lambda: results.append(builder.result(first, timeout=30)))
        waiter.start()

        builder.submit(square_image)
        gate.set()
        waiter.join(timeout=30)

        assert results == [None]
    finally:
        executor.shutdown(wait=True)


def test_build_errors_propagate():
    from livewire.errors import InvalidConfigurationError
    from livewire.features.background import CostMatrixBuilder

    with CostMatrixBuilder() as builder:
        generation = builder.submit(np.zeros((0, 4), dtype=np.uint8))
        with pytest.raises(InvalidConfigurationError):
            builder.result(generation, timeout=30)


def test_config_is_applied(flat_image):
    from livewire.config import CostConfig
    from livewire.features.background import CostMatrixBuilder

    config = CostConfig(laplacian_weight=0.2, gradient_magnitude_weight=0.3, gradient_direction_weight=0.5)
    with CostMatrixBuilder(config) as builder:
        matrix = builder.result(builder.submit(flat_image), timeout=30)

    assert matrix.cost(2, 2) == pytest.approx(0.5)
