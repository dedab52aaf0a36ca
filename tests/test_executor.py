"""Tests for chunked, cancellable, and parallel execution."""

import asyncio
import errno
import logging
import multiprocessing
import time
from multiprocessing.pool import ThreadPool

import pytest

from reroll_core import executor
from reroll_core.data import Rarity
from reroll_core.executor import (
    SEED_STRIDE,
    CancellableSimulation,
    ParallelSimulation,
    create_simulation,
    default_worker_count,
    estimate_simulation_time,
    partition_iterations,
    run_parallel,
)


def failing_cost(locked_count):
    raise RuntimeError("cost table offline")


@pytest.fixture
def config(make_config, target):
    return make_config(targets=[target(1, ["A"], Rarity.RARE)])


@pytest.fixture
def thread_pool(monkeypatch):
    """Run worker chunks on threads so the tests stay in-process."""
    monkeypatch.setattr(executor, "Pool", ThreadPool)


class TestCancellableSimulation:
    """Chunked runner on the calling thread"""

    def test_progress_per_chunk(self, config, tiny_catalog):
        seen = []
        sim = CancellableSimulation(config, 1200, seed=1, catalog=tiny_catalog)
        results = sim.run(lambda progress: seen.append(progress.completed))
        assert seen == [500, 1000, 1200]
        assert results.run_count == 1200

    def test_cancel_from_callback(self, config, tiny_catalog):
        sim = CancellableSimulation(config, 2000, seed=1, catalog=tiny_catalog)
        seen = []

        def on_progress(progress):
            seen.append(progress.completed)
            sim.cancel()

        assert sim.run(on_progress) is None
        assert seen == [500]

    def test_cancel_before_run(self, config, tiny_catalog):
        sim = CancellableSimulation(config, 100, seed=1, catalog=tiny_catalog)
        sim.cancel()
        assert sim.run() is None

    def test_cancel_check(self, config, tiny_catalog):
        sim = CancellableSimulation(config, 100, seed=1, catalog=tiny_catalog, cancel_check=lambda: True)
        assert sim.run() is None
        assert sim.cancelled

    def test_run_async(self, config, tiny_catalog):
        sim = CancellableSimulation(config, 700, seed=2, catalog=tiny_catalog)
        results = asyncio.run(sim.run_async())
        assert results.run_count == 700

    def test_matches_single_batch(self, config, tiny_catalog):
        chunked = CancellableSimulation(config, 600, seed=5, chunk_size=100, catalog=tiny_catalog).run()
        whole = CancellableSimulation(config, 600, seed=5, chunk_size=600, catalog=tiny_catalog).run()
        assert chunked.shard_cost == whole.shard_cost

    def test_invalid_arguments(self, config):
        with pytest.raises(ValueError):
            CancellableSimulation(config, -1)
        with pytest.raises(ValueError):
            CancellableSimulation(config, 10, chunk_size=0)


class TestHelpers:
    """Partitioning, worker count, and estimates"""

    def test_partition_iterations(self):
        assert partition_iterations(10, 3) == [4, 3, 3]
        assert partition_iterations(2, 5) == [1, 1]
        assert partition_iterations(0, 4) == []

    def test_default_worker_count(self, monkeypatch):
        monkeypatch.setattr(executor.os, "cpu_count", lambda: 8)
        assert default_worker_count() == 7
        monkeypatch.setattr(executor.os, "cpu_count", lambda: None)
        assert default_worker_count() == 1

    def test_estimate_simulation_time(self, make_config, target):
        two_targets = make_config(targets=[target(1, ["A"]), target(2, ["B"])])
        estimated_ms, long_running = estimate_simulation_time(two_targets, 10_000)
        assert estimated_ms == pytest.approx(1400.0)
        assert long_running
        estimated_ms, long_running = estimate_simulation_time(make_config(), 1_000)
        assert estimated_ms == pytest.approx(100.0)
        assert not long_running


class TestCreateSimulation:
    """Strategy selection"""

    def test_small_batches_run_chunked(self, config):
        assert isinstance(create_simulation(config, 100, num_workers=4), CancellableSimulation)

    def test_large_batches_run_parallel(self, config):
        assert isinstance(create_simulation(config, 10_000, num_workers=4), ParallelSimulation)

    def test_parallel_disabled_or_single_worker(self, config):
        assert isinstance(
            create_simulation(config, 10_000, num_workers=4, allow_parallel=False), CancellableSimulation
        )
        assert isinstance(create_simulation(config, 10_000, num_workers=1), CancellableSimulation)

    def test_chunk_seeds(self, config):
        sim = ParallelSimulation(config, 1200, seed=5, num_workers=2, chunk_size=500)
        args = sim.chunk_arguments()
        assert [size for _, size, _, _, _ in args] == [400, 400, 400]
        assert [seed for _, _, seed, _, _ in args] == [5, 5 + SEED_STRIDE, 5 + 2 * SEED_STRIDE]


class TestParallelSimulation:
    """Worker fan-out and merge"""

    def test_merges_every_chunk(self, config, tiny_catalog, thread_pool):
        seen = []
        sim = ParallelSimulation(config, 1200, seed=9, num_workers=2, catalog=tiny_catalog)
        results = sim.run(lambda progress: seen.append(progress.completed))
        assert results.run_count == 1200
        assert seen[-1] == 1200
        assert seen == sorted(seen)

    def test_deterministic_for_seed(self, config, tiny_catalog, thread_pool):
        first = ParallelSimulation(config, 1000, seed=4, num_workers=3, catalog=tiny_catalog).run()
        second = ParallelSimulation(config, 1000, seed=4, num_workers=3, catalog=tiny_catalog).run()
        assert first.shard_cost == second.shard_cost

    def test_worker_failure(self, config, tiny_catalog, thread_pool, caplog):
        sim = ParallelSimulation(
            config, 100, seed=1, num_workers=2, cost_fn=failing_cost, catalog=tiny_catalog
        )
        with caplog.at_level(logging.ERROR):
            assert sim.run() is None
        assert "Simulation worker failed" in caplog.text

    def test_cancelled(self, config, tiny_catalog, thread_pool):
        sim = ParallelSimulation(config, 100, seed=1, num_workers=2, catalog=tiny_catalog)
        sim.cancel()
        assert sim.run() is None

    def test_falls_back_without_process_pool(self, config, tiny_catalog, monkeypatch, caplog):
        def unavailable(processes):
            raise NotImplementedError("no semaphores")

        monkeypatch.setattr(executor, "Pool", unavailable)
        with caplog.at_level(logging.WARNING):
            results = ParallelSimulation(config, 300, seed=1, num_workers=2, catalog=tiny_catalog).run()
        assert results.run_count == 300
        assert "Process pool unavailable" in caplog.text

    def test_run_parallel_cancel_check(self, config, tiny_catalog):
        assert run_parallel(config, 100, seed=1, catalog=tiny_catalog, cancel_check=lambda: True) is None

    def test_run_parallel(self, config, tiny_catalog, thread_pool):
        results = run_parallel(config, 6000, seed=1, num_workers=2, catalog=tiny_catalog)
        assert results.run_count == 6000


class TestWorkerProcesses:
    """Runs that start real worker processes"""

    def test_cancel_terminates_running_workers(self, make_config, target, tiny_catalog):
        """Chunks still rolling toward a banned target are killed on cancel"""
        unreachable = make_config(targets=[target(1, ["A"])], banned=["A"])
        deadline = time.monotonic() + 0.5
        sim = ParallelSimulation(
            unreachable,
            8,
            seed=1,
            num_workers=2,
            chunk_size=1,
            catalog=tiny_catalog,
            cancel_check=lambda: time.monotonic() > deadline,
        )
        assert sim.run() is None
        assert multiprocessing.active_children() == []

    def test_process_start_failure_falls_back(self, config, tiny_catalog, monkeypatch, caplog):
        def refuse_start(process):
            raise OSError(errno.EAGAIN, "Resource temporarily unavailable")

        monkeypatch.setattr(multiprocessing.process.BaseProcess, "start", refuse_start)
        with caplog.at_level(logging.WARNING):
            results = ParallelSimulation(config, 200, seed=1, num_workers=2, catalog=tiny_catalog).run()
        assert results.run_count == 200
        assert "Process pool unavailable" in caplog.text
