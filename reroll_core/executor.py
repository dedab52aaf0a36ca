"""Chunked, cancellable, and process-parallel Monte Carlo execution."""

from __future__ import annotations

import asyncio
import logging
import os
import random
import threading
from collections.abc import Callable, Iterator
from multiprocessing import Pool
from multiprocessing.pool import AsyncResult
from typing import Final, Optional, Union

from .cost import CostFn, lock_cost
from .models import CalculatorConfig, SimulationProgress, SimulationResults, SimulationRunResult
from .simulation import Catalog, aggregate_runs, build_simulation_pool, simulate_many, simulate_once

logger = logging.getLogger(__name__)

CHUNK_SIZE: Final[int] = 500
PARALLEL_THRESHOLD: Final[int] = 5_000
MAX_PARALLEL_CHUNKS: Final[int] = 256
SEED_STRIDE: Final[int] = 1_000_000_007
CANCEL_POLL_SECONDS: Final[float] = 0.05

ITERATION_PRESETS: Final[dict[str, int]] = {
    "low": 1_000,
    "medium": 10_000,
    "high": 100_000,
}

ProgressCallback = Callable[[SimulationProgress], None]
CancelCheck = Callable[[], bool]


def default_worker_count() -> int:
    """Return the worker budget: every core but one for the caller."""

    return max(1, (os.cpu_count() or 1) - 1)


def partition_iterations(iterations: int, parts: int) -> list[int]:
    """Split ``iterations`` into ``parts`` near-equal, non-empty sizes."""

    parts = max(1, min(parts, iterations))
    base, remainder = divmod(iterations, parts)
    return [base + (1 if index < remainder else 0) for index in range(parts) if iterations > 0]


def estimate_simulation_time(config: CalculatorConfig, iterations: int) -> tuple[float, bool]:
    """Return a rough runtime estimate in milliseconds and a long-running flag."""

    base_ms_per_iteration = 0.1
    target_multiplier = 1 + 0.2 * len(config.slot_targets)
    estimated_ms = iterations * base_ms_per_iteration * target_multiplier
    return estimated_ms, estimated_ms > 1000


class _CancelToken:
    """Cooperative cancellation flag, optionally fed by an external check."""

    def __init__(self, cancel_check: Optional[CancelCheck] = None) -> None:
        self._cancel_event = threading.Event()
        self._cancel_check = cancel_check

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        if not self._cancel_event.is_set() and self._cancel_check is not None:
            if self._cancel_check():
                self._cancel_event.set()
        return self._cancel_event.is_set()


class CancellableSimulation(_CancelToken):
    """Run a batch in fixed-size chunks on the calling thread.

    Progress is pushed after each chunk and ``cancel`` may be called from any
    thread. A cancelled batch yields ``None``, never a partial aggregate.
    """

    def __init__(
        self,
        config: CalculatorConfig,
        iterations: int,
        seed: Optional[int] = None,
        cost_fn: CostFn = lock_cost,
        chunk_size: int = CHUNK_SIZE,
        include_incomplete: bool = True,
        catalog: Catalog = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> None:
        super().__init__(cancel_check)
        if iterations < 0:
            raise ValueError("Iteration count cannot be negative.")
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive.")
        self.config = config
        self.iterations = iterations
        self.seed = seed
        self.cost_fn = cost_fn
        self.chunk_size = chunk_size
        self.include_incomplete = include_incomplete
        self.catalog = catalog

    def _iter_chunks(self) -> Iterator[list[SimulationRunResult]]:
        rng = random.Random(self.seed)
        pool = build_simulation_pool(self.config, self.catalog)
        completed = 0
        while completed < self.iterations:
            size = min(self.chunk_size, self.iterations - completed)
            chunk: list[SimulationRunResult] = []
            for _ in range(size):
                if self.cancelled:
                    return
                chunk.append(
                    simulate_once(self.config, rng, cost_fn=self.cost_fn, initial_pool=pool)
                )
            completed += size
            yield chunk

    def _report(self, on_progress: Optional[ProgressCallback], completed: int) -> None:
        if on_progress is not None and not self.cancelled:
            on_progress(SimulationProgress(completed=completed, total=self.iterations))

    def _finish(self, runs: list[SimulationRunResult]) -> Optional[SimulationResults]:
        if self.cancelled:
            logger.debug("Simulation cancelled after %d of %d runs", len(runs), self.iterations)
            return None
        return aggregate_runs(runs, include_incomplete=self.include_incomplete)

    def run(self, on_progress: Optional[ProgressCallback] = None) -> Optional[SimulationResults]:
        """Run every chunk and return the aggregate, or ``None`` if cancelled."""

        runs: list[SimulationRunResult] = []
        for chunk in self._iter_chunks():
            runs.extend(chunk)
            self._report(on_progress, len(runs))
        return self._finish(runs)

    async def run_async(
        self,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[SimulationResults]:
        """Like ``run`` but hands control back to the event loop between chunks."""

        runs: list[SimulationRunResult] = []
        for chunk in self._iter_chunks():
            runs.extend(chunk)
            self._report(on_progress, len(runs))
            await asyncio.sleep(0)
        return self._finish(runs)


def _simulate_chunk(
    args: tuple[CalculatorConfig, int, int, CostFn, Catalog],
) -> list[SimulationRunResult]:
    """Worker entry point; must stay importable at module level for pickling."""

    config, iterations, seed, cost_fn, catalog = args
    return simulate_many(config, iterations=iterations, seed=seed, cost_fn=cost_fn, catalog=catalog)


class ParallelSimulation(_CancelToken):
    """Spread a batch across worker processes.

    The batch is cut into chunks, each with its own seed derived from the
    base seed and chunk index, and chunks are handed to a process pool sized
    by ``default_worker_count``. Progress is pushed as chunks finish. Raw runs
    are merged only after every chunk has completed. Cancellation or any
    worker failure terminates the pool, killing chunks still in flight, and
    yields ``None``.
    """

    def __init__(
        self,
        config: CalculatorConfig,
        iterations: int,
        seed: Optional[int] = None,
        cost_fn: CostFn = lock_cost,
        num_workers: Optional[int] = None,
        chunk_size: int = CHUNK_SIZE,
        include_incomplete: bool = True,
        catalog: Catalog = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> None:
        super().__init__(cancel_check)
        if iterations < 0:
            raise ValueError("Iteration count cannot be negative.")
        self.config = config
        self.iterations = iterations
        self.seed = seed if seed is not None else random.randrange(2**32)
        self.cost_fn = cost_fn
        self.num_workers = num_workers if num_workers is not None else default_worker_count()
        self.chunk_size = max(1, chunk_size)
        self.include_incomplete = include_incomplete
        self.catalog = catalog

    def chunk_arguments(self) -> list[tuple[CalculatorConfig, int, int, CostFn, Catalog]]:
        """Return one argument tuple per chunk, each with an independent seed."""

        chunk_count = -(-self.iterations // self.chunk_size)
        chunk_count = min(max(chunk_count, self.num_workers), MAX_PARALLEL_CHUNKS)
        return [
            (self.config, size, self.seed + index * SEED_STRIDE, self.cost_fn, self.catalog)
            for index, size in enumerate(partition_iterations(self.iterations, chunk_count))
        ]

    def _run_chunked(self, on_progress: Optional[ProgressCallback]) -> Optional[SimulationResults]:
        fallback = CancellableSimulation(
            self.config,
            self.iterations,
            seed=self.seed,
            cost_fn=self.cost_fn,
            chunk_size=self.chunk_size,
            include_incomplete=self.include_incomplete,
            catalog=self.catalog,
            cancel_check=lambda: self.cancelled,
        )
        return fallback.run(on_progress)

    def run(self, on_progress: Optional[ProgressCallback] = None) -> Optional[SimulationResults]:
        """Run all chunks in worker processes and return the merged aggregate.

        Falls back to the chunked runner when the worker processes cannot be
        started. Every exit path terminates the pool, so a cancelled or failed
        batch leaves no worker running.
        """

        chunk_args = self.chunk_arguments()
        if self.cancelled:
            return None
        try:
            pool = Pool(processes=self.num_workers)
        except (OSError, NotImplementedError) as exc:
            logger.warning("Process pool unavailable (%s); running in chunks", exc)
            return self._run_chunked(on_progress)

        chunk_results: dict[int, list[SimulationRunResult]] = {}
        completed = 0
        try:
            pending: dict[int, AsyncResult] = {
                index: pool.apply_async(_simulate_chunk, (args,))
                for index, args in enumerate(chunk_args)
            }
            while pending:
                if self.cancelled:
                    logger.debug("Parallel simulation cancelled with %d chunks pending", len(pending))
                    return None
                next(iter(pending.values())).wait(CANCEL_POLL_SECONDS)
                for index in [index for index, result in pending.items() if result.ready()]:
                    try:
                        runs = pending.pop(index).get()
                    except Exception:
                        logger.exception("Simulation worker failed on chunk %d", index)
                        return None
                    chunk_results[index] = runs
                    completed += len(runs)
                    if on_progress is not None and not self.cancelled:
                        on_progress(SimulationProgress(completed=completed, total=self.iterations))
        finally:
            pool.terminate()
            pool.join()

        if self.cancelled:
            return None
        merged = [run for index in sorted(chunk_results) for run in chunk_results[index]]
        logger.debug("Merged %d runs from %d chunks", len(merged), len(chunk_results))
        return aggregate_runs(merged, include_incomplete=self.include_incomplete)


SimulationRunner = Union[CancellableSimulation, ParallelSimulation]


def create_simulation(
    config: CalculatorConfig,
    iterations: int,
    seed: Optional[int] = None,
    cost_fn: CostFn = lock_cost,
    allow_parallel: bool = True,
    num_workers: Optional[int] = None,
    include_incomplete: bool = True,
    catalog: Catalog = None,
    cancel_check: Optional[CancelCheck] = None,
) -> SimulationRunner:
    """Pick the execution strategy for a batch.

    Small batches, or hosts with a single spare core, run chunked on the
    calling thread; larger batches fan out to worker processes.
    """

    workers = num_workers if num_workers is not None else default_worker_count()
    if allow_parallel and workers > 1 and iterations >= PARALLEL_THRESHOLD:
        logger.debug("Running %d iterations across %d workers", iterations, workers)
        return ParallelSimulation(
            config,
            iterations,
            seed=seed,
            cost_fn=cost_fn,
            num_workers=workers,
            include_incomplete=include_incomplete,
            catalog=catalog,
            cancel_check=cancel_check,
        )
    logger.debug("Running %d iterations in chunks of %d", iterations, CHUNK_SIZE)
    return CancellableSimulation(
        config,
        iterations,
        seed=seed,
        cost_fn=cost_fn,
        include_incomplete=include_incomplete,
        catalog=catalog,
        cancel_check=cancel_check,
    )


def run_parallel(
    config: CalculatorConfig,
    iterations: int,
    seed: Optional[int] = None,
    num_workers: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_check: Optional[CancelCheck] = None,
    cost_fn: CostFn = lock_cost,
    include_incomplete: bool = True,
    catalog: Catalog = None,
) -> Optional[SimulationResults]:
    """Run a batch with the best available strategy and wait for the result.

    Returns ``None`` when ``cancel_check`` reports cancellation or a worker
    fails; otherwise the aggregate over all ``iterations`` runs.
    """

    runner = create_simulation(
        config,
        iterations,
        seed=seed,
        cost_fn=cost_fn,
        num_workers=num_workers,
        include_incomplete=include_incomplete,
        catalog=catalog,
        cancel_check=cancel_check,
    )
    return runner.run(on_progress)
