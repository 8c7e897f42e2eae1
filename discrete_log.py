"""
Bounded discrete-log recovery: find b in [0, max_value] with BASE8 * b == target.

The search runs as an ordered list of phases so that the common cases
(small balances, round amounts, cached values) are answered first:

    1. cache lookup
    2. cache warm-up (first search only), then lookup again
    3. dense scan of [0, DENSE_SCAN_LIMIT]
    4. round-amount probe
    5. chunked scan, sampling every CHUNK_STRIDE inside each CHUNK_SIZE chunk
    6. exhaustive scan of everything not yet covered

Scans walk the progression by repeated point addition instead of a fresh
scalar multiplication per candidate. Every value that enters the cache was
checked against its point first, and cache hits are checked again before
they are returned.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

import config
from errors import CacheCorruption, DiscreteLogNotFound
from jubjub import BASE8, Point

logger = logging.getLogger(__name__)


# ---- Cache ----------------------------------------------------------------------

class DiscreteLogCache:
    """Thread-safe point -> scalar map with FIFO eviction.

    A capacity of 0 disables caching entirely.
    """

    def __init__(self, capacity: int = config.CACHE_CAPACITY):
        if capacity < 0:
            raise ValueError("capacity must be non-negative")
        self.capacity = capacity
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def key(point: Point) -> Tuple[int, int]:
        return (point.x, point.y)

    def get(self, point: Point) -> Optional[int]:
        with self._lock:
            return self._entries.get(self.key(point))

    def put(self, point: Point, value: int):
        if self.capacity == 0:
            return
        k = self.key(point)
        with self._lock:
            if k in self._entries:
                self._entries[k] = value
                return
            while len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)
            self._entries[k] = value

    def discard(self, point: Point):
        with self._lock:
            self._entries.pop(self.key(point), None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, point: Point):
        with self._lock:
            return self.key(point) in self._entries


# ---- Configuration & budget -----------------------------------------------------

@dataclass(frozen=True)
class SearchConfig:
    max_value: int = config.MAX_BALANCE
    warmup_dense_limit: int = config.WARMUP_DENSE_LIMIT
    warmup_round_step: int = config.WARMUP_ROUND_STEP
    warmup_round_limit: int = config.WARMUP_ROUND_LIMIT
    dense_scan_limit: int = config.DENSE_SCAN_LIMIT
    round_amounts: Tuple[int, ...] = config.ROUND_AMOUNTS
    chunk_size: int = config.CHUNK_SIZE
    chunk_stride: int = config.CHUNK_STRIDE
    progress_interval: int = config.PROGRESS_INTERVAL
    deadline_seconds: Optional[float] = config.SEARCH_DEADLINE_SECONDS
    max_iterations: Optional[int] = config.SEARCH_MAX_ITERATIONS

    def __post_init__(self):
        if self.chunk_size % self.chunk_stride:
            raise ValueError("chunk_size must be a multiple of chunk_stride")
        # the exhaustive phase skips stride multiples, so chunks must start on one
        if self.dense_scan_limit % self.chunk_stride:
            raise ValueError("dense_scan_limit must be a multiple of chunk_stride")


class SearchBudget:
    """Iteration/wall-clock cap for one search, plus an external cancel flag."""

    CHECK_EVERY = 256

    def __init__(self, deadline_seconds: Optional[float] = None,
                 max_iterations: Optional[int] = None,
                 cancel: Optional[threading.Event] = None):
        self.expires_at = None if deadline_seconds is None else time.monotonic() + deadline_seconds
        self.max_iterations = max_iterations
        self.cancel = cancel
        self.iterations = 0

    def tick(self):
        self.iterations += 1
        if self.max_iterations is not None and self.iterations > self.max_iterations:
            raise DiscreteLogNotFound("search gave up after %d candidates" % self.max_iterations)
        if self.iterations % self.CHECK_EVERY:
            return
        if self.cancel is not None and self.cancel.is_set():
            raise DiscreteLogNotFound("search cancelled")
        if self.expires_at is not None and time.monotonic() > self.expires_at:
            raise DiscreteLogNotFound("search deadline exceeded")


def scan_progression(target: Point, start: int, stop: int, step: int,
                     budget: SearchBudget, skip_multiples_of: int = None,
                     on_value=None) -> Optional[int]:
    """Compares BASE8 * v against `target` for v in range(start, stop + 1, step)."""
    if start > stop:
        return None
    point = BASE8 * start
    stride = BASE8 * step
    for value in range(start, stop + 1, step):
        if skip_multiples_of is None or value % skip_multiples_of:
            if point == target:
                return value
            budget.tick()
            if on_value is not None:
                on_value(value)
        point = point + stride
    return None


# ---- Phases ---------------------------------------------------------------------

@dataclass
class SearchContext:
    solver: "DiscreteLogSolver"
    budget: SearchBudget
    config: SearchConfig = field(init=False)

    def __post_init__(self):
        self.config = self.solver.config


class CacheLookup:
    name = "cache"

    def probe(self, target: Point, max_value: int, ctx: SearchContext) -> Optional[int]:
        cache = ctx.solver.cache
        value = cache.get(target)
        if value is None:
            return None
        if BASE8 * value != target:
            cache.discard(target)
            raise CacheCorruption("cached discrete log %d does not match its point" % value)
        if value > max_value:
            # Logs are unique below the subgroup order, so nothing in range matches
            raise DiscreteLogNotFound("balance %d exceeds bound %d" % (value, max_value), max_value)
        return value


class CacheWarmup(CacheLookup):
    name = "warmup"

    def probe(self, target, max_value, ctx):
        if not ctx.solver.warm_up():
            return None
        return super().probe(target, max_value, ctx)


class DenseScan:
    name = "dense"

    def probe(self, target, max_value, ctx):
        stop = min(ctx.config.dense_scan_limit, max_value)
        return scan_progression(target, 0, stop, 1, ctx.budget)


class RoundAmounts:
    name = "round"

    def probe(self, target, max_value, ctx):
        for value in ctx.config.round_amounts:
            if value > max_value:
                continue
            ctx.budget.tick()
            if BASE8 * value == target:
                return value
        return None


class ChunkedScan:
    name = "chunked"

    def probe(self, target, max_value, ctx):
        cfg = ctx.config
        for chunk in range(cfg.dense_scan_limit, max_value + 1, cfg.chunk_size):
            chunk_end = min(chunk + cfg.chunk_size - 1, max_value)
            found = scan_progression(target, chunk, chunk_end, cfg.chunk_stride, ctx.budget)
            if found is not None:
                return found
        return None


class ExhaustiveScan:
    name = "exhaustive"

    def probe(self, target, max_value, ctx):
        cfg = ctx.config

        def report(value):
            if value % cfg.progress_interval == 1:
                logger.info("discrete log search progress: %d/%d", value, max_value)

        # Stride multiples past the dense range were covered by the chunked scan
        return scan_progression(
            target, cfg.dense_scan_limit + 1, max_value, 1, ctx.budget,
            skip_multiples_of=cfg.chunk_stride, on_value=report,
        )


DEFAULT_PHASES = (
    CacheLookup(),
    CacheWarmup(),
    DenseScan(),
    RoundAmounts(),
    ChunkedScan(),
    ExhaustiveScan(),
)


# ---- Solver ---------------------------------------------------------------------

class DiscreteLogSolver:
    """
    Owns a cache and runs the phased search.

    `recover_scalar` blocks; `submit` and `recover_async` run it on the
    solver's worker thread so an interactive caller stays responsive.
    """

    def __init__(self, config: SearchConfig = None, cache: DiscreteLogCache = None,
                 phases: Iterable = DEFAULT_PHASES, max_workers: int = 1):
        self.config = config or SearchConfig()
        self.cache = cache if cache is not None else DiscreteLogCache()
        self.phases = tuple(phases)
        self.max_workers = max_workers
        self._warm = False
        self._warm_lock = threading.Lock()
        self._executor = None
        self._executor_lock = threading.Lock()

    def warm_up(self) -> bool:
        """Seeds the cache once. Returns True only on the call that did the work."""
        with self._warm_lock:
            if self._warm:
                return False
            self._warm = True
        if self.cache.capacity == 0:
            return False

        cfg = self.config
        point = BASE8 * 0
        for value in range(0, cfg.warmup_dense_limit + 1):
            self.cache.put(point, value)
            point = point + BASE8

        start = (cfg.warmup_dense_limit // cfg.warmup_round_step + 1) * cfg.warmup_round_step
        point = BASE8 * start
        stride = BASE8 * cfg.warmup_round_step
        for value in range(start, cfg.warmup_round_limit + 1, cfg.warmup_round_step):
            self.cache.put(point, value)
            point = point + stride
        logger.debug("discrete log cache warmed with %d entries", len(self.cache))
        return True

    def recover_scalar(self, target: Point, max_value: int = None,
                       cancel: threading.Event = None) -> int:
        if max_value is None:
            max_value = self.config.max_value
        if max_value < 0:
            raise ValueError("max_value must be non-negative")

        budget = SearchBudget(self.config.deadline_seconds, self.config.max_iterations, cancel)
        ctx = SearchContext(self, budget)
        try:
            for phase in self.phases:
                try:
                    value = phase.probe(target, max_value, ctx)
                except CacheCorruption as e:
                    logger.warning("discarding cache entry: %s", e)
                    continue
                if value is not None:
                    logger.debug("discrete log found by %s phase", phase.name)
                    self.cache.put(target, value)
                    return value
        except DiscreteLogNotFound as e:
            logger.info("discrete log search stopped: %s", e)
            e.max_value = max_value
            raise

        logger.info("no discrete log in [0, %d]", max_value)
        raise DiscreteLogNotFound("no discrete log in [0, %d]" % max_value, max_value)

    # ---- off-thread execution ----

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="discrete-log"
                )
            return self._executor

    def submit(self, target: Point, max_value: int = None,
               cancel: threading.Event = None) -> Future:
        return self._get_executor().submit(self.recover_scalar, target, max_value, cancel)

    async def recover_async(self, target: Point, max_value: int = None,
                            cancel: threading.Event = None) -> int:
        return await asyncio.wrap_future(self.submit(target, max_value, cancel))

    def close(self):
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
