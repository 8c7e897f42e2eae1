import asyncio
import threading

import pytest

from discrete_log import (
    CacheLookup,
    ChunkedScan,
    DenseScan,
    DiscreteLogCache,
    DiscreteLogSolver,
    ExhaustiveScan,
    RoundAmounts,
    SearchBudget,
    SearchConfig,
    SearchContext,
)
from errors import CacheCorruption, DiscreteLogNotFound
from jubjub import BASE8, IDENTITY


def context(solver):
    return SearchContext(solver, SearchBudget())


@pytest.mark.parametrize("value", [0, 1, 57, 999, 1000, 1500, 1700, 2345, 2999, 3000])
def test_round_trip(solver, value):
    assert solver.recover_scalar(BASE8 * value) == value


def test_identity_is_zero(solver):
    assert solver.recover_scalar(IDENTITY) == 0


def test_boundary_at_max_value():
    with DiscreteLogSolver(SearchConfig(max_value=2345, deadline_seconds=None)) as s:
        assert s.recover_scalar(BASE8 * 2345) == 2345
        with pytest.raises(DiscreteLogNotFound) as e:
            s.recover_scalar(BASE8 * 2346)
        assert e.value.max_value == 2345


def test_boundary_on_stride_multiple():
    with DiscreteLogSolver(SearchConfig(max_value=2400, deadline_seconds=None)) as s:
        assert s.recover_scalar(BASE8 * 2400) == 2400
        with pytest.raises(DiscreteLogNotFound):
            s.recover_scalar(BASE8 * 2401)


def test_explicit_max_value_overrides_config(solver):
    assert solver.recover_scalar(BASE8 * 1234, max_value=1234) == 1234
    with pytest.raises(DiscreteLogNotFound):
        solver.recover_scalar(BASE8 * 1234, max_value=1233)


def test_cached_value_above_bound_is_not_found(solver):
    # 5000 is warmed into the cache but lies beyond max_value=3000
    with pytest.raises(DiscreteLogNotFound):
        solver.recover_scalar(BASE8 * 5000)


def test_cache_does_not_change_results(small_config):
    values = [0, 3, 100, 250, 1100, 1899, 2999]
    with DiscreteLogSolver(small_config) as cached, \
            DiscreteLogSolver(small_config, cache=DiscreteLogCache(capacity=0)) as uncached:
        for v in values:
            assert cached.recover_scalar(BASE8 * v) == uncached.recover_scalar(BASE8 * v) == v
        for v in (3001, 5000):
            with pytest.raises(DiscreteLogNotFound):
                cached.recover_scalar(BASE8 * v)
            with pytest.raises(DiscreteLogNotFound):
                uncached.recover_scalar(BASE8 * v)
        assert len(uncached.cache) == 0


def test_found_values_are_cached(solver):
    solver.recover_scalar(BASE8 * 1777)
    assert solver.cache.get(BASE8 * 1777) == 1777


def test_warm_up_runs_once(solver):
    assert solver.warm_up()
    assert not solver.warm_up()
    assert solver.cache.get(BASE8 * 100) == 100
    assert solver.cache.get(BASE8 * 10_000) == 10_000
    assert solver.cache.get(BASE8 * 150) is None
    assert len(solver.cache) == 101 + 99


def test_cache_bound_and_fifo_eviction():
    cache = DiscreteLogCache(capacity=5)
    points = [BASE8 * i for i in range(20)]
    for i, point in enumerate(points):
        cache.put(point, i)
        assert len(cache) <= 5
    assert len(cache) == 5
    assert points[0] not in cache
    assert cache.get(points[14]) is None
    assert cache.get(points[19]) == 19
    assert cache.get(points[15]) == 15


def test_cache_capacity_zero_stores_nothing():
    cache = DiscreteLogCache(capacity=0)
    cache.put(BASE8, 1)
    assert len(cache) == 0
    with pytest.raises(ValueError):
        DiscreteLogCache(capacity=-1)


def test_corrupt_cache_entry_is_discarded(solver):
    target = BASE8 * 7
    solver.cache.put(target, 8)
    with pytest.raises(CacheCorruption):
        CacheLookup().probe(target, 3000, context(solver))
    assert target not in solver.cache

    solver.cache.put(target, 8)
    assert solver.recover_scalar(target) == 7
    assert solver.cache.get(target) == 7


def test_dense_phase(solver):
    ctx = context(solver)
    assert DenseScan().probe(BASE8 * 640, 3000, ctx) == 640
    assert DenseScan().probe(BASE8 * 1001, 3000, ctx) is None
    assert DenseScan().probe(BASE8 * 640, 600, ctx) is None


def test_round_phase(solver):
    ctx = context(solver)
    assert RoundAmounts().probe(BASE8 * 2500, 3000, ctx) == 2500
    assert RoundAmounts().probe(BASE8 * 2600, 3000, ctx) is None
    assert RoundAmounts().probe(BASE8 * 5000, 3000, ctx) is None


def test_chunked_phase_samples_stride(solver):
    ctx = context(solver)
    assert ChunkedScan().probe(BASE8 * 2700, 3000, ctx) == 2700
    assert ChunkedScan().probe(BASE8 * 2701, 3000, ctx) is None


def test_exhaustive_phase_skips_stride(solver):
    ctx = context(solver)
    assert ExhaustiveScan().probe(BASE8 * 1234, 3000, ctx) == 1234
    assert ExhaustiveScan().probe(BASE8 * 1300, 3000, ctx) is None
    assert ExhaustiveScan().probe(BASE8 * 999, 3000, ctx) is None


def test_iteration_cap_surfaces_not_found():
    config = SearchConfig(max_value=3000, max_iterations=10, deadline_seconds=None)
    with DiscreteLogSolver(config, cache=DiscreteLogCache(capacity=0)) as s:
        with pytest.raises(DiscreteLogNotFound):
            s.recover_scalar(BASE8 * 500)


def test_cancelled_search_surfaces_not_found(small_config):
    cancel = threading.Event()
    cancel.set()
    with DiscreteLogSolver(small_config, cache=DiscreteLogCache(capacity=0)) as s:
        with pytest.raises(DiscreteLogNotFound):
            s.recover_scalar(BASE8 * 2999, cancel=cancel)


def test_expired_deadline_surfaces_not_found():
    config = SearchConfig(max_value=3000, deadline_seconds=0.0)
    with DiscreteLogSolver(config, cache=DiscreteLogCache(capacity=0)) as s:
        with pytest.raises(DiscreteLogNotFound):
            s.recover_scalar(BASE8 * 2999)


def test_submit_runs_off_thread(solver):
    future = solver.submit(BASE8 * 42)
    assert future.result(timeout=30) == 42


def test_submit_propagates_not_found(solver):
    future = solver.submit(BASE8 * 3001)
    with pytest.raises(DiscreteLogNotFound):
        future.result(timeout=30)


def test_recover_async(solver):
    assert asyncio.run(solver.recover_async(BASE8 * 1250)) == 1250


def test_concurrent_searches_share_cache(solver):
    futures = [solver.submit(BASE8 * v) for v in (11, 1111, 2222)]
    assert [f.result(timeout=30) for f in futures] == [11, 1111, 2222]
    assert solver.cache.get(BASE8 * 2222) == 2222


def test_negative_max_value(solver):
    with pytest.raises(ValueError):
        solver.recover_scalar(BASE8, max_value=-1)


def test_config_validation():
    with pytest.raises(ValueError):
        SearchConfig(chunk_size=1050)
    with pytest.raises(ValueError):
        SearchConfig(dense_scan_limit=1050)
