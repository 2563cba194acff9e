import math
import threading

import numpy as np
import pytest

from summon_errors import EmptyDistribution
from summon_stats import DrawCountAggregator


@pytest.fixture
def aggregator():
    agg = DrawCountAggregator()
    for value in [5, 1, 3, 2, 4]:
        agg.record(value)
    return agg


def test_empty_aggregator_signals_no_data():
    agg = DrawCountAggregator()
    assert agg.count() == 0
    with pytest.raises(EmptyDistribution):
        agg.quantile(0.5)
    with pytest.raises(EmptyDistribution):
        agg.quantiles([0.1, 0.9])
    with pytest.raises(EmptyDistribution):
        agg.mean()


def test_nearest_rank_quantiles(aggregator):
    assert aggregator.count() == 5
    assert aggregator.quantile(0.0) == 1
    assert aggregator.quantile(1.0) == 5
    assert aggregator.quantile(0.5) == 3
    assert aggregator.quantile(0.2) == 1
    assert aggregator.quantile(0.9) == 5


def test_quantiles_keep_request_order(aggregator):
    assert aggregator.quantiles([1.0, 0.0, 0.5]) == [5, 1, 3]
    assert aggregator.quantiles([]) == []


def test_quantile_absorbs_float_noise():
    agg = DrawCountAggregator()
    agg.record_many(range(1, 11))
    # 0.7 * 10 == 7.000000000000001
    assert agg.quantile(0.7) == 7


def test_quantile_rejects_out_of_range(aggregator):
    with pytest.raises(ValueError):
        aggregator.quantile(1.5)
    with pytest.raises(ValueError):
        aggregator.quantiles([0.5, -0.1])


def test_matches_sorted_nearest_rank():
    rng = np.random.default_rng(0)
    samples = rng.integers(1, 400, size=1001)
    agg = DrawCountAggregator()
    agg.record_many(samples)
    ordered = np.sort(samples)
    ps = [0.0, 0.01, 0.25, 0.5, 0.75, 0.9, 0.99, 1.0]
    expected = [int(ordered[max(1, math.ceil(p * len(samples))) - 1]) for p in ps]
    assert agg.quantiles(ps) == expected
    assert agg.quantile(0.0) == samples.min()
    assert agg.quantile(1.0) == samples.max()


def test_quantiles_are_monotonic():
    rng = np.random.default_rng(1)
    agg = DrawCountAggregator()
    agg.record_many(rng.geometric(0.05, size=5000))
    values = agg.quantiles(np.linspace(0, 1, 101))
    assert all(a <= b for a, b in zip(values, values[1:]))


def test_grows_beyond_initial_capacity():
    agg = DrawCountAggregator()
    agg.record(10000)
    agg.record_many([3, 70000])
    assert agg.count() == 3
    assert agg.maximum() == 70000
    assert agg.minimum() == 3
    assert agg.quantile(0.5) == 10000


def test_reset_clears_samples():
    agg = DrawCountAggregator()
    agg.record_many([1, 2, 3])
    generation = agg.generation
    agg.reset()
    assert agg.count() == 0
    assert agg.generation == generation + 1
    with pytest.raises(EmptyDistribution):
        agg.quantile(0.5)
    agg.reset()
    assert agg.count() == 0


def test_stale_batch_is_discarded():
    agg = DrawCountAggregator()
    generation = agg.generation
    agg.reset()
    assert agg.record_many([1, 2, 3], generation=generation) is False
    assert agg.count() == 0
    assert agg.record_many([1, 2, 3], generation=agg.generation) is True
    assert agg.count() == 3


def test_summary_helpers(aggregator):
    assert aggregator.mean() == pytest.approx(3.0)
    assert aggregator.probability_within(3) == pytest.approx(0.6)
    assert aggregator.probability_within(0) == 0.0
    assert aggregator.probability_within(100) == 1.0
    assert aggregator.histogram().tolist() == [0, 1, 1, 1, 1, 1]


def test_rejects_negative_samples():
    agg = DrawCountAggregator()
    with pytest.raises(ValueError):
        agg.record(-1)
    with pytest.raises(ValueError):
        agg.record_many([1, -2])
    assert agg.count() == 0


def test_concurrent_record():
    agg = DrawCountAggregator()

    def worker(offset):
        for i in range(1000):
            agg.record(offset + i % 50)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert agg.count() == 8000
    assert agg.histogram().sum() == 8000


def test_reads_during_writes_never_see_partial_batches():
    # 每批都是 0..99 各一个，任何完整状态下直方图各项相等，百分位固定为 0/49/99
    agg = DrawCountAggregator()
    batch = np.arange(100)
    done = threading.Event()

    def writer():
        for _ in range(300):
            agg.record_many(batch)
        done.set()

    observed = []
    thread = threading.Thread(target=writer)
    thread.start()
    while not done.is_set() or not observed:
        hist, total = agg.snapshot()
        count = agg.count()
        try:
            values = agg.quantiles([0, 0.5, 1])
        except EmptyDistribution:
            values = None
        observed.append((hist, total, count, values))
    thread.join()

    previous = 0
    for hist, total, count, values in observed:
        assert hist.sum() == total
        assert total % 100 == 0
        if total:
            assert np.all(hist == total // 100)
        assert count >= total >= previous
        previous = count
        assert values is None or values == [0, 49, 99]
    assert agg.count() == 30000


def test_snapshot_of_empty_aggregator():
    hist, total = DrawCountAggregator().snapshot()
    assert total == 0
    assert hist.size == 0
