import threading

import pytest

from summon_banner import NORMAL, GoalKind, Measure
from summon_engine import SummonEstimator
from summon_errors import EmptyDistribution, InvalidBatchSize, InvalidConfiguration


@pytest.fixture
def estimator():
    est = SummonEstimator(seed=1, workers=2)
    est.configure(3, 0, 0, 0, 50, 3)
    est.set_goal_and_reset(GoalKind.RED, 1)
    yield est
    est.close()


def test_defaults():
    with SummonEstimator() as est:
        assert est.config == NORMAL
        assert est.goal.kind is GoalKind.ANY_FIVESTAR
        assert est.goal.count == 1
        assert est.sample_count() == 0


def test_configure_uses_percentages(estimator):
    assert estimator.config.focus_counts == (3, 0, 0, 0)
    assert estimator.config.base_focus_rate == pytest.approx(0.5)
    assert estimator.config.base_fivestar_rate == pytest.approx(0.03)


def test_red_focus_scenario(estimator):
    estimator.run_batch(10000)
    assert estimator.sample_count() == 10000
    (median,) = estimator.query_quantiles([0.5])
    assert isinstance(median, int)
    assert median >= 1


def test_rejects_goal_for_missing_color(estimator):
    estimator.run_batch(500)
    with pytest.raises(InvalidConfiguration):
        estimator.set_goal_and_reset(GoalKind.BLUE, 1)
    assert estimator.goal.kind is GoalKind.RED
    assert estimator.sample_count() == 500


def test_rejects_banner_that_breaks_current_goal(estimator):
    estimator.run_batch(200)
    with pytest.raises(InvalidConfiguration):
        estimator.configure(0, 1, 1, 1, 50, 3)
    assert estimator.config.focus_counts == (3, 0, 0, 0)
    assert estimator.sample_count() == 200


@pytest.mark.parametrize("args", [
    (1, 1, 1, 1, 150, 3),
    (1, 1, 1, 1, 50, -1),
    (1, -1, 1, 1, 50, 3),
])
def test_rejects_invalid_banner(estimator, args):
    with pytest.raises(InvalidConfiguration):
        estimator.configure(*args)
    assert estimator.config.focus_counts == (3, 0, 0, 0)


@pytest.mark.parametrize("count", [0, -5])
def test_rejects_invalid_batch_size(estimator, count):
    estimator.run_batch(100)
    with pytest.raises(InvalidBatchSize):
        estimator.run_batch(count)
    assert estimator.sample_count() == 100


def test_batches_are_additive(estimator):
    estimator.run_batch(300)
    estimator.run_batch(700)
    assert estimator.sample_count() == 1000


def test_configuration_change_resets_samples(estimator):
    estimator.run_batch(100)
    estimator.set_goal_and_reset("Any Focus", 2)
    assert estimator.sample_count() == 0
    with pytest.raises(EmptyDistribution):
        estimator.query_quantiles([0.5])
    estimator.run_batch(100)
    estimator.configure(1, 1, 1, 1, 50, 6)
    assert estimator.sample_count() == 0


def test_extreme_quantiles_match_min_and_max(estimator):
    estimator.run_batch(2000)
    low, high = estimator.query_quantiles([0.0, 1.0])
    assert low == estimator.aggregator.minimum()
    assert high == estimator.aggregator.maximum()
    values = estimator.query_quantiles([0.1, 0.25, 0.5, 0.75, 0.9, 0.99])
    assert values == sorted(values)


def test_same_seed_reproduces_quantiles():
    results = []
    for _ in range(2):
        with SummonEstimator(seed=123, workers=2) as est:
            est.set_goal_and_reset(GoalKind.ANY_FOCUS, 2)
            est.run_batch(100)
            est.run_batch(9000)
            results.append(est.query_quantiles([0.25, 0.5, 0.9]))
    assert results[0] == results[1]


def test_concurrent_batches(estimator):
    threads = [threading.Thread(target=estimator.run_batch, args=(500,)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert estimator.sample_count() == 2000


def test_queries_during_batches_see_whole_batches(estimator):
    done = threading.Event()

    def writer():
        for _ in range(20):
            estimator.run_batch(250)
        done.set()

    observed = []
    thread = threading.Thread(target=writer)
    thread.start()
    while not done.is_set() or not observed:
        count = estimator.sample_count()
        try:
            values = estimator.query_quantiles([0, 0.5, 1])
        except EmptyDistribution:
            values = None
        hist, total = estimator.aggregator.snapshot()
        observed.append((count, values, hist, total))
    thread.join()

    previous = 0
    for count, values, hist, total in observed:
        assert count % 250 == 0
        assert total % 250 == 0
        assert hist.sum() == total
        assert previous <= count <= total
        previous = total
        if values is not None:
            assert values == sorted(values)
            assert values[0] >= 1
    assert estimator.sample_count() == 5000


def test_orb_measure(estimator):
    estimator.run_batch(100)
    estimator.set_measure("orbs")
    assert estimator.measure is Measure.ORBS
    assert estimator.sample_count() == 0
    estimator.run_batch(2000)
    low, median = estimator.query_quantiles([0.0, 0.5])
    assert low >= 5
    assert median >= low
    with pytest.raises(InvalidConfiguration):
        estimator.set_measure("gems")
    assert estimator.measure is Measure.ORBS
    assert estimator.sample_count() == 2000


def test_goal_for_a_specific_unit(estimator):
    estimator.set_goal_and_reset(GoalKind.RED, 1, specific_unit=True)
    assert estimator.goal.specific_unit
    assert estimator.settings.unit_share == pytest.approx(1 / 3)
    with pytest.raises(InvalidConfiguration):
        estimator.set_goal_and_reset(GoalKind.ANY_FOCUS, 1, specific_unit=True)
    assert estimator.goal.kind is GoalKind.RED
