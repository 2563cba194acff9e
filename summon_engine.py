"""
对外接口。

界面层只通过 ``SummonEstimator`` 的五个操作与模拟核心交互：
``configure`` / ``set_goal_and_reset`` / ``run_batch`` / ``query_quantiles`` / ``sample_count``。
所有操作要么完整生效，要么抛出异常且不改变任何状态。
"""

import logging
import threading

import numpy as np

from summon_banner import (
    DEFAULT_HARD_PITY,
    DEFAULT_RAMP_INTERVAL,
    DEFAULT_RAMP_STEP,
    NORMAL,
    BannerConfig,
    BannerSettings,
    Goal,
    GoalKind,
    Measure,
)
from summon_batch import DEFAULT_WORKERS, BatchRunner, validate_trial_count
from summon_errors import InvalidConfiguration
from summon_stats import DrawCountAggregator

logger = logging.getLogger(__name__)


def _percent(name, value):
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"{name} 必须为数值，收到: {value!r}") from exc
    if not 0.0 <= value <= 100.0:
        raise InvalidConfiguration(f"{name} 必须在 [0, 100] 区间内，收到: {value}")
    return value / 100.0


class SummonEstimator:
    """
    抽卡次数分布估计器。

    参数:
    - config: 初始卡池，默认为普通卡池。
    - goal: 初始目标，默认为任意五星 1 个。
    - seed: 随机种子，可以是整数、SeedSequence 或 np.random.Generator。
    - workers: 并行模拟的线程数。
    - measure: 样本单位，"pulls"（抽数，默认）或 "orbs"（5 连召唤消耗的宝珠数）。
    """

    def __init__(self, config=NORMAL, goal=None, seed=None, workers=DEFAULT_WORKERS,
                 measure=Measure.PULLS):
        self._settings = BannerSettings(config, goal or Goal(GoalKind.ANY_FIVESTAR, 1), measure)
        if isinstance(seed, np.random.Generator):
            self._rng = seed
        else:
            self._rng = np.random.default_rng(seed)
        self._aggregator = DrawCountAggregator()
        self._runner = BatchRunner(workers=workers)
        # 保证配置替换与清空样本是一个整体
        self._lock = threading.Lock()

    @property
    def settings(self):
        return self._settings

    @property
    def config(self):
        return self._settings.config

    @property
    def goal(self):
        return self._settings.goal

    @property
    def measure(self):
        return self._settings.measure

    @property
    def aggregator(self):
        return self._aggregator

    def _swap(self, config=None, goal=None, measure=None):
        with self._lock:
            # 校验失败时直接抛出，原配置与样本不受影响
            settings = self._settings.replace(config=config, goal=goal, measure=measure)
            self._settings = settings
            self._aggregator.reset()
        logger.info("配置已更新: 卡池 %s, 目标 %s, 计量 %s",
                    settings.config, settings.goal, settings.measure.value)

    def set_banner(self, config):
        """替换卡池并清空样本。"""
        self._swap(config=config)

    def configure(self, red_focus_count, blue_focus_count, green_focus_count,
                  colorless_focus_count, base_focus_rate_percent, base_fivestar_rate_percent,
                  ramp_step_percent=DEFAULT_RAMP_STEP * 100,
                  ramp_interval=DEFAULT_RAMP_INTERVAL,
                  hard_pity=DEFAULT_HARD_PITY):
        """
        按百分比参数重建卡池，并清空样本。

        base_focus_rate_percent 为出五星时是UP的概率，
        base_fivestar_rate_percent 为五星的初始概率。
        若当前目标在新卡池下无法达成，抛出 InvalidConfiguration，原配置与样本保持不变。
        """
        config = BannerConfig(
            focus_counts=(red_focus_count, blue_focus_count, green_focus_count,
                          colorless_focus_count),
            base_focus_rate=_percent("base_focus_rate_percent", base_focus_rate_percent),
            base_fivestar_rate=_percent("base_fivestar_rate_percent", base_fivestar_rate_percent),
            ramp_step=_percent("ramp_step_percent", ramp_step_percent),
            ramp_interval=ramp_interval,
            hard_pity=hard_pity,
        )
        self.set_banner(config)

    def set_goal_and_reset(self, goal_kind, target_count, specific_unit=False):
        """替换目标并清空样本。specific_unit 见 ``Goal``。"""
        self._swap(goal=Goal(GoalKind.parse(goal_kind), target_count, specific_unit))

    def set_measure(self, measure):
        """切换样本单位（抽数 / 宝珠数）并清空样本。"""
        self._swap(measure=Measure.parse(measure))

    def reset(self):
        self._aggregator.reset()

    def run_batch(self, trial_count):
        """在当前配置下追加 trial_count 个玩家的模拟结果。"""
        n = validate_trial_count(trial_count)
        with self._lock:
            settings = self._settings
            generation = self._aggregator.generation
        self._runner.run(settings, n, self._rng, self._aggregator, generation=generation)

    def query_quantiles(self, percentiles):
        """按顺序返回各百分位（0~1 的小数）对应的抽数。无样本时抛出 EmptyDistribution。"""
        return self._aggregator.quantiles(percentiles)

    def sample_count(self):
        return self._aggregator.count()

    def close(self):
        self._runner.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
