"""抽数分布聚合器。

以直方图（抽数 -> 玩家数）保存自上次重置以来的全部样本：
追加是 O(1) 均摊，百分位查询只需一次累计求和。
所有读写都在同一把锁内完成，读到的永远是某一批追加之前或之后的完整状态。
"""

import logging
import threading

import numpy as np

from summon_errors import EmptyDistribution

logger = logging.getLogger(__name__)

_INITIAL_CAPACITY = 256


def nearest_rank(p, n):
    """最近秩法：第 ceil(p*n) 小的样本（从1开始计数），p=0 时取最小值。"""
    # 先舍入到9位小数，避免 0.9 * 10 = 9.000000000000002 这类误差
    ranks = np.ceil(np.round(p * n, 9)).astype(np.int64)
    return np.clip(ranks, 1, n)


class DrawCountAggregator:
    """线程安全的抽数样本集。

    ``generation`` 在每次 ``reset`` 时加一。批量追加时可以带上开始时的
    generation，若期间发生过重置，这批旧配置下的样本会被丢弃。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = np.zeros(_INITIAL_CAPACITY, dtype=np.int64)
        self._total = 0
        self._sum = 0
        self._max = -1
        self._generation = 0

    @property
    def generation(self):
        return self._generation

    def _ensure_capacity(self, value):
        size = self._counts.shape[0]
        if value < size:
            return
        while size <= value:
            size *= 2
        grown = np.zeros(size, dtype=np.int64)
        grown[: self._counts.shape[0]] = self._counts
        self._counts = grown

    def record(self, draw_count):
        """追加一个样本。"""
        draw_count = int(draw_count)
        if draw_count < 0:
            raise ValueError(f"抽数不能为负: {draw_count}")
        with self._lock:
            self._ensure_capacity(draw_count)
            self._counts[draw_count] += 1
            self._total += 1
            self._sum += draw_count
            self._max = max(self._max, draw_count)

    def record_many(self, draw_counts, generation=None):
        """一次性追加一批样本。

        参数:
        - draw_counts: 每个玩家的消耗抽数。
        - generation: 这批样本开始模拟时的 generation，为 None 时不检查。

        返回:
        - 是否已追加。generation 过期时返回 False，样本集不变。
        """
        samples = np.asarray(draw_counts, dtype=np.int64).ravel()
        if samples.size and samples.min() < 0:
            raise ValueError("抽数不能为负")
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.warning(
                    "丢弃 %d 个过期样本 (generation %d, 当前 %d)",
                    samples.size, generation, self._generation,
                )
                return False
            if samples.size == 0:
                return True
            batch_max = int(samples.max())
            self._ensure_capacity(batch_max)
            binned = np.bincount(samples)
            self._counts[: binned.shape[0]] += binned
            self._total += int(samples.size)
            self._sum += int(samples.sum())
            self._max = max(self._max, batch_max)
        return True

    def reset(self):
        """清空样本集。卡池或目标变化时必须调用。"""
        with self._lock:
            self._counts = np.zeros(_INITIAL_CAPACITY, dtype=np.int64)
            self._total = 0
            self._sum = 0
            self._max = -1
            self._generation += 1
        logger.debug("样本集已清空, generation=%d", self._generation)

    def count(self):
        with self._lock:
            return self._total

    def __len__(self):
        return self.count()

    def snapshot(self):
        """同时取出 (直方图副本, 样本数)，二者来自同一时刻。"""
        with self._lock:
            return self._counts[: self._max + 1].copy(), self._total

    def _nonempty_snapshot(self):
        counts, total = self.snapshot()
        if total == 0:
            raise EmptyDistribution()
        return counts, total

    def histogram(self):
        """返回直方图副本，下标为抽数，值为该抽数的玩家数。"""
        return self.snapshot()[0]

    def quantile(self, p):
        return self.quantiles([p])[0]

    def quantiles(self, ps):
        """按顺序返回每个 p 对应的抽数，所有 p 基于同一份快照计算。"""
        probs = np.asarray(ps, dtype=np.float64).ravel()
        if np.any(np.isnan(probs)) or np.any((probs < 0.0) | (probs > 1.0)):
            raise ValueError(f"百分位必须在 [0, 1] 区间内: {list(ps)}")
        counts, total = self._nonempty_snapshot()
        if probs.size == 0:
            return []
        cumulative = np.cumsum(counts)
        ranks = nearest_rank(probs, total)
        # 第一个累计数 >= 秩 的抽数
        return [int(v) for v in np.searchsorted(cumulative, ranks, side="left")]

    def minimum(self):
        counts, _ = self._nonempty_snapshot()
        return int(np.flatnonzero(counts)[0])

    def maximum(self):
        counts, _ = self._nonempty_snapshot()
        return counts.shape[0] - 1

    def mean(self):
        with self._lock:
            if self._total == 0:
                raise EmptyDistribution()
            return self._sum / self._total

    def probability_within(self, draws):
        """在 draws 抽以内（含）达成目标的玩家比例。"""
        counts, total = self._nonempty_snapshot()
        if draws < 0:
            return 0.0
        return float(counts[: int(draws) + 1].sum()) / total
