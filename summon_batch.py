"""批量模拟：把 n 个独立玩家分块并行模拟，结果汇入聚合器。"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from summon_cpu import simulate_sessions
from summon_errors import InvalidBatchSize

logger = logging.getLogger(__name__)

# 每个线程至少处理这么多玩家，小批次直接在调用线程里跑
MIN_CHUNK_SIZE = 4096
DEFAULT_WORKERS = min(8, os.cpu_count() or 1)


def validate_trial_count(trial_count):
    if isinstance(trial_count, bool) or not isinstance(trial_count, (int, np.integer)):
        raise InvalidBatchSize(trial_count)
    if trial_count <= 0:
        raise InvalidBatchSize(trial_count)
    return int(trial_count)


def split_chunks(n, workers, min_chunk=MIN_CHUNK_SIZE):
    """把 n 拆成不超过 workers 块，每块不少于 min_chunk（最后不足时合并）。"""
    chunks = max(1, min(workers, n // max(1, min_chunk)))
    base, extra = divmod(n, chunks)
    return [base + (1 if i < extra else 0) for i in range(chunks)]


class BatchRunner:
    """
    批量模拟执行器。

    线程池在首次需要时创建并一直复用，反复调用 ``run`` 时没有额外的初始化开销。
    每块使用从调用方 rng 派生（spawn）出的独立生成器，同一种子、同样的线程数
    会得到完全相同的样本。
    """

    def __init__(self, workers=DEFAULT_WORKERS, min_chunk=MIN_CHUNK_SIZE):
        if workers < 1:
            raise ValueError(f"workers 必须 >= 1，收到: {workers}")
        self.workers = workers
        self.min_chunk = min_chunk
        self._executor = None
        self._spawn_lock = threading.Lock()

    def _pool(self):
        with self._spawn_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="summon-sim"
                )
            return self._executor

    def simulate(self, settings, trial_count, rng):
        """模拟 trial_count 个玩家并返回抽数数组，不写入聚合器。"""
        n = validate_trial_count(trial_count)
        sizes = split_chunks(n, self.workers, self.min_chunk)
        with self._spawn_lock:
            children = rng.spawn(len(sizes))
        if len(sizes) == 1:
            return simulate_sessions(settings, sizes[0], children[0])
        pool = self._pool()
        futures = [
            pool.submit(simulate_sessions, settings, size, child)
            for size, child in zip(sizes, children)
        ]
        # 按提交顺序拼接，保证结果可复现
        return np.concatenate([future.result() for future in futures])

    def run(self, settings, trial_count, rng, aggregator, generation=None):
        """
        模拟 trial_count 个玩家并追加到聚合器。

        返回:
        - 样本是否被追加。若模拟期间聚合器被重置（配置已变化），返回 False。
        """
        n = validate_trial_count(trial_count)
        if generation is None:
            generation = aggregator.generation
        start_time = time.perf_counter()
        samples = self.simulate(settings, n, rng)
        accepted = aggregator.record_many(samples, generation=generation)
        logger.debug(
            "批次完成: %d 次模拟, 耗时 %.3fs, 累计样本 %d",
            n, time.perf_counter() - start_time, aggregator.count(),
        )
        return accepted

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
