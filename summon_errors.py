"""召唤模拟器的异常类型。"""

class SummonSimError(Exception):
    """所有模拟器异常的基类。"""


class InvalidConfiguration(SummonSimError, ValueError):
    """卡池或目标参数无效（概率越界、目标颜色没有UP角色等）。"""


class InvalidBatchSize(SummonSimError, ValueError):
    """批次模拟次数必须是正整数。"""

    def __init__(self, trial_count):
        super().__init__(f"模拟次数必须为正整数，收到: {trial_count!r}")
        self.trial_count = trial_count


class EmptyDistribution(SummonSimError, LookupError):
    """样本集为空，无法计算百分位。"""

    def __init__(self, message="尚无模拟样本，无法计算百分位"):
        super().__init__(message)
