"""出率模型。

纯函数：根据距上次出五星的抽数和卡池参数，给出下一抽的五星概率，
并根据外部传入的均匀随机数判定本抽结果。本模块不产生任何随机数。
模拟内核 ``summon_cpu`` 直接调用这里的 ``fivestar_rate`` 与 ``classify_fivestar``。
"""

from typing import NamedTuple, Optional

import numpy as np
from numba import jit

from summon_banner import Color

# 单抽结果种类
OUTCOME_NON_FIVESTAR = 0
OUTCOME_FIVESTAR = 1
OUTCOME_FOCUS = 2


@jit(nopython=True, nogil=True)
def fivestar_rate(pulls_since_fivestar, base_rate, ramp_step, ramp_interval, hard_pity):
    """当前这一抽出五星的概率。

    概率从 base_rate 开始，每 ramp_interval 抽增加 ramp_step，
    达到 hard_pity 抽时直接为 1.0。
    """
    if pulls_since_fivestar >= hard_pity:
        return 1.0
    rate = base_rate + (pulls_since_fivestar // ramp_interval) * ramp_step
    return min(rate, 1.0)


@jit(nopython=True, nogil=True)
def pick_color(cumulative_weights, u):
    """按累计权重选出颜色下标。"""
    for i in range(cumulative_weights.shape[0] - 1):
        if u < cumulative_weights[i]:
            return i
    return cumulative_weights.shape[0] - 1


@jit(nopython=True, nogil=True)
def classify_fivestar(u_focus, u_color, focus_rate, cumulative_weights):
    """已确定出五星时，判定是否为UP以及UP的颜色。

    返回 (结果种类, 颜色下标)，非UP时颜色为 -1。
    """
    if u_focus >= focus_rate:
        return OUTCOME_FIVESTAR, -1
    return OUTCOME_FOCUS, pick_color(cumulative_weights, u_color)


class DrawOutcome(NamedTuple):
    is_fivestar: bool
    is_focus: bool = False
    color: Optional[Color] = None


NON_FIVESTAR = DrawOutcome(False)


def draw_outcome(config, pulls_since_fivestar, u_fivestar, u_focus=0.0, u_color=0.0):
    """用三个 [0, 1) 均匀随机数判定一抽的结果，返回 DrawOutcome。

    判定顺序与模拟内核一致：先比较 u_fivestar 与当前五星概率，
    出五星后才用到 u_focus 和 u_color。
    """
    rate = fivestar_rate(int(pulls_since_fivestar), config.base_fivestar_rate,
                         config.ramp_step, config.ramp_interval, config.hard_pity)
    if u_fivestar >= rate:
        return NON_FIVESTAR
    kind, color = classify_fivestar(float(u_focus), float(u_color),
                                    config.effective_focus_rate,
                                    config.color_cumulative_weights())
    if kind == OUTCOME_FIVESTAR:
        return DrawOutcome(True, False, None)
    return DrawOutcome(True, True, Color(color))


def rate_table(config):
    """返回 0..hard_pity 每个保底计数对应的五星概率，最后一项恒为 1.0。"""
    return np.array([
        fivestar_rate(k, config.base_fivestar_rate, config.ramp_step,
                      config.ramp_interval, config.hard_pity)
        for k in range(config.hard_pity + 1)
    ])
