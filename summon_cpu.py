# 导入必要的库
import numpy as np
from numba import jit  # Numba 用于即时编译加速代码

from summon_banner import (
    GOAL_MODE_ANY_FIVESTAR,
    GOAL_MODE_ANY_FOCUS,
    MEASURE_ORBS,
    ORB_COSTS,
    SESSION_SIZE,
    Measure,
)
from summon_rates import (
    OUTCOME_FIVESTAR,
    OUTCOME_FOCUS,
    OUTCOME_NON_FIVESTAR,
    classify_fivestar,
    fivestar_rate,
    pick_color,
)

ORB_COST_TABLE = np.array(ORB_COSTS, dtype=np.int64)


@jit(nopython=True, nogil=True)
def matches_goal(outcome, color, goal_mode, goal_color):
    """判断单抽结果是否计入目标。"""
    if outcome == OUTCOME_NON_FIVESTAR:
        return False
    if goal_mode == GOAL_MODE_ANY_FIVESTAR:
        return True
    if outcome != OUTCOME_FOCUS:
        return False
    if goal_mode == GOAL_MODE_ANY_FOCUS:
        return True
    return color == goal_color


@jit(nopython=True, nogil=True)
def counts_toward_goal(rng, outcome, color, goal_mode, goal_color, unit_share):
    """matches_goal 之外，指定角色时还要再判定是否为同色UP中的那一个。"""
    if not matches_goal(outcome, color, goal_mode, goal_color):
        return False
    return unit_share >= 1.0 or rng.random() < unit_share


@jit(nopython=True, nogil=True)
def roll_until(rng, base_rate, ramp_step, ramp_interval, hard_pity,
               focus_rate, cumulative_weights, goal_mode, goal_color, goal_count,
               unit_share):
    """
    模拟一个玩家从零保底开始抽卡，直到获得 goal_count 个符合目标的五星。

    参数:
    - rng (np.random.Generator): 随机数来源，由调用方传入。
    - base_rate ~ hard_pity: 保底出率参数，见 summon_rates.fivestar_rate。
    - focus_rate (float): 出五星时为UP的概率。
    - cumulative_weights (np.ndarray): UP角色颜色的累计权重。
    - goal_mode / goal_color / goal_count: 目标模式、目标颜色下标、目标数量。
    - unit_share (float): 目标颜色的UP中恰好是指定角色的概率，不指定时为 1。

    返回:
    - pulls (int): 达成目标共消耗的抽数（未命中目标的抽也计入）。
    """
    k = 0        # 当前的垫刀次数（自上次出五星后的抽数）
    pulls = 0    # 已消耗的总抽数
    matched = 0  # 已获得的目标数量

    # hard_pity 保证每 hard_pity + 1 抽内至少出一次五星，循环必然结束
    while matched < goal_count:
        pulls += 1
        rate = fivestar_rate(k, base_rate, ramp_step, ramp_interval, hard_pity)
        if rng.random() >= rate:
            k += 1
            continue

        k = 0  # 出五星后，垫刀次数清零
        outcome, color = classify_fivestar(rng.random(), rng.random(), focus_rate,
                                           cumulative_weights)
        if counts_toward_goal(rng, outcome, color, goal_mode, goal_color, unit_share):
            matched += 1

    return pulls


@jit(nopython=True, nogil=True)
def roll_until_orbs(rng, base_rate, ramp_step, ramp_interval, hard_pity,
                    focus_rate, cumulative_weights, goal_mode, goal_color, goal_count,
                    unit_share, fivestar_weights, other_weights, wanted):
    """
    按 5 连召唤模拟一个玩家，返回达成目标消耗的宝珠数。

    每次召唤出现 5 颗带颜色的石头，玩家取走所有想要颜色（wanted）的石头，
    一颗都没有时随机取一颗。取走第 1~5 颗的累计花费见 ORB_COST_TABLE。
    取到任意五星则垫刀清零，否则垫刀次数加上取走的石头数。

    参数（前 11 个同 roll_until）:
    - fivestar_weights (np.ndarray): 非UP五星的颜色累计权重。
    - other_weights (np.ndarray): 非五星（四星与三星）的颜色累计权重。
    - wanted (np.ndarray): 长度为 4，1 表示会主动取走该颜色。
    """
    k = 0
    orbs = 0
    matched = 0
    outcomes = np.empty(SESSION_SIZE, dtype=np.int64)
    colors = np.empty(SESSION_SIZE, dtype=np.int64)

    while matched < goal_count:
        # 同一次召唤的 5 颗石头共用召唤开始时的出率
        rate = fivestar_rate(k, base_rate, ramp_step, ramp_interval, hard_pity)
        for s in range(SESSION_SIZE):
            if rng.random() < rate:
                outcome, color = classify_fivestar(rng.random(), rng.random(), focus_rate,
                                                   cumulative_weights)
                if outcome == OUTCOME_FIVESTAR:
                    color = pick_color(fivestar_weights, rng.random())
            else:
                outcome = OUTCOME_NON_FIVESTAR
                color = pick_color(other_weights, rng.random())
            outcomes[s] = outcome
            colors[s] = color

        picked = 0
        reset = False
        for s in range(SESSION_SIZE):
            if matched >= goal_count:
                break
            if wanted[colors[s]] == 0:
                continue
            picked += 1
            if outcomes[s] != OUTCOME_NON_FIVESTAR:
                reset = True
            if counts_toward_goal(rng, outcomes[s], colors[s], goal_mode, goal_color, unit_share):
                matched += 1

        if picked == 0:
            # 每次召唤至少要取走一颗
            s = int(rng.random() * SESSION_SIZE)
            picked = 1
            if outcomes[s] != OUTCOME_NON_FIVESTAR:
                reset = True
            if counts_toward_goal(rng, outcomes[s], colors[s], goal_mode, goal_color, unit_share):
                matched += 1

        orbs += ORB_COST_TABLE[picked - 1]
        if reset:
            k = 0
        else:
            k += picked

    return orbs


@jit(nopython=True, nogil=True)
def roll_batch(rng, n, measure, base_rate, ramp_step, ramp_interval, hard_pity,
               focus_rate, cumulative_weights, goal_mode, goal_color, goal_count,
               unit_share, fivestar_weights, other_weights, wanted):
    """用同一个 rng 顺序模拟 n 个玩家，measure 选择返回抽数还是宝珠数。"""
    results = np.zeros(n, dtype=np.int64)
    for i in range(n):
        if measure == MEASURE_ORBS:
            results[i] = roll_until_orbs(rng, base_rate, ramp_step, ramp_interval, hard_pity,
                                         focus_rate, cumulative_weights, goal_mode, goal_color,
                                         goal_count, unit_share, fivestar_weights,
                                         other_weights, wanted)
        else:
            results[i] = roll_until(rng, base_rate, ramp_step, ramp_interval, hard_pity,
                                    focus_rate, cumulative_weights, goal_mode, goal_color,
                                    goal_count, unit_share)
    return results


def simulate_session(settings, rng):
    """模拟单个玩家，返回达成目标所需的抽数（宝珠模式下为宝珠数）。"""
    if settings.measure is Measure.ORBS:
        return int(roll_until_orbs(rng, *settings.kernel_args(), *settings.session_args()))
    return int(roll_until(rng, *settings.kernel_args()))


def simulate_sessions(settings, n, rng):
    """顺序模拟 n 个玩家。rng 不可在线程间共享。"""
    return roll_batch(rng, int(n), settings.measure.flag, *settings.kernel_args(),
                      *settings.session_args())
