import time
import logging

from analysis import save_distribution, summarize
from summon_banner import PRESETS, Goal, GoalKind, Measure
from summon_engine import SummonEstimator
from summon_errors import EmptyDistribution

# ####################################
# 用户可修改参数
# ####################################

BANNER_PRESET = 'normal'     # 'normal' / 'hero_fest' / 'legendary'
GOAL_KIND = 'Red Focus'      # 'Any 5*' / 'Any Focus' / 'Red Focus' / 'Blue Focus' / 'Green Focus' / 'Colorless Focus'
GOAL_COUNT = 1
SPECIFIC_UNIT = 0            # 颜色目标时是否只要同色UP中指定的那一个 (1 for Yes, 0 for No)
MEASURE = 'pulls'            # 'pulls' 按抽数统计 / 'orbs' 按 5 连召唤挑石头消耗的宝珠统计
TIME_BUDGET = 0.5            # 每轮模拟的时间预算（秒）
START_TRIALS = 100           # 第一批的模拟次数，之后每批翻倍
SEED = None                  # 固定种子可复现结果

PERCENTILES = [0.25, 0.5, 0.75, 0.9, 0.99]
SPECIFIC_DRAWS = [20, 50, 100, 200]
SAVE_DISTRIBUTION = 0        # 是否保存分布表到 simdata 文件夹 (1 for Yes, 0 for No)


def run_for(estimator, budget_seconds, start_trials=START_TRIALS):
    """
    在时间预算内反复调用 run_batch，每批模拟次数翻倍。
    至少会跑一批。返回执行的批次数。
    """
    num_runs = start_trials
    batches = 0
    start_time = time.perf_counter()
    while True:
        estimator.run_batch(num_runs)
        batches += 1
        num_runs *= 2
        if time.perf_counter() - start_time >= budget_seconds:
            break
    return batches


def print_report(estimator, percentiles, specific_draws):
    unit = "宝珠" if estimator.measure is Measure.ORBS else "抽"
    try:
        stats = summarize(estimator.aggregator, percentiles, specific_draws)
    except EmptyDistribution:
        print("⚠ 无数据")
        return
    print(f"\n⭐ 模拟统计（{stats['count']:,} 个玩家）")
    print(f"- 最少: {stats['min']}{unit} | 最多: {stats['max']}{unit} | 平均: {stats['mean']:.3f}{unit}")
    print("\n📈 关键百分位统计")
    for p, val in stats['percentiles'].items():
        print(f"{p:6.0%} | {val:8}{unit} | 有{p:.0%}的玩家消耗≤此数")
    print("\n🎯 特定消耗内达成目标的概率")
    for draws, prob in stats['specific_draws'].items():
        print(f"{draws:6}{unit} | {prob:10.4f}%")


def main():
    config = PRESETS[BANNER_PRESET]
    goal = Goal(GoalKind.parse(GOAL_KIND), GOAL_COUNT, bool(SPECIFIC_UNIT))

    print(f"▶ 卡池: {config}")
    print(f"▶ 目标: {goal}")
    print(f"▶ 计量: {MEASURE}")
    print(f"▶ 时间预算: {TIME_BUDGET}s，首批 {START_TRIALS} 次，之后每批翻倍")

    with SummonEstimator(config, goal, seed=SEED, measure=MEASURE) as estimator:
        # 第一批包含 numba 编译时间
        run_start = time.time()
        estimator.run_batch(1)
        estimator.reset()
        print(f"▷ JIT 编译完成 | 耗时 {time.time() - run_start:.1f}s")

        run_start = time.time()
        batches = run_for(estimator, TIME_BUDGET)
        print(f"▷ 模拟完成 | {batches} 批 | 耗时 {time.time() - run_start:.2f}s")

        print_report(estimator, PERCENTILES, SPECIFIC_DRAWS)

        if SAVE_DISTRIBUTION:
            filename = f"summonsim_{MEASURE}_{BANNER_PRESET}_{goal.kind.name.lower()}_{GOAL_COUNT}_{estimator.sample_count()}.csv"
            params = {
                'banner': config,
                'goal': goal,
                'measure': MEASURE,
                'simulations': estimator.sample_count(),
            }
            full_path = save_distribution(estimator.aggregator, filename, params)
            print(f"\n💾 分布表已保存到文件: {full_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    main()
