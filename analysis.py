import os

import numpy as np
import pandas as pd


def distribution_frame(aggregator):
    """
    把聚合器的直方图整理成表格，只保留有玩家的抽数。
    列: draws（抽数）, sessions（玩家数）, percentage（占比 %）, cumulative（累计 %）
    """
    hist = aggregator.histogram()
    draws = np.flatnonzero(hist)
    df = pd.DataFrame({'draws': draws, 'sessions': hist[draws]})
    total = df['sessions'].sum()
    if total == 0:
        df['percentage'] = pd.Series(dtype=float)
        df['cumulative'] = pd.Series(dtype=float)
        return df
    df['percentage'] = df['sessions'] / total * 100
    df['cumulative'] = df['sessions'].cumsum() / total * 100
    return df


def percentile_frame(aggregator, percentiles):
    """每个百分位（0~1）对应的抽数。样本为空时抛出 EmptyDistribution。"""
    values = aggregator.quantiles(percentiles)
    return pd.DataFrame({'percentile': list(percentiles), 'draws': values})


def summarize(aggregator, percentiles, specific_draws):
    """
    计算关键统计数据：样本数、最小/最大/平均抽数、百分位，
    以及在特定抽数内达成目标的概率（%）。
    """
    stats = {
        'count': aggregator.count(),
        'min': aggregator.minimum(),
        'max': aggregator.maximum(),
        'mean': aggregator.mean(),
        'percentiles': dict(zip(percentiles, aggregator.quantiles(percentiles))),
        'specific_draws': {},
    }
    for draws in specific_draws:
        stats['specific_draws'][draws] = aggregator.probability_within(draws) * 100
    return stats


def save_distribution(aggregator, filename, params, output_dir="simdata"):
    """
    将分布表连同模拟参数保存为 CSV，参数写在以 # 开头的注释行里。
    返回文件路径。
    """
    os.makedirs(output_dir, exist_ok=True)
    full_path = os.path.join(output_dir, filename)
    df = distribution_frame(aggregator)
    with open(full_path, 'w', encoding='utf-8', newline='') as f:
        for key, value in params.items():
            f.write(f"# {key}: {value}\n")
        df.to_csv(f, index=False, float_format='%.6f')
    return full_path
