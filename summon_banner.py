"""卡池与目标配置。

``BannerConfig`` 描述卡池的出率参数，``Goal`` 描述玩家的目标，
``BannerSettings`` 是二者经过校验后的不可变组合，模拟核心只读取它。
任何参数变化都必须整体重建，而不是就地修改。
"""

import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from summon_errors import InvalidConfiguration

# ####################################
# 默认保底参数
# ####################################
# 每经过 DEFAULT_RAMP_INTERVAL 抽未出五星，五星概率增加 DEFAULT_RAMP_STEP，
# 连续 DEFAULT_HARD_PITY 抽未出五星时，下一抽必定五星。
DEFAULT_RAMP_STEP = 0.005
DEFAULT_RAMP_INTERVAL = 5
DEFAULT_HARD_PITY = 120

# 目标模式，传给 numba 内核时使用整数
GOAL_MODE_ANY_FIVESTAR = 0
GOAL_MODE_ANY_FOCUS = 1
GOAL_MODE_COLOR_FOCUS = 2
NO_COLOR = -1

# 计量方式，传给 numba 内核时使用整数
MEASURE_PULLS = 0
MEASURE_ORBS = 1

# ####################################
# 召唤（5 连石）相关常量
# ####################################
SESSION_SIZE = 5
ORB_COSTS = (5, 9, 13, 17, 20)  # 同一次召唤里取走第 1~5 颗石头的累计花费

# 非UP各星级卡池中红/蓝/绿/无色角色的数量
FIVESTAR_POOL_SIZES = (41, 28, 21, 17)
FOURSTAR_POOL_SIZES = (32, 29, 20, 28)
THREESTAR_POOL_SIZES = (28, 25, 18, 25)
# 非五星中四星与三星的比例 58 : 36
FOURSTAR_SHARE = 58 / 94


class Color(enum.IntEnum):
    RED = 0
    BLUE = 1
    GREEN = 2
    COLORLESS = 3


def _parse_enum(cls, value, what):
    if isinstance(value, cls):
        return value
    if isinstance(value, str):
        text = value.strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        # "AnyFivestar" / "any_focus" 这类写法
        compact = text.replace("_", "").replace(" ", "").upper()
        for member in cls:
            if compact == member.name.replace("_", ""):
                return member
    raise InvalidConfiguration(f"未知的{what}: {value!r}")


class GoalKind(enum.Enum):
    """目标种类。值为界面显示用的标签。"""

    ANY_FIVESTAR = "Any 5*"
    ANY_FOCUS = "Any Focus"
    RED = "Red Focus"
    BLUE = "Blue Focus"
    GREEN = "Green Focus"
    COLORLESS = "Colorless Focus"

    @property
    def color(self):
        return _GOAL_COLORS.get(self)

    @property
    def mode(self):
        if self is GoalKind.ANY_FIVESTAR:
            return GOAL_MODE_ANY_FIVESTAR
        if self is GoalKind.ANY_FOCUS:
            return GOAL_MODE_ANY_FOCUS
        return GOAL_MODE_COLOR_FOCUS

    @classmethod
    def parse(cls, value):
        """接受枚举本身、枚举名（不区分大小写）或显示标签。"""
        return _parse_enum(cls, value, "目标类型")


_GOAL_COLORS = {
    GoalKind.RED: Color.RED,
    GoalKind.BLUE: Color.BLUE,
    GoalKind.GREEN: Color.GREEN,
    GoalKind.COLORLESS: Color.COLORLESS,
}


class Measure(enum.Enum):
    """样本的计量单位：抽数，或按 5 连召唤挑石头消耗的宝珠数。"""

    PULLS = "pulls"
    ORBS = "orbs"

    @property
    def flag(self):
        return MEASURE_ORBS if self is Measure.ORBS else MEASURE_PULLS

    @classmethod
    def parse(cls, value):
        return _parse_enum(cls, value, "计量方式")


@dataclass(frozen=True)
class Goal:
    """目标：获得 ``count`` 个符合 ``kind`` 的五星。

    ``specific_unit`` 只对颜色目标有效：同色有多个UP角色时，
    只有抽到其中指定的那一个才算数。
    """

    kind: GoalKind
    count: int = 1
    specific_unit: bool = False

    def __post_init__(self):
        object.__setattr__(self, "kind", GoalKind.parse(self.kind))
        if isinstance(self.count, bool) or not isinstance(self.count, (int, np.integer)):
            raise InvalidConfiguration(f"目标数量必须为整数，收到: {self.count!r}")
        if self.count < 1:
            raise InvalidConfiguration(f"目标数量必须 >= 1，收到: {self.count}")
        object.__setattr__(self, "count", int(self.count))
        if self.specific_unit and self.kind.color is None:
            raise InvalidConfiguration(f"{self.kind.value} 不能指定单个UP角色")
        object.__setattr__(self, "specific_unit", bool(self.specific_unit))

    @property
    def color(self):
        return self.kind.color

    def __str__(self):
        text = f"{self.count} x {self.kind.value}"
        return text + " (指定角色)" if self.specific_unit else text


def _normalize_focus_counts(focus_counts):
    if isinstance(focus_counts, Mapping):
        counts = [0, 0, 0, 0]
        for key, value in focus_counts.items():
            if isinstance(key, str):
                try:
                    key = Color[key.strip().upper()]
                except KeyError as exc:
                    raise InvalidConfiguration(f"未知颜色: {key!r}") from exc
            counts[Color(key)] = value
    else:
        counts = list(focus_counts)
        if len(counts) != len(Color):
            raise InvalidConfiguration(
                f"focus_counts 需要 {len(Color)} 个颜色的数量，收到 {len(counts)} 个"
            )
    for color, value in zip(Color, counts):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
            raise InvalidConfiguration(
                f"{color.name} 的UP角色数量必须为非负整数，收到: {value!r}"
            )
    return tuple(int(v) for v in counts)


def _check_probability(name, value):
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"{name} 必须为数值，收到: {value!r}") from exc
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidConfiguration(f"{name} 必须在 [0, 1] 区间内，收到: {value}")
    return value


def cumulative_weights(weights):
    """把非负权重转成累计分布（最后一项为1）。权重全为0时返回全1，即恒选第一项。"""
    weights = np.asarray(weights, dtype=np.float64)
    total = weights.sum()
    if total == 0:
        return np.ones(len(weights), dtype=np.float64)
    cumulative = np.cumsum(weights) / total
    cumulative[-1] = 1.0
    return cumulative


@dataclass(frozen=True)
class BannerConfig:
    """卡池出率配置。

    参数:
    - focus_counts: 红/蓝/绿/无色 四种颜色的UP角色数量。
    - base_focus_rate: 出五星时为UP角色的概率。
    - base_fivestar_rate: 未触发保底时单抽出五星的概率。
    - ramp_step: 每个保底区间增加的五星概率。
    - ramp_interval: 保底区间长度（抽）。
    - hard_pity: 连续未出五星达到此抽数后，下一抽必定五星。
    """

    focus_counts: tuple
    base_focus_rate: float
    base_fivestar_rate: float
    ramp_step: float = DEFAULT_RAMP_STEP
    ramp_interval: int = DEFAULT_RAMP_INTERVAL
    hard_pity: int = DEFAULT_HARD_PITY

    def __post_init__(self):
        object.__setattr__(self, "focus_counts", _normalize_focus_counts(self.focus_counts))
        object.__setattr__(
            self, "base_focus_rate", _check_probability("base_focus_rate", self.base_focus_rate)
        )
        object.__setattr__(
            self,
            "base_fivestar_rate",
            _check_probability("base_fivestar_rate", self.base_fivestar_rate),
        )
        object.__setattr__(self, "ramp_step", _check_probability("ramp_step", self.ramp_step))
        for name in ("ramp_interval", "hard_pity"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise InvalidConfiguration(f"{name} 必须为正整数，收到: {value!r}")
            object.__setattr__(self, name, int(value))

    @classmethod
    def from_starting_rates(cls, focus_counts, focus_percent, fivestar_percent, **kwargs):
        """按卡池公示的“UP五星% / 常驻五星%”构建配置。

        例如普通卡池 3%/3% 对应五星总概率 6%，其中一半为UP。
        初始出率加上保底前累计的递增（默认 12%）不能超过 100%，
        所以默认参数下两者之和最多为 88%。
        """
        focus_percent = float(focus_percent)
        fivestar_percent = float(fivestar_percent)
        total = focus_percent + fivestar_percent
        if focus_percent < 0 or fivestar_percent < 0 or total > 100:
            raise InvalidConfiguration(
                f"初始出率无效: UP {focus_percent}% / 常驻 {fivestar_percent}%"
            )
        share = focus_percent / total if total > 0 else 0.0
        config = cls(
            focus_counts=focus_counts,
            base_focus_rate=share,
            base_fivestar_rate=total / 100.0,
            **kwargs,
        )
        if config.base_fivestar_rate + config.ramp_total > 1.0 + 1e-9:
            limit = (1.0 - config.ramp_total) * 100
            raise InvalidConfiguration(
                f"初始出率之和 {total}% 超过上限 {limit:.4g}%（保底前还会递增 {config.ramp_total:.2%}）"
            )
        return config

    def focus_count(self, color):
        return self.focus_counts[Color(color)]

    @property
    def total_focus_units(self):
        return sum(self.focus_counts)

    @property
    def effective_focus_rate(self):
        """出五星时为UP的实际概率，没有UP角色时为0。"""
        return self.base_focus_rate if self.total_focus_units > 0 else 0.0

    @property
    def ramp_total(self):
        """触发 hard_pity 前五星概率累计递增的幅度。"""
        return (self.hard_pity // self.ramp_interval) * self.ramp_step

    def color_cumulative_weights(self):
        """按UP角色数量加权的颜色累计分布（长度为4，最后一项为1）。"""
        return cumulative_weights(self.focus_counts)

    def __str__(self):
        r, b, g, c = self.focus_counts
        return (
            f"{r}/{b}/{g}/{c} (五星 {self.base_fivestar_rate:.2%}, "
            f"UP占比 {self.base_focus_rate:.0%})"
        )


# 常见卡池
NORMAL = BannerConfig.from_starting_rates((1, 1, 1, 1), 3, 3)
HERO_FEST = BannerConfig.from_starting_rates((1, 1, 1, 1), 5, 3)
LEGENDARY = BannerConfig.from_starting_rates((3, 3, 3, 3), 8, 0)

PRESETS = {
    "normal": NORMAL,
    "hero_fest": HERO_FEST,
    "legendary": LEGENDARY,
}


def check_goal(config, goal):
    """检查目标在该卡池下是否可能达成，否则抛出 InvalidConfiguration。"""
    if goal.kind is GoalKind.ANY_FIVESTAR:
        return
    if config.total_focus_units == 0 or config.base_focus_rate == 0.0:
        raise InvalidConfiguration(f"卡池 {config} 没有可抽到的UP角色，无法以 {goal.kind.value} 为目标")
    color = goal.color
    if color is not None and config.focus_count(color) == 0:
        raise InvalidConfiguration(f"卡池中没有 {color.name} 颜色的UP角色")


def available_goal_kinds(config):
    """列出在该卡池下可以选择的目标种类。"""
    kinds = []
    for kind in GoalKind:
        try:
            check_goal(config, Goal(kind))
        except InvalidConfiguration:
            continue
        kinds.append(kind)
    return kinds


def _readonly(array):
    array.setflags(write=False)
    return array


# 非UP五星、非五星石头的颜色分布，与卡池无关
FIVESTAR_COLOR_WEIGHTS = _readonly(cumulative_weights(FIVESTAR_POOL_SIZES))
OTHER_COLOR_WEIGHTS = _readonly(cumulative_weights(
    FOURSTAR_SHARE * np.asarray(FOURSTAR_POOL_SIZES) / sum(FOURSTAR_POOL_SIZES)
    + (1 - FOURSTAR_SHARE) * np.asarray(THREESTAR_POOL_SIZES) / sum(THREESTAR_POOL_SIZES)
))


@dataclass(frozen=True)
class BannerSettings:
    """经过校验的 (卡池, 目标, 计量方式) 组合。构建成功即保证每次模拟都能结束。"""

    config: BannerConfig
    goal: Goal
    measure: Measure = Measure.PULLS
    _cumulative: np.ndarray = field(init=False, repr=False, compare=False)
    _wanted: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "measure", Measure.parse(self.measure))
        check_goal(self.config, self.goal)
        object.__setattr__(self, "_cumulative", _readonly(self.config.color_cumulative_weights()))
        object.__setattr__(self, "_wanted", _readonly(self._wanted_colors()))

    def _wanted_colors(self):
        # 召唤时会主动去拿的颜色
        color = self.goal.color
        if color is not None:
            wanted = np.zeros(len(Color), dtype=np.int64)
            wanted[color] = 1
            return wanted
        wanted = (np.asarray(self.config.focus_counts) > 0).astype(np.int64)
        if not wanted.any():
            wanted[:] = 1
        return wanted

    def replace(self, config=None, goal=None, measure=None):
        return BannerSettings(config or self.config, goal or self.goal, measure or self.measure)

    @property
    def unit_share(self):
        """命中目标颜色的UP时，恰好是指定角色的概率。"""
        color = self.goal.color
        if not self.goal.specific_unit or color is None:
            return 1.0
        return 1.0 / self.config.focus_count(color)

    def kernel_args(self):
        """按 numba 内核的参数顺序展开。"""
        config = self.config
        color = self.goal.color
        return (
            config.base_fivestar_rate,
            config.ramp_step,
            config.ramp_interval,
            config.hard_pity,
            config.effective_focus_rate,
            self._cumulative,
            self.goal.kind.mode,
            NO_COLOR if color is None else int(color),
            self.goal.count,
            self.unit_share,
        )

    def session_args(self):
        """宝珠模式额外需要的颜色分布: (非UP五星, 非五星, 想要的颜色)。"""
        return FIVESTAR_COLOR_WEIGHTS, OTHER_COLOR_WEIGHTS, self._wanted
