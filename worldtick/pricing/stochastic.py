#!filepath: worldtick/pricing/stochastic.py
"""
随机定价过程（纯函数，无 I/O）

- 均值回归（Ornstein-Uhlenbeck 风格，按价格比例）
- 动量延续
- 波动率聚集
- 新闻事件冲击
- 子 tick 生成 OHLC
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from worldtick.pricing.random_source import RandomSource


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


@dataclass(frozen=True)
class ProcessParams:
    mean_reversion_speed: float = 0.01
    momentum_weight: float = 0.3
    momentum_decay: float = 0.7
    max_tick_change: float = 0.10
    sub_ticks: int = 5
    low_price_threshold: int = 1000
    low_price_shock_threshold: float = 0.01

    @property
    def max_step_change(self) -> float:
        return self.max_tick_change / self.sub_ticks

    @property
    def dt(self) -> float:
        return 1.0 / self.sub_ticks


@dataclass(frozen=True)
class Candle:
    open: int
    high: int
    low: int
    close: int

    @property
    def change_fraction(self) -> float:
        return (self.close - self.open) / self.open if self.open else 0.0


# ---------------------------------------------------------------------------
# shared drivers
# ---------------------------------------------------------------------------
def market_trend(rng: RandomSource, span: float) -> float:
    """全市场共享的趋势项"""
    return rng.uniform(-span, span)


def sector_drifts(rng: RandomSource, sectors: Sequence[str], span: float) -> Dict[str, float]:
    """每个板块一个共享漂移（板块内相关）"""
    drifts: Dict[str, float] = {}
    for sector in sectors:
        if sector not in drifts:
            drifts[sector] = rng.uniform(-span, span)
    return drifts


def market_event(
    rng: RandomSource,
    probability: float,
    positive_probability: float,
    impact_range: Tuple[float, float],
) -> float:
    """
    新闻冲击：以 probability 触发，正负约各半。
    返回 0 表示本 tick 无事件。
    """
    if not rng.chance(probability):
        return 0.0
    low, high = impact_range
    if rng.chance(positive_probability):
        return rng.uniform(low, high)
    return rng.uniform(-high, -low)


# ---------------------------------------------------------------------------
# fair value / volatility / momentum
# ---------------------------------------------------------------------------
def fair_value_from_equity(balance: int, outstanding_shares: int, multiple: float) -> int:
    """挂钩公司：fair value = multiple × balance ÷ 流通股"""
    shares = outstanding_shares if outstanding_shares and outstanding_shares > 0 else 1
    return max(1, round(balance * multiple / shares))


def fair_value_from_history(
    closes: Sequence[float],
    current_price: float,
    rng: RandomSource,
    noise: float,
) -> float:
    """无挂钩：近期收盘均值 × (1 ± noise)"""
    if not closes:
        return float(current_price)
    avg = sum(closes) / len(closes)
    return avg * rng.uniform(1 - noise, 1 + noise)


def current_volatility(
    base_volatility: float,
    last_price_change: float,
    threshold: float,
    factor: float,
) -> float:
    """大波动之后波动更大"""
    if abs(last_price_change or 0.0) > threshold:
        return base_volatility * factor
    return base_volatility


def update_momentum(change_fraction: float, previous: float, decay: float) -> float:
    return change_fraction * decay + (previous or 0.0) * (1 - decay)


# ---------------------------------------------------------------------------
# sub-tick path
# ---------------------------------------------------------------------------
def tick_band(open_price: int, max_tick_change: float) -> Tuple[int, int]:
    """
    整个 tick 允许的价格区间（整数）。
    区间至少容纳 ±1 个最小单位，否则极低价资产永远无法移动。
    """
    low = min(math.ceil(open_price * (1 - max_tick_change)), open_price - 1)
    high = max(math.floor(open_price * (1 + max_tick_change)), open_price + 1)
    return max(1, low), high


def next_sub_tick_price(
    price: int,
    fair_value: float,
    volatility: float,
    momentum: float,
    sector_drift: float,
    trend: float,
    rng: RandomSource,
    params: ProcessParams,
    band: Tuple[int, int],
    event_impact: float = 0.0,
) -> int:
    reversion = params.mean_reversion_speed * (fair_value - price) / price
    drift = reversion + (momentum or 0.0) * params.momentum_weight + sector_drift + trend
    shock = rng.normal() * volatility * math.sqrt(params.dt)

    raw = price * (1 + drift + shock)
    if event_impact:
        raw *= 1 + event_impact

    max_change = price * params.max_step_change
    raw = clamp(raw, price - max_change, price + max_change)
    raw = max(raw, 1.0)

    new_price = int(round(raw))

    if price < params.low_price_threshold and new_price == price:
        direction = drift + shock
        if abs(direction) > params.low_price_shock_threshold:
            new_price = price + (1 if direction > 0 else -1)

    low, high = band
    return int(clamp(max(new_price, 1), low, high))


def simulate_path(
    open_price: int,
    fair_value: float,
    volatility: float,
    momentum: float,
    sector_drift: float,
    trend: float,
    rng: RandomSource,
    params: ProcessParams,
    event_impact: float = 0.0,
) -> List[int]:
    """
    返回 [open, p1, ..., pN]；事件冲击只作用在第一个子 tick。
    """
    band = tick_band(open_price, params.max_tick_change)
    prices = [open_price]
    price = open_price
    for i in range(params.sub_ticks):
        price = next_sub_tick_price(
            price,
            fair_value,
            volatility,
            momentum,
            sector_drift,
            trend,
            rng,
            params,
            band,
            event_impact=event_impact if i == 0 else 0.0,
        )
        prices.append(price)
    return prices


def to_candle(prices: Sequence[int]) -> Candle:
    return Candle(open=prices[0], high=max(prices), low=min(prices), close=prices[-1])
