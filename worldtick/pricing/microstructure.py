#!filepath: worldtick/pricing/microstructure.py
"""Bid/ask、成交冲击、模拟成交量"""
from __future__ import annotations

import math

from worldtick.pricing.random_source import RandomSource
from worldtick.pricing.stochastic import clamp
from worldtick.utils.errors import ValidationFailure


def price_impact(shares: int, liquidity: int, direction: int, max_impact: float) -> float:
    """impact = clamp(shares / liquidity × direction, ±max_impact)"""
    if liquidity is None or liquidity <= 0:
        raise ValidationFailure(f"liquidity must be positive, got {liquidity}")
    if direction not in (1, -1):
        raise ValidationFailure(f"direction must be ±1, got {direction}")
    return clamp(shares / liquidity * direction, -max_impact, max_impact)


def ask_price(price: int, spread: float) -> int:
    return max(1, round(price * (1 + spread)))


def bid_price(price: int, spread: float) -> int:
    return max(1, round(price * (1 - spread)))


def impacted_price(price: int, impact: float) -> int:
    return max(1, round(price * (1 + impact)))


def simulate_volume(units: int, fraction: float, rng: RandomSource) -> int:
    """基础成交量 ∝ 流通量，再乘 U(0.5, 1.5)"""
    base = (units or 0) * fraction
    volume = base * rng.uniform(0.5, 1.5)
    if not math.isfinite(volume):
        return 0
    return max(0, round(volume))
