#!filepath: worldtick/config/market_config.py
from __future__ import annotations

from typing import Dict, Tuple

from pydantic import BaseModel, Field


def _default_sector_volatility() -> Dict[str, float]:
    return {
        "tech": 0.035,
        "energy": 0.045,
        "finance": 0.03,
        "healthcare": 0.04,
        "consumer": 0.025,
    }


class MarketConfig(BaseModel):
    """随机定价引擎参数（股票）"""

    sector_volatility: Dict[str, float] = Field(default_factory=_default_sector_volatility)
    default_volatility: float = 0.03

    mean_reversion_speed: float = 0.01
    momentum_weight: float = 0.3
    momentum_decay: float = 0.7

    clustering_factor: float = 1.3
    clustering_threshold: float = 0.02

    max_tick_change: float = Field(0.10, gt=0, lt=1)
    sub_ticks: int = Field(5, gt=0)

    bid_ask_spread: float = Field(0.001, ge=0, lt=1)
    max_trade_impact: float = Field(0.02, ge=0, lt=1)
    max_shares_per_instrument: int = 1_000_000

    event_probability: float = Field(0.10, ge=0, le=1)
    positive_event_probability: float = Field(0.5, ge=0, le=1)
    event_impact_range: Tuple[float, float] = (0.03, 0.15)

    market_trend_range: float = 0.01
    sector_drift_range: float = 0.005
    fair_value_noise: float = 0.05
    fair_value_equity_multiple: float = 5.0

    low_price_threshold: int = 1000
    low_price_shock_threshold: float = 0.01

    volume_fraction: float = 0.001

    update_batch_size: int = Field(50, gt=0)
    micro_batch_size: int = Field(10, gt=0)
    history_window: int = Field(10, gt=0)

    default_liquidity: int = 1_000_000


class CryptoConfig(BaseModel):
    """加密资产：同一套定价过程，单一“板块”"""

    base_volatility: float = 0.06
    market_drift_range: float = 0.01
    max_tick_change: float = Field(0.15, gt=0, lt=1)
    update_batch_size: int = Field(20, gt=0)
    history_window: int = Field(10, gt=0)
    volume_fraction: float = 0.002
