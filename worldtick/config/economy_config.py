#!filepath: worldtick/config/economy_config.py
from pydantic import BaseModel, Field


class DemandConfig(BaseModel):
    """Bot 购买（合成需求）"""

    # 单位：分
    total_budget: int = Field(100_000_000, ge=0)
    companies_per_tick: int = Field(20, gt=0)
    min_company_budget: int = Field(100_000, ge=0)
    max_listings_per_company: int = Field(30, gt=0)
    max_purchases_per_company: int = Field(15, gt=0)
    max_listing_price: int = Field(5_000_000, gt=0)

    sweet_spot_price: int = Field(100_000, gt=0)
    price_log_spread: float = Field(2.0, gt=0)
    expensive_price: int = Field(500_000, gt=0)
    expensive_exponent: float = 1.2
    demand_saturation: int = Field(100, gt=0)

    quality_weight: float = 0.4
    price_weight: float = 0.3
    demand_weight: float = 0.2
    floor_weight: float = 0.1


class InterestConfig(BaseModel):
    # 冷却窗口：一天 72 个 20 分钟
    interval_minutes: float = Field(20, gt=0)
    intervals_per_day: int = Field(72, gt=0)


class NetWorthConfig(BaseModel):
    max_holdings_per_kind: int = Field(5, gt=0)
    max_companies: int = Field(3, gt=0)
    max_loans: int = Field(3, gt=0)
