#!filepath: worldtick/pipeline/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, TYPE_CHECKING

from worldtick.pricing.random_source import RandomSource

if TYPE_CHECKING:
    from worldtick.engines.demand_engine import Purchase
    from worldtick.engines.price_engine import PriceUpdate


@dataclass
class TickContext:
    """
    TickContext = 单个 tick 内 Step 之间唯一的通信载体

    - Coordinator 构造
    - Step 只追加自己的输出，不放业务逻辑
    """

    tick_number: int
    now: int
    trigger_source: str
    rng: RandomSource

    purchases: List["Purchase"] = field(default_factory=list)
    companies_charged: int = 0
    stock_updates: List["PriceUpdate"] = field(default_factory=list)
    crypto_updates: List["PriceUpdate"] = field(default_factory=list)

    loans_processed: int = 0
    loan_batches: int = 0
    participants_processed: int = 0
    net_worth_batches: int = 0

    @property
    def total_budget_spent(self) -> int:
        return sum(p.total_price for p in self.purchases)
