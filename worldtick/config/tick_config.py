#!filepath: worldtick/config/tick_config.py
from pydantic import BaseModel, Field


class TickConfig(BaseModel):
    """
    Tick 调度与批量参数。

    批量大小是针对 store 读上限调出来的，不是推导出来的常量。
    """

    interval_seconds: int = Field(300, gt=0)
    lock_stale_minutes: float = Field(10, gt=0)

    cost_companies_per_tick: int = Field(10, gt=0)
    cost_sales_per_company: int = Field(20, gt=0)
    cost_income_window_minutes: float = Field(20, gt=0)

    loan_batch_size: int = Field(40, gt=0, le=100)
    loan_max_batches: int = Field(3, gt=0)

    net_worth_batch_size: int = Field(6, gt=0, le=25)
    net_worth_max_batches: int = Field(3, gt=0)

    history_limit: int = Field(100, gt=0)
