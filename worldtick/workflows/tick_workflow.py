#!filepath: worldtick/workflows/tick_workflow.py
"""
组装：config → store / engines / steps / coordinator

CLI、API、scheduler 都从这里拿 coordinator，保证同一份配置、同一把租约。
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from worldtick.config.app_config import AppConfig, project_root
from worldtick.engines.crypto_price_engine import CryptoPriceEngine
from worldtick.engines.demand_engine import DemandAllocator
from worldtick.engines.employee_cost_engine import EmployeeCostProcessor
from worldtick.engines.interest_engine import InterestProcessor
from worldtick.engines.net_worth_engine import NetWorthAggregator
from worldtick.engines.stock_price_engine import StockPriceEngine
from worldtick.engines.trade_engine import TradeEngine
from worldtick.observability.instrumentation import Instrumentation
from worldtick.pipeline.coordinator import TickCoordinator
from worldtick.pipeline.lease import Lease
from worldtick.pipeline.pipeline import TickPipeline
from worldtick.pricing.random_source import RandomSource
from worldtick.steps.batch_steps import InterestStep, NetWorthStep
from worldtick.steps.demand_step import DemandStep
from worldtick.steps.employee_cost_step import EmployeeCostStep
from worldtick.steps.price_steps import CryptoPriceStep, StockPriceStep
from worldtick.store.base import Store
from worldtick.store.json_store import JsonFileStore
from worldtick.store.memory_store import MemoryStore
from worldtick.utils.clock import MINUTE_MS, SystemClock
from worldtick.utils.logger import logs


def build_store(cfg: AppConfig) -> Store:
    if not cfg.store.path:
        logs.info("[STORE] in-memory store")
        return MemoryStore(read_ceiling=cfg.store.read_ceiling)

    path = cfg.store.path
    if not os.path.isabs(path):
        path = os.path.join(project_root(), path)
    return JsonFileStore(path, read_ceiling=cfg.store.read_ceiling)


def build_pipeline(cfg: AppConfig, store: Store, inst: Instrumentation) -> TickPipeline:
    """固定顺序：需求 → 员工成本 → 股票 → 加密 → 利息 → 净值"""
    t = cfg.tick
    steps = [
        DemandStep(allocator=DemandAllocator(store, cfg.demand), inst=inst),
        EmployeeCostStep(processor=EmployeeCostProcessor(store, t), inst=inst),
        StockPriceStep(engine=StockPriceEngine(store, cfg.market), inst=inst),
        CryptoPriceStep(engine=CryptoPriceEngine(store, cfg.crypto, cfg.market), inst=inst),
        InterestStep(
            processor=InterestProcessor(store, cfg.interest),
            batch_size=t.loan_batch_size,
            max_batches=t.loan_max_batches,
            inst=inst,
        ),
        NetWorthStep(
            aggregator=NetWorthAggregator(store, cfg.net_worth),
            batch_size=t.net_worth_batch_size,
            max_batches=t.net_worth_max_batches,
            inst=inst,
        ),
    ]
    return TickPipeline(steps, inst)


def build_coordinator(
    cfg: AppConfig,
    store: Store,
    clock=None,
    rng: Optional[RandomSource] = None,
    inst: Optional[Instrumentation] = None,
) -> TickCoordinator:
    clock = clock or SystemClock()
    lease = Lease(store, clock, stale_after_ms=int(cfg.tick.lock_stale_minutes * MINUTE_MS))
    return TickCoordinator(
        store=store,
        clock=clock,
        lease=lease,
        pipeline_factory=lambda i: build_pipeline(cfg, store, i),
        rng=rng or RandomSource.seeded(cfg.seed),
        inst=inst,
    )


@dataclass
class World:
    """一次进程内共享的运行时对象"""

    cfg: AppConfig
    store: Store
    clock: object
    coordinator: TickCoordinator
    trades: TradeEngine


@logs.catch(msg="world wiring failed", log_time=False)
def build_world(
    cfg: Optional[AppConfig] = None,
    store: Optional[Store] = None,
    clock=None,
    rng: Optional[RandomSource] = None,
) -> World:
    cfg = cfg or AppConfig.load()
    store = store if store is not None else build_store(cfg)
    clock = clock or SystemClock()
    return World(
        cfg=cfg,
        store=store,
        clock=clock,
        coordinator=build_coordinator(cfg, store, clock, rng),
        trades=TradeEngine(store, cfg.market, clock),
    )
