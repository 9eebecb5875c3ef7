#!filepath: worldtick/pipeline/coordinator.py
"""
TickCoordinator（唯一入口）

  lease.try_acquire → tick_number = last + 1 → pipeline → history → lease.release

- 定时触发与手动触发共用这一套逻辑（同一把租约，互斥）
- 第二个触发者直接失败（LockContention），不排队、不阻塞
- release 在 finally 中，任何异常都不会把租约留在持有状态
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from worldtick.domain.models import TickHistory
from worldtick.observability.instrumentation import Instrumentation
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.lease import Lease
from worldtick.pipeline.pipeline import TickPipeline
from worldtick.pricing.random_source import RandomSource
from worldtick.store.base import Store
from worldtick.utils.errors import FatalCycleFailure, LockContention
from worldtick.utils.logger import logs


@dataclass(frozen=True)
class CycleResult:
    tick_number: int
    purchase_count: int
    stock_update_count: int
    crypto_update_count: int
    tick_id: Optional[str] = None
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "tickNumber": self.tick_number,
            "purchaseCount": self.purchase_count,
            "stockUpdateCount": self.stock_update_count,
            "cryptoUpdateCount": self.crypto_update_count,
            "tickId": self.tick_id,
            "metrics": dict(self.metrics),
        }


class TickCoordinator:
    def __init__(
        self,
        store: Store,
        clock,
        lease: Lease,
        pipeline_factory: Callable[[Instrumentation], TickPipeline],
        rng: RandomSource,
        inst: Optional[Instrumentation] = None,
    ):
        self.store = store
        self.clock = clock
        self.lease = lease
        self.pipeline_factory = pipeline_factory
        self.rng = rng
        self.inst = inst if inst is not None else Instrumentation(enabled=True)

    # ------------------------------------------------------------------
    def run_cycle(self, trigger_source: str = "scheduled") -> CycleResult:
        owner = f"{trigger_source}:{uuid.uuid4().hex[:12]}"

        if not self.lease.try_acquire(owner):
            holder = self.lease.holder()
            raise LockContention(holder.locked_by if holder else None)

        try:
            return self._run_locked(trigger_source)
        except FatalCycleFailure:
            logs.exception(f"[TICK] cycle aborted ({trigger_source})")
            raise
        except Exception as e:
            logs.exception(f"[TICK] cycle failed ({trigger_source})")
            raise FatalCycleFailure(f"tick failed: {e!r}") from e
        finally:
            self.lease.release(owner)

    def _run_locked(self, trigger_source: str) -> CycleResult:
        now = self.clock.now_ms()
        last = self.last_tick()
        tick_number = (last.tick_number if last else 0) + 1

        ctx = TickContext(
            tick_number=tick_number,
            now=now,
            trigger_source=trigger_source,
            rng=self.rng.spawn(),
        )

        self.inst.reset()
        pipeline = self.pipeline_factory(self.inst)
        with self.inst.timer("tick", record=False):
            ctx = pipeline.run(ctx)

        history = TickHistory(
            tick_number=tick_number,
            timestamp=now,
            trigger_source=trigger_source,
            purchase_count=len(ctx.purchases),
            total_budget_spent=ctx.total_budget_spent,
            bot_purchases=[p.to_dict() for p in ctx.purchases],
            price_update_summaries=[u.to_dict() for u in ctx.stock_updates],
            crypto_update_summaries=[u.to_dict() for u in ctx.crypto_updates],
            loans_processed=ctx.loans_processed,
            participants_processed=ctx.participants_processed,
        )
        with self.store.transaction("tick.history") as tx:
            tick_id = tx.insert(TickHistory.table, history.to_doc())

        self.inst.metrics.record("tick_number", tick_number)
        self.inst.metrics.record("companies_charged", ctx.companies_charged)
        self.inst.generate_timeline_report(f"tick #{tick_number}")
        self.inst.metrics.summary(f"tick #{tick_number}")
        logs.info(
            f"[TICK] ====== DONE #{tick_number}: {len(ctx.purchases)} purchases, "
            f"{len(ctx.stock_updates)} stock / {len(ctx.crypto_updates)} crypto updates, "
            f"{ctx.loans_processed} loans, {ctx.participants_processed} participants ======"
        )

        return CycleResult(
            tick_number=tick_number,
            purchase_count=len(ctx.purchases),
            stock_update_count=len(ctx.stock_updates),
            crypto_update_count=len(ctx.crypto_updates),
            tick_id=tick_id,
            metrics=self.inst.metrics.snapshot(),
        )

    # ------------------------------------------------------------------
    # read helpers
    # ------------------------------------------------------------------
    def last_tick(self) -> Optional[TickHistory]:
        with self.store.transaction("tick.last") as tx:
            doc = tx.query(TickHistory.table).order_by("tick_number", desc=True).first()
        return TickHistory.from_doc(doc) if doc else None

    def history(self, limit: int = 100) -> List[TickHistory]:
        with self.store.transaction("tick.history.read") as tx:
            rows = tx.query(TickHistory.table).order_by("timestamp", desc=True).take(limit)
        return [TickHistory.from_doc(r) for r in rows]
