#!filepath: worldtick/steps/batch_steps.py
"""
游标批处理 Step：每批一个事务，最多 max_batches 批，游标为空即停
"""
from __future__ import annotations

from typing import Callable, Optional, Tuple

from worldtick.engines.interest_engine import BatchResult, InterestProcessor
from worldtick.engines.net_worth_engine import NetWorthAggregator
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.step import TickStep
from worldtick.utils.logger import logs


def drain_batches(
    run_batch: Callable[[int, Optional[str]], BatchResult],
    batch_size: int,
    max_batches: int,
) -> Tuple[int, int]:
    """返回 (processed, batches)"""
    cursor: Optional[str] = None
    processed = 0
    batches = 0
    while batches < max_batches:
        result = run_batch(batch_size, cursor)
        processed += result.processed
        batches += 1
        cursor = result.next_cursor
        if not cursor:
            break
    return processed, batches


class InterestStep(TickStep):
    stage = "loan_interest"

    def __init__(self, *, processor: InterestProcessor, batch_size: int, max_batches: int, inst=None):
        super().__init__(inst=inst)
        self.processor = processor
        self.batch_size = batch_size
        self.max_batches = max_batches

    def run(self, ctx: TickContext) -> TickContext:
        ctx.loans_processed, ctx.loan_batches = drain_batches(
            lambda limit, cursor: self.processor.accrue_batch(limit, cursor, ctx.now),
            self.batch_size,
            self.max_batches,
        )
        logs.info(f"[TICK] Loan interest batches: {ctx.loan_batches}, loans processed: {ctx.loans_processed}")
        self.inst.metrics.record("loans_processed", ctx.loans_processed)
        self.inst.metrics.incr("store_batches", ctx.loan_batches)
        return ctx


class NetWorthStep(TickStep):
    stage = "net_worth"

    def __init__(self, *, aggregator: NetWorthAggregator, batch_size: int, max_batches: int, inst=None):
        super().__init__(inst=inst)
        self.aggregator = aggregator
        self.batch_size = batch_size
        self.max_batches = max_batches

    def run(self, ctx: TickContext) -> TickContext:
        ctx.participants_processed, ctx.net_worth_batches = drain_batches(
            lambda limit, cursor: self.aggregator.recompute_batch(limit, cursor, ctx.now),
            self.batch_size,
            self.max_batches,
        )
        logs.info(
            f"[TICK] Net worth batches: {ctx.net_worth_batches}, "
            f"participants processed: {ctx.participants_processed}"
        )
        self.inst.metrics.record("participants_processed", ctx.participants_processed)
        self.inst.metrics.incr("store_batches", ctx.net_worth_batches)
        return ctx
