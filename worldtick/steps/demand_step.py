#!filepath: worldtick/steps/demand_step.py
from __future__ import annotations

from worldtick.engines.demand_engine import DemandAllocator
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.step import TickStep


class DemandStep(TickStep):
    """Step 1: bot 购买"""

    stage = "bot_purchases"

    def __init__(self, *, allocator: DemandAllocator, inst=None):
        super().__init__(inst=inst)
        self.allocator = allocator

    def run(self, ctx: TickContext) -> TickContext:
        result = self.allocator.run(ctx.rng, ctx.now)
        ctx.purchases.extend(result.purchases)
        self.inst.metrics.record("purchase_count", len(result.purchases))
        self.inst.metrics.record("budget_spent", result.total_spent)
        return ctx
