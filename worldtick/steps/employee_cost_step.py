#!filepath: worldtick/steps/employee_cost_step.py
from __future__ import annotations

from worldtick.engines.employee_cost_engine import EmployeeCostProcessor
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.step import TickStep


class EmployeeCostStep(TickStep):
    stage = "employee_costs"

    def __init__(self, *, processor: EmployeeCostProcessor, inst=None):
        super().__init__(inst=inst)
        self.processor = processor

    def run(self, ctx: TickContext) -> TickContext:
        result = self.processor.run(ctx.now)
        ctx.companies_charged = result.companies_charged
        self.inst.metrics.record("employee_costs", result.total_deducted)
        return ctx
