#!filepath: worldtick/pipeline/pipeline.py
from __future__ import annotations

from worldtick.observability.instrumentation import Instrumentation
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.step import TickStep
from worldtick.utils.logger import logs


class TickPipeline:
    """
    TickPipeline = 调度器

    - 严格按顺序执行 Step，无并行
    - Pipeline 不打 timer，Step 自己计时
    - 某个 Step 抛出 → 后续 Step 不再执行
    """

    def __init__(self, steps: list[TickStep], inst: Instrumentation):
        self.steps = steps
        self.inst = inst

    def run(self, ctx: TickContext) -> TickContext:
        logs.info(f"[TICK] ====== START #{ctx.tick_number} ({ctx.trigger_source}) ======")

        for i, step in enumerate(self.steps, start=1):
            logs.info(f"[TICK] Step {i}/{len(self.steps)}: {step.step_name}")
            ctx = step.execute(ctx)

        return ctx
