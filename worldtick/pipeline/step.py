#!filepath: worldtick/pipeline/step.py
from __future__ import annotations

from worldtick.observability.instrumentation import Instrumentation, NoOpInstrumentation
from worldtick.pipeline.context import TickContext


class TickStep:
    """
    Tick Step 基类

    - 一个 Step = 一个或多个独立的 store 事务
    - Step 自己定义计时边界（execute 包一层 timer）
    - 实体级错误在 Step 内部消化；致命错误向上抛
    """

    stage: str = ""

    def __init__(self, inst: Instrumentation | None = None):
        self.inst: Instrumentation | NoOpInstrumentation = (
            inst if inst is not None else NoOpInstrumentation()
        )

    @property
    def step_name(self) -> str:
        return self.stage or self.__class__.__name__

    def timed(self):
        return self.inst.timer(self.step_name)

    def execute(self, ctx: TickContext) -> TickContext:
        with self.timed():
            return self.run(ctx)

    def run(self, ctx: TickContext) -> TickContext:
        raise NotImplementedError
