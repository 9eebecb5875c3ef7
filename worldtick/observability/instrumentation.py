#!filepath: worldtick/observability/instrumentation.py
from __future__ import annotations

import time
from dataclasses import dataclass
from contextlib import contextmanager
from collections import OrderedDict
from typing import Dict

from worldtick.observability.metrics import MetricRecorder
from worldtick.observability.timeline_reporter import TimelineReporter


@dataclass
class Instrumentation:
    """
    一个 tick 的计时 + 指标。

    - timeline 只记录叶子（每个 Step，record=True）
    - 外层 "tick" scope 用 record=False，只划定边界
    - 热路径不打日志，tick 结束后统一 generate_timeline_report
    """

    enabled: bool = True

    def __post_init__(self):
        self.metrics = MetricRecorder(enabled=self.enabled)
        self.timeline: Dict[str, float] = OrderedDict()

    def timer(self, name: str, *, record: bool = True):
        """
        with inst.timer("stock_prices"): ...

        同名 step 重复出现时耗时累加。
        """
        inst = self

        @contextmanager
        def _ctx():
            if not inst.enabled:
                yield
                return

            start = time.perf_counter()
            try:
                yield
            finally:
                if record:
                    elapsed = time.perf_counter() - start
                    inst.timeline[name] = inst.timeline.get(name, 0.0) + elapsed

        return _ctx()

    def reset(self):
        """每个 tick 开始前清空 timeline 和 metrics"""
        self.timeline.clear()
        self.metrics.clear()

    def generate_timeline_report(self, label: str):
        TimelineReporter(self.timeline, label).print()


class NoOpInstrumentation:
    """未注入 Instrumentation 的 Step 使用。"""

    def __init__(self):
        self.metrics = MetricRecorder(enabled=False)
        self.timeline: Dict[str, float] = {}

    def timer(self, name: str, *, record: bool = True):
        return _NoOpTimer()

    def reset(self):
        pass

    def generate_timeline_report(self, label: str):
        pass


class _NoOpTimer:
    def __enter__(self):
        pass

    def __exit__(self, exc_type, exc, tb):
        pass
