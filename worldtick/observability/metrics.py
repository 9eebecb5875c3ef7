#!filepath: worldtick/observability/metrics.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Union

from worldtick.utils.logger import logs

Number = Union[int, float]


@dataclass
class MetricRecorder:
    """
    单个 tick 的计数器

    - record：覆盖（step 自己的产出，如 purchase_count）
    - incr：累加（跨 step 汇总，如 store_batches）
    - snapshot：tick 结束时拷贝一份交给 CycleResult
    """

    enabled: bool = True
    metrics: Dict[str, Number] = field(default_factory=dict)

    def record(self, name: str, value: Number) -> None:
        if not self.enabled:
            return
        self.metrics[name] = value
        logs.debug(f"[Metric] {name} = {value}")

    def incr(self, name: str, value: Number = 1) -> None:
        if not self.enabled:
            return
        self.metrics[name] = self.metrics.get(name, 0) + value

    def snapshot(self) -> Dict[str, Number]:
        return dict(sorted(self.metrics.items()))

    def summary(self, title: str) -> None:
        if not self.enabled or not self.metrics:
            return
        body = ", ".join(f"{k}={v}" for k, v in self.snapshot().items())
        logs.info(f"[Metric] {title}: {body}")

    def clear(self) -> None:
        self.metrics.clear()
