#!filepath: worldtick/observability/timeline_reporter.py
from typing import Dict
from worldtick.utils.logger import logs


class TimelineReporter:
    """
    step → 秒数，外加占比；最慢的 step 单独标出
    """

    def __init__(self, timeline: Dict[str, float], label: str):
        self.timeline = timeline
        self.label = label

    def print(self):
        if not self.timeline:
            logs.info(f"[Timeline] {self.label}: no steps recorded")
            return

        total = sum(self.timeline.values())
        slowest = max(self.timeline, key=self.timeline.get)

        logs.info(f"[Timeline] ----- {self.label} -----")
        for name, sec in self.timeline.items():
            share = sec / total * 100 if total else 0.0
            mark = " *" if name == slowest else ""
            logs.info(f"[Timeline] {name:<16} {sec:>8.3f}s {share:>5.1f}%{mark}")
        logs.info(f"[Timeline] {'total':<16} {total:>8.3f}s")
