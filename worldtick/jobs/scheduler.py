#!filepath: worldtick/jobs/scheduler.py
from __future__ import annotations

import threading
from typing import Optional

from worldtick.jobs.registry import RunRegistry
from worldtick.pipeline.coordinator import CycleResult, TickCoordinator
from worldtick.utils.errors import LockContention
from worldtick.utils.logger import logs


def trigger(coordinator: TickCoordinator, registry: RunRegistry, source: str) -> CycleResult:
    """
    执行一次 run_cycle 并登记到 registry；异常原样向上抛
    """
    run = registry.start(source)
    try:
        result = coordinator.run_cycle(source)
    except LockContention as e:
        registry.finish(run, "SKIPPED", error=str(e))
        raise
    except Exception as e:
        registry.finish(run, "FAILED", error=repr(e))
        raise
    registry.finish(run, "SUCCESS", result=result.to_dict())
    return result


class TickScheduler:
    """
    定时触发器：后台 daemon 线程，每 interval_seconds 调用一次 run_cycle("scheduled")

    - LockContention：info 日志，跳过本轮
    - 其他异常：带 traceback 记录，循环继续
    """

    def __init__(
        self,
        coordinator: TickCoordinator,
        interval_seconds: float = 300,
        registry: Optional[RunRegistry] = None,
        run_immediately: bool = False,
    ):
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.registry = registry or RunRegistry()
        self.run_immediately = run_immediately
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks_run = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def fire(self) -> Optional[CycleResult]:
        try:
            result = trigger(self.coordinator, self.registry, "scheduled")
        except LockContention as e:
            logs.info(f"[SCHED] skipped: {e}")
            return None
        except Exception:
            logs.exception("[SCHED] scheduled tick failed")
            return None
        self.ticks_run += 1
        return result

    def _loop(self) -> None:
        logs.info(f"[SCHED] started, interval={self.interval_seconds}s")
        if self.run_immediately:
            self.fire()
        while not self._stop.wait(self.interval_seconds):
            self.fire()
        logs.info("[SCHED] stopped")

    def start(self) -> "TickScheduler":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="tick-scheduler", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
