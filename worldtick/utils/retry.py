#!filepath: worldtick/utils/retry.py
import time
import random
from functools import wraps
from typing import Callable, Tuple, Type

from worldtick.utils.logger import logs


class Retry:
    """
    同步重试（指数退避 + jitter）

    用在两处：
    - JsonFileStore 落盘遇到 OSError
    - `worldtick tick --wait` 遇到 LockContention
    """

    @staticmethod
    def backoff_delay(attempt: int, delay: float, backoff: float, jitter: bool) -> float:
        """第 attempt 次失败后的等待秒数（attempt 从 1 开始）"""
        wait = delay * (backoff ** (attempt - 1))
        if jitter:
            wait *= random.uniform(0.8, 1.2)
        return wait

    @staticmethod
    def run(
        func: Callable,
        *args,
        exceptions: Tuple[Type[Exception], ...] = (Exception,),
        max_attempts: int = 3,
        delay: float = 1.0,
        backoff: float = 2.0,
        jitter: bool = True,
        **kwargs,
    ):
        name = getattr(func, "__name__", repr(func))
        for attempt in range(1, max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                if attempt == max_attempts:
                    logs.error(f"[Retry] {name} gave up after {max_attempts} attempts: {e}")
                    raise

                wait = Retry.backoff_delay(attempt, delay, backoff, jitter)
                logs.warning(f"[Retry] {name} attempt {attempt}/{max_attempts}: {e}; sleep {wait:.2f}s")
                time.sleep(wait)

    @staticmethod
    def decorator(
        exceptions: Tuple[Type[Exception], ...] = (Exception,),
        max_attempts: int = 2,
        delay: float = 1.0,
        backoff: float = 2.0,
        jitter: bool = True,
    ):
        def wrapper(func: Callable):
            @wraps(func)
            def inner(*args, **kwargs):
                return Retry.run(
                    func,
                    *args,
                    exceptions=exceptions,
                    max_attempts=max_attempts,
                    delay=delay,
                    backoff=backoff,
                    jitter=jitter,
                    **kwargs,
                )

            return inner

        return wrapper
