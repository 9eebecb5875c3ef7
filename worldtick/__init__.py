#!filepath: worldtick/__init__.py

from .utils.logger import Logging, logs
from .utils.retry import Retry
from .config.app_config import AppConfig

# alias 简化调用
retry = Retry

__all__ = [
    "logs", "Logging",
    "retry",
    "AppConfig",
]
