#!filepath: worldtick/config/app_config.py
from __future__ import annotations

import os
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .store_config import StoreConfig
from .tick_config import TickConfig
from .market_config import MarketConfig, CryptoConfig
from .economy_config import DemandConfig, InterestConfig, NetWorthConfig
from .api_config import ApiConfig


def project_root() -> str:
    """
    worldtick/config/app_config.py → worldtick/config → worldtick → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


def default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), "base.yml")


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    tick: TickConfig = Field(default_factory=TickConfig)
    demand: DemandConfig = Field(default_factory=DemandConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    interest: InterestConfig = Field(default_factory=InterestConfig)
    net_worth: NetWorthConfig = Field(default_factory=NetWorthConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    seed: Optional[int] = None

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - 默认使用 worldtick/config/base.yml
        - WORLDTICK_* 环境变量覆盖 YAML
        """
        load_dotenv(os.path.join(project_root(), ".env"))

        if path is None:
            path = default_config_path()

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        _apply_env_overrides(raw)
        return cls(**raw)


def _apply_env_overrides(raw: dict) -> None:
    store_path = os.getenv("WORLDTICK_STORE_PATH")
    if store_path:
        raw.setdefault("store", {})["path"] = store_path

    level = os.getenv("WORLDTICK_LOG_LEVEL")
    if level:
        raw.setdefault("log", {})["level"] = level

    seed = os.getenv("WORLDTICK_SEED")
    if seed:
        raw["seed"] = int(seed)
