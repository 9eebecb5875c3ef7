#!filepath: worldtick/config/store_config.py
from typing import Optional

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    # None → 纯内存
    path: Optional[str] = None
    # 单个事务最多读取的文档数
    read_ceiling: int = Field(32_000, gt=0)
