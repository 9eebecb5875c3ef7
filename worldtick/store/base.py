#!filepath: worldtick/store/base.py
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Dict, List, Optional

Doc = Dict[str, Any]


@dataclass
class Page:
    """cursor 分页结果；next_cursor=None 表示已到末尾"""

    items: List[Doc] = field(default_factory=list)
    next_cursor: Optional[str] = None


def encode_cursor(value: Any, seq: int) -> str:
    return json.dumps([value, seq])


def decode_cursor(cursor: str) -> tuple[Any, int]:
    value, seq = json.loads(cursor)
    return value, int(seq)


class Query(ABC):
    """
    Fluent 查询接口（索引等值 / 排序 / take / 分页）。

    每个被返回的文档都计入所在事务的读预算。
    """

    @abstractmethod
    def eq(self, field_name: str, value: Any) -> "Query":
        ...

    @abstractmethod
    def where(self, predicate: Callable[[Doc], bool]) -> "Query":
        ...

    @abstractmethod
    def order_by(self, field_name: str, desc: bool = False) -> "Query":
        ...

    @abstractmethod
    def take(self, n: int) -> List[Doc]:
        ...

    @abstractmethod
    def collect(self) -> List[Doc]:
        ...

    @abstractmethod
    def paginate(self, cursor: Optional[str], n: int) -> Page:
        ...

    def first(self) -> Optional[Doc]:
        rows = self.take(1)
        return rows[0] if rows else None


class Transaction(ABC):
    """单个隔离的工作单元（unit of work）"""

    name: str
    reads: int

    @abstractmethod
    def get(self, table: str, doc_id: Optional[str]) -> Optional[Doc]:
        ...

    @abstractmethod
    def query(self, table: str) -> Query:
        ...

    @abstractmethod
    def insert(self, table: str, doc: Doc) -> str:
        ...

    @abstractmethod
    def patch(self, table: str, doc_id: str, fields: Doc) -> None:
        ...

    @abstractmethod
    def delete(self, table: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def savepoint(self) -> ContextManager[None]:
        """
        事务内的局部回滚点：块内抛异常 → 只撤销块内写入，事务继续
        （单个实体失败时用，避免半写状态被整体提交）
        """
        ...


class Store(ABC):
    """
    持久层适配器。

    transaction() 内的写入要么全部提交，要么在异常时全部回滚。
    """

    read_ceiling: int

    @abstractmethod
    def transaction(self, name: str = "tx") -> ContextManager[Transaction]:
        ...
