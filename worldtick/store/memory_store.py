#!filepath: worldtick/store/memory_store.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from worldtick.store.base import (
    Doc,
    Page,
    Query,
    Store,
    Transaction,
    decode_cursor,
    encode_cursor,
)
from worldtick.utils.errors import ReadBudgetExceeded


def _sort_key(doc: Doc, field_name: Optional[str]) -> tuple:
    # 缺失值排在最前；同值按创建序号
    if field_name is None:
        return (0, 0, doc["_seq"])
    value = doc.get(field_name)
    if value is None:
        return (0, 0, doc["_seq"])
    return (1, value, doc["_seq"])


class MemoryQuery(Query):
    def __init__(self, tx: "MemoryTransaction", table: str):
        self._tx = tx
        self._table = table
        self._filters: List[Callable[[Doc], bool]] = []
        self._order_field: Optional[str] = None
        self._desc = False

    def eq(self, field_name: str, value: Any) -> "MemoryQuery":
        self._filters.append(lambda d: d.get(field_name) == value)
        return self

    def where(self, predicate: Callable[[Doc], bool]) -> "MemoryQuery":
        self._filters.append(predicate)
        return self

    def order_by(self, field_name: str, desc: bool = False) -> "MemoryQuery":
        self._order_field = field_name
        self._desc = desc
        return self

    def _rows(self) -> List[Doc]:
        rows = [
            d for d in self._tx.store._tables.get(self._table, {}).values()
            if all(f(d) for f in self._filters)
        ]
        rows.sort(key=lambda d: _sort_key(d, self._order_field), reverse=self._desc)
        return rows

    def take(self, n: int) -> List[Doc]:
        if n <= 0:
            return []
        rows = self._rows()[:n]
        self._tx._count(len(rows))
        return [dict(d) for d in rows]

    def collect(self) -> List[Doc]:
        rows = self._rows()
        self._tx._count(len(rows))
        return [dict(d) for d in rows]

    def paginate(self, cursor: Optional[str], n: int) -> Page:
        rows = self._rows()
        if cursor is not None:
            value, seq = decode_cursor(cursor)
            anchor = (0, 0, seq) if value is None else (1, value, seq)
            if self._desc:
                rows = [d for d in rows if _sort_key(d, self._order_field) < anchor]
            else:
                rows = [d for d in rows if _sort_key(d, self._order_field) > anchor]

        page = rows[:n] if n > 0 else []
        self._tx._count(len(page))

        next_cursor = None
        if page and len(page) == n and len(rows) > n:
            last = page[-1]
            value = last.get(self._order_field) if self._order_field else None
            next_cursor = encode_cursor(value, last["_seq"])
        return Page(items=[dict(d) for d in page], next_cursor=next_cursor)


class MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryStore", name: str):
        self.store = store
        self.name = name
        self.reads = 0
        self.writes = 0
        # (table, id, 写之前的行 | None)，savepoint 回滚用
        self._undo: List[tuple] = []

    def _count(self, n: int) -> None:
        self.reads += n
        if self.reads > self.store.read_ceiling:
            raise ReadBudgetExceeded(self.name, self.reads, self.store.read_ceiling)

    def get(self, table: str, doc_id: Optional[str]) -> Optional[Doc]:
        if doc_id is None:
            return None
        doc = self.store._tables.get(table, {}).get(doc_id)
        if doc is None:
            return None
        self._count(1)
        return dict(doc)

    def query(self, table: str) -> MemoryQuery:
        return MemoryQuery(self, table)

    def insert(self, table: str, doc: Doc) -> str:
        self.store._seq += 1
        seq = self.store._seq
        doc_id = f"{table}:{seq}"
        row = {k: v for k, v in doc.items() if k not in ("_id", "_seq")}
        row["_id"] = doc_id
        row["_seq"] = seq
        self.store._tables.setdefault(table, {})[doc_id] = row
        self._undo.append((table, doc_id, None))
        self.writes += 1
        return doc_id

    def patch(self, table: str, doc_id: str, fields: Doc) -> None:
        rows = self.store._tables.get(table, {})
        if doc_id not in rows:
            raise KeyError(f"{table}/{doc_id} not found")
        update = {k: v for k, v in fields.items() if k not in ("_id", "_seq")}
        # 文档不可原地修改：替换为新 dict，快照回滚依赖这一点
        self._undo.append((table, doc_id, rows[doc_id]))
        rows[doc_id] = {**rows[doc_id], **update}
        self.writes += 1

    def delete(self, table: str, doc_id: str) -> None:
        rows = self.store._tables.get(table, {})
        if doc_id not in rows:
            raise KeyError(f"{table}/{doc_id} not found")
        self._undo.append((table, doc_id, rows.pop(doc_id)))
        self.writes += 1

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        mark = len(self._undo)
        try:
            yield
        except BaseException:
            while len(self._undo) > mark:
                table, doc_id, previous = self._undo.pop()
                rows = self.store._tables.setdefault(table, {})
                if previous is None:
                    rows.pop(doc_id, None)
                else:
                    rows[doc_id] = previous
            raise


class MemoryStore(Store):
    """
    进程内 Store（参考实现 / 测试用）

    - 同一时刻只有一个事务（RLock 串行化）
    - 事务异常 → 回滚到事务开始时的快照
    """

    def __init__(self, read_ceiling: int = 32_000):
        self.read_ceiling = read_ceiling
        self._tables: Dict[str, Dict[str, Doc]] = {}
        self._seq = 0
        self._lock = threading.RLock()

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        with self._lock:
            self._acquire()
            try:
                yield
            finally:
                self._release()

    def _acquire(self) -> None:
        """子类钩子：进入事务前（跨进程加锁 / 重新加载）"""

    def _release(self) -> None:
        """子类钩子：事务结束后"""

    @contextmanager
    def transaction(self, name: str = "tx") -> Iterator[MemoryTransaction]:
        with self._exclusive():
            snapshot = {t: dict(rows) for t, rows in self._tables.items()}
            seq = self._seq
            tx = MemoryTransaction(self, name)
            try:
                yield tx
            except BaseException:
                self._tables = snapshot
                self._seq = seq
                raise
            if tx.writes:
                self._on_commit()

    def _on_commit(self) -> None:
        """子类钩子：提交后持久化"""

    def count(self, table: str) -> int:
        with self._exclusive():
            return len(self._tables.get(table, {}))

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "seq": self._seq,
                "tables": {t: list(rows.values()) for t, rows in self._tables.items()},
            }

    def restore(self, data: Dict[str, Any]) -> None:
        with self._lock:
            self._seq = int(data.get("seq", 0))
            self._tables = {
                t: {row["_id"]: row for row in rows}
                for t, rows in data.get("tables", {}).items()
            }
