#!filepath: worldtick/pipeline/rotation.py
from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from worldtick.store.base import Doc, Transaction


class RotationCursor:
    """
    轮转游标：每次取 stamp 最旧的 N 个实体，处理完在同一事务内打戳。

    只要 tick 持续运行，任何实体都不会被永久饿死。
    """

    def __init__(self, table: str, stamp_field: str):
        self.table = table
        self.stamp_field = stamp_field

    def window(
        self,
        tx: Transaction,
        n: int,
        where: Optional[Callable[[Doc], bool]] = None,
    ) -> List[Doc]:
        q = tx.query(self.table)
        if where is not None:
            q = q.where(where)
        return q.order_by(self.stamp_field).take(n)

    def advance(self, tx: Transaction, ids: Iterable[str], now: int) -> int:
        count = 0
        for doc_id in ids:
            if tx.get(self.table, doc_id) is None:
                continue
            tx.patch(self.table, doc_id, {self.stamp_field: now})
            count += 1
        return count
