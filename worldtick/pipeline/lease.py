#!filepath: worldtick/pipeline/lease.py
from __future__ import annotations

from typing import Optional

from worldtick.domain.models import TickLock
from worldtick.store.base import Store
from worldtick.utils.logger import logs


class Lease:
    """
    单持有者租约（compare-and-swap 语义）

    - try_acquire: 不存在 → 创建；被持有且超过 stale_after → 强制回收；否则拒绝
    - release: 只释放自己持有的租约
    - 每次操作都是一个独立事务，Store 保证原子性
    """

    def __init__(self, store: Store, clock, stale_after_ms: int, lock_id: str = "singleton"):
        self.store = store
        self.clock = clock
        self.stale_after_ms = stale_after_ms
        self.lock_id = lock_id

    def _load(self, tx) -> Optional[TickLock]:
        doc = tx.query(TickLock.table).eq("lock_id", self.lock_id).first()
        return TickLock.from_doc(doc) if doc else None

    def is_stale(self, lock: TickLock, now: int) -> bool:
        if not lock.is_locked:
            return False
        if lock.locked_at is None:
            return True
        return now - lock.locked_at > self.stale_after_ms

    def try_acquire(self, owner: str) -> bool:
        with self.store.transaction("lease.acquire") as tx:
            now = self.clock.now_ms()
            lock = self._load(tx)
            held = {"is_locked": True, "locked_at": now, "locked_by": owner}

            if lock is None:
                tx.insert(TickLock.table, TickLock(lock_id=self.lock_id, **held).to_doc())
                logs.info(f"[LEASE] created and acquired by {owner}")
                return True

            if lock.is_locked and not self.is_stale(lock, now):
                logs.info(f"[LEASE] held by {lock.locked_by}, {owner} rejected")
                return False

            if lock.is_locked:
                logs.warning(
                    f"[LEASE] stale lease from {lock.locked_by} "
                    f"(locked_at={lock.locked_at}), reclaimed by {owner}"
                )
            tx.patch(TickLock.table, lock.id, held)
            return True

    def release(self, owner: str) -> bool:
        with self.store.transaction("lease.release") as tx:
            lock = self._load(tx)
            if lock is None or not lock.is_locked:
                return False
            if lock.locked_by != owner:
                logs.warning(f"[LEASE] {owner} tried to release lease held by {lock.locked_by}")
                return False
            tx.patch(TickLock.table, lock.id, {"is_locked": False, "locked_at": None, "locked_by": None})
            return True

    def holder(self) -> Optional[TickLock]:
        with self.store.transaction("lease.inspect") as tx:
            lock = self._load(tx)
        if lock is None or not lock.is_locked:
            return None
        return lock
