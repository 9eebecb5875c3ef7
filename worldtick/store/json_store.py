#!filepath: worldtick/store/json_store.py
from __future__ import annotations

import fcntl
import json
import os
from pathlib import Path

from worldtick.store.memory_store import MemoryStore
from worldtick.utils.logger import logs
from worldtick.utils.retry import Retry


class JsonFileStore(MemoryStore):
    """
    MemoryStore + JSON 快照持久化，可被多个进程共享（CLI tick / serve / schedule）

    - 每个事务先拿 `<path>.lock` 上的排他 flock，整个事务期间持有
    - 拿到锁后从快照重新加载（别的进程可能刚提交过）
    - 提交后整体写回（tmp → os.replace，原子替换），再释放锁

    于是租约的 compare-and-swap 在进程之间也是原子的。
    """

    def __init__(self, path: str | Path, read_ceiling: int = 32_000):
        super().__init__(read_ceiling=read_ceiling)
        self.path = Path(path)
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self._lock_file = None
        self._depth = 0

        with self._exclusive():
            if self.path.exists():
                logs.info(f"[STORE] loaded snapshot {self.path} (seq={self._seq})")

    # ------------------------------------------------------------------
    def _acquire(self) -> None:
        self._depth += 1
        if self._depth > 1:
            return

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_file = open(self.lock_path, "a+")
        fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
        try:
            if self.path.exists():
                self.restore(json.loads(self.path.read_text(encoding="utf-8")))
        except BaseException:
            self._release()
            raise

    def _release(self) -> None:
        self._depth -= 1
        if self._depth > 0:
            return
        fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
        self._lock_file.close()
        self._lock_file = None

    # ------------------------------------------------------------------
    def _on_commit(self) -> None:
        self._flush()

    @Retry.decorator(exceptions=(OSError,), max_attempts=3, delay=0.05)
    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self.dump(), ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)
