#!filepath: worldtick/engines/interest_engine.py
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from worldtick.config.economy_config import InterestConfig
from worldtick.domain.models import Loan, Participant
from worldtick.store.base import Store, Transaction
from worldtick.utils.clock import MINUTE_MS
from worldtick.utils.errors import FatalCycleFailure, PartialEntityFailure, ValidationFailure
from worldtick.utils.logger import logs


@dataclass
class BatchResult:
    processed: int
    next_cursor: Optional[str] = None


def interest_for_interval(remaining_balance: int, daily_rate_percent: float, intervals_per_day: int) -> int:
    """
    interest = floor(remaining × rate% / intervals_per_day)

    Decimal 计算，避免 100000 × 0.05 / 72 这类浮点误差改变 floor 结果
    """
    if remaining_balance <= 0 or daily_rate_percent <= 0:
        return 0
    if not math.isfinite(daily_rate_percent):
        raise ValidationFailure(f"interest rate must be finite, got {daily_rate_percent}")
    amount = Decimal(remaining_balance) * Decimal(str(daily_rate_percent)) / Decimal(100) / Decimal(intervals_per_day)
    return int(amount.to_integral_value(rounding=ROUND_FLOOR))


class InterestProcessor:
    """
    贷款计息（批处理）

    只访问 status=active 且已过冷却窗口的贷款，按 last_interest_applied 升序；
    未到期的贷款不打戳，等到期后自然排到前面。
    """

    def __init__(self, store: Store, cfg: InterestConfig):
        self.store = store
        self.cfg = cfg

    @property
    def interval_ms(self) -> int:
        return int(self.cfg.interval_minutes * MINUTE_MS)

    def accrue_batch(self, limit: int, cursor: Optional[str], now: int) -> BatchResult:
        limit = max(1, min(int(limit), 100))
        due_before = now - self.interval_ms

        with self.store.transaction("interest.batch") as tx:
            page = (
                tx.query(Loan.table)
                .eq("status", "active")
                .where(lambda d: isinstance(d.get("last_interest_applied"), (int, float))
                       and d["last_interest_applied"] <= due_before)
                .order_by("last_interest_applied")
                .paginate(cursor, limit)
            )

            processed = 0
            for doc in page.items:
                try:
                    with tx.savepoint():
                        accrued = self._accrue(tx, Loan.from_doc(doc), now)
                    if accrued:
                        processed += 1
                except FatalCycleFailure:
                    raise
                except Exception as e:
                    logs.warning(f"[LOAN] {PartialEntityFailure('loan', doc.get('_id'), e)}")
                    tx.patch(Loan.table, doc["_id"], {"last_interest_applied": now})

        logs.info(f"[LOAN] applied interest to {processed}/{len(page.items)} loans (limit {limit})")
        return BatchResult(processed=processed, next_cursor=page.next_cursor)

    def _accrue(self, tx: Transaction, loan: Loan, now: int) -> bool:
        interest = interest_for_interval(
            loan.remaining_balance, loan.interest_rate, self.cfg.intervals_per_day
        )
        if interest <= 0:
            # 利息为 0 的小额贷款也要打戳，否则永远占住轮转队首
            tx.patch(Loan.table, loan.id, {"last_interest_applied": now})
            return False

        # 先读借款人并算好余额，再写贷款和借款人
        player = tx.get(Participant.table, loan.participant_id)
        player_balance = None
        if player is not None:
            balance = player.get("balance") or 0
            if isinstance(balance, bool) or not isinstance(balance, (int, float)):
                raise ValidationFailure(f"borrower {loan.participant_id} has invalid balance {balance!r}")
            # 余额允许变负（债务困境）
            player_balance = int(balance) - interest
        else:
            logs.warning(f"[LOAN] borrower {loan.participant_id} of loan {loan.id} not found")

        tx.patch(
            Loan.table,
            loan.id,
            {
                "remaining_balance": loan.remaining_balance + interest,
                "accrued_interest": (loan.accrued_interest or 0) + interest,
                "last_interest_applied": now,
            },
        )
        if player_balance is not None:
            tx.patch(Participant.table, loan.participant_id, {"balance": player_balance, "updated_at": now})
        return True
