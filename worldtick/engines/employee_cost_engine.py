#!filepath: worldtick/engines/employee_cost_engine.py
from __future__ import annotations

import math
from dataclasses import dataclass

from worldtick.config.tick_config import TickConfig
from worldtick.domain.models import Company, LedgerEntry, Sale
from worldtick.pipeline.rotation import RotationCursor
from worldtick.store.base import Store, Transaction
from worldtick.utils.clock import MINUTE_MS
from worldtick.utils.errors import FatalCycleFailure, PartialEntityFailure
from worldtick.utils.logger import logs


@dataclass
class CostResult:
    companies_visited: int = 0
    companies_charged: int = 0
    total_deducted: int = 0


def employee_cost(tick_income: int, cost_percentage: float) -> int:
    """cost = floor(income × pct / 100)"""
    if tick_income <= 0 or cost_percentage <= 0:
        return 0
    return int(math.floor(tick_income * cost_percentage / 100))


class EmployeeCostProcessor:
    """
    员工成本扣除：按最近一个 tick 的销售收入比例，从公司余额扣除运营成本。
    余额不足时不扣（不让公司因为成本变成负数）。
    """

    def __init__(self, store: Store, cfg: TickConfig):
        self.store = store
        self.cfg = cfg
        self.rotation = RotationCursor(Company.table, "last_cost_deduction_at")

    def run(self, now: int) -> CostResult:
        result = CostResult()
        with self.store.transaction("employee_costs") as tx:
            docs = self.rotation.window(tx, self.cfg.cost_companies_per_tick)
            for doc in docs:
                result.companies_visited += 1
                try:
                    deducted = self._charge(tx, Company.from_doc(doc), now)
                except FatalCycleFailure:
                    raise
                except Exception as e:
                    logs.warning(f"[COST] {PartialEntityFailure('company', doc.get('_id'), e)}")
                    continue
                if deducted:
                    result.companies_charged += 1
                    result.total_deducted += deducted

            self.rotation.advance(tx, [d["_id"] for d in docs], now)

        logs.info(
            f"[COST] employee costs: {result.companies_charged}/{result.companies_visited} companies charged, "
            f"total={result.total_deducted}"
        )
        return result

    def _tick_income(self, tx: Transaction, company_id: str, now: int) -> int:
        since = now - int(self.cfg.cost_income_window_minutes * MINUTE_MS)
        sales = (
            tx.query(Sale.table)
            .eq("company_id", company_id)
            .where(lambda d: (d.get("created_at") or 0) >= since)
            .take(self.cfg.cost_sales_per_company)
        )
        return sum(int(s.get("total_price") or 0) for s in sales)

    def _charge(self, tx: Transaction, company: Company, now: int) -> int:
        percentage = company.tick_cost_percentage
        if not company.employees or percentage <= 0:
            return 0

        cost = employee_cost(self._tick_income(tx, company.id, now), percentage)
        if cost <= 0 or cost > company.balance:
            return 0

        tx.patch(Company.table, company.id, {"balance": company.balance - cost, "updated_at": now})
        tx.insert(
            LedgerEntry.table,
            LedgerEntry(
                from_account_id=company.id,
                from_account_type="company",
                to_account_id=company.owner_id,
                to_account_type="player",
                amount=cost,
                description=f"Employee costs for tick ({percentage:g}% of income)",
                created_at=now,
            ).to_doc(),
        )
        return cost
