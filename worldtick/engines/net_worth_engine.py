#!filepath: worldtick/engines/net_worth_engine.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from worldtick.config.economy_config import NetWorthConfig
from worldtick.domain.models import (
    Company,
    CryptoAsset,
    CryptoHolding,
    Instrument,
    Loan,
    Participant,
    StockHolding,
)
from worldtick.engines.interest_engine import BatchResult
from worldtick.store.base import Store, Transaction
from worldtick.utils.errors import FatalCycleFailure, PartialEntityFailure
from worldtick.utils.logger import logs


@dataclass
class NetWorthBreakdown:
    cash: int = 0
    stocks: int = 0
    crypto: int = 0
    company_equity: int = 0
    debt: int = 0

    @property
    def net_worth(self) -> int:
        return self.cash + self.stocks + self.crypto + self.company_equity - self.debt

    def to_dict(self) -> dict:
        d = asdict(self)
        d["net_worth"] = self.net_worth
        return d


class NetWorthAggregator:
    """
    净值重算（批处理）

    net_worth = 现金 + 股票市值 + 加密资产市值 + 公司权益 − 未还贷款
    每类只取有限样本，保证单事务读数有上界。
    """

    def __init__(self, store: Store, cfg: NetWorthConfig):
        self.store = store
        self.cfg = cfg

    def recompute_batch(self, limit: int, cursor: Optional[str], now: int) -> BatchResult:
        limit = max(1, min(int(limit), 25))

        with self.store.transaction("net_worth.batch") as tx:
            # 本 tick 已重算过的（stamp == now）不再进入窗口
            page = (
                tx.query(Participant.table)
                .where(lambda d: d.get("last_net_worth_update") is None or d["last_net_worth_update"] < now)
                .order_by("last_net_worth_update")
                .paginate(cursor, limit)
            )

            processed = 0
            for doc in page.items:
                fields = {"last_net_worth_update": now, "updated_at": now}
                try:
                    fields["net_worth"] = self.compute(tx, Participant.from_doc(doc)).net_worth
                except FatalCycleFailure:
                    raise
                except Exception as e:
                    logs.warning(f"[NET_WORTH] {PartialEntityFailure('participant', doc.get('_id'), e)}")
                # 即使值不变也打戳，保证轮转前进
                tx.patch(Participant.table, doc["_id"], fields)
                processed += 1

        logs.info(f"[NET_WORTH] recomputed {processed} participants (limit {limit})")
        return BatchResult(processed=processed, next_cursor=page.next_cursor)

    def compute(self, tx: Transaction, participant: Participant) -> NetWorthBreakdown:
        out = NetWorthBreakdown(cash=int(participant.balance or 0))
        n = self.cfg.max_holdings_per_kind

        for row in tx.query(StockHolding.table).eq("participant_id", participant.id).take(n):
            holding = StockHolding.from_doc(row)
            stock = tx.get(Instrument.table, holding.instrument_id)
            if stock is not None:
                out.stocks += holding.shares * int(stock["current_price"])

        for row in tx.query(CryptoHolding.table).eq("participant_id", participant.id).take(n):
            holding = CryptoHolding.from_doc(row)
            coin = tx.get(CryptoAsset.table, holding.crypto_id)
            if coin is not None:
                out.crypto += int(round(holding.balance * coin["current_price"]))

        companies = (
            tx.query(Company.table).eq("owner_id", participant.id).take(self.cfg.max_companies)
        )
        for row in companies:
            out.company_equity += self._company_equity(tx, Company.from_doc(row))

        loans = (
            tx.query(Loan.table)
            .eq("participant_id", participant.id)
            .eq("status", "active")
            .take(self.cfg.max_loans)
        )
        out.debt = sum(int(l.get("remaining_balance") or 0) for l in loans)
        return out

    def _company_equity(self, tx: Transaction, company: Company) -> int:
        if not company.is_public:
            return int(company.balance or 0)

        stock = tx.get(Instrument.table, company.instrument_id) if company.instrument_id else None
        if stock is not None:
            return int(stock["current_price"]) * int(stock.get("outstanding_shares") or 0)
        return int(company.market_cap or 0)
