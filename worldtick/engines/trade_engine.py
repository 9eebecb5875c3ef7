#!filepath: worldtick/engines/trade_engine.py
"""
直接买卖（tick 之外）

- 玩家自己下单，或以公司名义下单（公司资金 + 公司持仓，须是公司所有者）
- 买在 ask、卖在 bid（固定价差）
- 成交后按 shares / liquidity 对挂牌价施加冲击（上限 max_trade_impact）
- 同一个事务内：改价 → 同步公司市值 → 现金 → 持仓 → 成交记录（玩家另记总账）
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Optional, Type

from worldtick.config.market_config import MarketConfig
from worldtick.domain.models import (
    Company,
    CompanyHolding,
    CompanyTrade,
    Instrument,
    LedgerEntry,
    Participant,
    Record,
    StockHolding,
    StockTrade,
)
from worldtick.pricing.microstructure import ask_price, bid_price, impacted_price, price_impact
from worldtick.store.base import Doc, Store, Transaction
from worldtick.utils.clock import format_cents
from worldtick.utils.errors import TradeRejected
from worldtick.utils.logger import logs


@dataclass(frozen=True)
class TradeResult:
    side: str
    symbol: str
    shares: int
    price_per_share: int
    total_value: int
    new_price: int
    price_impact: float
    new_balance: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class _Account:
    """下单方：玩家或公司，决定扣哪张表的钱、写哪张持仓/成交表"""

    kind: str
    id: str
    balance: int
    table: str
    key: str
    holding: Type[Record]
    trade: Type[Record]
    subject: str
    owns: str
    lacks: str

    def cash_short(self, total: int) -> str:
        if self.kind == "company":
            return (
                f"Insufficient company balance. Required: {format_cents(total)}, "
                f"Available: {format_cents(self.balance)}"
            )
        return "Insufficient balance"


class TradeEngine:
    def __init__(self, store: Store, cfg: MarketConfig, clock):
        self.store = store
        self.cfg = cfg
        self.clock = clock

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_shares(shares) -> int:
        if isinstance(shares, bool) or not isinstance(shares, int) or shares <= 0:
            raise TradeRejected("Shares must be a positive integer")
        return shares

    @staticmethod
    def _load_stock(tx: Transaction, symbol: str) -> Instrument:
        doc = tx.query(Instrument.table).eq("symbol", symbol.upper()).first()
        if doc is None:
            raise TradeRejected(f"Stock {symbol} not found")
        return Instrument.from_doc(doc)

    @staticmethod
    def _player_account(tx: Transaction, participant_id: str) -> _Account:
        doc = tx.get(Participant.table, participant_id)
        if doc is None:
            raise TradeRejected(f"Participant {participant_id} not found")
        player = Participant.from_doc(doc)
        return _Account(
            kind="player",
            id=player.id,
            balance=player.balance,
            table=Participant.table,
            key="participant_id",
            holding=StockHolding,
            trade=StockTrade,
            subject="You",
            owns="own",
            lacks="don't",
        )

    @staticmethod
    def _company_account(tx: Transaction, participant_id: str, company_id: str) -> _Account:
        doc = tx.get(Company.table, company_id)
        if doc is None:
            raise TradeRejected("Company not found")
        company = Company.from_doc(doc)
        if company.owner_id != participant_id:
            raise TradeRejected("You don't own this company")
        return _Account(
            kind="company",
            id=company.id,
            balance=company.balance,
            table=Company.table,
            key="company_id",
            holding=CompanyHolding,
            trade=CompanyTrade,
            subject="Company",
            owns="owns",
            lacks="doesn't",
        )

    @staticmethod
    def _load_holding(tx: Transaction, account: _Account, instrument_id: str) -> Optional[Doc]:
        return (
            tx.query(account.holding.table)
            .eq(account.key, account.id)
            .eq("instrument_id", instrument_id)
            .first()
        )

    # ------------------------------------------------------------------
    def _reprice(self, tx: Transaction, stock: Instrument, direction: int, shares: int, now: int):
        liquidity = stock.liquidity or self.cfg.default_liquidity
        impact = price_impact(shares, liquidity, direction, self.cfg.max_trade_impact)
        new_price = impacted_price(stock.current_price, impact)
        market_cap = new_price * stock.outstanding_shares

        tx.patch(
            Instrument.table,
            stock.id,
            {"current_price": new_price, "market_cap": market_cap, "last_updated": now},
        )
        if stock.company_id and tx.get(Company.table, stock.company_id) is not None:
            tx.patch(Company.table, stock.company_id, {"market_cap": market_cap, "updated_at": now})
        return new_price, impact

    def _record(
        self,
        tx: Transaction,
        side: str,
        account: _Account,
        stock: Instrument,
        shares: int,
        price: int,
        total: int,
        impact: float,
        now: int,
    ) -> None:
        tx.insert(
            account.trade.table,
            account.trade(
                **{account.key: account.id},
                instrument_id=stock.id,
                side=side,
                shares=shares,
                price_per_share=price,
                total_value=total,
                price_impact=impact,
                timestamp=now,
            ).to_doc(),
        )
        if account.kind != "player":
            return
        verb = "Bought" if side == "buy" else "Sold"
        tx.insert(
            LedgerEntry.table,
            LedgerEntry(
                from_account_id=account.id,
                from_account_type="player",
                to_account_id=account.id,
                to_account_type="player",
                amount=total,
                asset_type="stock",
                asset_id=stock.id,
                description=f"{verb} {shares} shares of {stock.symbol} at {format_cents(price)}",
                created_at=now,
            ).to_doc(),
        )

    # ------------------------------------------------------------------
    def _buy(self, tx: Transaction, account: _Account, symbol: str, shares: int, now: int) -> TradeResult:
        stock = self._load_stock(tx, symbol)
        holding = self._load_holding(tx, account, stock.id)

        current = int(holding["shares"]) if holding else 0
        cap = self.cfg.max_shares_per_instrument
        if current + shares > cap:
            raise TradeRejected(
                f"Cannot own more than {cap:,} shares per stock. "
                f"{account.subject} currently {account.owns} {current:,} shares."
            )

        price = ask_price(stock.current_price, self.cfg.bid_ask_spread)
        total = price * shares
        if not math.isfinite(total) or total < 1:
            raise TradeRejected("Invalid price calculation. Please try again.")
        if account.balance < total:
            raise TradeRejected(account.cash_short(total))

        new_price, impact = self._reprice(tx, stock, 1, shares, now)
        new_balance = account.balance - total
        tx.patch(account.table, account.id, {"balance": new_balance, "updated_at": now})

        if holding:
            invested = int(holding.get("total_invested") or 0) + total
            total_shares = current + shares
            tx.patch(
                account.holding.table,
                holding["_id"],
                {
                    "shares": total_shares,
                    "total_invested": invested,
                    "average_cost": round(invested / total_shares),
                    "updated_at": now,
                },
            )
        else:
            tx.insert(
                account.holding.table,
                account.holding(
                    **{account.key: account.id},
                    instrument_id=stock.id,
                    shares=shares,
                    average_cost=price,
                    total_invested=total,
                    updated_at=now,
                ).to_doc(),
            )

        self._record(tx, "buy", account, stock, shares, price, total, impact, now)
        logs.info(
            f"[STOCK] {account.kind} {account.id} bought {shares} {stock.symbol} "
            f"@ {format_cents(price)} (impact {impact:+.4%})"
        )
        return TradeResult("buy", stock.symbol, shares, price, total, new_price, impact, new_balance)

    def _sell(self, tx: Transaction, account: _Account, symbol: str, shares: int, now: int) -> TradeResult:
        stock = self._load_stock(tx, symbol)
        holding = self._load_holding(tx, account, stock.id)

        if holding is None:
            raise TradeRejected(f"{account.subject} {account.lacks} own any shares of this stock")
        owned = int(holding["shares"])
        if owned < shares:
            raise TradeRejected(f"Insufficient shares. {account.subject} {account.owns} {owned} shares")

        price = bid_price(stock.current_price, self.cfg.bid_ask_spread)
        total = price * shares
        if not math.isfinite(total) or total < 1:
            raise TradeRejected("Invalid price calculation. Please try again.")

        new_price, impact = self._reprice(tx, stock, -1, shares, now)
        new_balance = account.balance + total
        tx.patch(account.table, account.id, {"balance": new_balance, "updated_at": now})

        remaining = owned - shares
        if remaining == 0:
            tx.delete(account.holding.table, holding["_id"])
        else:
            invested = int(holding.get("total_invested") or 0)
            sold = round(invested * shares / owned)
            tx.patch(
                account.holding.table,
                holding["_id"],
                {"shares": remaining, "total_invested": invested - sold, "updated_at": now},
            )

        self._record(tx, "sell", account, stock, shares, price, total, impact, now)
        logs.info(
            f"[STOCK] {account.kind} {account.id} sold {shares} {stock.symbol} "
            f"@ {format_cents(price)} (impact {impact:+.4%})"
        )
        return TradeResult("sell", stock.symbol, shares, price, total, new_price, impact, new_balance)

    # ------------------------------------------------------------------
    # public
    # ------------------------------------------------------------------
    def buy(self, participant_id: str, symbol: str, shares: int) -> TradeResult:
        shares = self._validate_shares(shares)
        now = self.clock.now_ms()
        with self.store.transaction("trade.buy") as tx:
            return self._buy(tx, self._player_account(tx, participant_id), symbol, shares, now)

    def sell(self, participant_id: str, symbol: str, shares: int) -> TradeResult:
        shares = self._validate_shares(shares)
        now = self.clock.now_ms()
        with self.store.transaction("trade.sell") as tx:
            return self._sell(tx, self._player_account(tx, participant_id), symbol, shares, now)

    def buy_for_company(self, participant_id: str, company_id: str, symbol: str, shares: int) -> TradeResult:
        shares = self._validate_shares(shares)
        now = self.clock.now_ms()
        with self.store.transaction("trade.company_buy") as tx:
            return self._buy(tx, self._company_account(tx, participant_id, company_id), symbol, shares, now)

    def sell_for_company(self, participant_id: str, company_id: str, symbol: str, shares: int) -> TradeResult:
        shares = self._validate_shares(shares)
        now = self.clock.now_ms()
        with self.store.transaction("trade.company_sell") as tx:
            return self._sell(tx, self._company_account(tx, participant_id, company_id), symbol, shares, now)
