#!filepath: worldtick/reports/portfolio_report.py
"""
玩家视角：持仓估值 + 成交记录（只读）
"""
from __future__ import annotations

from typing import Optional

import pandas as pd

from worldtick.domain.models import Instrument, Participant, StockHolding, StockTrade
from worldtick.store.base import Store

DEFAULT_PRICE = 10_000


def portfolio(store: Store, participant_id: str) -> Optional[dict]:
    """
    每个持仓：当前市值、相对 total_invested 的盈亏
    已下市（找不到股票）的持仓跳过
    """
    with store.transaction("report.portfolio") as tx:
        if tx.get(Participant.table, participant_id) is None:
            return None
        rows = []
        for h in tx.query(StockHolding.table).eq("participant_id", participant_id).collect():
            stock = tx.get(Instrument.table, h["instrument_id"])
            if stock is None:
                continue
            rows.append(
                {
                    "symbol": stock["symbol"],
                    "instrument_id": h["instrument_id"],
                    "shares": int(h["shares"]),
                    "average_cost": int(h.get("average_cost") or 0),
                    "total_invested": int(h.get("total_invested") or 0),
                    "current_price": int(stock.get("current_price") or DEFAULT_PRICE),
                }
            )

    if not rows:
        return {"participant_id": participant_id, "total_value": 0, "total_gain_loss": 0, "holdings": []}

    df = pd.DataFrame(rows)
    df["current_value"] = df["current_price"] * df["shares"]
    df["gain_loss"] = df["current_value"] - df["total_invested"]
    invested = df["total_invested"].where(df["total_invested"] > 0)
    df["gain_loss_percent"] = (df["gain_loss"] / invested * 100).fillna(0.0)
    df = df.sort_values("current_value", ascending=False)

    holdings = []
    for r in df.itertuples(index=False):
        holdings.append(
            {
                "symbol": r.symbol,
                "instrument_id": r.instrument_id,
                "shares": int(r.shares),
                "average_cost": int(r.average_cost),
                "total_invested": int(r.total_invested),
                "current_price": int(r.current_price),
                "current_value": int(r.current_value),
                "gain_loss": int(r.gain_loss),
                "gain_loss_percent": float(r.gain_loss_percent),
            }
        )
    return {
        "participant_id": participant_id,
        "total_value": int(df["current_value"].sum()),
        "total_gain_loss": int(df["gain_loss"].sum()),
        "holdings": holdings,
    }


def trade_history(store: Store, participant_id: str, limit: int = 50) -> list:
    """最近的成交（新 → 旧），附股票代码"""
    with store.transaction("report.trades") as tx:
        trades = (
            tx.query(StockTrade.table)
            .eq("participant_id", participant_id)
            .order_by("timestamp", desc=True)
            .take(limit)
        )
        symbols = {}
        for t in trades:
            if t["instrument_id"] not in symbols:
                stock = tx.get(Instrument.table, t["instrument_id"])
                symbols[t["instrument_id"]] = stock["symbol"] if stock else None
    return [
        {k: v for k, v in t.items() if not k.startswith("_")} | {"symbol": symbols[t["instrument_id"]]}
        for t in trades
    ]
