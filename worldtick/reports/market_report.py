#!filepath: worldtick/reports/market_report.py
"""
市场报表（只读，pandas 聚合）
"""
from __future__ import annotations

from typing import Optional

import pandas as pd

from worldtick.domain.models import Instrument, Participant, StockHolding
from worldtick.store.base import Store

DAY_CANDLES = 12
WEEK_CANDLES = 30


def stocks_frame(store: Store) -> pd.DataFrame:
    with store.transaction("report.stocks") as tx:
        rows = tx.query(Instrument.table).collect()
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    for col, default in (("market_cap", 0), ("last_price_change", 0.0), ("sector", "other")):
        if col not in df.columns:
            df[col] = default
    df["market_cap"] = df["market_cap"].fillna(0)
    df["last_price_change"] = df["last_price_change"].fillna(0.0)
    df["sector"] = df["sector"].fillna("other")
    return df


def market_overview(store: Store) -> dict:
    df = stocks_frame(store)
    if df.empty:
        return {"total_market_cap": 0, "average_change": 0.0, "stock_count": 0, "sectors": []}

    sectors = (
        df.groupby("sector", sort=True)
        .agg(
            stock_count=("symbol", "count"),
            total_market_cap=("market_cap", "sum"),
            average_change=("last_price_change", "mean"),
        )
        .reset_index()
    )
    return {
        "total_market_cap": int(df["market_cap"].sum()),
        "average_change": float(df["last_price_change"].mean()),
        "stock_count": int(len(df)),
        "sectors": [
            {
                "sector": r.sector,
                "stock_count": int(r.stock_count),
                "total_market_cap": int(r.total_market_cap),
                "average_change": float(r.average_change),
            }
            for r in sectors.itertuples(index=False)
        ],
    }


def stock_stats(store: Store, symbol: str) -> Optional[dict]:
    """
    day = 最近 12 根 K 线（5 分钟一根 ≈ 1 小时）
    week = 最近 30 根
    """
    with store.transaction("report.stock_stats") as tx:
        doc = tx.query(Instrument.table).eq("symbol", symbol.upper()).first()
        if doc is None:
            return None
        stock = Instrument.from_doc(doc)
        candles = (
            tx.query(Instrument.history_table)
            .eq("asset_id", stock.id)
            .order_by("timestamp", desc=True)
            .take(WEEK_CANDLES)
        )

    price = stock.current_price
    base = {"symbol": stock.symbol, "name": stock.name, "sector": stock.sector, "current_price": price}
    if not candles:
        return {
            **base,
            "day_high": price,
            "day_low": price,
            "week_high": price,
            "week_low": price,
            "volume_day": 0,
            "price_change": 0,
            "price_change_percent": 0.0,
        }

    week = pd.DataFrame(candles)
    day = week.head(DAY_CANDLES)
    old_price = int(day["close"].iloc[-1])
    change = price - old_price
    return {
        **base,
        "day_high": int(day["high"].max()),
        "day_low": int(day["low"].min()),
        "week_high": int(week["high"].max()),
        "week_low": int(week["low"].min()),
        "volume_day": int(day["volume"].fillna(0).sum()),
        "price_change": int(change),
        "price_change_percent": float(change / old_price * 100) if old_price else 0.0,
    }


def price_history(store: Store, symbol: str, limit: Optional[int] = 100) -> Optional[list]:
    """
    K 线序列（价格图用），按时间倒序；limit=None 取全部
    未知代码返回 None
    """
    with store.transaction("report.price_history") as tx:
        doc = tx.query(Instrument.table).eq("symbol", symbol.upper()).first()
        if doc is None:
            return None
        query = tx.query(Instrument.history_table).eq("asset_id", doc["_id"]).order_by("timestamp", desc=True)
        rows = query.collect() if limit is None else query.take(limit)

    fields = ["timestamp", "open", "high", "low", "close", "volume"]
    df = pd.DataFrame(rows, columns=fields)
    df["volume"] = df["volume"].fillna(0)
    return [
        {k: int(v) for k, v in row.items()}
        for row in df.to_dict(orient="records")
    ]


def stock_ownership(store: Store, symbol: str) -> Optional[list]:
    """持股玩家，按股数倒序"""
    with store.transaction("report.ownership") as tx:
        doc = tx.query(Instrument.table).eq("symbol", symbol.upper()).first()
        if doc is None:
            return None
        holdings = tx.query(StockHolding.table).eq("instrument_id", doc["_id"]).collect()
        owners = []
        for h in holdings:
            player = tx.get(Participant.table, h["participant_id"])
            if player is None:
                continue
            owners.append(
                {
                    "participant_id": h["participant_id"],
                    "name": player.get("name") or f"Player {h['participant_id'][-4:]}",
                    "shares": int(h["shares"]),
                }
            )
    owners.sort(key=lambda o: o["shares"], reverse=True)
    return owners
