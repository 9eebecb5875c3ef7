#!filepath: worldtick/engines/price_engine.py
"""
价格引擎基类（股票 / 加密资产共用）

流程：
  轮转窗口（last_updated 最旧优先） → 分组共享漂移 + 全市场趋势
  → micro-batch 事务 → 每个资产：fair value / 波动率 / 子 tick 路径 / OHLC / 动量
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Type

from worldtick.domain.models import PriceCandle, Record
from worldtick.pipeline.rotation import RotationCursor
from worldtick.pricing.microstructure import simulate_volume
from worldtick.pricing.random_source import RandomSource
from worldtick.pricing.stochastic import (
    Candle,
    ProcessParams,
    current_volatility,
    fair_value_from_history,
    market_event,
    market_trend,
    sector_drifts,
    simulate_path,
    to_candle,
    update_momentum,
)
from worldtick.store.base import Store, Transaction
from worldtick.utils.errors import FatalCycleFailure, PartialEntityFailure, ValidationFailure
from worldtick.utils.logger import logs


@dataclass(frozen=True)
class PriceUpdate:
    symbol: str
    old_price: int
    new_price: int
    change_fraction: float

    def to_dict(self) -> dict:
        return asdict(self)


class PriceEngine:
    """
    子类需要提供：
      - asset_cls / label
      - group_key(asset)        共享漂移的分组
      - base_volatility(asset)
      - fair_value(tx, asset, rng)
      - after_update(tx, asset, market_cap, now)   可选
    """

    asset_cls: Type[Record]
    label: str = "PRICE"

    def __init__(
        self,
        store: Store,
        params: ProcessParams,
        batch_size: int,
        micro_batch_size: int,
        history_window: int,
        trend_span: float,
        drift_span: float,
        volume_fraction: float,
        clustering_threshold: float,
        clustering_factor: float,
        fair_value_noise: float,
        event_probability: float,
        positive_event_probability: float,
        event_impact_range: tuple[float, float],
    ):
        self.store = store
        self.params = params
        self.batch_size = batch_size
        self.micro_batch_size = micro_batch_size
        self.history_window = history_window
        self.trend_span = trend_span
        self.drift_span = drift_span
        self.volume_fraction = volume_fraction
        self.clustering_threshold = clustering_threshold
        self.clustering_factor = clustering_factor
        self.fair_value_noise = fair_value_noise
        self.event_probability = event_probability
        self.positive_event_probability = positive_event_probability
        self.event_impact_range = event_impact_range
        self.rotation = RotationCursor(self.asset_cls.table, "last_updated")

    # ------------------------------------------------------------------
    # hooks
    # ------------------------------------------------------------------
    def group_key(self, asset) -> str:
        raise NotImplementedError

    def base_volatility(self, asset) -> float:
        raise NotImplementedError

    def fair_value(self, tx: Transaction, asset, rng: RandomSource) -> float:
        return fair_value_from_history(
            self.recent_closes(tx, asset), asset.current_price, rng, self.fair_value_noise
        )

    def after_update(self, tx: Transaction, asset, market_cap: int, now: int) -> None:
        pass

    # ------------------------------------------------------------------
    def recent_closes(self, tx: Transaction, asset) -> List[float]:
        rows = (
            tx.query(self.asset_cls.history_table)
            .eq("asset_id", asset.id)
            .order_by("timestamp", desc=True)
            .take(self.history_window)
        )
        return [r["close"] for r in rows if r.get("close") is not None]

    def advance_prices(self, rng: RandomSource, now: int) -> List[PriceUpdate]:
        with self.store.transaction(f"{self.label.lower()}.window") as tx:
            docs = self.rotation.window(tx, self.batch_size)

        if not docs:
            logs.info(f"[{self.label}] nothing to update")
            return []

        assets = []
        for doc in docs:
            try:
                assets.append(self.asset_cls.from_doc(doc))
            except TypeError as e:
                logs.warning(f"[{self.label}] {PartialEntityFailure(self.label.lower(), doc.get('_id'), e)}")

        trend = market_trend(rng, self.trend_span)
        drifts = sector_drifts(rng, [self.group_key(a) for a in assets], self.drift_span)

        updates: List[PriceUpdate] = []
        for start in range(0, len(assets), self.micro_batch_size):
            batch = assets[start:start + self.micro_batch_size]
            with self.store.transaction(f"{self.label.lower()}.batch") as tx:
                for snapshot in batch:
                    update = self._advance_safely(tx, snapshot, drifts, trend, rng, now)
                    if update is not None:
                        updates.append(update)

        logs.info(f"[{self.label}] updated {len(updates)}/{len(docs)} prices (trend={trend:+.4f})")
        return updates

    def _advance_safely(
        self,
        tx: Transaction,
        snapshot,
        drifts: Dict[str, float],
        trend: float,
        rng: RandomSource,
        now: int,
    ) -> Optional[PriceUpdate]:
        try:
            # 重新读取：tick 之外的成交可能已经改了价格
            doc = tx.get(self.asset_cls.table, snapshot.id)
            if doc is None:
                return None
            asset = self.asset_cls.from_doc(doc)
            return self.advance_one(tx, asset, drifts.get(self.group_key(asset), 0.0), trend, rng, now)
        except FatalCycleFailure:
            raise
        except Exception as e:
            logs.warning(f"[{self.label}] {PartialEntityFailure(snapshot.symbol, snapshot.id, e)}")
            if tx.get(self.asset_cls.table, snapshot.id) is not None:
                tx.patch(self.asset_cls.table, snapshot.id, {"last_updated": now})
            return None

    def advance_one(
        self,
        tx: Transaction,
        asset,
        drift: float,
        trend: float,
        rng: RandomSource,
        now: int,
    ) -> PriceUpdate:
        open_price = int(asset.current_price)
        if open_price < 1:
            raise ValidationFailure(f"{asset.symbol} has invalid price {asset.current_price}")

        fair_value = self.fair_value(tx, asset, rng)
        volatility = current_volatility(
            self.base_volatility(asset),
            asset.last_price_change,
            self.clustering_threshold,
            self.clustering_factor,
        )
        event = market_event(
            rng, self.event_probability, self.positive_event_probability, self.event_impact_range
        )
        if event:
            logs.info(f"[{self.label}] event on {asset.symbol}: {event:+.2%}")

        prices = simulate_path(
            open_price,
            fair_value,
            volatility,
            asset.trend_momentum,
            drift,
            trend,
            rng,
            self.params,
            event_impact=event,
        )
        candle = to_candle(prices)
        change = candle.change_fraction
        market_cap = candle.close * asset.units

        tx.patch(
            self.asset_cls.table,
            asset.id,
            {
                "current_price": candle.close,
                "market_cap": market_cap,
                "fair_value": fair_value,
                "last_price_change": change,
                "volatility": volatility,
                "trend_momentum": update_momentum(change, asset.trend_momentum, self.params.momentum_decay),
                "last_volatility_cluster": (
                    now if abs(change) > self.clustering_threshold else asset.last_volatility_cluster
                ),
                "last_updated": now,
            },
        )
        self.after_update(tx, asset, market_cap, now)
        self._record_candle(tx, asset, candle, rng, now)

        return PriceUpdate(
            symbol=asset.symbol,
            old_price=candle.open,
            new_price=candle.close,
            change_fraction=change,
        )

    def _record_candle(self, tx: Transaction, asset, candle: Candle, rng: RandomSource, now: int) -> None:
        row = PriceCandle(
            asset_id=asset.id,
            timestamp=now,
            open=candle.open,
            high=candle.high,
            low=candle.low,
            close=candle.close,
            volume=simulate_volume(asset.units, self.volume_fraction, rng),
        )
        tx.insert(self.asset_cls.history_table, row.to_doc())
