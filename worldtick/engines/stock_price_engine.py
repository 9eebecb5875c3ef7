#!filepath: worldtick/engines/stock_price_engine.py
from __future__ import annotations

from worldtick.config.market_config import MarketConfig
from worldtick.domain.models import Company, Instrument
from worldtick.engines.price_engine import PriceEngine
from worldtick.pricing.random_source import RandomSource
from worldtick.pricing.stochastic import ProcessParams, fair_value_from_equity
from worldtick.store.base import Store, Transaction


class StockPriceEngine(PriceEngine):
    """股票：板块漂移 + 挂钩公司的基本面"""

    asset_cls = Instrument
    label = "STOCK"

    def __init__(self, store: Store, cfg: MarketConfig):
        self.cfg = cfg
        super().__init__(
            store,
            params=ProcessParams(
                mean_reversion_speed=cfg.mean_reversion_speed,
                momentum_weight=cfg.momentum_weight,
                momentum_decay=cfg.momentum_decay,
                max_tick_change=cfg.max_tick_change,
                sub_ticks=cfg.sub_ticks,
                low_price_threshold=cfg.low_price_threshold,
                low_price_shock_threshold=cfg.low_price_shock_threshold,
            ),
            batch_size=cfg.update_batch_size,
            micro_batch_size=cfg.micro_batch_size,
            history_window=cfg.history_window,
            trend_span=cfg.market_trend_range,
            drift_span=cfg.sector_drift_range,
            volume_fraction=cfg.volume_fraction,
            clustering_threshold=cfg.clustering_threshold,
            clustering_factor=cfg.clustering_factor,
            fair_value_noise=cfg.fair_value_noise,
            event_probability=cfg.event_probability,
            positive_event_probability=cfg.positive_event_probability,
            event_impact_range=cfg.event_impact_range,
        )

    def group_key(self, asset: Instrument) -> str:
        return asset.sector or "other"

    def base_volatility(self, asset: Instrument) -> float:
        return self.cfg.sector_volatility.get(asset.sector, self.cfg.default_volatility)

    def fair_value(self, tx: Transaction, asset: Instrument, rng: RandomSource) -> float:
        if asset.company_id:
            doc = tx.get(Company.table, asset.company_id)
            if doc is not None:
                return fair_value_from_equity(
                    int(doc.get("balance") or 0),
                    asset.outstanding_shares,
                    self.cfg.fair_value_equity_multiple,
                )
        return super().fair_value(tx, asset, rng)

    def after_update(self, tx: Transaction, asset: Instrument, market_cap: int, now: int) -> None:
        # 上市公司的市值跟随股价
        if asset.company_id and tx.get(Company.table, asset.company_id) is not None:
            tx.patch(Company.table, asset.company_id, {"market_cap": market_cap, "updated_at": now})
