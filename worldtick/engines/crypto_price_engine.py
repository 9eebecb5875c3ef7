#!filepath: worldtick/engines/crypto_price_engine.py
from __future__ import annotations

from worldtick.config.market_config import CryptoConfig, MarketConfig
from worldtick.domain.models import CryptoAsset
from worldtick.engines.price_engine import PriceEngine
from worldtick.pricing.stochastic import ProcessParams
from worldtick.store.base import Store

CRYPTO_GROUP = "crypto"


class CryptoPriceEngine(PriceEngine):
    """加密资产：与股票同一套过程，全部归入一个组，没有挂钩公司"""

    asset_cls = CryptoAsset
    label = "CRYPTO"

    def __init__(self, store: Store, cfg: CryptoConfig, market: MarketConfig):
        self.cfg = cfg
        super().__init__(
            store,
            params=ProcessParams(
                mean_reversion_speed=market.mean_reversion_speed,
                momentum_weight=market.momentum_weight,
                momentum_decay=market.momentum_decay,
                max_tick_change=cfg.max_tick_change,
                sub_ticks=market.sub_ticks,
                low_price_threshold=market.low_price_threshold,
                low_price_shock_threshold=market.low_price_shock_threshold,
            ),
            batch_size=cfg.update_batch_size,
            micro_batch_size=market.micro_batch_size,
            history_window=cfg.history_window,
            trend_span=cfg.market_drift_range,
            drift_span=0.0,
            volume_fraction=cfg.volume_fraction,
            clustering_threshold=market.clustering_threshold,
            clustering_factor=market.clustering_factor,
            fair_value_noise=market.fair_value_noise,
            event_probability=market.event_probability,
            positive_event_probability=market.positive_event_probability,
            event_impact_range=market.event_impact_range,
        )

    def group_key(self, asset: CryptoAsset) -> str:
        return CRYPTO_GROUP

    def base_volatility(self, asset: CryptoAsset) -> float:
        return asset.volatility if asset.volatility and asset.volatility > 0 else self.cfg.base_volatility
