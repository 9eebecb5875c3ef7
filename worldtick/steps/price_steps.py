#!filepath: worldtick/steps/price_steps.py
from __future__ import annotations

from worldtick.engines.crypto_price_engine import CryptoPriceEngine
from worldtick.engines.stock_price_engine import StockPriceEngine
from worldtick.pipeline.context import TickContext
from worldtick.pipeline.step import TickStep


class StockPriceStep(TickStep):
    stage = "stock_prices"

    def __init__(self, *, engine: StockPriceEngine, inst=None):
        super().__init__(inst=inst)
        self.engine = engine

    def run(self, ctx: TickContext) -> TickContext:
        ctx.stock_updates = self.engine.advance_prices(ctx.rng, ctx.now)
        self.inst.metrics.record("stock_updates", len(ctx.stock_updates))
        return ctx


class CryptoPriceStep(TickStep):
    stage = "crypto_prices"

    def __init__(self, *, engine: CryptoPriceEngine, inst=None):
        super().__init__(inst=inst)
        self.engine = engine

    def run(self, ctx: TickContext) -> TickContext:
        ctx.crypto_updates = self.engine.advance_prices(ctx.rng, ctx.now)
        self.inst.metrics.record("crypto_updates", len(ctx.crypto_updates))
        return ctx
