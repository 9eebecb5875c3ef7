#!filepath: tests/test_price_engine.py
from worldtick.config.market_config import CryptoConfig, MarketConfig
from worldtick.domain.models import Company, CryptoAsset, Instrument, PriceCandle
from worldtick.engines.crypto_price_engine import CryptoPriceEngine
from worldtick.engines.stock_price_engine import StockPriceEngine
from worldtick.pricing.random_source import RandomSource

from factories import ZeroRandom, add_stock, get, insert


def _candles(store, table, asset_id):
    with store.transaction() as tx:
        return tx.query(table).eq("asset_id", asset_id).order_by("timestamp").collect()


def test_flat_price_with_zero_randomness(store, clock):
    now = clock.now_ms()
    stock_id = add_stock(store, now, price=10_000)
    clock.advance_minutes(5)

    updates = StockPriceEngine(store, MarketConfig()).advance_prices(ZeroRandom(), clock.now_ms())

    assert len(updates) == 1
    u = updates[0]
    assert (u.old_price, u.new_price, u.change_fraction) == (10_000, 10_000, 0.0)

    candle = _candles(store, Instrument.history_table, stock_id)[-1]
    assert candle["open"] == candle["high"] == candle["low"] == candle["close"] == 10_000
    assert candle["volume"] == 1_000

    stock = get(store, Instrument.table, stock_id)
    assert stock["last_updated"] == clock.now_ms()
    assert stock["market_cap"] == 10_000 * 1_000_000


def test_linked_company_fair_value_and_market_cap_sync(store, clock):
    now = clock.now_ms()
    # fair value = 5 × 4_000_000 ÷ 1_000 = 20_000 → 向上拉
    company_id = insert(store, Company(name="Acme", balance=4_000_000, is_public=True))
    stock_id = add_stock(store, now, price=10_000, shares=1_000, company_id=company_id)

    updates = StockPriceEngine(store, MarketConfig(mean_reversion_speed=0.5)).advance_prices(ZeroRandom(), now + 1)

    assert updates[0].new_price > 10_000
    stock = get(store, Instrument.table, stock_id)
    assert stock["fair_value"] == 20_000
    assert get(store, Company.table, company_id)["market_cap"] == stock["market_cap"]
    assert stock["market_cap"] == stock["current_price"] * 1_000


def test_rotation_batch_and_invariants(store, clock):
    cfg = MarketConfig(update_batch_size=3, micro_batch_size=2)
    now = clock.now_ms()
    ids = [add_stock(store, now, symbol=f"S{i}", price=500 + i * 3_000, sector=["tech", "energy"][i % 2])
           for i in range(7)]
    engine = StockPriceEngine(store, cfg)
    rng = RandomSource.seeded(5)

    seen = set()
    for _ in range(3):
        clock.advance_minutes(5)
        before = {i: get(store, Instrument.table, i)["current_price"] for i in ids}
        updates = engine.advance_prices(rng, clock.now_ms())
        assert len(updates) <= 3
        for u in updates:
            assert u.new_price >= 1
            assert abs(u.new_price - u.old_price) <= max(u.old_price * cfg.max_tick_change, 1)
        for i in ids:
            stock = get(store, Instrument.table, i)
            if stock["last_updated"] == clock.now_ms():
                seen.add(i)
                assert before[i] in {u.old_price for u in updates}
    assert seen == set(ids)


def test_bad_asset_marked_processed(store, clock):
    now = clock.now_ms()
    with store.transaction() as tx:
        bad = tx.insert(Instrument.table, {"symbol": "BAD", "current_price": 0, "outstanding_shares": 1})
    good = add_stock(store, now, symbol="OK")

    updates = StockPriceEngine(store, MarketConfig()).advance_prices(ZeroRandom(), now + 1)

    assert [u.symbol for u in updates] == ["OK"]
    assert get(store, Instrument.table, bad)["last_updated"] == now + 1
    assert get(store, Instrument.table, good)["last_updated"] == now + 1


def test_crypto_engine_writes_crypto_history(store, clock):
    now = clock.now_ms()
    coin_id = insert(store, CryptoAsset(symbol="PNY", current_price=250, circulating_supply=1_000))

    updates = CryptoPriceEngine(store, CryptoConfig(), MarketConfig()).advance_prices(RandomSource.seeded(1), now)

    assert [u.symbol for u in updates] == ["PNY"]
    assert abs(updates[0].new_price - 250) <= 250 * CryptoConfig().max_tick_change
    assert len(_candles(store, CryptoAsset.history_table, coin_id)) == 1
    assert store.count(PriceCandle.table) == 0
