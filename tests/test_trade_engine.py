#!filepath: tests/test_trade_engine.py
import pytest

from worldtick.config.market_config import MarketConfig
from worldtick.domain.models import (
    Company,
    CompanyHolding,
    CompanyTrade,
    Instrument,
    LedgerEntry,
    Participant,
    StockHolding,
    StockTrade,
)
from worldtick.engines.trade_engine import TradeEngine
from worldtick.utils.errors import TradeRejected

from factories import add_stock, get, insert


@pytest.fixture
def market(store, clock):
    now = clock.now_ms()
    company_id = insert(store, Company(name="TechCorp", is_public=True))
    stock_id = add_stock(store, now, symbol="TCH", price=15_000, liquidity=50_000, company_id=company_id)
    player_id = insert(store, Participant(name="bob", balance=10_000_000))
    return {"stock_id": stock_id, "company_id": company_id, "player_id": player_id}


@pytest.fixture
def engine(store, clock):
    return TradeEngine(store, MarketConfig(), clock)


def _holding(store, player_id, stock_id):
    with store.transaction() as tx:
        return (
            tx.query(StockHolding.table)
            .eq("participant_id", player_id)
            .eq("instrument_id", stock_id)
            .first()
        )


def test_buy_at_ask_with_impact(store, engine, market):
    result = engine.buy(market["player_id"], "tch", 500)

    assert result.price_per_share == 15_015
    assert result.total_value == 15_015 * 500
    assert result.price_impact == pytest.approx(0.01)
    assert result.new_price == 15_150

    stock = get(store, Instrument.table, market["stock_id"])
    assert stock["current_price"] == 15_150
    assert stock["market_cap"] == 15_150 * 1_000_000
    assert get(store, Company.table, market["company_id"])["market_cap"] == stock["market_cap"]
    assert get(store, Participant.table, market["player_id"])["balance"] == 10_000_000 - 15_015 * 500

    holding = _holding(store, market["player_id"], market["stock_id"])
    assert holding["shares"] == 500
    assert holding["average_cost"] == 15_015
    assert store.count(StockTrade.table) == 1
    assert store.count(LedgerEntry.table) == 1


def test_buy_twice_averages_cost(store, engine, market):
    engine.buy(market["player_id"], "TCH", 100)
    engine.buy(market["player_id"], "TCH", 100)

    holding = _holding(store, market["player_id"], market["stock_id"])
    assert holding["shares"] == 200
    assert holding["average_cost"] == round(holding["total_invested"] / 200)


def test_sell_everything_deletes_holding(store, engine, market):
    engine.buy(market["player_id"], "TCH", 100)
    result = engine.sell(market["player_id"], "TCH", 100)

    assert result.side == "sell"
    assert result.price_impact < 0
    assert _holding(store, market["player_id"], market["stock_id"]) is None


def test_partial_sell_reduces_invested(store, engine, market):
    engine.buy(market["player_id"], "TCH", 100)
    invested = _holding(store, market["player_id"], market["stock_id"])["total_invested"]

    engine.sell(market["player_id"], "TCH", 25)

    holding = _holding(store, market["player_id"], market["stock_id"])
    assert holding["shares"] == 75
    assert holding["total_invested"] == invested - round(invested * 25 / 100)


@pytest.mark.parametrize("shares", [0, -3, 1.5, True, None])
def test_rejects_bad_share_counts(engine, market, shares):
    with pytest.raises(TradeRejected):
        engine.buy(market["player_id"], "TCH", shares)


def test_rejections(store, engine, market):
    with pytest.raises(TradeRejected, match="not found"):
        engine.buy(market["player_id"], "NOPE", 1)
    with pytest.raises(TradeRejected, match="Insufficient balance"):
        engine.buy(market["player_id"], "TCH", 10_000)
    with pytest.raises(TradeRejected, match="don't own"):
        engine.sell(market["player_id"], "TCH", 1)

    engine.buy(market["player_id"], "TCH", 5)
    with pytest.raises(TradeRejected, match="Insufficient shares"):
        engine.sell(market["player_id"], "TCH", 6)


def test_ownership_cap(store, clock, market):
    engine = TradeEngine(store, MarketConfig(max_shares_per_instrument=10), clock)
    engine.buy(market["player_id"], "TCH", 10)
    with pytest.raises(TradeRejected, match="Cannot own more than 10"):
        engine.buy(market["player_id"], "TCH", 1)


def test_rejected_trade_changes_nothing(store, engine, market):
    before = get(store, Instrument.table, market["stock_id"])
    with pytest.raises(TradeRejected):
        engine.buy(market["player_id"], "TCH", 10_000)
    assert get(store, Instrument.table, market["stock_id"]) == before


@pytest.fixture
def treasury(store, market):
    company_id = insert(store, Company(name="Holdco", owner_id=market["player_id"], balance=1_000_000))
    return company_id


def test_company_buy_and_sell_use_company_books(store, engine, market, treasury):
    result = engine.buy_for_company(market["player_id"], treasury, "TCH", 20)

    assert result.new_balance == 1_000_000 - 15_015 * 20
    assert get(store, Company.table, treasury)["balance"] == result.new_balance
    # 玩家现金和持仓不动
    assert get(store, Participant.table, market["player_id"])["balance"] == 10_000_000
    assert _holding(store, market["player_id"], market["stock_id"]) is None
    assert store.count(CompanyHolding.table) == 1
    assert store.count(CompanyTrade.table) == 1
    assert store.count(LedgerEntry.table) == 0

    engine.sell_for_company(market["player_id"], treasury, "TCH", 20)
    assert store.count(CompanyHolding.table) == 0
    assert store.count(CompanyTrade.table) == 2


def test_company_trade_rejections(store, engine, market, treasury):
    stranger = insert(store, Participant(name="mallory", balance=0))
    with pytest.raises(TradeRejected, match="You don't own this company"):
        engine.buy_for_company(stranger, treasury, "TCH", 1)
    with pytest.raises(TradeRejected, match="Company not found"):
        engine.buy_for_company(market["player_id"], "companies:999", "TCH", 1)
    with pytest.raises(TradeRejected, match=r"Insufficient company balance\. Required: \$150,150\.00, Available: \$10,000\.00"):
        engine.buy_for_company(market["player_id"], treasury, "TCH", 1_000)
    with pytest.raises(TradeRejected, match="Company doesn't own any shares"):
        engine.sell_for_company(market["player_id"], treasury, "TCH", 1)

    engine.buy_for_company(market["player_id"], treasury, "TCH", 2)
    with pytest.raises(TradeRejected, match="Company owns 2 shares"):
        engine.sell_for_company(market["player_id"], treasury, "TCH", 3)
