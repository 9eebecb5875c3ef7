#!filepath: tests/test_net_worth_engine.py
from worldtick.config.economy_config import NetWorthConfig
from worldtick.domain.models import Company, CryptoAsset, CryptoHolding, Instrument, Loan, Participant
from worldtick.engines.net_worth_engine import NetWorthAggregator
from worldtick.steps.batch_steps import drain_batches

from factories import add_stock, get, insert


def test_scenario_net_worth(store, clock, world):
    now = clock.now_ms()
    result = NetWorthAggregator(store, NetWorthConfig()).recompute_batch(6, None, now)

    assert result.processed == 1
    player = get(store, Participant.table, world["player_id"])
    assert player["net_worth"] == 500_000 + 200_000 - 150_000
    assert player["last_net_worth_update"] == now


def test_breakdown_with_crypto_and_companies(store, clock, world):
    now = clock.now_ms()
    player_id = world["player_id"]
    coin_id = insert(store, CryptoAsset(symbol="PNY", current_price=250))
    insert(store, CryptoHolding(participant_id=player_id, crypto_id=coin_id, balance=4))

    # 上市公司：挂钩股票 价格 × 流通股
    listed_stock = add_stock(store, now, symbol="PUB", price=100, shares=1_000)
    insert(store, Company(name="Pub", owner_id=player_id, balance=999, is_public=True, instrument_id=listed_stock))
    # 上市但股票找不到：退回缓存市值
    insert(store, Company(name="Lost", owner_id=player_id, is_public=True, instrument_id="stocks:404", market_cap=7_000))
    # 已关闭的贷款不计
    insert(store, Loan(participant_id=player_id, remaining_balance=1_000_000, interest_rate=5,
                       last_interest_applied=now, status="closed"))

    with store.transaction() as tx:
        out = NetWorthAggregator(store, NetWorthConfig()).compute(tx, Participant.from_doc(tx.get(Participant.table, player_id)))

    assert out.cash == 500_000
    assert out.stocks == 200_000
    assert out.crypto == 1_000
    # Acme 私有 balance=0，Pub 100×1000，Lost 7000
    assert out.company_equity == 100_000 + 7_000
    assert out.debt == 150_000
    assert out.net_worth == 500_000 + 200_000 + 1_000 + 107_000 - 150_000


def test_samples_are_bounded(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=0))
    for i in range(4):
        insert(store, Loan(participant_id=player_id, remaining_balance=100, interest_rate=1, last_interest_applied=now))

    with store.transaction() as tx:
        out = NetWorthAggregator(store, NetWorthConfig(max_loans=3)).compute(tx, Participant.from_doc(tx.get(Participant.table, player_id)))
    assert out.debt == 300


def test_every_participant_stamped_across_batches(store, clock):
    ids = [insert(store, Participant(balance=i)) for i in range(10)]
    aggregator = NetWorthAggregator(store, NetWorthConfig())
    now = clock.now_ms()

    processed, batches = drain_batches(lambda limit, cursor: aggregator.recompute_batch(limit, cursor, now), 4, 3)

    assert (processed, batches) == (10, 3)
    assert all(get(store, Participant.table, i)["last_net_worth_update"] == now for i in ids)
    assert get(store, Participant.table, ids[7])["net_worth"] == 7


def test_bad_holding_still_stamped(store, clock):
    now = clock.now_ms()
    player_id = insert(store, Participant(balance=10, net_worth=123))
    with store.transaction() as tx:
        tx.insert("playerStockPortfolios", {"participant_id": player_id})

    result = NetWorthAggregator(store, NetWorthConfig()).recompute_batch(6, None, now)

    assert result.processed == 1
    player = get(store, Participant.table, player_id)
    assert player["last_net_worth_update"] == now
    assert player["net_worth"] == 123
