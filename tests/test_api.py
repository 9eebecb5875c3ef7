#!filepath: tests/test_api.py
import pytest

from worldtick.api.app import create_app
from worldtick.domain.models import Company, Participant
from worldtick.pipeline.lease import Lease
from worldtick.seed import initialize_stock_market
from worldtick.utils.clock import MINUTE_MS
from worldtick.workflows.tick_workflow import build_world

from factories import ZeroRandom, insert


@pytest.fixture
def api(store, clock, cfg):
    world = build_world(cfg, store=store, clock=clock, rng=ZeroRandom())
    app = create_app(world)
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client, world


def test_manual_tick(api):
    client, _ = api
    resp = client.post("/tick")
    assert resp.status_code == 200
    assert resp.json["tickNumber"] == 1

    last = client.get("/ticks/last").json
    assert last["tick_number"] == 1
    assert last["trigger_source"] == "manual"

    runs = client.get("/runs").json
    assert runs[0]["status"] == "SUCCESS"
    assert client.get(f"/runs/{runs[0]['run_id']}").status_code == 200


def test_tick_contention_is_409(api, store, clock):
    client, _ = api
    Lease(store, clock, stale_after_ms=10 * MINUTE_MS).try_acquire("someone-else")

    resp = client.post("/tick")
    assert resp.status_code == 409
    assert resp.json["error"] == "Another tick is currently running. Please wait."
    assert client.get("/runs").json[0]["status"] == "SKIPPED"


def test_history_empty_then_listed(api):
    client, _ = api
    assert client.get("/ticks/last").json is None
    client.post("/tick")
    client.post("/tick")
    ticks = client.get("/ticks?limit=1").json
    assert [t["tick_number"] for t in ticks] == [2]


def test_market_and_stats(api, store, clock):
    client, _ = api
    initialize_stock_market(store, clock)

    market = client.get("/market").json
    assert market["stock_count"] == 5
    assert {s["sector"] for s in market["sectors"]} == {"tech", "energy", "finance", "healthcare", "consumer"}

    stats = client.get("/stocks/TCH/stats").json
    assert stats["day_high"] == stats["day_low"] == 15_000

    assert client.get("/stocks/NOPE/stats").status_code == 404
    assert client.get("/runs/missing").status_code == 404


def test_trade_endpoints(api, store, clock):
    client, _ = api
    initialize_stock_market(store, clock)
    player_id = insert(store, Participant(name="p", balance=1_000_000))

    ok = client.post("/stocks/TCH/buy", json={"participant_id": player_id, "shares": 10})
    assert ok.status_code == 200
    assert ok.json["price_per_share"] == 15_015

    rejected = client.post("/stocks/TCH/sell", json={"participant_id": player_id, "shares": 11})
    assert rejected.status_code == 400
    assert "Insufficient shares" in rejected.json["error"]

    assert client.post("/stocks/TCH/buy", json={"shares": 1}).status_code == 400
    assert client.post("/stocks/TCH/short", json={"participant_id": player_id, "shares": 1}).status_code == 404


def test_price_history_endpoint(api, store, clock):
    client, _ = api
    initialize_stock_market(store, clock)
    client.post("/tick")

    candles = client.get("/stocks/tch/history?limit=5").json
    assert len(candles) == 2
    assert candles[0]["timestamp"] >= candles[1]["timestamp"]
    assert set(candles[0]) == {"timestamp", "open", "high", "low", "close", "volume"}
    assert client.get("/stocks/NOPE/history").status_code == 404


def test_portfolio_trades_and_ownership(api, store, clock):
    client, _ = api
    initialize_stock_market(store, clock)
    player_id = insert(store, Participant(name="carol", balance=1_000_000))

    client.post("/stocks/TCH/buy", json={"participant_id": player_id, "shares": 10})

    view = client.get(f"/participants/{player_id}/portfolio").json
    assert view["holdings"][0]["symbol"] == "TCH"
    assert view["holdings"][0]["shares"] == 10
    assert view["holdings"][0]["total_invested"] == 150_150
    assert view["total_value"] == view["holdings"][0]["current_price"] * 10

    trades = client.get(f"/participants/{player_id}/trades").json
    assert [(t["side"], t["symbol"], t["shares"]) for t in trades] == [("buy", "TCH", 10)]

    owners = client.get("/stocks/TCH/ownership").json
    assert owners == [{"participant_id": player_id, "name": "carol", "shares": 10}]

    assert client.get("/participants/nobody/portfolio").status_code == 404


def test_company_trade_via_api(api, store, clock):
    client, _ = api
    initialize_stock_market(store, clock)
    owner = insert(store, Participant(name="dave", balance=0))
    stranger = insert(store, Participant(name="eve", balance=0))
    company_id = insert(store, Company(name="Holdco", owner_id=owner, balance=1_000_000))

    resp = client.post("/stocks/TCH/buy", json={"participant_id": owner, "company_id": company_id, "shares": 5})
    assert resp.status_code == 200
    assert resp.json["new_balance"] == 1_000_000 - 15_015 * 5

    resp = client.post("/stocks/TCH/sell", json={"participant_id": stranger, "company_id": company_id, "shares": 5})
    assert resp.status_code == 400
    assert resp.json["error"] == "You don't own this company"
