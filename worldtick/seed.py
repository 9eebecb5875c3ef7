#!filepath: worldtick/seed.py
"""
初始数据：默认 5 只股票 + 本地演示用的小世界
"""
from __future__ import annotations

from typing import Dict, List

from worldtick.config.market_config import MarketConfig
from worldtick.domain.models import (
    Company,
    CryptoAsset,
    Employee,
    Instrument,
    Listing,
    Loan,
    Participant,
    PriceCandle,
    StockHolding,
)
from worldtick.pricing.random_source import RandomSource
from worldtick.store.base import Store, Transaction
from worldtick.utils.clock import MINUTE_MS
from worldtick.utils.errors import UserInputError
from worldtick.utils.logger import logs

INITIAL_STOCKS: List[Dict] = [
    {"name": "TechCorp Industries", "symbol": "TCH", "sector": "tech",
     "price": 15_000, "shares": 1_000_000, "liquidity": 50_000},
    {"name": "Energy Solutions Inc", "symbol": "ENRG", "sector": "energy",
     "price": 8_500, "shares": 1_500_000, "liquidity": 40_000},
    {"name": "Global Finance Corp", "symbol": "GFC", "sector": "finance",
     "price": 12_000, "shares": 2_000_000, "liquidity": 60_000},
    {"name": "MediHealth Systems", "symbol": "MHS", "sector": "healthcare",
     "price": 9_500, "shares": 800_000, "liquidity": 35_000},
    {"name": "Consumer Goods Co", "symbol": "CGC", "sector": "consumer",
     "price": 6_000, "shares": 2_500_000, "liquidity": 70_000},
]

DEMO_CRYPTO: List[Dict] = [
    {"name": "Bitcoin Sim", "symbol": "BTS", "price": 4_200_000, "supply": 21_000_000},
    {"name": "Ether Sim", "symbol": "ETS", "price": 250_000, "supply": 120_000_000},
    {"name": "Penny Coin", "symbol": "PNY", "price": 250, "supply": 1_000_000_000},
]


def _insert_with_candle(tx: Transaction, asset, now: int) -> str:
    asset_id = tx.insert(asset.table, asset.to_doc())
    p = asset.current_price
    tx.insert(
        asset.history_table,
        PriceCandle(asset_id=asset_id, timestamp=now, open=p, high=p, low=p, close=p).to_doc(),
    )
    return asset_id


def initialize_stock_market(store: Store, clock, cfg: MarketConfig | None = None) -> List[str]:
    cfg = cfg or MarketConfig()
    now = clock.now_ms()

    with store.transaction("seed.stocks") as tx:
        if tx.query(Instrument.table).first() is not None:
            raise UserInputError("Stock market already initialized")

        ids = []
        for entry in INITIAL_STOCKS:
            stock = Instrument(
                symbol=entry["symbol"],
                name=entry["name"],
                sector=entry["sector"],
                current_price=entry["price"],
                fair_value=entry["price"],
                volatility=cfg.sector_volatility.get(entry["sector"], cfg.default_volatility),
                liquidity=entry["liquidity"],
                outstanding_shares=entry["shares"],
                market_cap=entry["price"] * entry["shares"],
                last_updated=now,
                last_volatility_cluster=now,
                created_at=now,
            )
            ids.append(_insert_with_candle(tx, stock, now))

    logs.info(f"[SEED] stock market initialized with {len(ids)} instruments")
    return ids


def seed_demo_world(
    store: Store,
    clock,
    rng: RandomSource,
    companies: int = 8,
    participants: int = 12,
) -> Dict[str, int]:
    """
    本地运行用：公司（部分上市）、商品、玩家、持仓、贷款、加密资产
    """
    now = clock.now_ms()
    counts = {"companies": 0, "listings": 0, "participants": 0, "holdings": 0, "loans": 0, "crypto": 0}

    with store.transaction("seed.demo") as tx:
        stocks = tx.query(Instrument.table).collect()

        player_ids = []
        for i in range(participants):
            player_ids.append(
                tx.insert(
                    Participant.table,
                    Participant(name=f"player-{i + 1}", balance=int(rng.uniform(50_000, 5_000_000))).to_doc(),
                )
            )
        counts["participants"] = len(player_ids)

        for i in range(companies):
            owner = player_ids[i % len(player_ids)]
            company = Company(
                name=f"Company {i + 1}",
                owner_id=owner,
                balance=int(rng.uniform(1_000_000, 50_000_000)),
                employees=[
                    Employee(name=f"worker-{i + 1}-{j + 1}", tick_cost_percentage=round(rng.uniform(1, 5), 1))
                    for j in range(1 + i % 3)
                ],
                updated_at=now,
            )
            company_id = tx.insert(Company.table, company.to_doc())
            counts["companies"] += 1

            # 前两家挂钩到已有股票
            if i < 2 and i < len(stocks):
                stock = stocks[i]
                tx.patch(Instrument.table, stock["_id"], {"company_id": company_id})
                tx.patch(
                    Company.table,
                    company_id,
                    {"is_public": True, "instrument_id": stock["_id"], "market_cap": stock.get("market_cap")},
                )

            for j in range(3 + i % 4):
                listing = Listing(
                    company_id=company_id,
                    name=f"Product {i + 1}.{j + 1}",
                    price=int(rng.uniform(500, 800_000)),
                    stock=None if j % 2 else int(rng.uniform(10, 500)),
                    max_per_order=None if j % 3 else 25,
                    quality_rating=round(rng.uniform(0.2, 1.0), 2),
                    updated_at=now,
                )
                tx.insert(Listing.table, listing.to_doc())
                counts["listings"] += 1

        for i, player_id in enumerate(player_ids):
            if stocks and i % 2 == 0:
                stock = stocks[i % len(stocks)]
                shares = int(rng.uniform(1, 500))
                tx.insert(
                    StockHolding.table,
                    StockHolding(
                        participant_id=player_id,
                        instrument_id=stock["_id"],
                        shares=shares,
                        average_cost=stock["current_price"],
                        total_invested=shares * stock["current_price"],
                        updated_at=now,
                    ).to_doc(),
                )
                counts["holdings"] += 1
            if i % 3 == 0:
                principal = int(rng.uniform(100_000, 2_000_000))
                tx.insert(
                    Loan.table,
                    Loan(
                        participant_id=player_id,
                        principal=principal,
                        remaining_balance=principal,
                        interest_rate=5,
                        last_interest_applied=now - 30 * MINUTE_MS,
                        created_at=now,
                    ).to_doc(),
                )
                counts["loans"] += 1

        if tx.query(CryptoAsset.table).first() is None:
            for entry in DEMO_CRYPTO:
                coin = CryptoAsset(
                    symbol=entry["symbol"],
                    name=entry["name"],
                    current_price=entry["price"],
                    fair_value=entry["price"],
                    circulating_supply=entry["supply"],
                    market_cap=entry["price"] * entry["supply"],
                    created_at=now,
                )
                _insert_with_candle(tx, coin, now)
                counts["crypto"] += 1

    logs.info(f"[SEED] demo world: {counts}")
    return counts
