# tests/conftest.py
from __future__ import annotations

import pytest
from loguru import logger

from worldtick.config.app_config import AppConfig
from worldtick.domain.models import Company, Listing, Loan, Participant, StockHolding
from worldtick.pricing.random_source import RandomSource
from worldtick.store.memory_store import MemoryStore
from worldtick.utils.clock import FrozenClock

from factories import ZeroRandom, add_stock, insert


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def zero_rng() -> ZeroRandom:
    return ZeroRandom()


@pytest.fixture
def seeded_rng() -> RandomSource:
    return RandomSource.seeded(42)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(read_ceiling=32_000)


@pytest.fixture
def cfg() -> AppConfig:
    """纯默认配置，不读 base.yml（store.path=None → 内存）"""
    return AppConfig()


@pytest.fixture
def world(store, clock):
    """
    一个参与者：现金 500000，10 股 @20000，一笔 150000 的活跃贷款
    """
    now = clock.now_ms()
    stock_id = add_stock(store, now, symbol="NW", price=20_000)
    player_id = insert(store, Participant(name="alice", balance=500_000))
    insert(store, StockHolding(participant_id=player_id, instrument_id=stock_id, shares=10))
    loan_id = insert(
        store,
        Loan(
            participant_id=player_id,
            principal=150_000,
            remaining_balance=150_000,
            interest_rate=5,
            last_interest_applied=now,
        ),
    )
    company_id = insert(store, Company(name="Acme", owner_id=player_id, balance=0))
    insert(store, Listing(company_id=company_id, name="widget", price=300, quality_rating=0.8))
    return {
        "stock_id": stock_id,
        "player_id": player_id,
        "loan_id": loan_id,
        "company_id": company_id,
    }
