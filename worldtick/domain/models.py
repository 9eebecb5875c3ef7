#!filepath: worldtick/domain/models.py
"""
强类型领域记录。

Store 中只保存 dict；进出 Store 时统一经过 from_doc / to_doc，
引擎和定价数学只接触这些 dataclass。
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Literal, Optional, Type, TypeVar

R = TypeVar("R", bound="Record")

LoanStatus = Literal["active", "closed"]
TradeSide = Literal["buy", "sell"]


@dataclass(kw_only=True)
class Record:
    table: ClassVar[str] = ""

    id: Optional[str] = None

    @classmethod
    def from_doc(cls: Type[R], doc: Dict[str, Any]) -> R:
        names = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in doc.items() if k in names}
        kwargs["id"] = doc.get("_id")
        return cls(**kwargs)

    def to_doc(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc.pop("id", None)
        return doc


# ---------------------------------------------------------------------------
# tick bookkeeping
# ---------------------------------------------------------------------------
@dataclass(kw_only=True)
class TickLock(Record):
    table: ClassVar[str] = "tickLock"

    lock_id: str = "singleton"
    is_locked: bool = False
    locked_at: Optional[int] = None
    locked_by: Optional[str] = None


@dataclass(kw_only=True)
class TickHistory(Record):
    table: ClassVar[str] = "tickHistory"

    tick_number: int
    timestamp: int
    trigger_source: str = "scheduled"
    purchase_count: int = 0
    total_budget_spent: int = 0
    bot_purchases: List[Dict[str, Any]] = field(default_factory=list)
    price_update_summaries: List[Dict[str, Any]] = field(default_factory=list)
    crypto_update_summaries: List[Dict[str, Any]] = field(default_factory=list)
    loans_processed: int = 0
    participants_processed: int = 0


# ---------------------------------------------------------------------------
# tradable assets
# ---------------------------------------------------------------------------
@dataclass(kw_only=True)
class Instrument(Record):
    table: ClassVar[str] = "stocks"
    history_table: ClassVar[str] = "stockPriceHistory"

    symbol: str
    name: str = ""
    sector: str = "other"
    current_price: int = 10_000
    fair_value: float = 10_000
    volatility: float = 0.03
    trend_momentum: float = 0.0
    liquidity: int = 1_000_000
    outstanding_shares: int = 1_000_000
    market_cap: int = 0
    last_price_change: float = 0.0
    last_updated: Optional[int] = None
    last_volatility_cluster: Optional[int] = None
    company_id: Optional[str] = None
    created_at: Optional[int] = None

    @property
    def units(self) -> int:
        return self.outstanding_shares


@dataclass(kw_only=True)
class CryptoAsset(Record):
    table: ClassVar[str] = "cryptocurrencies"
    history_table: ClassVar[str] = "cryptoPriceHistory"

    symbol: str
    name: str = ""
    current_price: int = 10_000
    fair_value: float = 10_000
    volatility: float = 0.06
    trend_momentum: float = 0.0
    liquidity: int = 1_000_000
    circulating_supply: int = 10_000_000
    market_cap: int = 0
    last_price_change: float = 0.0
    last_updated: Optional[int] = None
    last_volatility_cluster: Optional[int] = None
    created_at: Optional[int] = None

    @property
    def units(self) -> int:
        return self.circulating_supply


@dataclass(kw_only=True)
class PriceCandle(Record):
    """一个 tick 内的 OHLCV（追加写，不可变）"""

    table: ClassVar[str] = "stockPriceHistory"

    asset_id: str
    timestamp: int
    open: int
    high: int
    low: int
    close: int
    volume: int = 0


# ---------------------------------------------------------------------------
# marketplace
# ---------------------------------------------------------------------------
@dataclass(kw_only=True)
class Employee:
    name: str = ""
    tick_cost_percentage: float = 0.0


@dataclass(kw_only=True)
class Company(Record):
    table: ClassVar[str] = "companies"

    name: str
    owner_id: Optional[str] = None
    balance: int = 0
    employees: List[Employee] = field(default_factory=list)
    is_public: bool = False
    market_cap: Optional[int] = None
    instrument_id: Optional[str] = None
    last_bot_purchase_at: Optional[int] = None
    last_cost_deduction_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Company":
        company = super().from_doc(doc)
        company.employees = [
            e if isinstance(e, Employee) else Employee(**e) for e in company.employees or []
        ]
        return company

    @property
    def tick_cost_percentage(self) -> float:
        return sum(e.tick_cost_percentage for e in self.employees)


@dataclass(kw_only=True)
class Listing(Record):
    """marketplace 商品；stock=None 表示无限库存"""

    table: ClassVar[str] = "products"

    company_id: str
    name: str = ""
    price: int
    stock: Optional[int] = None
    max_per_order: Optional[int] = None
    quality_rating: float = 0.5
    total_sold: int = 0
    total_revenue: int = 0
    is_active: bool = True
    is_archived: bool = False
    updated_at: Optional[int] = None


@dataclass(kw_only=True)
class Sale(Record):
    table: ClassVar[str] = "marketplaceSales"

    product_id: str
    company_id: str
    quantity: int
    total_price: int
    purchaser_id: str = "bot"
    purchaser_type: str = "bot"
    created_at: int


@dataclass(kw_only=True)
class LedgerEntry(Record):
    table: ClassVar[str] = "transactions"

    from_account_id: Optional[str]
    from_account_type: str
    to_account_id: Optional[str]
    to_account_type: str
    amount: int
    asset_type: str = "cash"
    asset_id: Optional[str] = None
    description: str = ""
    created_at: int


# ---------------------------------------------------------------------------
# participants & debt
# ---------------------------------------------------------------------------
@dataclass(kw_only=True)
class Participant(Record):
    table: ClassVar[str] = "players"

    name: str = ""
    balance: int = 0
    net_worth: int = 0
    last_net_worth_update: Optional[int] = None
    updated_at: Optional[int] = None


@dataclass(kw_only=True)
class Loan(Record):
    table: ClassVar[str] = "loans"

    participant_id: str
    principal: int = 0
    remaining_balance: int
    # 日利率，百分数（5 == 5%/天）
    interest_rate: float
    accrued_interest: int = 0
    last_interest_applied: int
    status: LoanStatus = "active"
    created_at: Optional[int] = None


@dataclass(kw_only=True)
class StockHolding(Record):
    table: ClassVar[str] = "playerStockPortfolios"

    participant_id: str
    instrument_id: str
    shares: int
    average_cost: int = 0
    total_invested: int = 0
    updated_at: Optional[int] = None


@dataclass(kw_only=True)
class CryptoHolding(Record):
    table: ClassVar[str] = "playerCryptoWallets"

    participant_id: str
    crypto_id: str
    balance: float


@dataclass(kw_only=True)
class StockTrade(Record):
    table: ClassVar[str] = "stockTransactions"

    participant_id: str
    instrument_id: str
    side: TradeSide
    shares: int
    price_per_share: int
    total_value: int
    price_impact: float
    timestamp: int


# ---------------------------------------------------------------------------
# company treasury positions
# ---------------------------------------------------------------------------
@dataclass(kw_only=True)
class CompanyHolding(Record):
    table: ClassVar[str] = "companyStockPortfolios"

    company_id: str
    instrument_id: str
    shares: int
    average_cost: int = 0
    total_invested: int = 0
    updated_at: Optional[int] = None


@dataclass(kw_only=True)
class CompanyTrade(Record):
    table: ClassVar[str] = "companyStockTransactions"

    company_id: str
    instrument_id: str
    side: TradeSide
    shares: int
    price_per_share: int
    total_value: int
    price_impact: float
    timestamp: int
