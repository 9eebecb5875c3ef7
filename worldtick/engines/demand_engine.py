#!filepath: worldtick/engines/demand_engine.py
"""
Bot 购买引擎（合成需求）

每个 tick：
  1. 轮转取 N 家公司（最久未处理优先）
  2. 随机权重归一化 → 每家公司的子预算
  3. 公司内按吸引力排序商品，子预算在剩余商品间均分
  4. 下单：库存 / 单笔上限 / 剩余预算三重约束
  5. 所有访问过的公司打戳（包括被跳过的）
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

from worldtick.config.economy_config import DemandConfig
from worldtick.domain.models import Company, Listing, Sale
from worldtick.pipeline.rotation import RotationCursor
from worldtick.pricing.random_source import RandomSource
from worldtick.pricing.stochastic import clamp
from worldtick.store.base import Store, Transaction
from worldtick.utils.clock import format_cents
from worldtick.utils.errors import FatalCycleFailure, PartialEntityFailure, ValidationFailure
from worldtick.utils.logger import logs


@dataclass(frozen=True)
class Purchase:
    product_id: str
    company_id: str
    quantity: int
    total_price: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DemandResult:
    budget: int
    purchases: List[Purchase] = field(default_factory=list)
    companies_visited: int = 0
    companies_skipped: int = 0

    @property
    def total_spent(self) -> int:
        return sum(p.total_price for p in self.purchases)


# ---------------------------------------------------------------------------
# pure helpers
# ---------------------------------------------------------------------------
def attractiveness(listing: Listing, cfg: DemandConfig) -> float:
    """
    quality 40% + 价格偏好（对数正态，中心 sweet spot）30%
    + 历史销量 20% + 常数底 10%，再乘高价惩罚。结果落在 [0, 1]。
    """
    quality = clamp(listing.quality_rating if listing.quality_rating is not None else 0.5, 0.0, 1.0)

    log_price = math.log(max(1, listing.price))
    z = (log_price - math.log(cfg.sweet_spot_price)) / cfg.price_log_spread
    price_preference = math.exp(-(z ** 2) / 2)

    unit_price_penalty = 1 / (1 + (listing.price / cfg.expensive_price) ** cfg.expensive_exponent)

    demand = min((listing.total_sold or 0) / cfg.demand_saturation, 1.0)

    raw = (
        cfg.quality_weight * quality
        + cfg.price_weight * price_preference
        + cfg.demand_weight * demand
        + cfg.floor_weight
    ) * unit_price_penalty
    return clamp(raw, 0.0, 1.0)


def allocate_budgets(weights: Sequence[float], total_budget: int) -> List[int]:
    """权重归一化后按比例切分总预算（向下取整，和 ≤ total_budget）"""
    if not weights:
        return []
    total_weight = sum(weights)
    if total_weight <= 0 or not math.isfinite(total_weight):
        return [total_budget // len(weights)] * len(weights)
    return [int(math.floor(w / total_weight * total_budget)) for w in weights]


def purchase_quantity(
    allocation: int,
    price: int,
    stock: Optional[int],
    max_per_order: Optional[int],
    remaining_budget: int,
) -> int:
    if price <= 0:
        return 0
    quantity = allocation // price
    if stock is not None:
        quantity = min(quantity, stock)
    if max_per_order:
        quantity = min(quantity, max_per_order)
    quantity = min(quantity, remaining_budget // price)
    return max(0, int(quantity))


def _is_amount(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_eligible(listing: Listing, cfg: DemandConfig) -> bool:
    if not listing.is_active or listing.is_archived:
        return False
    if listing.price is None or not math.isfinite(listing.price) or listing.price <= 0:
        return False
    if listing.price > cfg.max_listing_price:
        return False
    return listing.stock is None or listing.stock > 0


# ---------------------------------------------------------------------------
# engine
# ---------------------------------------------------------------------------
class DemandAllocator:
    def __init__(self, store: Store, cfg: DemandConfig):
        self.store = store
        self.cfg = cfg
        self.rotation = RotationCursor(Company.table, "last_bot_purchase_at")

    def run(self, rng: RandomSource, now: int, total_budget: Optional[int] = None) -> DemandResult:
        budget = self.cfg.total_budget if total_budget is None else total_budget
        result = DemandResult(budget=budget)

        with self.store.transaction("demand") as tx:
            docs = self.rotation.window(tx, self.cfg.companies_per_tick)
            if not docs:
                logs.info("[BOT] no companies to process")
                return result

            weights = [rng.random() for _ in docs]
            budgets = allocate_budgets(weights, budget)

            for doc, company_budget in zip(docs, budgets):
                result.companies_visited += 1
                if company_budget < self.cfg.min_company_budget:
                    result.companies_skipped += 1
                    logs.debug(
                        f"[BOT] company {doc['_id']} budget {format_cents(company_budget)} below minimum, skipped"
                    )
                    continue
                try:
                    company = Company.from_doc(doc)
                    result.purchases.extend(self._buy_from_company(tx, company, company_budget, now))
                except FatalCycleFailure:
                    raise
                except Exception as e:
                    logs.warning(f"[BOT] {PartialEntityFailure('company', doc.get('_id'), e)}")

            self.rotation.advance(tx, [d["_id"] for d in docs], now)

        logs.info(
            f"[BOT] {result.companies_visited} companies visited ({result.companies_skipped} skipped), "
            f"{len(result.purchases)} purchases, {format_cents(result.total_spent)} of "
            f"{format_cents(budget)} spent"
        )
        return result

    def _load_listings(self, tx: Transaction, company_id: str) -> List[Listing]:
        max_price = self.cfg.max_listing_price
        rows = (
            tx.query(Listing.table)
            .eq("company_id", company_id)
            .where(lambda d: d.get("is_active") is True and not d.get("is_archived"))
            .where(lambda d: isinstance(d.get("price"), (int, float)) and d["price"] <= max_price)
            .take(self.cfg.max_listings_per_company)
        )
        listings = []
        for row in rows:
            try:
                listings.append(Listing.from_doc(row))
            except TypeError as e:
                logs.warning(f"[BOT] {PartialEntityFailure('listing', row.get('_id'), e)}")
        return listings

    def _buy_from_company(
        self,
        tx: Transaction,
        company: Company,
        company_budget: int,
        now: int,
    ) -> List[Purchase]:
        if not _is_amount(company.balance):
            raise ValidationFailure(f"company {company.id} has invalid balance {company.balance!r}")

        listings = [l for l in self._load_listings(tx, company.id) if is_eligible(l, self.cfg)]
        scored = [(attractiveness(l, self.cfg), l) for l in listings]
        scored = [(s, l) for s, l in scored if s > 0]
        if not scored:
            logs.debug(f"[BOT] company {company.name} has no eligible listings")
            return []

        # 高分优先消耗预算
        scored.sort(key=lambda item: item[0], reverse=True)

        purchases: List[Purchase] = []
        remaining = company_budget

        for index, (score, listing) in enumerate(scored):
            if remaining <= 0:
                break
            if len(purchases) >= self.cfg.max_purchases_per_company:
                logs.debug(f"[BOT] company {company.name} reached purchase cap")
                break

            allocation = remaining // (len(scored) - index)
            try:
                quantity = purchase_quantity(
                    allocation, listing.price, listing.stock, listing.max_per_order, remaining
                )
                if quantity <= 0:
                    continue

                total = quantity * listing.price
                if not math.isfinite(total) or total <= 0 or total > remaining:
                    raise ValidationFailure(f"invalid purchase total {total} for {listing.id}")

                with tx.savepoint():
                    self._execute_purchase(tx, company, listing, quantity, total, now)
            except ValidationFailure as e:
                logs.warning(f"[BOT] skipped listing {listing.id}: {e}")
                continue
            except FatalCycleFailure:
                raise
            except Exception as e:
                logs.warning(f"[BOT] {PartialEntityFailure('listing', listing.id, e)}")
                continue

            remaining -= total
            purchases.append(
                Purchase(product_id=listing.id, company_id=company.id, quantity=quantity, total_price=total)
            )
            logs.debug(
                f"[BOT] {company.name}: {quantity}x {listing.name or listing.id} "
                f"for {format_cents(total)} (score={score:.3f})"
            )

        return purchases

    def _execute_purchase(
        self,
        tx: Transaction,
        company: Company,
        listing: Listing,
        quantity: int,
        total: int,
        now: int,
    ) -> None:
        # 先算齐三处写入，再一起落库；任何校验失败都发生在第一次写之前
        if listing.stock is not None and listing.stock < quantity:
            raise ValidationFailure(f"listing {listing.id} stock {listing.stock} < quantity {quantity}")
        new_balance = company.balance + total

        listing_update = {
            "total_sold": (listing.total_sold or 0) + quantity,
            "total_revenue": (listing.total_revenue or 0) + total,
            "updated_at": now,
        }
        if listing.stock is not None:
            listing_update["stock"] = listing.stock - quantity
        sale = Sale(
            product_id=listing.id,
            company_id=company.id,
            quantity=quantity,
            total_price=total,
            created_at=now,
        ).to_doc()

        tx.patch(Company.table, company.id, {"balance": new_balance, "updated_at": now})
        tx.patch(Listing.table, listing.id, listing_update)
        tx.insert(Sale.table, sale)
        company.balance = new_balance
