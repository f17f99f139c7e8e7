"""Shop, article and stock data models plus the derived analysis records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from stock_rebalancer.errors import NotFound


class StockStatus(str, Enum):
    RUPTURE = "rupture"
    OVERSTOCK = "overstock"
    NORMAL = "normal"


class OverallStatus(str, Enum):
    RUPTURE = "rupture"
    OVERSTOCK = "overstock"
    NORMAL = "normal"
    EMPTY = "empty"


class ProposalStatus(str, Enum):
    PROPOSED = "proposed"
    VALIDATED = "validated"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    REJECTED = "rejected"


class LifecycleCommand(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MARK_IN_TRANSIT = "mark_in_transit"
    MARK_RECEIVED = "mark_received"


# --- Store records ---

@dataclass(frozen=True)
class Shop:
    shop_id: str
    name: str
    address: Optional[str] = None


@dataclass(frozen=True)
class Article:
    article_id: str
    code: str
    label: str
    brand: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None


@dataclass(frozen=True)
class StockEntry:
    entry_id: str
    shop_id: str
    article_id: str
    current: int
    min_stock: int
    max_stock: int


@dataclass(frozen=True)
class Snapshot:
    """Full read of shops, articles and stock entries for one analysis run."""
    shops: tuple[Shop, ...]
    articles: tuple[Article, ...]
    entries: tuple[StockEntry, ...]
    fetched_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def shop(self, shop_id: str) -> Shop:
        for shop in self.shops:
            if shop.shop_id == shop_id:
                return shop
        raise NotFound("shop", shop_id)

    def article(self, article_id: str) -> Article:
        for article in self.articles:
            if article.article_id == article_id:
                return article
        raise NotFound("article", article_id)


# --- Derived records ---

@dataclass(frozen=True)
class ClassifiedStock:
    shop_id: str
    shop_name: str
    article_id: str
    article_code: str
    article_label: str
    category: str
    sub_category: str
    status: StockStatus
    current: int
    min_stock: int
    max_stock: int

    @property
    def excess(self) -> int:
        """Units above the maximum threshold (0 when not overstocked)."""
        return max(0, self.current - self.max_stock)

    @property
    def needed(self) -> int:
        """Units missing to reach the minimum threshold (0 when not in rupture)."""
        return max(0, self.min_stock - self.current)


@dataclass
class CategoryStockSummary:
    category: str
    rupture_count: int
    overstock_count: int
    normal_count: int
    total_items: int
    overall_status: OverallStatus

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "ruptureCount": self.rupture_count,
            "overstockCount": self.overstock_count,
            "normalCount": self.normal_count,
            "totalItems": self.total_items,
            "overallStatus": self.overall_status.value,
        }


@dataclass
class ShopCategoryCell:
    shop_name: str
    category: str
    items: list[ClassifiedStock]
    status: StockStatus

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "itemCount": len(self.items),
            "items": [
                {
                    "articleLabel": i.article_label,
                    "status": i.status.value,
                    "quantity": i.current,
                    "min": i.min_stock,
                    "max": i.max_stock,
                }
                for i in self.items
            ],
        }


@dataclass
class GlobalPercentages:
    total_items: int = 0
    rupture_percentage: float = 0.0
    overstock_percentage: float = 0.0
    normal_percentage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalItems": self.total_items,
            "rupturePercentage": self.rupture_percentage,
            "overstockPercentage": self.overstock_percentage,
            "normalPercentage": self.normal_percentage,
        }


@dataclass
class OverstockedItem:
    article_id: str
    article_label: str
    shop_id: str
    shop_name: str
    current_stock: int
    max_stock: int
    excess_quantity: int

    def to_dict(self) -> dict:
        return {
            "productId": self.article_id,
            "productName": self.article_label,
            "shopId": self.shop_id,
            "shopName": self.shop_name,
            "currentStock": self.current_stock,
            "maxStock": self.max_stock,
            "excessQuantity": self.excess_quantity,
        }


@dataclass
class UnderstockedItem:
    article_id: str
    article_label: str
    shop_id: str
    shop_name: str
    current_stock: int
    min_stock: int
    needed_quantity: int

    def to_dict(self) -> dict:
        return {
            "productId": self.article_id,
            "productName": self.article_label,
            "shopId": self.shop_id,
            "shopName": self.shop_name,
            "currentStock": self.current_stock,
            "minStock": self.min_stock,
            "neededQuantity": self.needed_quantity,
        }


@dataclass
class TransferProposal:
    proposal_id: str
    article_id: str
    article_label: str
    source_shop_id: str
    source_shop_name: str
    destination_shop_id: str
    destination_shop_name: str
    quantity: int
    reason: str
    status: ProposalStatus = ProposalStatus.PROPOSED
    category: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "proposalId": self.proposal_id,
            "productId": self.article_id,
            "productName": self.article_label,
            "sourceShopId": self.source_shop_id,
            "sourceShopName": self.source_shop_name,
            "destinationShopId": self.destination_shop_id,
            "destinationShopName": self.destination_shop_name,
            "transferQuantity": self.quantity,
            "reason": self.reason,
            "status": self.status.value,
            "category": self.category,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_item(cls, item: dict) -> "TransferProposal":
        """Build a proposal from a store item (snake_case keys)."""
        return cls(
            proposal_id=str(item["proposal_id"]),
            article_id=str(item["article_id"]),
            article_label=str(item.get("article_label", "")),
            source_shop_id=str(item["source_shop_id"]),
            source_shop_name=str(item.get("source_shop_name", "")),
            destination_shop_id=str(item["destination_shop_id"]),
            destination_shop_name=str(item.get("destination_shop_name", "")),
            quantity=int(item["quantity"]),
            reason=str(item.get("reason", "")),
            status=ProposalStatus(item.get("status", ProposalStatus.PROPOSED.value)),
            category=item.get("category"),
            created_at=str(item.get("created_at", "")),
            updated_at=item.get("updated_at"),
        )

    def to_item(self) -> dict:
        item = asdict(self)
        item["status"] = self.status.value
        return {k: v for k, v in item.items() if v is not None}


@dataclass
class RejectedEntry:
    entry_id: str
    shop_id: str
    article_id: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "entryId": self.entry_id,
            "shopId": self.shop_id,
            "articleId": self.article_id,
            "reason": self.reason,
        }


@dataclass
class AnalysisResult:
    run_id: str
    records: list[ClassifiedStock]
    category_summaries: list[CategoryStockSummary]
    shop_category_matrix: dict[str, dict[str, ShopCategoryCell]]
    global_percentages: GlobalPercentages
    overstocked_items: list[OverstockedItem]
    understocked_items: list[UnderstockedItem]
    transfer_proposals: list[TransferProposal]
    rejected_entries: list[RejectedEntry] = field(default_factory=list)
    generated_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "generatedAt": self.generated_at,
            "categorySummaries": [s.to_dict() for s in self.category_summaries],
            "shopCategoryMatrix": {
                shop: {cat: cell.to_dict() for cat, cell in cells.items()}
                for shop, cells in self.shop_category_matrix.items()
            },
            "globalPercentages": self.global_percentages.to_dict(),
            "overstockedItems": [i.to_dict() for i in self.overstocked_items],
            "understockedItems": [i.to_dict() for i in self.understocked_items],
            "transferProposals": [p.to_dict() for p in self.transfer_proposals],
            "rejectedEntries": [r.to_dict() for r in self.rejected_entries],
        }


@dataclass
class AnalysisRun:
    """Aggregate summary of one past run, kept for the trend report."""
    run_id: str
    run_at: str
    total_items: int
    rupture_percentage: float
    overstock_percentage: float
    normal_percentage: float
    proposal_count: int = 0

    def to_item(self) -> dict:
        return asdict(self)

    @classmethod
    def from_item(cls, item: dict) -> "AnalysisRun":
        return cls(
            run_id=str(item["run_id"]),
            run_at=str(item["run_at"]),
            total_items=int(item.get("total_items", 0)),
            rupture_percentage=float(item.get("rupture_percentage", 0)),
            overstock_percentage=float(item.get("overstock_percentage", 0)),
            normal_percentage=float(item.get("normal_percentage", 0)),
            proposal_count=int(item.get("proposal_count", 0)),
        )


# --- Report records ---

@dataclass
class BalancingRatePoint:
    month: str
    rupture: float
    overstock: float
    normal: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TransferHistoryEntry:
    transfer_id: str
    date: str
    article_label: str
    source_shop: str
    destination_shop: str
    quantity: int
    status: ProposalStatus
    category: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.transfer_id,
            "date": self.date,
            "productName": self.article_label,
            "sourceShop": self.source_shop,
            "destinationShop": self.destination_shop,
            "quantity": self.quantity,
            "status": self.status.value,
            "category": self.category,
        }


@dataclass
class ShopPerformance:
    shop_name: str
    rupture_rate: float
    overstock_rate: float
    normal_rate: float

    def to_dict(self) -> dict:
        return {
            "shopName": self.shop_name,
            "ruptureRate": self.rupture_rate,
            "overstockRate": self.overstock_rate,
            "normalRate": self.normal_rate,
        }


@dataclass
class Decision:
    decision_id: str
    component: str
    decision_type: str
    input_data: dict
    output_data: dict
    reasoning: str
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
