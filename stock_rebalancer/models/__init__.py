from stock_rebalancer.models.stock import (
    AnalysisResult,
    AnalysisRun,
    Article,
    BalancingRatePoint,
    CategoryStockSummary,
    ClassifiedStock,
    Decision,
    GlobalPercentages,
    LifecycleCommand,
    OverallStatus,
    OverstockedItem,
    ProposalStatus,
    RejectedEntry,
    Shop,
    ShopCategoryCell,
    ShopPerformance,
    Snapshot,
    StockEntry,
    StockStatus,
    TransferHistoryEntry,
    TransferProposal,
    UnderstockedItem,
)

__all__ = [
    "AnalysisResult",
    "AnalysisRun",
    "Article",
    "BalancingRatePoint",
    "CategoryStockSummary",
    "ClassifiedStock",
    "Decision",
    "GlobalPercentages",
    "LifecycleCommand",
    "OverallStatus",
    "OverstockedItem",
    "ProposalStatus",
    "RejectedEntry",
    "Shop",
    "ShopCategoryCell",
    "ShopPerformance",
    "Snapshot",
    "StockEntry",
    "StockStatus",
    "TransferHistoryEntry",
    "TransferProposal",
    "UnderstockedItem",
]
