from stock_rebalancer.aggregator import global_percentages, shop_category_matrix, summarize_by_category
from stock_rebalancer.analysis import WeeklyAnalysisService
from stock_rebalancer.classifier import StockClassifier, classify, validate_entry
from stock_rebalancer.config import RebalancingConfig
from stock_rebalancer.errors import (
    DataFetchError,
    InvalidStockRange,
    InvalidTransition,
    NotFound,
    PersistenceError,
    RebalancerError,
)
from stock_rebalancer.lifecycle import ProposalLifecycle
from stock_rebalancer.matcher import TransferMatcher

__all__ = [
    "DataFetchError",
    "InvalidStockRange",
    "InvalidTransition",
    "NotFound",
    "PersistenceError",
    "ProposalLifecycle",
    "RebalancerError",
    "RebalancingConfig",
    "StockClassifier",
    "TransferMatcher",
    "WeeklyAnalysisService",
    "classify",
    "global_percentages",
    "shop_category_matrix",
    "summarize_by_category",
    "validate_entry",
]
