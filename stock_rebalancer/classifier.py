"""Stock Classifier - maps each stock row to rupture / overstock / normal.

- Pure comparison of (current, min, max)
- Range validation before classification (invalid rows are excluded)
- Joins stock rows with their shop and article
"""

from __future__ import annotations

import logging
from typing import Optional

from stock_rebalancer.config import RebalancingConfig
from stock_rebalancer.errors import InvalidStockRange
from stock_rebalancer.models.stock import (
    ClassifiedStock,
    RejectedEntry,
    Snapshot,
    StockEntry,
    StockStatus,
)

logger = logging.getLogger(__name__)


def classify(current: int, min_stock: int, max_stock: int) -> StockStatus:
    """Classify a stock level against its thresholds.

    No validation is done here: inverted or negative thresholds are
    compared as-is. Use validate_entry() upstream.
    """
    if current < min_stock:
        return StockStatus.RUPTURE
    if current > max_stock:
        return StockStatus.OVERSTOCK
    return StockStatus.NORMAL


def validate_entry(entry: StockEntry) -> None:
    """Raise InvalidStockRange when min > max or any quantity is negative."""
    if (
        entry.min_stock > entry.max_stock
        or entry.current < 0
        or entry.min_stock < 0
        or entry.max_stock < 0
    ):
        raise InvalidStockRange(
            entry_id=entry.entry_id,
            shop_id=entry.shop_id,
            article_id=entry.article_id,
            current=entry.current,
            min_stock=entry.min_stock,
            max_stock=entry.max_stock,
        )


class StockClassifier:
    """Classifies every stock row of a snapshot."""

    def __init__(self, config: Optional[RebalancingConfig] = None):
        self.config = config or RebalancingConfig()

    def classify_snapshot(
        self, snapshot: Snapshot
    ) -> tuple[list[ClassifiedStock], list[RejectedEntry]]:
        """Return (classified records, rejected entries).

        Rows with an invalid range are rejected before classification, or
        abort the run when strict_ranges is set. Rows whose shop or article
        is not in the snapshot are skipped.
        """
        shops = {s.shop_id: s for s in snapshot.shops}
        articles = {a.article_id: a for a in snapshot.articles}

        records: list[ClassifiedStock] = []
        rejected: list[RejectedEntry] = []

        for entry in snapshot.entries:
            shop = shops.get(entry.shop_id)
            article = articles.get(entry.article_id)
            if shop is None or article is None:
                logger.warning(
                    "Skipping stock entry %s: unknown %s",
                    entry.entry_id,
                    "shop" if shop is None else "article",
                )
                continue

            try:
                validate_entry(entry)
            except InvalidStockRange as e:
                if self.config.strict_ranges:
                    raise
                logger.warning("Rejected stock entry: %s", e)
                rejected.append(
                    RejectedEntry(
                        entry_id=entry.entry_id,
                        shop_id=entry.shop_id,
                        article_id=entry.article_id,
                        reason=e.detail,
                    )
                )
                continue

            records.append(
                ClassifiedStock(
                    shop_id=shop.shop_id,
                    shop_name=shop.name,
                    article_id=article.article_id,
                    article_code=article.code,
                    article_label=article.label,
                    category=article.category or self.config.uncategorized_label,
                    sub_category=article.sub_category or self.config.unspecified_label,
                    status=classify(entry.current, entry.min_stock, entry.max_stock),
                    current=entry.current,
                    min_stock=entry.min_stock,
                    max_stock=entry.max_stock,
                )
            )

        return records, rejected
