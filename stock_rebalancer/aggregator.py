"""Aggregator - category summaries, shop x category matrix and global percentages."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from stock_rebalancer.config import SIGNIFICANCE_THRESHOLD
from stock_rebalancer.models.stock import (
    CategoryStockSummary,
    ClassifiedStock,
    GlobalPercentages,
    OverallStatus,
    ShopCategoryCell,
    StockStatus,
)

# Cell precedence: the first status present in a cell wins
_CELL_PRECEDENCE: dict[StockStatus, int] = {
    StockStatus.RUPTURE: 0,
    StockStatus.OVERSTOCK: 1,
    StockStatus.NORMAL: 2,
}


def _count(records: Iterable[ClassifiedStock]) -> dict[StockStatus, int]:
    counts = {status: 0 for status in StockStatus}
    for record in records:
        counts[record.status] += 1
    return counts


def overall_status(
    rupture: int, overstock: int, total: int, threshold: float = SIGNIFICANCE_THRESHOLD
) -> OverallStatus:
    """Roll a category up to a single status.

    Rules, first match wins:
    1. no rows -> empty
    2. rupture and overstock both significant -> rupture
    3. rupture significant -> rupture
    4. overstock significant -> overstock
    5. normal
    """
    if total == 0:
        return OverallStatus.EMPTY

    rupture_significant = rupture > 0 and rupture / total >= threshold
    overstock_significant = overstock > 0 and overstock / total >= threshold

    if rupture_significant and overstock_significant:
        return OverallStatus.RUPTURE
    if rupture_significant:
        return OverallStatus.RUPTURE
    if overstock_significant:
        return OverallStatus.OVERSTOCK
    return OverallStatus.NORMAL


def summarize_by_category(
    records: Iterable[ClassifiedStock],
    include_empty: Iterable[str] = (),
    threshold: float = SIGNIFICANCE_THRESHOLD,
) -> list[CategoryStockSummary]:
    """Per-category counts and overall status, sorted by category name.

    Categories without rows are omitted unless listed in include_empty,
    in which case they are emitted with the "empty" status.
    """
    by_category: dict[str, list[ClassifiedStock]] = defaultdict(list)
    for record in records:
        by_category[record.category].append(record)
    for category in include_empty:
        by_category.setdefault(category, [])

    summaries = []
    for category in sorted(by_category):
        counts = _count(by_category[category])
        total = len(by_category[category])
        summaries.append(
            CategoryStockSummary(
                category=category,
                rupture_count=counts[StockStatus.RUPTURE],
                overstock_count=counts[StockStatus.OVERSTOCK],
                normal_count=counts[StockStatus.NORMAL],
                total_items=total,
                overall_status=overall_status(
                    counts[StockStatus.RUPTURE],
                    counts[StockStatus.OVERSTOCK],
                    total,
                    threshold,
                ),
            )
        )
    return summaries


def shop_category_matrix(
    records: Iterable[ClassifiedStock],
) -> dict[str, dict[str, ShopCategoryCell]]:
    """Group records into {shop_name: {category: cell}}; empty cells are absent."""
    grouped: dict[str, dict[str, list[ClassifiedStock]]] = defaultdict(lambda: defaultdict(list))
    for record in records:
        grouped[record.shop_name][record.category].append(record)

    matrix: dict[str, dict[str, ShopCategoryCell]] = {}
    for shop_name in sorted(grouped):
        matrix[shop_name] = {}
        for category in sorted(grouped[shop_name]):
            items = grouped[shop_name][category]
            status = min((i.status for i in items), key=_CELL_PRECEDENCE.__getitem__)
            matrix[shop_name][category] = ShopCategoryCell(
                shop_name=shop_name, category=category, items=items, status=status
            )
    return matrix


def status_rates(records: Iterable[ClassifiedStock]) -> tuple[int, float, float, float]:
    """Return (total, rupture %, overstock %, normal %), all zero when empty."""
    records = list(records)
    total = len(records)
    if total == 0:
        return 0, 0.0, 0.0, 0.0
    counts = _count(records)
    return (
        total,
        counts[StockStatus.RUPTURE] / total * 100,
        counts[StockStatus.OVERSTOCK] / total * 100,
        counts[StockStatus.NORMAL] / total * 100,
    )


def global_percentages(records: Iterable[ClassifiedStock]) -> GlobalPercentages:
    total, rupture, overstock, normal = status_rates(records)
    return GlobalPercentages(
        total_items=total,
        rupture_percentage=rupture,
        overstock_percentage=overstock,
        normal_percentage=normal,
    )
