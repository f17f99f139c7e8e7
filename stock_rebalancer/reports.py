"""Report Projector - trend series, transfer history and shop performance.

Pure formatting over already computed data; nothing here touches a store.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from stock_rebalancer.aggregator import status_rates
from stock_rebalancer.config import UNCATEGORIZED_LABEL
from stock_rebalancer.errors import NotFound
from stock_rebalancer.models.stock import (
    AnalysisRun,
    BalancingRatePoint,
    ClassifiedStock,
    ProposalStatus,
    ShopPerformance,
    Snapshot,
    TransferHistoryEntry,
    TransferProposal,
)

ALL = "all"

# period -> how far back from "now"
PERIODS: dict[str, Optional[relativedelta]] = {
    "last_month": relativedelta(months=1),
    "last_3_months": relativedelta(months=3),
    ALL: None,
}


def _parse_date(value: str) -> datetime:
    parsed = date_parser.parse(value)
    return parsed.replace(tzinfo=None)


def balancing_rate_history(runs: Iterable[AnalysisRun]) -> list[BalancingRatePoint]:
    """Monthly trend of rupture / overstock / normal percentages.

    Runs are ordered by date; the latest run of a month represents it.
    """
    by_month: dict[tuple[int, int], AnalysisRun] = {}
    for run in sorted(runs, key=lambda r: _parse_date(r.run_at)):
        run_at = _parse_date(run.run_at)
        by_month[(run_at.year, run_at.month)] = run

    points = []
    for (year, month), run in sorted(by_month.items()):
        points.append(
            BalancingRatePoint(
                month=datetime(year, month, 1).strftime("%b %y"),
                rupture=run.rupture_percentage,
                overstock=run.overstock_percentage,
                normal=run.normal_percentage,
            )
        )
    return points


def _shop_name(shop_id: str, name: str, snapshot: Optional[Snapshot]) -> str:
    """Stored name, or the snapshot's when the item was written without one."""
    if name or snapshot is None:
        return name
    try:
        return snapshot.shop(shop_id).name
    except NotFound:
        return shop_id


def _category_of(proposal: TransferProposal, snapshot: Optional[Snapshot]) -> Optional[str]:
    if proposal.category or snapshot is None:
        return proposal.category
    try:
        article = snapshot.article(proposal.article_id)
    except NotFound:
        return None
    return article.category or UNCATEGORIZED_LABEL


def transfer_history(
    proposals: Iterable[TransferProposal], snapshot: Optional[Snapshot] = None
) -> list[TransferHistoryEntry]:
    """Project proposals into history rows, newest first.

    The row date is the day the transfer was proposed (created_at). Status
    changes do not move a transfer between periods.
    """
    entries = [
        TransferHistoryEntry(
            transfer_id=p.proposal_id,
            date=p.created_at[:10],
            article_label=p.article_label,
            source_shop=_shop_name(p.source_shop_id, p.source_shop_name, snapshot),
            destination_shop=_shop_name(p.destination_shop_id, p.destination_shop_name, snapshot),
            quantity=p.quantity,
            status=p.status,
            category=_category_of(p, snapshot),
        )
        for p in proposals
    ]
    entries.sort(key=lambda e: (e.date, e.transfer_id), reverse=True)
    return entries


def filter_transfer_history(
    records: Iterable[TransferHistoryEntry],
    period: str = ALL,
    status: str = ALL,
    category: str = ALL,
    now: Optional[datetime] = None,
) -> list[TransferHistoryEntry]:
    """Filter history rows; all predicates are AND-combined, "all" disables one."""
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period} (expected one of {sorted(PERIODS)})")
    if status != ALL:
        status = ProposalStatus(status).value

    since = None
    if PERIODS[period] is not None:
        since = (now or datetime.utcnow()) - PERIODS[period]

    result = []
    for record in records:
        if since is not None and _parse_date(record.date).date() < since.date():
            continue
        if status != ALL and record.status.value != status:
            continue
        if category != ALL and (record.category or UNCATEGORIZED_LABEL) != category:
            continue
        result.append(record)
    return result


def shop_performance(records: Iterable[ClassifiedStock]) -> list[ShopPerformance]:
    """Rupture / overstock / normal rate (percent) for each shop."""
    by_shop: dict[str, list[ClassifiedStock]] = defaultdict(list)
    for record in records:
        by_shop[record.shop_name].append(record)

    performance = []
    for shop_name in sorted(by_shop):
        _, rupture, overstock, normal = status_rates(by_shop[shop_name])
        performance.append(
            ShopPerformance(
                shop_name=shop_name,
                rupture_rate=rupture,
                overstock_rate=overstock,
                normal_rate=normal,
            )
        )
    return performance


def filter_stock_rows(
    records: Iterable[ClassifiedStock],
    category: str = ALL,
    sub_category: str = ALL,
    stock_level: str = ALL,
    search: str = "",
) -> list[ClassifiedStock]:
    """Shop detail filters: category, sub-category, stock level and free text.

    Search is case-insensitive over article label and code.
    """
    term = search.strip().lower()
    result = []
    for record in records:
        if category != ALL and record.category != category:
            continue
        if sub_category != ALL and record.sub_category != sub_category:
            continue
        if stock_level != ALL and record.status.value != stock_level:
            continue
        if term and term not in record.article_label.lower() and term not in record.article_code.lower():
            continue
        result.append(record)
    return result
