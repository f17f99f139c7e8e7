"""Transfer Matcher - pairs overstocked shops with understocked shops per article.

Greedy per-article matching:
- destinations are served by largest need first (ties: shop name, shop id)
- each destination takes the source with the largest remaining excess
  (ties: shop name, shop id)
- quantity = min(remaining excess, need); each destination gets at most
  one proposal per run and a source never ships more than its excess
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Callable, Iterable, Optional

from stock_rebalancer.audit import DecisionLog
from stock_rebalancer.models.stock import (
    ClassifiedStock,
    OverstockedItem,
    ProposalStatus,
    StockStatus,
    TransferProposal,
    UnderstockedItem,
)

logger = logging.getLogger(__name__)


def default_proposal_id() -> str:
    return f"TRF-{uuid.uuid4().hex[:8].upper()}"


def find_overstocked(records: Iterable[ClassifiedStock]) -> list[OverstockedItem]:
    """Rows above their maximum, with excess = current - max."""
    items = [
        OverstockedItem(
            article_id=r.article_id,
            article_label=r.article_label,
            shop_id=r.shop_id,
            shop_name=r.shop_name,
            current_stock=r.current,
            max_stock=r.max_stock,
            excess_quantity=r.excess,
        )
        for r in records
        if r.status == StockStatus.OVERSTOCK and r.excess > 0
    ]
    items.sort(key=lambda i: (i.article_id, -i.excess_quantity, i.shop_name, i.shop_id))
    return items


def find_understocked(records: Iterable[ClassifiedStock]) -> list[UnderstockedItem]:
    """Rows below their minimum, with needed = min - current."""
    items = [
        UnderstockedItem(
            article_id=r.article_id,
            article_label=r.article_label,
            shop_id=r.shop_id,
            shop_name=r.shop_name,
            current_stock=r.current,
            min_stock=r.min_stock,
            needed_quantity=r.needed,
        )
        for r in records
        if r.status == StockStatus.RUPTURE and r.needed > 0
    ]
    items.sort(key=lambda i: (i.article_id, -i.needed_quantity, i.shop_name, i.shop_id))
    return items


def build_reason(source: OverstockedItem, destination: UnderstockedItem) -> str:
    return (
        f"Overstock at {source.shop_name} (+{source.excess_quantity}), "
        f"shortage at {destination.shop_name} (-{destination.needed_quantity})"
    )


class TransferMatcher:
    """Builds transfer proposals from one run's classified rows."""

    COMPONENT = "TransferMatcher"

    def __init__(
        self,
        id_factory: Optional[Callable[[], str]] = None,
        decision_log: Optional[DecisionLog] = None,
    ):
        self._id_factory = id_factory or default_proposal_id
        self._decision_log = decision_log or DecisionLog()

    def match(self, records: Iterable[ClassifiedStock]) -> list[TransferProposal]:
        records = list(records)
        categories = {r.article_id: r.category for r in records}
        return self.match_items(find_overstocked(records), find_understocked(records), categories)

    def match_items(
        self,
        overstocked: list[OverstockedItem],
        understocked: list[UnderstockedItem],
        categories: Optional[dict[str, str]] = None,
    ) -> list[TransferProposal]:
        categories = categories or {}
        sources_by_article: dict[str, list[OverstockedItem]] = defaultdict(list)
        destinations_by_article: dict[str, list[UnderstockedItem]] = defaultdict(list)
        for item in overstocked:
            sources_by_article[item.article_id].append(item)
        for item in understocked:
            destinations_by_article[item.article_id].append(item)

        proposals: list[TransferProposal] = []

        for article_id in sorted(set(sources_by_article) & set(destinations_by_article)):
            sources = sources_by_article[article_id]
            destinations = sorted(
                destinations_by_article[article_id],
                key=lambda d: (-d.needed_quantity, d.shop_name, d.shop_id),
            )
            # Remaining excess per source shop for this article
            remaining = {s.shop_id: s.excess_quantity for s in sources}

            for destination in destinations:
                candidates = [
                    s for s in sources
                    if remaining[s.shop_id] > 0 and s.shop_id != destination.shop_id
                ]
                if not candidates:
                    logger.debug(
                        "No remaining excess for article %s, %s left unserved",
                        article_id, destination.shop_name,
                    )
                    continue

                candidates.sort(key=lambda s: (-remaining[s.shop_id], s.shop_name, s.shop_id))
                source = candidates[0]
                quantity = min(remaining[source.shop_id], destination.needed_quantity)
                remaining[source.shop_id] -= quantity

                proposals.append(
                    TransferProposal(
                        proposal_id=self._id_factory(),
                        article_id=article_id,
                        article_label=destination.article_label,
                        source_shop_id=source.shop_id,
                        source_shop_name=source.shop_name,
                        destination_shop_id=destination.shop_id,
                        destination_shop_name=destination.shop_name,
                        quantity=quantity,
                        reason=build_reason(source, destination),
                        status=ProposalStatus.PROPOSED,
                        category=categories.get(article_id),
                    )
                )

        unmatched = sorted(set(sources_by_article) ^ set(destinations_by_article))
        self._decision_log.record(
            component=self.COMPONENT,
            decision_type="transfer_matching",
            input_data={
                "overstocked_count": len(overstocked),
                "understocked_count": len(understocked),
            },
            output_data={
                "proposal_count": len(proposals),
                "total_quantity": sum(p.quantity for p in proposals),
                "unmatched_articles": unmatched,
            },
            reasoning=(
                f"{len(proposals)} transfer proposals built; "
                f"{len(unmatched)} articles have only surplus or only shortage."
            ),
        )
        return proposals
