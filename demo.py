"""
Weekly rebalancing analysis demo on generated data (no AWS needed).

Usage:
    python demo.py            # in-memory demo data
    python demo.py --aws      # read the DynamoDB tables (see data_layer/scripts/setup_aws.py)
"""

import logging
import sys

import env_loader  # noqa: F401

from data_layer.generators.generators import generate_all
from stock_rebalancer.analysis import WeeklyAnalysisService
from stock_rebalancer.errors import DataFetchError, InvalidTransition
from stock_rebalancer.store import InMemoryStockStore


def build_service(use_aws: bool) -> WeeklyAnalysisService:
    if use_aws:
        return WeeklyAnalysisService.from_env()
    data = generate_all(write=False)
    store = InMemoryStockStore.from_items(data["shops"], data["articles"], data["stock"])
    return WeeklyAnalysisService(store)


def main(argv=None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    args = sys.argv[1:] if argv is None else argv
    service = build_service("--aws" in args)

    print("\n--- Weekly analysis ---")
    try:
        result = service.run_analysis()
    except DataFetchError as e:
        print(f"❌ Analysis aborted: {e}")
        return 1

    g = result.global_percentages
    print(f"✅ {g.total_items} stock rows analysed")
    print(f"   Rupture: {g.rupture_percentage:.1f}%  Overstock: {g.overstock_percentage:.1f}%  "
          f"Normal: {g.normal_percentage:.1f}%")
    if result.rejected_entries:
        print(f"   ⚠️  {len(result.rejected_entries)} rows rejected (invalid range)")

    print("\n--- Categories ---")
    for summary in result.category_summaries:
        print(f"   {summary.category:<20} {summary.overall_status.value:<10} "
              f"R={summary.rupture_count} O={summary.overstock_count} N={summary.normal_count}")

    print(f"\n--- Transfer proposals ({len(result.transfer_proposals)}) ---")
    for proposal in result.transfer_proposals[:10]:
        print(f"   {proposal.proposal_id}  {proposal.article_label:<22} "
              f"{proposal.source_shop_name} -> {proposal.destination_shop_name}  x{proposal.quantity}")

    if result.transfer_proposals:
        print("\n--- Lifecycle ---")
        first = result.transfer_proposals[0]
        service.transition(first.proposal_id, "approve")
        service.transition(first.proposal_id, "mark_in_transit")
        received = service.transition(first.proposal_id, "mark_received")
        print(f"   {received.proposal_id}: {received.status.value}")
        try:
            service.transition(first.proposal_id, "approve")
        except InvalidTransition as e:
            print(f"   ✓ refused: {e}")

    print("\n--- Shop performance ---")
    for perf in service.shop_performance():
        print(f"   {perf.shop_name:<20} rupture {perf.rupture_rate:5.1f}%  "
              f"overstock {perf.overstock_rate:5.1f}%  normal {perf.normal_rate:5.1f}%")
    return 0


if __name__ == "__main__":
    sys.exit(main())
