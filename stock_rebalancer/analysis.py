"""Weekly rebalancing analysis - orchestrates one run end to end.

1. Fetch the full snapshot (the only I/O before computation)
2. Classify every stock row
3. Aggregate by category, shop x category and globally
4. Match overstocked and understocked rows into transfer proposals
5. Persist the new proposals and the run summary

Each run works on its own snapshot and run-local results; the only shared
state is the proposal store, whose transitions are serialized per proposal.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stock_rebalancer.aggregator import global_percentages, shop_category_matrix, summarize_by_category
from stock_rebalancer.audit import DecisionLog
from stock_rebalancer.classifier import StockClassifier
from stock_rebalancer.config import RebalancingConfig
from stock_rebalancer.errors import DataFetchError, PersistenceError
from stock_rebalancer.lifecycle import (
    DynamoDBProposalStore,
    InMemoryProposalStore,
    ProposalLifecycle,
    ProposalStore,
)
from stock_rebalancer.matcher import TransferMatcher, find_overstocked, find_understocked
from stock_rebalancer.models.stock import (
    AnalysisResult,
    AnalysisRun,
    BalancingRatePoint,
    LifecycleCommand,
    ProposalStatus,
    ShopPerformance,
    Snapshot,
    TransferHistoryEntry,
    TransferProposal,
)
from stock_rebalancer.reports import (
    ALL,
    balancing_rate_history,
    filter_transfer_history,
    shop_performance,
    transfer_history,
)
from stock_rebalancer.store import BOTO_CONFIG, DynamoDBStockStore, StockStore, to_native

logger = logging.getLogger(__name__)


class InMemoryRunHistory:
    def __init__(self) -> None:
        self._runs: list[AnalysisRun] = []
        self._lock = threading.Lock()

    def add(self, run: AnalysisRun) -> None:
        with self._lock:
            self._runs.append(run)

    def list(self) -> list[AnalysisRun]:
        return sorted(self._runs, key=lambda r: r.run_at)


class DynamoDBRunHistory:
    def __init__(self, table: Any):
        self._table = table

    def add(self, run: AnalysisRun) -> None:
        item = {
            k: Decimal(str(v)) if isinstance(v, float) else v
            for k, v in run.to_item().items()
        }
        self._table.put_item(Item=item)

    def list(self) -> list[AnalysisRun]:
        items: list[dict] = []
        kwargs: dict[str, Any] = {}
        try:
            while True:
                resp = self._table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as e:
            raise DataFetchError("analysis_runs", e) from e
        runs = [AnalysisRun.from_item(to_native(i)) for i in items]
        return sorted(runs, key=lambda r: r.run_at)


class WeeklyAnalysisService:
    """Entry point used by the presentation layer."""

    COMPONENT = "WeeklyAnalysis"

    def __init__(
        self,
        store: StockStore,
        proposal_store: Optional[ProposalStore] = None,
        run_history: Optional[Any] = None,
        config: Optional[RebalancingConfig] = None,
        decision_log: Optional[DecisionLog] = None,
        matcher: Optional[TransferMatcher] = None,
    ):
        self.config = config or RebalancingConfig()
        self.store = store
        self.proposal_store = proposal_store or InMemoryProposalStore()
        self.run_history = run_history or InMemoryRunHistory()
        self.decision_log = decision_log or DecisionLog()
        self.classifier = StockClassifier(self.config)
        self.matcher = matcher or TransferMatcher(decision_log=self.decision_log)
        self.lifecycle = ProposalLifecycle(self.proposal_store, self.decision_log)
        self._last_records: list = []
        self._last_snapshot: Optional[Snapshot] = None

    @classmethod
    def from_env(
        cls, config: Optional[RebalancingConfig] = None, dynamodb_resource: Optional[Any] = None
    ) -> "WeeklyAnalysisService":
        """DynamoDB-backed service built from environment configuration."""
        config = config or RebalancingConfig.from_env()
        dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=config.region, config=BOTO_CONFIG
        )
        return cls(
            store=DynamoDBStockStore(config, dynamodb_resource=dynamodb),
            proposal_store=DynamoDBProposalStore(dynamodb.Table(config.proposals_table)),
            run_history=DynamoDBRunHistory(dynamodb.Table(config.runs_table)),
            config=config,
            decision_log=DecisionLog(dynamodb.Table(config.decisions_table)),
        )

    # --- Analysis ---

    def run_analysis(self) -> AnalysisResult:
        """Run a full analysis; DataFetchError aborts it with nothing persisted."""
        run_id = f"RUN-{uuid.uuid4().hex[:8].upper()}"
        try:
            snapshot = self.store.load_snapshot()
        except DataFetchError:
            logger.error("Analysis %s aborted: snapshot fetch failed", run_id)
            raise

        records, rejected = self.classifier.classify_snapshot(snapshot)
        summaries = summarize_by_category(
            records, threshold=self.config.significance_threshold
        )
        matrix = shop_category_matrix(records)
        percentages = global_percentages(records)
        overstocked = find_overstocked(records)
        understocked = find_understocked(records)
        categories = {r.article_id: r.category for r in records}
        proposals = self.matcher.match_items(overstocked, understocked, categories)

        result = AnalysisResult(
            run_id=run_id,
            records=records,
            category_summaries=summaries,
            shop_category_matrix=matrix,
            global_percentages=percentages,
            overstocked_items=overstocked,
            understocked_items=understocked,
            transfer_proposals=proposals,
            rejected_entries=rejected,
        )

        # Commit only once everything has been computed
        run = AnalysisRun(
            run_id=run_id,
            run_at=result.generated_at,
            total_items=percentages.total_items,
            rupture_percentage=percentages.rupture_percentage,
            overstock_percentage=percentages.overstock_percentage,
            normal_percentage=percentages.normal_percentage,
            proposal_count=len(proposals),
        )
        self._commit(run, proposals)
        self._last_records = records
        self._last_snapshot = snapshot

        self.decision_log.record(
            component=self.COMPONENT,
            decision_type="weekly_analysis",
            input_data={
                "shops": len(snapshot.shops),
                "articles": len(snapshot.articles),
                "entries": len(snapshot.entries),
            },
            output_data={
                "run_id": run_id,
                "classified": len(records),
                "rejected": len(rejected),
                "overstocked": len(overstocked),
                "understocked": len(understocked),
                "proposals": len(proposals),
            },
            reasoning=(
                f"Rupture {percentages.rupture_percentage:.1f}%, "
                f"overstock {percentages.overstock_percentage:.1f}%, "
                f"{len(proposals)} transfers proposed."
            ),
        )
        return result

    def _commit(self, run: AnalysisRun, proposals: list[TransferProposal]) -> None:
        """Write the proposals then the run summary; undo the proposals if either fails."""
        try:
            self.proposal_store.add_many(proposals)
            self.run_history.add(run)
        except (ClientError, BotoCoreError) as e:
            logger.error("Analysis %s commit failed: %s", run.run_id, e)
            self._rollback(run.run_id, proposals)
            raise PersistenceError(run.run_id, "commit", e) from e

    def _rollback(self, run_id: str, proposals: list[TransferProposal]) -> None:
        try:
            self.proposal_store.remove_many([p.proposal_id for p in proposals])
        except (ClientError, BotoCoreError) as e:
            # the commit error still propagates from _commit
            logger.error("Analysis %s rollback failed, proposals may remain: %s", run_id, e)

    # --- Proposal lifecycle ---

    def transition(
        self, proposal_id: str, command: Union[LifecycleCommand, str]
    ) -> TransferProposal:
        return self.lifecycle.transition(proposal_id, command)

    def list_proposals(self, status: Optional[str] = None) -> list[TransferProposal]:
        return self.proposal_store.list(ProposalStatus(status) if status else None)

    # --- Reports ---

    def transfer_history(self) -> list[TransferHistoryEntry]:
        return transfer_history(self.proposal_store.list(), self._last_snapshot)

    def filter_transfer_history(
        self,
        records: Optional[list[TransferHistoryEntry]] = None,
        filters: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> list[TransferHistoryEntry]:
        filters = filters or {}
        if records is None:
            records = self.transfer_history()
        return filter_transfer_history(
            records,
            period=filters.get("period", ALL),
            status=filters.get("status", ALL),
            category=filters.get("category", ALL),
            now=now,
        )

    def balancing_rate_history(self) -> list[BalancingRatePoint]:
        return balancing_rate_history(self.run_history.list())

    def shop_performance(self) -> list[ShopPerformance]:
        """Per-shop rates from the latest run of this service."""
        return shop_performance(self._last_records)

    def process(self) -> dict:
        """Run the weekly analysis and return a short summary."""
        result = self.run_analysis()
        return {
            "run_id": result.run_id,
            "proposals": len(result.transfer_proposals),
            "rejected_entries": len(result.rejected_entries),
            "global": result.global_percentages.to_dict(),
        }
