"""Report Projector unit tests."""

from datetime import datetime

import pytest

from stock_rebalancer.classifier import classify
from stock_rebalancer.models.stock import (
    AnalysisRun,
    Article,
    ClassifiedStock,
    ProposalStatus,
    Shop,
    Snapshot,
    TransferHistoryEntry,
    TransferProposal,
)
from stock_rebalancer.reports import (
    balancing_rate_history,
    filter_stock_rows,
    filter_transfer_history,
    shop_performance,
    transfer_history,
)

NOW = datetime(2024, 5, 31, 12, 0, 0)


def _history() -> list[TransferHistoryEntry]:
    return [
        TransferHistoryEntry("th_001", "2024-05-20", "T-shirt Coton Bleu", "Boutique Paris",
                             "Boutique Marseille", 20, ProposalStatus.RECEIVED, "Hauts"),
        TransferHistoryEntry("th_002", "2024-05-22", "Jean Slim Noir", "Boutique Lyon",
                             "Boutique Nice", 10, ProposalStatus.IN_TRANSIT, "Bas"),
        TransferHistoryEntry("th_003", "2024-05-18", "Robe Été Fleurie", "Boutique Toulouse",
                             "Boutique Bordeaux", 15, ProposalStatus.REJECTED, "Robes"),
        TransferHistoryEntry("th_004", "2024-03-02", "Chaussures de Sport", "Boutique Lille",
                             "Boutique Rennes", 5, ProposalStatus.REJECTED, "Chaussures"),
        TransferHistoryEntry("th_005", "2024-04-30", "Chino Beige", "Boutique Lille",
                             "Boutique Rennes", 7, ProposalStatus.VALIDATED, "Bas"),
        TransferHistoryEntry("th_006", "2024-04-29", "Pantalon Lin", "Boutique Paris",
                             "Boutique Rennes", 3, ProposalStatus.VALIDATED, "Bas"),
    ]


def _ids(records):
    return [r.transfer_id for r in records]


def _row(shop_name: str, current: int, label: str = "T-shirt Coton Bleu", code: str = "ART-0001",
         category: str = "Hauts", sub_category: str = "T-shirts") -> ClassifiedStock:
    return ClassifiedStock(
        shop_id=shop_name.lower(),
        shop_name=shop_name,
        article_id=code,
        article_code=code,
        article_label=label,
        category=category,
        sub_category=sub_category,
        status=classify(current, 10, 20),
        current=current,
        min_stock=10,
        max_stock=20,
    )


class TestFilterTransferHistory:
    """Period, status and category filters combine with AND."""

    def test_all_filters_disabled(self):
        assert len(filter_transfer_history(_history(), now=NOW)) == 6

    def test_status_rejected(self):
        result = filter_transfer_history(_history(), status="rejected", now=NOW)
        assert _ids(result) == ["th_003", "th_004"]
        assert all(r.status == ProposalStatus.REJECTED for r in result)

    def test_status_combined_with_period_and_category(self):
        result = filter_transfer_history(
            _history(), period="last_3_months", status="rejected", category="Robes", now=NOW
        )
        assert _ids(result) == ["th_003"]

    def test_last_month_boundary(self):
        # now - 1 month = 2024-04-30: included; 2024-04-29 excluded
        result = filter_transfer_history(_history(), period="last_month", now=NOW)
        assert _ids(result) == ["th_001", "th_002", "th_003", "th_005"]

    def test_last_three_months(self):
        result = filter_transfer_history(_history(), period="last_3_months", now=NOW)
        assert "th_004" in _ids(result)
        assert len(result) == 6

    def test_category(self):
        result = filter_transfer_history(_history(), category="Bas", now=NOW)
        assert _ids(result) == ["th_002", "th_005", "th_006"]

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            filter_transfer_history(_history(), period="last_week", now=NOW)

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            filter_transfer_history(_history(), status="lost", now=NOW)


class TestBalancingRateHistory:
    def test_monthly_series_in_order(self):
        runs = [
            AnalysisRun("R2", "2024-02-05T08:00:00", 100, 12.0, 18.0, 70.0),
            AnalysisRun("R1", "2024-01-08T08:00:00", 100, 15.0, 20.0, 65.0),
        ]
        points = balancing_rate_history(runs)
        assert [p.month for p in points] == ["Jan 24", "Feb 24"]
        assert points[0].rupture == 15.0
        assert points[1].normal == 70.0

    def test_latest_run_of_month_wins(self):
        runs = [
            AnalysisRun("R1", "2024-03-04T08:00:00", 100, 10.0, 15.0, 75.0),
            AnalysisRun("R2", "2024-03-25T08:00:00", 100, 8.0, 12.0, 80.0),
        ]
        points = balancing_rate_history(runs)
        assert len(points) == 1
        assert points[0].normal == 80.0

    def test_empty(self):
        assert balancing_rate_history([]) == []


class TestShopPerformance:
    def test_rates_per_shop(self):
        records = [
            _row("Boutique Paris", 5),
            _row("Boutique Paris", 15),
            _row("Boutique Paris", 15),
            _row("Boutique Paris", 25),
            _row("Boutique Lyon", 15),
        ]
        perf = shop_performance(records)
        assert [p.shop_name for p in perf] == ["Boutique Lyon", "Boutique Paris"]
        assert perf[0].normal_rate == 100.0
        assert perf[1].rupture_rate == 25.0
        assert perf[1].overstock_rate == 25.0
        assert perf[1].normal_rate == 50.0


class TestTransferHistory:
    def test_projection_uses_snapshot_category(self):
        proposal = TransferProposal(
            proposal_id="TRF-0001", article_id="A1", article_label="T-shirt Coton Bleu",
            source_shop_id="S1", source_shop_name="Boutique Paris",
            destination_shop_id="S2", destination_shop_name="Boutique Nice",
            quantity=20, reason="r", status=ProposalStatus.VALIDATED,
            created_at="2024-05-20T10:00:00",
        )
        snapshot = Snapshot(
            shops=(Shop("S1", "Boutique Paris"), Shop("S2", "Boutique Nice")),
            articles=(Article("A1", "ART-0001", "T-shirt Coton Bleu", category="Hauts"),),
            entries=(),
        )
        entry = transfer_history([proposal], snapshot)[0]
        assert entry.date == "2024-05-20"
        assert entry.category == "Hauts"
        assert entry.to_dict()["status"] == "validated"

    def test_date_is_creation_day_after_status_changes(self):
        proposal = TransferProposal(
            proposal_id="TRF-0002", article_id="A1", article_label="T-shirt Coton Bleu",
            source_shop_id="S1", source_shop_name="Boutique Paris",
            destination_shop_id="S2", destination_shop_name="Boutique Nice",
            quantity=5, reason="r", status=ProposalStatus.RECEIVED, category="Hauts",
            created_at="2024-03-10T10:00:00", updated_at="2024-05-20T09:00:00",
        )
        entry = transfer_history([proposal])[0]
        assert entry.date == "2024-03-10"
        assert filter_transfer_history([entry], period="last_month", now=NOW) == []

    def test_missing_names_filled_from_snapshot(self):
        proposal = TransferProposal.from_item({
            "proposal_id": "TRF-0003", "article_id": "A9", "source_shop_id": "S1",
            "destination_shop_id": "S7", "quantity": 4, "created_at": "2024-05-01T00:00:00",
        })
        snapshot = Snapshot(shops=(Shop("S1", "Boutique Paris"),), articles=(), entries=())
        entry = transfer_history([proposal], snapshot)[0]
        assert entry.source_shop == "Boutique Paris"
        assert entry.destination_shop == "S7"
        assert entry.category is None


class TestFilterStockRows:
    """Shop detail page filters."""

    def _rows(self):
        return [
            _row("Boutique Paris", 5, "T-shirt Coton Bleu", "ART-0001", "Hauts", "T-shirts"),
            _row("Boutique Paris", 25, "Jean Slim Noir", "ART-0002", "Bas", "Jeans"),
            _row("Boutique Paris", 15, "Chino Beige", "ART-0003", "Bas", "Pantalons"),
        ]

    def test_no_filter(self):
        assert len(filter_stock_rows(self._rows())) == 3

    def test_category_and_level(self):
        result = filter_stock_rows(self._rows(), category="Bas", stock_level="overstock")
        assert [r.article_label for r in result] == ["Jean Slim Noir"]

    def test_sub_category(self):
        result = filter_stock_rows(self._rows(), sub_category="Pantalons")
        assert [r.article_code for r in result] == ["ART-0003"]

    def test_search_label_and_code_case_insensitive(self):
        assert [r.article_code for r in filter_stock_rows(self._rows(), search="jean")] == ["ART-0002"]
        assert [r.article_code for r in filter_stock_rows(self._rows(), search="art-0001")] == ["ART-0001"]
