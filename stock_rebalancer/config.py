"""Engine configuration, read from the environment (see env_loader)."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_REGION = "us-west-2"

# Share of a category's rows above which rupture/overstock is "significant"
SIGNIFICANCE_THRESHOLD = 0.20

UNCATEGORIZED_LABEL = "Non catégorisé"
UNSPECIFIED_LABEL = "Non spécifié"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RebalancingConfig:
    region: str = DEFAULT_REGION
    shops_table: str = "Shops"
    articles_table: str = "Articles"
    stock_table: str = "Stock"
    proposals_table: str = "TransferProposals"
    runs_table: str = "AnalysisRuns"
    decisions_table: str = "Decisions"
    significance_threshold: float = SIGNIFICANCE_THRESHOLD
    uncategorized_label: str = UNCATEGORIZED_LABEL
    unspecified_label: str = UNSPECIFIED_LABEL
    # True: an invalid stock range aborts the run instead of being excluded
    strict_ranges: bool = False

    @classmethod
    def from_env(cls) -> "RebalancingConfig":
        return cls(
            region=os.environ.get("AWS_DEFAULT_REGION", DEFAULT_REGION),
            shops_table=os.environ.get("REBALANCER_SHOPS_TABLE", "Shops"),
            articles_table=os.environ.get("REBALANCER_ARTICLES_TABLE", "Articles"),
            stock_table=os.environ.get("REBALANCER_STOCK_TABLE", "Stock"),
            proposals_table=os.environ.get("REBALANCER_PROPOSALS_TABLE", "TransferProposals"),
            runs_table=os.environ.get("REBALANCER_RUNS_TABLE", "AnalysisRuns"),
            decisions_table=os.environ.get("REBALANCER_DECISIONS_TABLE", "Decisions"),
            significance_threshold=float(
                os.environ.get("REBALANCER_SIGNIFICANCE_THRESHOLD", SIGNIFICANCE_THRESHOLD)
            ),
            strict_ranges=_env_bool("REBALANCER_STRICT_RANGES", False),
        )

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "shops_table": self.shops_table,
            "articles_table": self.articles_table,
            "stock_table": self.stock_table,
            "proposals_table": self.proposals_table,
            "runs_table": self.runs_table,
            "decisions_table": self.decisions_table,
            "significance_threshold": self.significance_threshold,
            "uncategorized_label": self.uncategorized_label,
            "unspecified_label": self.unspecified_label,
            "strict_ranges": self.strict_ranges,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RebalancingConfig":
        defaults = cls()
        return cls(**{key: data.get(key, getattr(defaults, key)) for key in defaults.to_dict()})
