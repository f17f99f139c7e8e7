"""Configuration unit tests."""

from stock_rebalancer.config import SIGNIFICANCE_THRESHOLD, RebalancingConfig


class TestRebalancingConfig:
    def test_defaults(self):
        config = RebalancingConfig()
        assert config.significance_threshold == SIGNIFICANCE_THRESHOLD == 0.20
        assert config.uncategorized_label == "Non catégorisé"
        assert config.strict_ranges is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-3")
        monkeypatch.setenv("REBALANCER_STOCK_TABLE", "StockDev")
        monkeypatch.setenv("REBALANCER_SIGNIFICANCE_THRESHOLD", "0.25")
        monkeypatch.setenv("REBALANCER_STRICT_RANGES", "true")
        config = RebalancingConfig.from_env()
        assert config.region == "eu-west-3"
        assert config.stock_table == "StockDev"
        assert config.significance_threshold == 0.25
        assert config.strict_ranges is True

    def test_dict_round_trip(self):
        config = RebalancingConfig(proposals_table="Proposals", strict_ranges=True)
        assert RebalancingConfig.from_dict(config.to_dict()) == config

    def test_from_dict_fills_missing_keys(self):
        config = RebalancingConfig.from_dict({"region": "eu-west-1"})
        assert config.region == "eu-west-1"
        assert config.shops_table == "Shops"
