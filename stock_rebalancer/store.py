"""Read access to shops, articles and stock entries.

A run reads the three collections completely before any computation
starts; a failure on any of them raises DataFetchError and no snapshot
is returned.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from stock_rebalancer.config import RebalancingConfig
from stock_rebalancer.errors import DataFetchError
from stock_rebalancer.models.stock import Article, Shop, Snapshot, StockEntry

logger = logging.getLogger(__name__)

BOTO_CONFIG = Config(retries={"max_attempts": 3})


def to_native(obj):
    """Convert DynamoDB Decimals (recursively) to int / float."""
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: to_native(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_native(i) for i in obj]
    return obj


def shop_from_item(item: dict) -> Shop:
    return Shop(
        shop_id=str(item["id"]),
        name=str(item["name"]),
        address=item.get("address"),
    )


def article_from_item(item: dict) -> Article:
    return Article(
        article_id=str(item["id"]),
        code=str(item["code"]),
        label=str(item["label"]),
        brand=item.get("brand"),
        category=item.get("category"),
        sub_category=item.get("sub_category"),
    )


def entry_from_item(item: dict) -> StockEntry:
    return StockEntry(
        entry_id=str(item["id"]),
        shop_id=str(item["shop_id"]),
        article_id=str(item["article_id"]),
        current=int(item["current"]),
        min_stock=int(item["min"]),
        max_stock=int(item["max"]),
    )


class StockStore(Protocol):
    def load_snapshot(self) -> Snapshot: ...


class InMemoryStockStore:
    """Stock store backed by plain lists (demo data, tests)."""

    def __init__(
        self,
        shops: Iterable[Shop] = (),
        articles: Iterable[Article] = (),
        entries: Iterable[StockEntry] = (),
    ):
        self.shops = list(shops)
        self.articles = list(articles)
        self.entries = list(entries)

    @classmethod
    def from_items(cls, shops: list[dict], articles: list[dict], stock: list[dict]) -> "InMemoryStockStore":
        """Build from raw store items (the JSON seed files use this shape)."""
        return cls(
            shops=[shop_from_item(i) for i in shops],
            articles=[article_from_item(i) for i in articles],
            entries=[entry_from_item(i) for i in stock],
        )

    def load_snapshot(self) -> Snapshot:
        return Snapshot(
            shops=tuple(self.shops),
            articles=tuple(self.articles),
            entries=tuple(self.entries),
        )


class DynamoDBStockStore:
    """Reads the Shops, Articles and Stock tables with full scans."""

    def __init__(
        self,
        config: Optional[RebalancingConfig] = None,
        dynamodb_resource: Optional[Any] = None,
    ):
        self.config = config or RebalancingConfig()
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=self.config.region, config=BOTO_CONFIG
        )

    def _scan_all(self, table_name: str) -> list[dict]:
        table = self.dynamodb.Table(table_name)
        items: list[dict] = []
        kwargs: dict[str, Any] = {}
        try:
            while True:
                resp = table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except (ClientError, BotoCoreError) as e:
            logger.error("DynamoDB scan failed [%s]: %s", table_name, e)
            raise DataFetchError(table_name, e) from e
        return [to_native(i) for i in items]

    def load_snapshot(self) -> Snapshot:
        shop_items = self._scan_all(self.config.shops_table)
        article_items = self._scan_all(self.config.articles_table)
        stock_items = self._scan_all(self.config.stock_table)

        try:
            snapshot = Snapshot(
                shops=tuple(shop_from_item(i) for i in shop_items),
                articles=tuple(article_from_item(i) for i in article_items),
                entries=tuple(entry_from_item(i) for i in stock_items),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataFetchError("snapshot", e) from e

        logger.info(
            "Snapshot loaded: %d shops, %d articles, %d stock entries",
            len(snapshot.shops), len(snapshot.articles), len(snapshot.entries),
        )
        return snapshot
