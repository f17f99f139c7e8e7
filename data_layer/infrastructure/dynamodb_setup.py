"""DynamoDB table creation and seed data loading.

6 tables: Shops, Articles, Stock, TransferProposals, AnalysisRuns, Decisions
"""
import json
import logging
import os
import sys
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
import env_loader  # noqa: F401

from stock_rebalancer.store import BOTO_CONFIG

logger = logging.getLogger(__name__)

REGION = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")

TABLE_DEFINITIONS = [
    {
        "TableName": "Shops",
        "KeySchema": [
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Articles",
        "KeySchema": [
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "code", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "CodeIndex",
                "KeySchema": [
                    {"AttributeName": "code", "KeyType": "HASH"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Stock",
        "KeySchema": [
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "shop_id", "AttributeType": "S"},
            {"AttributeName": "article_id", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "ShopArticleIndex",
                "KeySchema": [
                    {"AttributeName": "shop_id", "KeyType": "HASH"},
                    {"AttributeName": "article_id", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "TransferProposals",
        "KeySchema": [
            {"AttributeName": "proposal_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "proposal_id", "AttributeType": "S"},
            {"AttributeName": "status", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "StatusTimeIndex",
                "KeySchema": [
                    {"AttributeName": "status", "KeyType": "HASH"},
                    {"AttributeName": "created_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "AnalysisRuns",
        "KeySchema": [
            {"AttributeName": "run_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "run_id", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Decisions",
        "KeySchema": [
            {"AttributeName": "decision_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "decision_id", "AttributeType": "S"},
            {"AttributeName": "component", "AttributeType": "S"},
            {"AttributeName": "timestamp", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "ComponentTimeIndex",
                "KeySchema": [
                    {"AttributeName": "component", "KeyType": "HASH"},
                    {"AttributeName": "timestamp", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
]

# seed file -> table
SEED_FILES = {
    "Shops": "shops.json",
    "Articles": "articles.json",
    "Stock": "stock.json",
}


def create_tables(region: str = REGION, client: Optional[Any] = None) -> list[str]:
    """Create every missing table; returns the names that were created."""
    dynamodb = client or boto3.client("dynamodb", region_name=region, config=BOTO_CONFIG)
    created = []

    for table_def in TABLE_DEFINITIONS:
        table_name = table_def["TableName"]
        try:
            dynamodb.describe_table(TableName=table_name)
            logger.info("%s already exists, skipping", table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceNotFoundException":
                raise
            logger.info("Creating %s", table_name)
            dynamodb.create_table(**table_def)
            waiter = dynamodb.get_waiter("table_exists")
            waiter.wait(TableName=table_name)
            created.append(table_name)

    return created


def load_data_to_table(
    table_name: str, data: list, region: str = REGION, resource: Optional[Any] = None
) -> int:
    """Batch-write items into a table."""
    dynamodb = resource or boto3.resource("dynamodb", region_name=region, config=BOTO_CONFIG)
    table = dynamodb.Table(table_name)
    with table.batch_writer() as batch:
        for item in data:
            batch.put_item(Item=item)
    logger.info("%s: %d items loaded", table_name, len(data))
    return len(data)


def _table_has_data(table_name: str, region: str = REGION, client: Optional[Any] = None) -> bool:
    dynamodb = client or boto3.client("dynamodb", region_name=region, config=BOTO_CONFIG)
    resp = dynamodb.scan(TableName=table_name, Limit=1, Select="COUNT")
    return resp.get("Count", 0) > 0


def load_all_data(
    data_dir: str = "data_layer/data",
    region: str = REGION,
    client: Optional[Any] = None,
    resource: Optional[Any] = None,
) -> dict[str, int]:
    """Load the seed JSON files, skipping tables that already hold data."""
    loaded = {}
    for table_name, filename in SEED_FILES.items():
        if _table_has_data(table_name, region, client):
            logger.info("%s already has data, skipping", table_name)
            continue
        with open(os.path.join(data_dir, filename), "r", encoding="utf-8") as f:
            loaded[table_name] = load_data_to_table(table_name, json.load(f), region, resource)
    return loaded


def delete_tables(region: str = REGION, client: Optional[Any] = None) -> None:
    """Delete every table (use with care)."""
    dynamodb = client or boto3.client("dynamodb", region_name=region, config=BOTO_CONFIG)
    for table_def in TABLE_DEFINITIONS:
        table_name = table_def["TableName"]
        try:
            dynamodb.delete_table(TableName=table_name)
            logger.info("%s deleted", table_name)
        except ClientError:
            logger.info("%s not found, skipping", table_name)
