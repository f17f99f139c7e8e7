"""Creates the DynamoDB tables and loads the demo data.

Usage:
    python -m data_layer.scripts.setup_aws              # create and load
    python -m data_layer.scripts.setup_aws --delete     # delete everything
    python -m data_layer.scripts.setup_aws --region eu-west-1
"""
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from data_layer.generators.generators import generate_all
from data_layer.infrastructure.dynamodb_setup import create_tables, delete_tables, load_all_data


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
    delete_mode = False

    args = sys.argv[1:] if argv is None else argv
    for i, arg in enumerate(args):
        if arg == "--delete":
            delete_mode = True
        elif arg == "--region" and i + 1 < len(args):
            region = args[i + 1]

    if delete_mode:
        print("🗑️  Deleting DynamoDB tables...\n")
        delete_tables(region)
        print("\n✅ All tables deleted!")
        return 0

    print("=" * 60)
    print("🚀 Stock rebalancing - AWS setup")
    print(f"   Region: {region}")
    print("=" * 60)

    print("\n📊 STEP 1: DynamoDB tables")
    print("-" * 40)
    created = create_tables(region)
    print(f"   {len(created)} tables created")

    print("\n📦 STEP 2: Demo data")
    print("-" * 40)
    generate_all()

    print("\n📤 STEP 3: Loading")
    print("-" * 40)
    loaded = load_all_data(region=region)
    for table, count in loaded.items():
        print(f"   {table}: {count} items")

    print("\n" + "=" * 60)
    print("✅ AWS setup ready!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
