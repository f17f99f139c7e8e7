"""Central .env loader. Every entry point imports this first."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load the .env at the project root without overriding the real environment
_env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(_env_path, override=False)

os.environ.setdefault("AWS_DEFAULT_REGION", "us-west-2")
