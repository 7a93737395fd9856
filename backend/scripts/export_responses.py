import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from response_tracker.config import LOG_LEVEL, RESPONSE_TRACKER_DB_URL  # noqa: E402
from response_tracker.db import make_engine  # noqa: E402
from response_tracker.services.csv_export import export_csv  # noqa: E402
from response_tracker.services.store import ResponseStore  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Export emergency responses and manual points to CSV.")
    parser.add_argument("--db-url", default=RESPONSE_TRACKER_DB_URL, help="SQLAlchemy database URL.")
    parser.add_argument(
        "--output",
        default=None,
        help="Destination CSV path (defaults to the system temp directory).",
    )
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL)

    store = ResponseStore(make_engine(args.db_url))
    try:
        result = export_csv(store, args.output)
    finally:
        store.engine.dispose()

    if not result:
        print(result.error.message, file=sys.stderr)
        sys.exit(1)

    print(f"Wrote {result.value}")


if __name__ == "__main__":
    main()
