"""Generate catalog feeds to files, optionally uploading them to S3."""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from feedwire.catalog.export import export_feed
from feedwire.db.session import create_engine_from_env
from feedwire.errors import FeedwireError


def main() -> None:
    parser = argparse.ArgumentParser(description="Export catalog feeds by slug.")
    parser.add_argument("slugs", nargs="+", help="Feed slugs to generate.")
    parser.add_argument("--upload", action="store_true", help="Upload files to AWS_S3_BUCKET.")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    engine = create_engine_from_env()
    failed = 0
    for slug in args.slugs:
        try:
            path = export_feed(engine, slug, upload=args.upload)
        except FeedwireError as exc:
            failed += 1
            print(f"{slug}: {exc.message}", file=sys.stderr)
            continue
        print(f"{slug}: {path}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
