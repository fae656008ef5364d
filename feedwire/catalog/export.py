"""Feed file export helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import boto3
from sqlalchemy.engine import Engine

from feedwire.catalog.feeds import FeedDocument, FeedGenerationService
from feedwire.catalog.models import FeedFormat
from feedwire.catalog.serializers import CONTENT_TYPES
from feedwire.utils.dates import format_date, today_in_tz

logger = logging.getLogger(__name__)

OUTPUT_DIR = Path(os.environ.get("FEED_OUTPUT_DIR", "artifacts/feeds"))

EXTENSIONS = {content: fmt.value for fmt, content in CONTENT_TYPES.items()}


def export_feed(
    engine: Engine,
    slug: str,
    *,
    upload: bool = False,
    service: FeedGenerationService | None = None,
) -> Path:
    """Generate ``slug`` and write it to ``OUTPUT_DIR``; optionally push it to S3."""
    service = service or FeedGenerationService(engine)
    document = service.generate(slug)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    file_path = OUTPUT_DIR / export_filename(document)
    file_path.write_text(document.body, encoding="utf-8")
    logger.info("Exported feed %s to %s (%s bytes)", slug, file_path, document.size_bytes)
    if upload:
        _upload_to_s3(file_path, document.content_type)
    return file_path


def export_filename(document: FeedDocument) -> str:
    extension = EXTENSIONS.get(document.content_type, FeedFormat.JSON.value)
    return f"catalog-{document.slug}-{format_date(today_in_tz())}.{extension}"


def _upload_to_s3(path: Path, content_type: str) -> None:
    bucket = os.environ.get("AWS_S3_BUCKET")
    if not bucket:
        logger.info("AWS_S3_BUCKET not set; skipping upload of %s", path.name)
        return
    endpoint = os.environ.get("AWS_S3_ENDPOINT")
    session = boto3.session.Session()
    client = session.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
    )
    client.upload_file(str(path), bucket, path.name, ExtraArgs={"ContentType": content_type})
