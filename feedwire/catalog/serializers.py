"""JSON, CSV and XML renderers for formatted feed records."""

from __future__ import annotations

import csv
import io
import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Sequence
from xml.sax.saxutils import escape

from feedwire.catalog.models import FeedFormat, Platform
from feedwire.errors import ConfigurationError

Serializer = Callable[..., str]

CONTENT_TYPES: dict[FeedFormat, str] = {
    FeedFormat.JSON: "application/json; charset=utf-8",
    FeedFormat.CSV: "text/csv; charset=utf-8",
    FeedFormat.XML: "application/xml; charset=utf-8",
}

XML_PROLOG = '<?xml version="1.0" encoding="UTF-8"?>'
GOOGLE_NAMESPACE = "http://base.google.com/ns/1.0"
LIST_DELIMITER = "|"

_XML_NAME_RE = re.compile(r"[^\w.-]+")
_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return LIST_DELIMITER.join(_text(item) for item in value)
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and not value)


def to_json(records: Sequence[dict[str, Any]], **_: Any) -> str:
    return json.dumps(list(records), indent=2, ensure_ascii=False, default=_json_default)


def to_csv(records: Sequence[dict[str, Any]], **_: Any) -> str:
    """Header from the first record's keys; every data field quoted."""
    if not records:
        return ""
    headers = list(records[0].keys())
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(headers)
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        writer.writerow([_text(record.get(header)) for header in headers])
    return buffer.getvalue()[:-1]


def escape_xml(value: str) -> str:
    return escape(value, _XML_ENTITIES)


def cdata(value: str) -> str:
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def xml_name(key: str) -> str:
    name = _XML_NAME_RE.sub("_", key).strip("_")
    if not name or not (name[0].isalpha() or name[0] == "_"):
        name = f"_{name}"
    return name


def _xml_fields(record: dict[str, Any], indent: str, prefix: str = "") -> list[str]:
    lines = []
    for key, value in record.items():
        if _is_empty(value):
            continue
        tag = prefix + xml_name(key)
        lines.append(f"{indent}<{tag}>{cdata(_text(value))}</{tag}>")
    return lines


def to_xml(
    records: Sequence[dict[str, Any]],
    *,
    platform: Platform | str = Platform.GENERIC,
    channel_link: str = "",
    channel_title: str = "Product Feed",
    channel_description: str = "Product catalog feed",
    **_: Any,
) -> str:
    lines = [XML_PROLOG]
    if Platform.parse(platform) is Platform.GOOGLE:
        lines.append(f'<rss version="2.0" xmlns:g="{GOOGLE_NAMESPACE}">')
        lines.append("  <channel>")
        lines.append(f"    <title>{escape_xml(channel_title)}</title>")
        lines.append(f"    <link>{escape_xml(channel_link)}</link>")
        lines.append(f"    <description>{escape_xml(channel_description)}</description>")
        for record in records:
            lines.append("    <item>")
            lines.extend(_xml_fields(record, "      ", prefix="g:"))
            lines.append("    </item>")
        lines.append("  </channel>")
        lines.append("</rss>")
    else:
        lines.append("<products>")
        for record in records:
            lines.append("  <product>")
            lines.extend(_xml_fields(record, "    "))
            lines.append("  </product>")
        lines.append("</products>")
    return "\n".join(lines)


SERIALIZERS: dict[FeedFormat, Serializer] = {
    FeedFormat.JSON: to_json,
    FeedFormat.CSV: to_csv,
    FeedFormat.XML: to_xml,
}

_missing = [fmt.value for fmt in FeedFormat if fmt not in SERIALIZERS or fmt not in CONTENT_TYPES]
if _missing:
    raise ConfigurationError(f"No serializer registered for: {', '.join(_missing)}")


def content_type(feed_format: FeedFormat | str) -> str:
    return CONTENT_TYPES[FeedFormat.parse(feed_format)]


def serialize(
    feed_format: FeedFormat | str,
    records: Sequence[dict[str, Any]],
    *,
    platform: Platform | str = Platform.GENERIC,
    channel_link: str = "",
) -> str:
    serializer = SERIALIZERS[FeedFormat.parse(feed_format)]
    return serializer(records, platform=platform, channel_link=channel_link)
