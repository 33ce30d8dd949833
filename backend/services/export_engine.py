"""
Export Engine

Single place where domain records become downloadable JSON or CSV. Exports
always fetch the full window from the backend instead of reusing whatever
subset a container currently shows.
"""

import csv
import io
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import orjson

from models.monitoring import ExportBlob
from services.fetchers import DomainFetcher
from services.monitoring_client import ValidationError
from utils.logging import get_logger

logger = get_logger("export-engine")

EXPORTABLE_DOMAINS = ("errors", "feedback", "audit_trail", "performance", "maintenance")
EXPORT_FORMATS = {"json": "application/json", "csv": "text/csv"}


def to_json(rows: List[Dict[str, Any]]) -> bytes:
    """Pretty-printed JSON array."""
    return orjson.dumps(rows, option=orjson.OPT_INDENT_2)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return orjson.dumps(value).decode()
    return str(value)


def to_csv(rows: List[Dict[str, Any]]) -> str:
    """
    CSV with a header taken from the first row's keys.

    Every cell is quoted and embedded double quotes are doubled; nested values
    are written as JSON in a single cell. No other escaping is applied.
    """
    if not rows:
        return ""

    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, doublequote=True, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(header)) for header in headers])
    return buffer.getvalue().rstrip("\n")


def export_filename(domain: str, fmt: str, today: Optional[datetime] = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"{domain}_export_{today.date().isoformat()}.{fmt}"


class ExportEngine:
    """Serializes one domain's records for a date window."""

    def __init__(self, fetchers: Dict[str, DomainFetcher], record_limit: int = 10000):
        self.fetchers = fetchers
        self.record_limit = record_limit

    async def export(
        self,
        domain: str,
        start: datetime,
        end: datetime,
        fmt: str = "json",
    ) -> ExportBlob:
        """
        Export `domain` records between `start` and `end`.

        Raises:
            ValidationError: Unsupported domain or format, or an inverted window
            NetworkError, BackendError: The fetch failed
        """
        if domain not in EXPORTABLE_DOMAINS:
            raise ValidationError(f"Unsupported export domain: {domain}")
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt}")
        start, end = _aware(start), _aware(end)
        if end < start:
            raise ValidationError("Export window ends before it starts")

        records = await self._collect(domain, start, end)
        rows = [record.model_dump(mode="json") for record in records]
        content = to_json(rows) if fmt == "json" else to_csv(rows).encode("utf-8")

        logger.info(
            f"Exported {len(rows)} {domain} records",
            extra={"data": {"domain": domain, "format": fmt, "records": len(rows), "bytes": len(content)}}
        )
        return ExportBlob(
            filename=export_filename(domain, fmt),
            content_type=EXPORT_FORMATS[fmt],
            content=content,
        )

    async def _collect(self, domain: str, start: datetime, end: datetime) -> List[Any]:
        if domain == "errors":
            return await self.fetchers["errors"].fetch(start_date=start, end_date=end, limit=self.record_limit)
        if domain == "audit_trail":
            return await self.fetchers["audit"].fetch(start_date=start, end_date=end, limit=self.record_limit)
        if domain == "maintenance":
            return await self.fetchers["maintenance"].fetch(start_date=start, end_date=end)
        if domain == "feedback":
            # The feedback query has no date filter; trim to the window here
            items = await self.fetchers["feedback"].fetch(limit=self.record_limit)
            return [item for item in items if start <= item.created_at <= end]
        hours_back = max(1, math.ceil((end - start).total_seconds() / 3600))
        return [await self.fetchers["performance"].fetch(hours_back=hours_back)]


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
