"""
backend/app/services/audit_query_service.py

Purpose:
    Filterable, offset-paginated, sortable reads and CSV export over the
    per-kind audit collections. Every read first sweeps "deleted" rows older
    than the retention window; subject documents are never touched by the
    sweep.

Dependencies:
    - app.services.subject_registry
    - app.config
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional

from app.config import settings
from app.models.audit import AuditAction, AuditQuery
from app.services.audit_service import audit_to_wire
from app.services.subject_registry import SubjectKind
from app.utils import parse_utc, utcnow

logger = logging.getLogger("wathii.audit_query")

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class AuditQueryError(ValueError):
    """Malformed audit listing parameters. The message is safe to return to the client."""


def _parse_bound(value: Optional[str], *, end_of_day: bool) -> Optional[datetime]:
    if value is None or not str(value).strip():
        return None
    raw = str(value).strip()
    try:
        parsed = parse_utc(raw)
    except ValueError:
        raise AuditQueryError(f"invalid date: {raw!r}") from None
    if end_of_day and _DATE_ONLY_RE.match(raw):
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999000)
    return parsed


def build_audit_query(
    *,
    action: Optional[str] = None,
    by_name: Optional[str] = None,
    subject_id: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    sort: str = "desc",
    export: Optional[str] = None,
    export_all: bool = False,
) -> AuditQuery:
    """Validate raw request parameters. Raises AuditQueryError on malformed input."""
    if page_size is None:
        page_size = settings.AUDIT_PAGE_SIZE_DEFAULT
    if page < 1:
        raise AuditQueryError("page must be >= 1")
    if not 1 <= page_size <= settings.AUDIT_PAGE_SIZE_MAX:
        raise AuditQueryError(f"pageSize must be between 1 and {settings.AUDIT_PAGE_SIZE_MAX}")
    if sort not in ("asc", "desc"):
        raise AuditQueryError("sort must be 'asc' or 'desc'")
    if export is not None and export != "csv":
        raise AuditQueryError("export must be 'csv'")

    start_dt = _parse_bound(start, end_of_day=False)
    end_dt = _parse_bound(end, end_of_day=True)
    if start_dt and end_dt and start_dt > end_dt:
        raise AuditQueryError("start must not be after end")

    return AuditQuery(
        action=(action or "").strip() or None,
        by_name=(by_name or "").strip() or None,
        subject_id=(subject_id or "").strip() or None,
        start=start_dt,
        end=end_dt,
        page=page,
        page_size=page_size,
        sort=sort,
        export_csv=export == "csv",
        export_all=export_all,
    )


def build_mongo_filter(kind: SubjectKind, query: AuditQuery) -> dict[str, Any]:
    mongo_filter: dict[str, Any] = {}
    if query.action:
        mongo_filter["action"] = query.action
    if query.by_name:
        mongo_filter["by_name"] = {"$regex": re.escape(query.by_name), "$options": "i"}
    if query.subject_id:
        mongo_filter[kind.subject_field] = query.subject_id
    if query.start or query.end:
        ts_query: dict[str, Any] = {}
        if query.start:
            ts_query["$gte"] = query.start
        if query.end:
            ts_query["$lte"] = query.end
        mongo_filter["timestamp"] = ts_query
    return mongo_filter


def _sort_spec(query: AuditQuery) -> list[tuple[str, int]]:
    # _id breaks timestamp ties so consecutive pages stay disjoint.
    direction = 1 if query.sort == "asc" else -1
    return [("timestamp", direction), ("_id", direction)]


async def sweep_expired_deletions(kind: SubjectKind) -> int:
    """Drop "deleted" audit rows older than the retention window.

    Housekeeping only: a failure is logged and the read goes on.
    """
    cutoff = utcnow() - timedelta(days=settings.AUDIT_DELETED_RETENTION_DAYS)
    try:
        result = await kind.audits().delete_many(
            {"action": AuditAction.DELETED.value, "timestamp": {"$lt": cutoff}}
        )
    except Exception:
        logger.exception("Audit retention sweep failed for %s", kind.audit_collection)
        return 0
    if result.deleted_count:
        logger.info(
            "Swept %d expired deletion audits from %s", result.deleted_count, kind.audit_collection,
        )
    return result.deleted_count


async def list_audits(kind: SubjectKind, query: AuditQuery) -> dict[str, Any]:
    await sweep_expired_deletions(kind)

    mongo_filter = build_mongo_filter(kind, query)
    total = await kind.audits().count_documents(mongo_filter)
    skip = (query.page - 1) * query.page_size
    docs = (
        await kind.audits()
        .find(mongo_filter)
        .sort(_sort_spec(query))
        .skip(skip)
        .limit(query.page_size)
        .to_list(length=query.page_size)
    )

    return {
        "audits": [audit_to_wire(kind, doc) for doc in docs],
        "total": total,
        "page": query.page,
        "pageSize": query.page_size,
        "sort": query.sort,
    }


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


async def export_audits_csv(kind: SubjectKind, query: AuditQuery) -> tuple[str, int]:
    """Render the filtered set as CSV text. Returns (text, row_count).

    Capped at AUDIT_EXPORT_MAX_ROWS unless export_all is set.
    """
    await sweep_expired_deletions(kind)

    mongo_filter = build_mongo_filter(kind, query)
    cursor = kind.audits().find(mongo_filter).sort(_sort_spec(query))
    if query.export_all:
        docs = await cursor.to_list(length=None)
    else:
        cap = settings.AUDIT_EXPORT_MAX_ROWS
        docs = await cursor.limit(cap).to_list(length=cap)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    header = kind.csv_header
    writer.writerow(header)
    for doc in docs:
        row = audit_to_wire(kind, doc)
        writer.writerow([_csv_value(row.get(column)) for column in header])

    logger.info("Exported %d %s audit rows as CSV", len(docs), kind.key)
    return output.getvalue(), len(docs)


async def list_audit_actions(kind: SubjectKind) -> list[str]:
    actions = await kind.audits().distinct("action")
    return sorted(str(a) for a in actions)
