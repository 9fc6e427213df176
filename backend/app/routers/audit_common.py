"""Response rendering shared by the per-kind audit endpoints."""

from typing import Optional

from fastapi.responses import StreamingResponse

from app.services.audit_query_service import build_audit_query, export_audits_csv, list_audits
from app.services.subject_registry import SubjectKind
from app.utils import utcnow


async def render_audit_listing(
    kind: SubjectKind,
    *,
    action: Optional[str],
    by_name: Optional[str],
    subject_id: Optional[str],
    start: Optional[str],
    end: Optional[str],
    page: int,
    page_size: Optional[int],
    sort: str,
    export: Optional[str],
    export_all: bool,
):
    query = build_audit_query(
        action=action,
        by_name=by_name,
        subject_id=subject_id,
        start=start,
        end=end,
        page=page,
        page_size=page_size,
        sort=sort,
        export=export,
        export_all=export_all,
    )
    if not query.export_csv:
        return await list_audits(kind, query)

    text, row_count = await export_audits_csv(kind, query)
    filename = f"wathii-{kind.key}-audit-{utcnow().strftime('%Y%m%d')}.csv"
    return StreamingResponse(
        iter([text]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "X-Total-Count": str(row_count),
        },
    )
