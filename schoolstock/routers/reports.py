from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.user import User
from schoolstock.schemas.report import ReportExportOut, ReportType
from schoolstock.services.report_service import build_report

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get(
    "/{report_type}/export",
    response_model=ReportExportOut,
    summary="Export a report as CSV",
    responses=error_responses(400, 401, 422, 500),
)
def export_report(
    report_type: ReportType,
    start_date: date | None = Query(default=None, description="Movement report only"),
    end_date: date | None = Query(default=None, description="Movement report only, inclusive"),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must be on or after start_date")

    filename, rows, content = build_report(db, report_type, start_date=start_date, end_date=end_date)
    return ReportExportOut(
        report_type=report_type,
        filename=filename,
        content_type="text/csv",
        row_count=len(rows),
        csv_content=content,
    )
