from typing import Literal

from pydantic import BaseModel

ReportType = Literal["INVENTORY_SUMMARY", "LOW_STOCK", "CATEGORY_ANALYSIS", "STOCK_MOVEMENT"]


class ReportExportOut(BaseModel):
    report_type: ReportType
    filename: str
    content_type: str = "text/csv"
    row_count: int
    csv_content: str
