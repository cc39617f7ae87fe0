from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, List

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from accessory_admin.core.db import get_db
from accessory_admin.core.reporting import (
    ReportUnavailable,
    get_analytics_summary,
    get_sales_report,
)
from accessory_admin.core.repositories import SearchLogRepository
from accessory_admin.core.schemas import SearchLogCreate

router = APIRouter(prefix="/analytics")

EXPORTS = {
    # report key -> (section of the sales report, sheet name, column headers)
    "trend": ("trend", "Sales Trend", {"date": "Period", "sales": "Sales", "orders": "Orders"}),
    "categories": ("byCategory", "Sales by Category", {"category": "Category", "sales": "Sales"}),
    "weekdays": ("daily", "Sales by Weekday", {"day": "Day", "sales": "Sales", "orders": "Orders"}),
}


@router.get("/summary")
async def analytics_summary(time_range: str = Query("30d", alias="range"), db=Depends(get_db)) -> Dict[str, Any]:
    """KPI tiles for the analytics screen: totals for the range and change vs the window before it."""
    try:
        return await get_analytics_summary(db, time_range)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/sales")
async def sales_report(time_range: str = Query("30d", alias="range"), db=Depends(get_db)) -> Dict[str, Any]:
    """
    Trend, category and weekday series for the sales charts.

    Unknown range tokens fall back to 30 days. When Firestore cannot be read
    the payload is mock data and ``isMock`` is true.
    """
    try:
        return await get_sales_report(db, time_range)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/export/{report}")
async def export_sales_report(report: str, time_range: str = Query("30d", alias="range"), db=Depends(get_db)):
    """
    Export one sales series as an Excel file.

    Valid report values:
      - trend
      - categories
      - weekdays
    """
    if report not in EXPORTS:
        raise HTTPException(404, f"Unknown report: {report}")
    section, sheet_name, columns = EXPORTS[report]

    try:
        data = await get_sales_report(db, time_range)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    df = pd.DataFrame(data[section], columns=list(columns)).rename(columns=columns)

    output = BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        workbook = writer.book
        worksheet = writer.sheets[sheet_name]
        currency_format = workbook.add_format({"num_format": "#,##0.00"})
        worksheet.set_column("A:A", 18)
        worksheet.set_column("B:B", 15, currency_format)
        worksheet.set_column("C:C", 10)
    output.seek(0)

    filename = f"{report}_{data['timeRange']}_{datetime.now(timezone.utc).strftime('%Y%m%d')}.xlsx"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if data["isMock"]:
        headers["X-Report-Mock"] = "1"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )


@router.post("/search-terms")
async def log_search_term(body: SearchLogCreate, db=Depends(get_db)):
    log_id = await SearchLogRepository(db).log(body.term, body.userId)
    return {"id": log_id}


@router.get("/search-terms")
async def most_searched_terms(limit: int = 10, db=Depends(get_db)) -> List[Dict[str, Any]]:
    return await SearchLogRepository(db).most_searched(limit)
