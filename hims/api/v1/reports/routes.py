from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any

from hims.api.deps import DateRange, date_range_params
from hims.api.v1.common import DataResponse, ListResponse, listing, ok
from hims.api.v1.downloads import ExportFormat, file_response
from hims.api.v1.reports.schemas import DashboardStats, ReportCategory, ReportResult
from hims.core.permissions import Permissions, get_current_user, require_permissions
from hims.domain.reports.service import DashboardService, ReportService
from hims.infrastructure.database import get_db

dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
router = APIRouter(prefix="/reports", tags=["Reports"])

can_read = require_permissions(Permissions.REPORTS_READ)


@dashboard_router.get("/stats", response_model=DataResponse[DashboardStats])
async def dashboard_stats(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(get_current_user)):
    return ok(await DashboardService(db).get_stats())


@router.get("", response_model=ListResponse[ReportCategory])
async def list_reports(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return listing(ReportService(db).catalogue())


@router.get("/{report_id}", response_model=DataResponse[ReportResult])
async def run_report(
    report_id: str,
    format: ExportFormat = Query(ExportFormat.JSON),
    dates: DateRange = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    report, rows = await ReportService(db).run(report_id, start=start, end=end)
    if format != ExportFormat.JSON:
        return file_response(rows, format, report.id.replace("-", "_"), report.name, list(report.columns))
    return ok({
        "id": report.id,
        "name": report.name,
        "category": report.category,
        "columns": list(report.columns),
        "count": len(rows),
        "rows": rows,
    })
