from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.dependencies import get_db, get_current_user
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.report import ReportSummary
from taskdesk.services import reports as report_service

router = APIRouter(prefix="/reports", tags=["reports"])

@router.get("/summary", response_model=ReportSummary)
async def get_summary(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await report_service.summary_report(db, current_user)

@router.get("/tasks.csv")
async def export_tasks_csv(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    csv_data = await report_service.generate_csv_report(db, current_user)
    return PlainTextResponse(
        content=csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=tasks.csv"},
    )
