import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.models.tasks import TaskStatus
from taskdesk.models.user import User
from taskdesk.schemas.report import CategorySummary, ReportSummary
from taskdesk.services.authorization import Action, require
from taskdesk.services.tasks import visible_tasks_query
from taskdesk.utils.timeutils import as_utc

UNCATEGORIZED = "Uncategorized"

TASK_COLUMNS = [
    "task_id", "title", "status", "priority", "category", "created_by",
    "assignees", "due_date", "created_at", "completed_at",
    "estimated_hours", "actual_hours",
]


async def get_task_dataframe(db: AsyncSession, caller: User) -> pd.DataFrame:
    """One row per task the caller can see."""
    result = await db.execute(visible_tasks_query(caller))
    tasks = result.scalars().unique().all()

    if not tasks:
        return pd.DataFrame(columns=TASK_COLUMNS)

    data = []
    for task in sorted(tasks, key=lambda t: t.task_id):
        data.append({
            "task_id": task.task_id,
            "title": task.title,
            "status": task.status,
            "priority": task.priority,
            "category": task.category,
            "created_by": task.created_by_name,
            "assignees": "; ".join(u.username for u in task.assigned_users),
            "due_date": as_utc(task.due_date),
            "created_at": as_utc(task.created_at),
            "completed_at": as_utc(task.completed_at),
            "estimated_hours": task.estimated_hours,
            "actual_hours": task.actual_hours,
        })

    df = pd.DataFrame(data, columns=TASK_COLUMNS)
    for col in ("due_date", "created_at", "completed_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    for col in ("estimated_hours", "actual_hours"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def _float(value) -> float | None:
    return None if pd.isna(value) else round(float(value), 2)


def summarize(df: pd.DataFrame) -> ReportSummary:
    if df.empty:
        return ReportSummary(total_tasks=0, completed_tasks=0, on_time_rate=0.0, categories=[])

    df = df.copy()
    df["category"] = df["category"].fillna(UNCATEGORIZED)
    df["is_completed"] = df["status"] == TaskStatus.COMPLETED.value
    df["variance_hours"] = df["actual_hours"] - df["estimated_hours"]

    categories = []
    for name, group in df.groupby("category", sort=True):
        categories.append(CategorySummary(
            category=name,
            task_count=int(len(group)),
            completed_tasks=int(group["is_completed"].sum()),
            estimated_hours=_float(group["estimated_hours"].sum()) or 0.0,
            actual_hours=_float(group["actual_hours"].sum()) or 0.0,
            mean_variance_hours=_float(group["variance_hours"].mean()),
        ))

    completed = df[df["is_completed"]]
    on_time_rate = 0.0
    if not completed.empty:
        on_time = (completed["completed_at"] <= completed["due_date"]).sum()
        on_time_rate = round(float(on_time) / len(completed) * 100.0, 2)

    return ReportSummary(
        total_tasks=int(len(df)),
        completed_tasks=int(len(completed)),
        on_time_rate=on_time_rate,
        categories=categories,
    )


async def summary_report(db: AsyncSession, caller: User) -> ReportSummary:
    require(caller, Action.REPORT_VIEW)
    return summarize(await get_task_dataframe(db, caller))


async def generate_csv_report(db: AsyncSession, caller: User) -> str:
    require(caller, Action.DATA_EXPORT)
    df = await get_task_dataframe(db, caller)
    return df.to_csv(index=False, date_format="%Y-%m-%dT%H:%M:%SZ")
