from pydantic import BaseModel


class CategorySummary(BaseModel):
    category: str
    task_count: int
    completed_tasks: int
    estimated_hours: float
    actual_hours: float
    mean_variance_hours: float | None = None


class ReportSummary(BaseModel):
    total_tasks: int
    completed_tasks: int
    on_time_rate: float
    categories: list[CategorySummary]
