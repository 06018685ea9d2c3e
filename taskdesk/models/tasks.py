import enum

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Boolean, Table
from sqlalchemy.orm import relationship
from taskdesk.database import Base
from taskdesk.models.user import User
from taskdesk.utils.timeutils import utcnow


class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# Sort ranks; alphabetical order of the display strings is meaningless.
STATUS_RANK = {TaskStatus.PENDING.value: 1, TaskStatus.IN_PROGRESS.value: 2, TaskStatus.COMPLETED.value: 3}
PRIORITY_RANK = {TaskPriority.LOW.value: 1, TaskPriority.MEDIUM.value: 2, TaskPriority.HIGH.value: 3}


task_users = Table(
    "task_users",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.task_id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("assigned_at", DateTime(timezone=True), default=utcnow, nullable=False),
)


class TaskItem(Base):
    __tablename__ = "tasks"

    task_id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default=TaskStatus.PENDING.value, index=True)
    priority = Column(String(50), nullable=False, default=TaskPriority.MEDIUM.value, index=True)
    category = Column(String(50), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)

    creator = relationship(User, back_populates="created_tasks", foreign_keys=[created_by_id], lazy="selectin")
    assigned_users = relationship(
        User,
        secondary=task_users,
        back_populates="assigned_tasks",
        lazy="selectin",
        order_by=User.user_id,
    )

    @property
    def created_by_name(self) -> str | None:
        return self.creator.full_name if self.creator else None

    @property
    def assigned_user_ids(self) -> set[int]:
        return {u.user_id for u in self.assigned_users}

    def set_status(self, new_status: str, now) -> None:
        """Apply a status change, keeping completed_at set exactly while Completed."""
        if new_status == TaskStatus.COMPLETED.value:
            if self.completed_at is None:
                self.completed_at = now
        else:
            self.completed_at = None
        self.status = new_status
