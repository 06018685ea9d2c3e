from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from taskdesk.database import Base
from taskdesk.utils.timeutils import utcnow

class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.role_id", ondelete="RESTRICT"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    role = relationship("Role", back_populates="users", lazy="selectin")
    created_tasks = relationship("TaskItem", back_populates="creator", foreign_keys="[TaskItem.created_by_id]")
    assigned_tasks = relationship("TaskItem", secondary="task_users", back_populates="assigned_users")

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None
