from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from taskdesk.database import Base
from taskdesk.utils.timeutils import utcnow

# Roles seeded at install time (Admin, Director, Division, User). Their
# structure is fixed; only their permission flags may change.
DEFAULT_ROLE_COUNT = 4
DEFAULT_USER_ROLE_ID = 4


class Role(Base):
    __tablename__ = "roles"

    role_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(String(200), nullable=True)

    # Task permissions
    can_view_all_tasks = Column(Boolean, nullable=False, default=False)
    can_edit_all_tasks = Column(Boolean, nullable=False, default=False)
    can_create_tasks = Column(Boolean, nullable=False, default=False)
    can_delete_tasks = Column(Boolean, nullable=False, default=False)
    can_assign_tasks = Column(Boolean, nullable=False, default=False)

    # User permissions
    can_view_all_users = Column(Boolean, nullable=False, default=False)
    can_create_users = Column(Boolean, nullable=False, default=False)
    can_edit_users = Column(Boolean, nullable=False, default=False)
    can_delete_users = Column(Boolean, nullable=False, default=False)

    # System permissions
    can_manage_roles = Column(Boolean, nullable=False, default=False)
    can_manage_permissions = Column(Boolean, nullable=False, default=False)
    can_view_reports = Column(Boolean, nullable=False, default=False)
    can_export_data = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    users = relationship("User", back_populates="role")

    @property
    def is_default(self) -> bool:
        return self.role_id is not None and self.role_id <= DEFAULT_ROLE_COUNT
