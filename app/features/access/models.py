"""
Persistence models for the access control feature.

- AccessConfigEntry: one JSON blob per configuration key (the permission
  matrix and each section registry), the key/value substrate behind
  SqlKeyValueStore.
- AuditLog: who committed, rolled back or restored configuration, and when.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class AccessConfigEntry(Base, TimestampMixin):
    """
    Stored configuration blob.

    Keys: "schoolPermissions", "dashboardControls", "settingsControls",
    "studentsControls", "teachersControls", "assignmentsControls".
    """
    __tablename__ = "access_config_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<AccessConfigEntry(key={self.key!r}, size={len(self.value or '')})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for access configuration changes.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    role: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Action details, e.g. action="commit", resource_type="access_config"
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Context
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
