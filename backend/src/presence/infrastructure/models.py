import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from presence.domain.entities import PresenceStatus, ResourceType
from shared.clock import utcnow
from shared.infrastructure.database import Base


class PresenceModel(Base):
    __tablename__ = "user_presence"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_type", "resource_id", name="uq_presence_user_resource"),
        Index("ix_presence_resource", "resource_type", "resource_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    resource_type: Mapped[ResourceType] = mapped_column(
        Enum(ResourceType, name="presence_resource_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_seen: Mapped[datetime] = mapped_column(default=utcnow, index=True)
    cursor_position: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    selection: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    status: Mapped[PresenceStatus] = mapped_column(
        Enum(PresenceStatus, name="presence_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PresenceStatus.VIEWING,
        index=True,
    )
    extra: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
