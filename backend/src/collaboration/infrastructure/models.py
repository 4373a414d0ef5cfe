import uuid
from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utcnow
from shared.infrastructure.database import Base


class CollaborativeSessionModel(Base):
    __tablename__ = "collaborative_sessions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    note_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("notes.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    started_at: Mapped[datetime] = mapped_column(default=utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_activity: Mapped[datetime] = mapped_column(default=utcnow, index=True)
    total_edits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_session_duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    conflict_resolutions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SessionParticipantModel(Base):
    __tablename__ = "session_participants"
    __table_args__ = (UniqueConstraint("session_pk", "user_id", name="uq_session_participant"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_pk: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("collaborative_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(default=utcnow)
    left_at: Mapped[datetime | None] = mapped_column(nullable=True)


class UpdateFragmentModel(Base):
    __tablename__ = "session_updates"
    __table_args__ = (UniqueConstraint("session_pk", "seq", name="uq_session_update_seq"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_pk: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("collaborative_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    fragment: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
