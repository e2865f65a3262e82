import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from clerkship_scheduler.db.base import Base


class PreceptorTeam(Base):
    __tablename__ = "preceptor_teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    clerkship_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clerkships.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    members: Mapped[list["PreceptorTeamMember"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="PreceptorTeamMember.priority",
    )


class PreceptorTeamMember(Base):
    __tablename__ = "preceptor_team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "preceptor_id", name="uq_preceptor_team_members_team_preceptor"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("preceptor_teams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    preceptor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("preceptors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    team: Mapped[PreceptorTeam] = relationship(back_populates="members")
