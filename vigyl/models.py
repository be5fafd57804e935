from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class CachedIntelligence(Base):
    """One reconciled intelligence snapshot per owner, stored as a JSON blob."""
    __tablename__ = "cached_intelligence"

    owner_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    intelligence_json: Mapped[str] = mapped_column(Text, default="{}")
    version: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class TeamMember(Base):
    __tablename__ = "team_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    member_user_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), default="member")  # "admin" | "member"
    invited_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class PipelineItem(Base):
    """User-edited pipeline state, kept apart from the generated snapshot."""
    __tablename__ = "pipeline_items"
    __table_args__ = (UniqueConstraint("owner_id", "prospect_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    prospect_id: Mapped[str] = mapped_column(String(100), nullable=False)
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    industry_id: Mapped[str] = mapped_column(String(100), default="")
    vigyl_score: Mapped[int] = mapped_column(Integer, default=0)
    pipeline_stage: Mapped[str] = mapped_column(String(30), default="researching")
    notes: Mapped[str] = mapped_column(Text, default="")
    last_contacted: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
