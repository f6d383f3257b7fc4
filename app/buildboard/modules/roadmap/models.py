from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.buildboard.models import Base


class RoadmapItem(Base):
    __tablename__ = "roadmap_items"
    __table_args__ = (
        Index("idx_roadmap_items_status_order", "status", "order_index"),
        Index("idx_roadmap_items_priority", "priority"),
        Index("idx_roadmap_items_category", "category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Board position
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="idea")  # idea, planned, in-progress, debugging, released
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(32), nullable=False, default="medium")  # low, medium, high, critical
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="feature")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0..100
    tags: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=list)
    version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    estimated_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    changelog: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "progress": self.progress,
            "tags": list(self.tags or []),
            "version": self.version,
            "estimated_date": self.estimated_date.isoformat() if self.estimated_date else None,
            "changelog": self.changelog,
            "status": self.status,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
