from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.buildboard.models import Base


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_status_order", "status", "order_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Board position
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="draft")  # draft, published, archived
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)  # e.g. "yellow", "blue"
    tags: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "color": self.color,
            "tags": list(self.tags or []),
            "status": self.status,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
