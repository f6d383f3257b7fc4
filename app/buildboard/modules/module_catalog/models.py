from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.buildboard.models import Base


class ModuleSetting(Base):
    __tablename__ = "module_settings"
    __table_args__ = (
        Index("idx_module_settings_bucket_order", "bucket", "order_index"),
    )

    key: Mapped[str] = mapped_column(String(64), primary_key=True)  # e.g. "programme"
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)

    bucket: Mapped[str] = mapped_column(String(32), nullable=False, default="additional")  # core, additional
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
