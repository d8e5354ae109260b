"""
SyncLog model - durable record of one entity-type sync attempt.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storesync.core.database import Base

if TYPE_CHECKING:
    from storesync.models.shop import Shop


class SyncStatus(str, enum.Enum):
    """Lifecycle of a sync attempt: started -> completed | failed."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncStatus.STARTED


class EntityType(str, enum.Enum):
    """Entity types the sync engine knows how to import."""

    SHOP = "shop"
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    ORDERS = "orders"
    COLLECTIONS = "collections"


class SyncLog(Base):
    """
    One row per entity-type sync attempt.

    Mutated in place as the attempt progresses and never deleted.
    completed_at is set exactly when the status becomes terminal.
    """

    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("ix_sync_logs_shop_entity_started", "shop_id", "entity_type", "started_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("shops.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    sync_type: Mapped[str] = mapped_column(String(50), default="initial", nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=SyncStatus.STARTED.value,
        nullable=False,
        index=True,
    )

    records_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_total: Mapped[Optional[int]] = mapped_column(Integer)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    shop: Mapped["Shop"] = relationship("Shop", back_populates="sync_logs")

    def __repr__(self) -> str:
        return f"<SyncLog {self.entity_type} {self.status}>"
