from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from schoolstock.db.base import Base, generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryItem(Base):
    """
    Current on-hand quantity is a cached total of the item's stock movements.
    Only services.stock_ledger writes it, and always beside a movement.
    """
    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")
    max_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=100, server_default="100")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Nullable so inactive items can outlive a deleted category.
    category_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=True, index=True
    )
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock_non_negative"),
        CheckConstraint("max_stock > min_stock", name="ck_inventory_items_max_above_min"),
        CheckConstraint("unit_price >= 0", name="ck_inventory_items_unit_price_non_negative"),
        Index("ix_inventory_items_active_created_at", "is_active", "created_at"),
    )


class StockMovement(Base):
    """
    Append-only. IN/ADJUSTMENT add ``quantity``, OUT/TRANSFER remove it.
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("inventory_items.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        CheckConstraint(
            "type IN ('IN', 'OUT', 'ADJUSTMENT', 'TRANSFER')",
            name="ck_stock_movements_type",
        ),
        Index("ix_stock_movements_item_created_at", "item_id", "created_at"),
        Index("ix_stock_movements_type_created_at", "type", "created_at"),
    )
