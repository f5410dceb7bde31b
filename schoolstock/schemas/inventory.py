from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schoolstock.schemas.common import PaginationMeta
from schoolstock.schemas.stock_movement import StockMovementOut
from schoolstock.services.stock_health import MAX_QUANTITY

StockStatus = Literal["OUT_OF_STOCK", "LOW_STOCK", "NORMAL", "OVER_STOCK"]
ItemSortField = Literal["name", "quantity", "created_at", "unit_price"]


class ItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    sku: str = Field(..., min_length=1, max_length=100)
    barcode: str | None = Field(default=None, max_length=100)
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY)
    min_stock: int | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    max_stock: int | None = Field(default=None, ge=1, le=MAX_QUANTITY)
    unit_price: Decimal = Field(..., ge=0)
    location: str | None = Field(default=None, max_length=255)
    category_id: str
    image_urls: list[str] = Field(default_factory=list)

    @field_validator("name", "sku", "category_id")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("barcode", "location")
    @classmethod
    def normalize_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_thresholds(self) -> "ItemIn":
        if self.min_stock is not None and self.max_stock is not None and self.max_stock <= self.min_stock:
            raise ValueError("max_stock must be greater than min_stock")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Bond Paper A4",
                "description": "80gsm, 500 sheets per ream",
                "sku": "OFF-A4-80",
                "barcode": "4800016644290",
                "quantity": 40,
                "min_stock": 10,
                "max_stock": 120,
                "unit_price": 245.5,
                "location": "Supply Room B, Shelf 2",
                "category_id": "category-id",
                "image_urls": [],
            }
        }
    )


class CategoryRefOut(BaseModel):
    id: str
    name: str
    color: str


class ItemOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    sku: str
    barcode: str | None = None
    quantity: int
    min_stock: int
    max_stock: int
    unit_price: float
    location: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    category: CategoryRefOut | None = None
    created_by: str
    is_active: bool
    stock_status: StockStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ItemDetailOut(ItemOut):
    recent_movements: list[StockMovementOut] = Field(default_factory=list)


class ItemListOut(BaseModel):
    items: list[ItemOut]
    pagination: PaginationMeta


class ItemWriteOut(BaseModel):
    item: ItemOut
    movement: StockMovementOut | None = None


class ItemDeleteOut(BaseModel):
    ok: bool = True
    final_movement: StockMovementOut | None = None


class ReconciliationOut(BaseModel):
    item_id: str
    cached_quantity: int
    ledger_quantity: int
    movement_count: int
    consistent: bool


class QuantityCorrectionIn(BaseModel):
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY, description="Counted quantity on hand")
    notes: str | None = None

    model_config = ConfigDict(
        json_schema_extra={"example": {"quantity": 18, "notes": "Physical count, end of term"}}
    )
