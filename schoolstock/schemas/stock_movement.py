from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schoolstock.schemas.common import PaginationMeta
from schoolstock.services.stock_health import MAX_QUANTITY

MovementType = Literal["IN", "OUT", "ADJUSTMENT", "TRANSFER"]


class StockMovementIn(BaseModel):
    item_id: str
    type: MovementType
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Always a magnitude. Direction comes from type.")
    reason: str = Field(..., min_length=1, max_length=255)
    notes: str | None = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("reason is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "item_id": "item-id",
                "type": "OUT",
                "quantity": 3,
                "reason": "Issued to Grade 5 science class",
                "notes": "Requested by Ms. Reyes",
            }
        }
    )


class StockMovementOut(BaseModel):
    id: str
    item_id: str
    item_name: str | None = None
    type: MovementType
    quantity: int
    reason: str
    notes: str | None = None
    user_id: str
    user_name: str | None = None
    created_at: datetime | None = None


class StockMovementCreateOut(BaseModel):
    movement: StockMovementOut
    new_quantity: int
    stock_status: str
    low_stock_triggered: bool = False


class StockMovementListOut(BaseModel):
    items: list[StockMovementOut]
    pagination: PaginationMeta
