from typing import Literal

from pydantic import BaseModel

AlertPriority = Literal["Critical", "Warning", "Low"]
AlertColor = Literal["red", "orange", "yellow"]


class LowStockAlertOut(BaseModel):
    id: str
    name: str
    sku: str
    category: str
    quantity: int
    min_stock: int
    shortage: int
    priority: AlertPriority
    priority_color: AlertColor
    message: str


class LowStockAlertListOut(BaseModel):
    items: list[LowStockAlertOut]


class AlertDispatchOut(BaseModel):
    processed: int
    sent: int
    failed: int
    dead_lettered: int
