from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class DashboardSummaryOut(BaseModel):
    total_items: int
    low_stock_items: int
    total_value: float
    recent_movements: int
    out_of_stock_items: int


class CategoryStatOut(BaseModel):
    id: str
    name: str
    color: str
    item_count: int
    total_value: float
    percentage: int


class StockLevelsOut(BaseModel):
    out_of_stock: int
    low_stock: int
    normal_stock: int
    over_stock: int


class MonthlyTrendOut(BaseModel):
    month: str
    stock_in: int
    stock_out: int


class RecentMovementOut(BaseModel):
    id: str
    type: str
    quantity: int
    item_name: str
    user: str
    reason: str
    created_at: datetime | None = None


class DashboardLowStockOut(BaseModel):
    id: str
    name: str
    sku: str
    current_stock: int
    min_stock: int
    category: str
    urgency: Literal["critical", "high", "medium"]


class DashboardOut(BaseModel):
    summary: DashboardSummaryOut
    category_stats: list[CategoryStatOut]
    stock_levels: StockLevelsOut
    monthly_trends: list[MonthlyTrendOut]
    recent_movements: list[RecentMovementOut]
    low_stock_alerts: list[DashboardLowStockOut]


class CategoryDistributionPointOut(BaseModel):
    name: str
    value: int
    color: str
    count: int


class MovementChartPointOut(BaseModel):
    day: str
    inbound: int
    outbound: int


class StockOverviewPointOut(BaseModel):
    month: str
    in_stock: int
    low_stock: int
