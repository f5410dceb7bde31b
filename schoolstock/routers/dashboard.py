from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.user import User
from schoolstock.schemas.dashboard import (
    CategoryDistributionPointOut,
    DashboardOut,
    MovementChartPointOut,
    StockOverviewPointOut,
)
from schoolstock.services.dashboard_service import (
    category_distribution,
    get_dashboard,
    movement_chart,
    stock_overview,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
charts_router = APIRouter(prefix="/charts", tags=["charts"])


@router.get(
    "",
    response_model=DashboardOut,
    summary="Inventory overview for the home screen",
    responses={
        200: {
            "description": "Dashboard overview",
            "content": {
                "application/json": {
                    "example": {
                        "summary": {
                            "total_items": 42,
                            "low_stock_items": 3,
                            "total_value": 18250.5,
                            "recent_movements": 57,
                            "out_of_stock_items": 1,
                        },
                        "category_stats": [],
                        "stock_levels": {
                            "out_of_stock": 1,
                            "low_stock": 2,
                            "normal_stock": 36,
                            "over_stock": 3,
                        },
                        "monthly_trends": [{"month": "Oct", "stock_in": 12, "stock_out": 30}],
                        "recent_movements": [],
                        "low_stock_alerts": [],
                    }
                }
            },
        },
        **error_responses(401, 500),
    },
)
def read_dashboard(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return DashboardOut.model_validate(get_dashboard(db))


@charts_router.get(
    "/category-distribution",
    response_model=list[CategoryDistributionPointOut],
    summary="Share of active items per category",
    responses=error_responses(401, 500),
)
def read_category_distribution(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return [CategoryDistributionPointOut(**point) for point in category_distribution(db)]


@charts_router.get(
    "/stock-movements",
    response_model=list[MovementChartPointOut],
    summary="Daily inbound and outbound quantities for the last 7 days",
    responses=error_responses(401, 500),
)
def read_movement_chart(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return [MovementChartPointOut(**point) for point in movement_chart(db)]


@charts_router.get(
    "/stock-overview",
    response_model=list[StockOverviewPointOut],
    summary="Monthly on-hand totals and low-stock counts",
    responses=error_responses(401, 500),
)
def read_stock_overview(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return [StockOverviewPointOut(**point) for point in stock_overview(db)]
