from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.config import settings
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.user import User
from schoolstock.schemas.alerts import AlertDispatchOut, LowStockAlertListOut, LowStockAlertOut
from schoolstock.services.notification_service import (
    LowStockRecord,
    collect_low_stock_items,
    dispatch_due_low_stock_alerts,
)
from schoolstock.services.stock_health import alert_priority, stock_message

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _depletion_ratio(record: LowStockRecord) -> float:
    if record.min_stock <= 0:
        return 0.0
    return record.current_stock / record.min_stock


@router.get(
    "/low-stock",
    response_model=LowStockAlertListOut,
    summary="Most depleted active items relative to their minimum",
    responses=error_responses(401, 500),
)
def get_low_stock_alerts(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    records = sorted(collect_low_stock_items(db), key=lambda record: (_depletion_ratio(record), record.name))
    items = []
    for record in records[: settings.low_stock_alert_board_limit]:
        priority, color = alert_priority(record.current_stock, record.min_stock)
        items.append(
            LowStockAlertOut(
                id=record.id,
                name=record.name,
                sku=record.sku,
                category=record.category,
                quantity=record.current_stock,
                min_stock=record.min_stock,
                shortage=record.shortage,
                priority=priority,
                priority_color=color,
                message=stock_message(record.current_stock),
            )
        )
    return LowStockAlertListOut(items=items)


@router.post(
    "/low-stock/dispatch",
    response_model=AlertDispatchOut,
    summary="Deliver queued low-stock alerts that are due",
    responses=error_responses(401, 422, 500),
)
def dispatch_low_stock_alerts(
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    summary = dispatch_due_low_stock_alerts(db, limit=limit)
    return AlertDispatchOut(
        processed=summary.processed,
        sent=summary.sent,
        failed=summary.failed,
        dead_lettered=summary.dead_lettered,
    )
