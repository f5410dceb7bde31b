from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.user import User
from schoolstock.routers.serializers import movement_out
from schoolstock.schemas.common import build_pagination
from schoolstock.schemas.stock_movement import (
    MovementType,
    StockMovementCreateOut,
    StockMovementIn,
    StockMovementListOut,
)
from schoolstock.services.notification_service import schedule_low_stock_dispatch
from schoolstock.services.stock_ledger import record_movement

router = APIRouter(prefix="/stock-movements", tags=["stock-movements"])


@router.get(
    "",
    response_model=StockMovementListOut,
    summary="List stock movements, newest first",
    responses=error_responses(401, 422, 500),
)
def list_stock_movements(
    item_id: str | None = Query(default=None),
    type: MovementType | None = Query(default=None),
    reason: str | None = Query(default=None, description="Case-insensitive substring match"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None, description="Inclusive of the whole day"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    filters = []
    if item_id:
        filters.append(StockMovement.item_id == item_id)
    if type:
        filters.append(StockMovement.type == type)
    if reason and reason.strip():
        filters.append(StockMovement.reason.ilike(f"%{reason.strip()}%"))
    if date_from:
        filters.append(StockMovement.created_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
    if date_to:
        end_exclusive = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        filters.append(StockMovement.created_at < end_exclusive)

    total = int(db.execute(select(func.count(StockMovement.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(StockMovement, InventoryItem.name, User)
        .join(InventoryItem, InventoryItem.id == StockMovement.item_id)
        .join(User, User.id == StockMovement.user_id)
        .where(*filters)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return StockMovementListOut(
        items=[movement_out(movement, item_name=item_name, user=actor) for movement, item_name, actor in rows],
        pagination=build_pagination(page=page, limit=limit, total=total),
    )


@router.post(
    "",
    response_model=StockMovementCreateOut,
    status_code=201,
    summary="Record a stock movement",
    responses=error_responses(400, 401, 404, 422, 500),
)
def create_stock_movement(
    payload: StockMovementIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = record_movement(
        db,
        item_id=payload.item_id,
        movement_type=payload.type,
        quantity=payload.quantity,
        reason=payload.reason,
        notes=payload.notes,
        actor_id=user.id,
    )
    if result.alert_id:
        schedule_low_stock_dispatch(background_tasks, db)

    return StockMovementCreateOut(
        movement=movement_out(result.movement, item_name=result.item.name, user=user),
        new_quantity=result.item.quantity,
        stock_status=result.stock_status,
        low_stock_triggered=result.low_stock_triggered,
    )
