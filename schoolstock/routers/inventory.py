from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.user import User
from schoolstock.routers.serializers import item_out, load_item_out, movement_out
from schoolstock.schemas.common import build_pagination
from schoolstock.schemas.inventory import (
    ItemDeleteOut,
    ItemDetailOut,
    ItemIn,
    ItemListOut,
    ItemSortField,
    ItemWriteOut,
    QuantityCorrectionIn,
    ReconciliationOut,
)
from schoolstock.services.notification_service import schedule_low_stock_dispatch
from schoolstock.services.stock_ledger import (
    ItemWriteResult,
    correct_quantity,
    create_item,
    deactivate_item,
    edit_item,
    get_item,
    reconcile_item,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])

_SORT_COLUMNS = {
    "name": InventoryItem.name,
    "quantity": InventoryItem.quantity,
    "created_at": InventoryItem.created_at,
    "unit_price": InventoryItem.unit_price,
}


def _write_out(db: Session, result: ItemWriteResult, user: User) -> ItemWriteOut:
    return ItemWriteOut(
        item=load_item_out(db, result.item),
        movement=(
            movement_out(result.movement, item_name=result.item.name, user=user) if result.movement else None
        ),
    )


@router.get(
    "",
    response_model=ItemListOut,
    summary="List active inventory items",
    responses=error_responses(401, 422, 500),
)
def list_items(
    search: str | None = Query(default=None, description="Matches name, description or SKU"),
    category_id: str | None = Query(default=None),
    sort_by: ItemSortField = Query(default="name"),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    filters = [InventoryItem.is_active.is_(True)]
    if search and search.strip():
        term = f"%{search.strip()}%"
        filters.append(
            or_(
                InventoryItem.name.ilike(term),
                InventoryItem.description.ilike(term),
                InventoryItem.sku.ilike(term),
            )
        )
    if category_id:
        filters.append(InventoryItem.category_id == category_id)

    total = int(db.execute(select(func.count(InventoryItem.id)).where(*filters)).scalar_one())
    column = _SORT_COLUMNS[sort_by]
    order = column.desc() if sort_order == "desc" else column.asc()
    rows = db.execute(
        select(InventoryItem, Category)
        .outerjoin(Category, Category.id == InventoryItem.category_id)
        .where(*filters)
        .order_by(order, InventoryItem.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return ItemListOut(
        items=[item_out(item, category) for item, category in rows],
        pagination=build_pagination(page=page, limit=limit, total=total),
    )


@router.post(
    "",
    response_model=ItemWriteOut,
    status_code=201,
    summary="Create an inventory item",
    responses=error_responses(401, 404, 409, 422, 500),
)
def create_inventory_item(
    payload: ItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = create_item(db, payload=payload, actor_id=user.id)
    return _write_out(db, result, user)


@router.get(
    "/{item_id}",
    response_model=ItemDetailOut,
    summary="Get an item with its most recent movements",
    responses=error_responses(401, 404, 500),
)
def get_inventory_item(
    item_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    item = get_item(db, item_id, include_inactive=True)
    recent = db.execute(
        select(StockMovement, User)
        .join(User, User.id == StockMovement.user_id)
        .where(StockMovement.item_id == item.id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(10)
    ).all()
    base = load_item_out(db, item)
    return ItemDetailOut(
        **base.model_dump(),
        recent_movements=[movement_out(movement, item_name=item.name, user=actor) for movement, actor in recent],
    )


@router.put(
    "/{item_id}",
    response_model=ItemWriteOut,
    summary="Update an item; a quantity change is booked as a movement",
    responses=error_responses(401, 404, 409, 422, 500),
)
def update_inventory_item(
    item_id: str,
    payload: ItemIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = edit_item(db, item_id=item_id, payload=payload, actor_id=user.id)
    if result.alert_id:
        schedule_low_stock_dispatch(background_tasks, db)
    return _write_out(db, result, user)


@router.post(
    "/{item_id}/correct-quantity",
    response_model=ItemWriteOut,
    summary="Set the on-hand quantity after a physical count",
    responses=error_responses(401, 404, 422, 500),
)
def correct_item_quantity(
    item_id: str,
    payload: QuantityCorrectionIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = correct_quantity(
        db,
        item_id=item_id,
        new_quantity=payload.quantity,
        actor_id=user.id,
        notes=payload.notes,
    )
    if result.alert_id:
        schedule_low_stock_dispatch(background_tasks, db)
    return _write_out(db, result, user)


@router.delete(
    "/{item_id}",
    response_model=ItemDeleteOut,
    summary="Deactivate an item, booking its remaining stock out",
    responses=error_responses(401, 404, 500),
)
def delete_inventory_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = deactivate_item(db, item_id=item_id, actor_id=user.id)
    return ItemDeleteOut(
        ok=True,
        final_movement=(
            movement_out(result.movement, item_name=result.item.name, user=user) if result.movement else None
        ),
    )


@router.get(
    "/{item_id}/reconciliation",
    response_model=ReconciliationOut,
    summary="Compare the cached quantity with the movement log",
    responses=error_responses(401, 404, 500),
)
def get_item_reconciliation(
    item_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    result = reconcile_item(db, item_id)
    return ReconciliationOut(
        item_id=result.item_id,
        cached_quantity=result.cached_quantity,
        ledger_quantity=result.ledger_quantity,
        movement_count=result.movement_count,
        consistent=result.consistent,
    )
