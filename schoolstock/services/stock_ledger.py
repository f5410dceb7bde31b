"""
Stock ledger: the only code path that writes ``InventoryItem.quantity``.

Every quantity change is persisted together with the StockMovement that
explains it, in one transaction, after the item row has been locked with
``SELECT ... FOR UPDATE`` so that concurrent movements on the same item are
serialized by the database. Rejected requests leave the item and the
movement log untouched.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolstock.core.config import settings
from schoolstock.core.errors import (
    ConflictError,
    InsufficientStockError,
    InventoryError,
    LedgerPersistenceError,
    NotFoundError,
    StockValidationError,
)
from schoolstock.core.money import to_money
from schoolstock.core.observability import log_event
from schoolstock.db.base import generate_id
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.schemas.inventory import ItemIn
from schoolstock.services.notification_service import queue_low_stock_alert
from schoolstock.services.stock_health import (
    INBOUND_TYPES,
    MAX_QUANTITY,
    MOVEMENT_TYPES,
    OUTBOUND_TYPES,
    classify_stock,
    next_quantity,
)

INITIAL_STOCK_REASON = "Initial stock"
CORRECTION_REASON = "Stock adjustment"
REMOVAL_REASON = "Item deleted"


@dataclass(frozen=True)
class MovementResult:
    movement: StockMovement
    item: InventoryItem
    stock_status: str
    low_stock_triggered: bool
    alert_id: str | None = None


@dataclass(frozen=True)
class ItemWriteResult:
    item: InventoryItem
    movement: StockMovement | None = None
    alert_id: str | None = None


@dataclass(frozen=True)
class Reconciliation:
    item_id: str
    cached_quantity: int
    ledger_quantity: int
    movement_count: int
    consistent: bool


def _check_quantity_ceiling(quantity: int) -> None:
    if quantity > MAX_QUANTITY:
        raise StockValidationError(f"Quantity cannot exceed {MAX_QUANTITY}", field="quantity")


def validate_movement_request(movement_type: str, quantity: int, reason: str | None) -> str:
    """Returns the cleaned reason."""
    if movement_type not in MOVEMENT_TYPES:
        raise StockValidationError("Invalid movement type", field="type")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise StockValidationError("Quantity must be a positive integer", field="quantity")
    _check_quantity_ceiling(quantity)
    cleaned_reason = (reason or "").strip()
    if not cleaned_reason:
        raise StockValidationError("Reason is required", field="reason")
    return cleaned_reason


def get_item(db: Session, item_id: str, *, for_update: bool = False, include_inactive: bool = False) -> InventoryItem:
    stmt = select(InventoryItem).where(InventoryItem.id == item_id)
    if not include_inactive:
        stmt = stmt.where(InventoryItem.is_active.is_(True))
    if for_update:
        stmt = stmt.with_for_update()
    item = db.execute(stmt).scalar_one_or_none()
    if not item:
        raise NotFoundError("Item not found")
    return item


def _new_movement(
    item: InventoryItem,
    *,
    movement_type: str,
    quantity: int,
    reason: str,
    notes: str | None,
    actor_id: str,
) -> StockMovement:
    return StockMovement(
        id=generate_id(),
        item_id=item.id,
        user_id=actor_id,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        notes=notes,
    )


def _is_sku_conflict(exc: IntegrityError) -> bool:
    # Unique violations name the column: "inventory_items.sku" or "Key (sku)=".
    return "sku" in str(exc.orig).lower()


def _commit_ledger_write(
    db: Session,
    *,
    item: InventoryItem,
    movement: StockMovement | None,
    new_quantity: int,
) -> None:
    # Movement first, then the cached total; both land in one commit or neither does.
    try:
        db.flush()
        if movement is not None:
            db.add(movement)
            db.flush()
        item.quantity = new_quantity
        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        if isinstance(exc, IntegrityError) and _is_sku_conflict(exc):
            log_event("stock_ledger.sku_conflict", level=logging.WARNING, item_id=item.id)
            raise ConflictError("An item with this SKU already exists") from exc
        log_event(
            "stock_ledger.persist_failed",
            level=logging.ERROR,
            item_id=item.id,
            error=str(exc),
        )
        raise LedgerPersistenceError() from exc


def _queue_low_stock_board(db: Session, movement: StockMovement) -> str | None:
    try:
        alert = queue_low_stock_alert(db, trigger_movement_id=movement.id)
    except Exception as exc:  # noqa: BLE001 - alerting never fails a committed movement
        db.rollback()
        log_event(
            "low_stock_alert.queue_failed",
            level=logging.WARNING,
            trigger_movement_id=movement.id,
            error=str(exc),
        )
        return None
    return alert.id if alert else None


def _after_outbound(db: Session, item: InventoryItem, movement: StockMovement) -> tuple[bool, str | None]:
    triggered = movement.type in OUTBOUND_TYPES and item.quantity <= item.min_stock
    if not triggered:
        return False, None
    return True, _queue_low_stock_board(db, movement)


def record_movement(
    db: Session,
    *,
    item_id: str,
    movement_type: str,
    quantity: int,
    reason: str,
    notes: str | None = None,
    actor_id: str,
) -> MovementResult:
    try:
        cleaned_reason = validate_movement_request(movement_type, quantity, reason)
        item = get_item(db, item_id, for_update=True)
        new_quantity = next_quantity(item.quantity, movement_type, quantity)
        if new_quantity < 0:
            raise InsufficientStockError(item_id=item.id, available=item.quantity, requested=quantity)
        _check_quantity_ceiling(new_quantity)
    except InventoryError:
        db.rollback()
        raise

    movement = _new_movement(
        item,
        movement_type=movement_type,
        quantity=quantity,
        reason=cleaned_reason,
        notes=notes,
        actor_id=actor_id,
    )
    _commit_ledger_write(db, item=item, movement=movement, new_quantity=new_quantity)
    log_event(
        "stock_movement.recorded",
        movement_id=movement.id,
        item_id=item.id,
        type=movement_type,
        quantity=quantity,
        new_quantity=new_quantity,
    )

    triggered, alert_id = _after_outbound(db, item, movement)
    return MovementResult(
        movement=movement,
        item=item,
        stock_status=classify_stock(item.quantity, item.min_stock, item.max_stock),
        low_stock_triggered=triggered,
        alert_id=alert_id,
    )


def correction_movement(
    item: InventoryItem,
    *,
    new_quantity: int,
    actor_id: str,
    notes: str | None = None,
) -> StockMovement | None:
    """The IN/OUT movement that takes ``item`` from its current quantity to ``new_quantity``."""
    diff = new_quantity - item.quantity
    if diff == 0:
        return None
    return _new_movement(
        item,
        movement_type="IN" if diff > 0 else "OUT",
        quantity=abs(diff),
        reason=CORRECTION_REASON,
        notes=notes or f"Quantity updated from {item.quantity} to {new_quantity}",
        actor_id=actor_id,
    )


def correct_quantity(
    db: Session,
    *,
    item_id: str,
    new_quantity: int,
    actor_id: str,
    notes: str | None = None,
) -> ItemWriteResult:
    try:
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise StockValidationError("Quantity must be a non-negative integer", field="quantity")
        _check_quantity_ceiling(new_quantity)
        item = get_item(db, item_id, for_update=True)
    except InventoryError:
        db.rollback()
        raise

    movement = correction_movement(item, new_quantity=new_quantity, actor_id=actor_id, notes=notes)
    if movement is None:
        db.rollback()
        return ItemWriteResult(item=item, movement=None)

    _commit_ledger_write(db, item=item, movement=movement, new_quantity=new_quantity)
    log_event("stock_ledger.quantity_corrected", item_id=item.id, movement_id=movement.id, new_quantity=new_quantity)
    _, alert_id = _after_outbound(db, item, movement)
    return ItemWriteResult(item=item, movement=movement, alert_id=alert_id)


def _resolve_thresholds(payload: ItemIn, item: InventoryItem | None) -> tuple[int, int]:
    if payload.min_stock is not None:
        min_stock = payload.min_stock
    elif item is not None:
        min_stock = item.min_stock
    else:
        min_stock = settings.default_min_stock

    if payload.max_stock is not None:
        max_stock = payload.max_stock
    elif item is not None:
        max_stock = item.max_stock
    else:
        max_stock = settings.default_max_stock

    if max_stock <= min_stock:
        raise StockValidationError("max_stock must be greater than min_stock", field="max_stock")
    return min_stock, max_stock


def _ensure_category(db: Session, category_id: str) -> None:
    found = db.execute(select(Category.id).where(Category.id == category_id)).scalar_one_or_none()
    if not found:
        raise NotFoundError("Category not found")


def _ensure_sku_available(db: Session, sku: str, *, exclude_item_id: str | None = None) -> None:
    stmt = select(InventoryItem.id).where(InventoryItem.sku == sku)
    if exclude_item_id:
        stmt = stmt.where(InventoryItem.id != exclude_item_id)
    if db.execute(stmt).first():
        raise ConflictError("An item with this SKU already exists")


def _apply_descriptive_fields(item: InventoryItem, payload: ItemIn, *, min_stock: int, max_stock: int) -> None:
    item.name = payload.name
    item.description = payload.description
    item.sku = payload.sku
    item.barcode = payload.barcode
    item.location = payload.location
    item.category_id = payload.category_id
    item.image_urls = list(payload.image_urls)
    item.unit_price = to_money(payload.unit_price)
    item.min_stock = min_stock
    item.max_stock = max_stock


def create_item(db: Session, *, payload: ItemIn, actor_id: str) -> ItemWriteResult:
    try:
        _check_quantity_ceiling(payload.quantity)
        _ensure_category(db, payload.category_id)
        _ensure_sku_available(db, payload.sku)
        min_stock, max_stock = _resolve_thresholds(payload, None)
    except InventoryError:
        db.rollback()
        raise

    item = InventoryItem(id=generate_id(), created_by=actor_id, quantity=0, is_active=True)
    _apply_descriptive_fields(item, payload, min_stock=min_stock, max_stock=max_stock)
    db.add(item)

    movement = None
    if payload.quantity > 0:
        movement = _new_movement(
            item,
            movement_type="IN",
            quantity=payload.quantity,
            reason=INITIAL_STOCK_REASON,
            notes="Item added to inventory",
            actor_id=actor_id,
        )
    _commit_ledger_write(db, item=item, movement=movement, new_quantity=payload.quantity)
    log_event("inventory_item.created", item_id=item.id, sku=item.sku, quantity=payload.quantity)
    return ItemWriteResult(item=item, movement=movement)


def edit_item(db: Session, *, item_id: str, payload: ItemIn, actor_id: str) -> ItemWriteResult:
    """Full update. A changed quantity is booked as a corrective IN/OUT movement."""
    try:
        _check_quantity_ceiling(payload.quantity)
        item = get_item(db, item_id, for_update=True)
        if payload.sku != item.sku:
            _ensure_sku_available(db, payload.sku, exclude_item_id=item.id)
        _ensure_category(db, payload.category_id)
        min_stock, max_stock = _resolve_thresholds(payload, item)
    except InventoryError:
        db.rollback()
        raise

    movement = correction_movement(item, new_quantity=payload.quantity, actor_id=actor_id)
    _apply_descriptive_fields(item, payload, min_stock=min_stock, max_stock=max_stock)
    _commit_ledger_write(db, item=item, movement=movement, new_quantity=payload.quantity)
    log_event(
        "inventory_item.updated",
        item_id=item.id,
        movement_id=movement.id if movement else None,
    )
    alert_id = None
    if movement is not None:
        _, alert_id = _after_outbound(db, item, movement)
    return ItemWriteResult(item=item, movement=movement, alert_id=alert_id)


def deactivate_item(db: Session, *, item_id: str, actor_id: str) -> ItemWriteResult:
    """
    Soft delete. Books a final OUT for whatever is on hand, then hides the item.
    The cached quantity is kept as the historical count at removal time.
    """
    try:
        item = get_item(db, item_id, for_update=True)
    except InventoryError:
        db.rollback()
        raise

    movement = None
    if item.quantity > 0:
        movement = _new_movement(
            item,
            movement_type="OUT",
            quantity=item.quantity,
            reason=REMOVAL_REASON,
            notes="Item removed from inventory",
            actor_id=actor_id,
        )
    item.is_active = False
    _commit_ledger_write(db, item=item, movement=movement, new_quantity=item.quantity)
    log_event("inventory_item.deactivated", item_id=item.id, final_quantity=item.quantity)
    return ItemWriteResult(item=item, movement=movement)


def ledger_balance(db: Session, item_id: str) -> tuple[int, int]:
    """(signed movement total, movement count) for one item."""
    signed = case(
        (StockMovement.type.in_(sorted(INBOUND_TYPES)), StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    total, count = db.execute(
        select(func.coalesce(func.sum(signed), 0), func.count(StockMovement.id)).where(
            StockMovement.item_id == item_id
        )
    ).one()
    return int(total), int(count)


def reconcile_item(db: Session, item_id: str) -> Reconciliation:
    """
    Active items: cached quantity must equal the signed movement total.
    Deactivated items: the removal movement closes the ledger at zero.
    """
    item = get_item(db, item_id, include_inactive=True)
    total, count = ledger_balance(db, item.id)
    expected = item.quantity if item.is_active else 0
    return Reconciliation(
        item_id=item.id,
        cached_quantity=item.quantity,
        ledger_quantity=total,
        movement_count=count,
        consistent=total == expected,
    )
