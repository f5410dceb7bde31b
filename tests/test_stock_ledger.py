from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from schoolstock.core.errors import (
    ConflictError,
    InsufficientStockError,
    LedgerPersistenceError,
    NotFoundError,
    StockValidationError,
)
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.notification import LowStockAlert
from schoolstock.schemas.inventory import ItemIn
from schoolstock.services.notification_service import collect_low_stock_items
from schoolstock.services.stock_health import (
    MAX_QUANTITY,
    alert_priority,
    classify_stock,
    dashboard_urgency,
    next_quantity,
    stock_message,
)
from schoolstock.services.stock_ledger import (
    correct_quantity,
    create_item,
    deactivate_item,
    edit_item,
    reconcile_item,
    record_movement,
)


def _item_payload(category_id: str, **overrides) -> ItemIn:
    data = {
        "name": "Bond Paper A4",
        "sku": "OFF-A4-80",
        "quantity": 10,
        "min_stock": 5,
        "max_stock": 50,
        "unit_price": Decimal("245.50"),
        "category_id": category_id,
    }
    data.update(overrides)
    return ItemIn(**data)


def _movement_count(db, item_id: str) -> int:
    return int(db.execute(select(func.count(StockMovement.id)).where(StockMovement.item_id == item_id)).scalar_one())


def _stored_quantity(db, item_id: str) -> int:
    db.expire_all()
    return db.execute(select(InventoryItem.quantity).where(InventoryItem.id == item_id)).scalar_one()


@pytest.fixture()
def stocked_item(db_session, staff_user, supplies_category):
    result = create_item(db_session, payload=_item_payload(supplies_category.id), actor_id=staff_user.id)
    return result.item


def test_create_item_books_initial_stock(db_session, staff_user, supplies_category):
    result = create_item(db_session, payload=_item_payload(supplies_category.id), actor_id=staff_user.id)

    assert result.item.quantity == 10
    assert result.movement is not None
    assert result.movement.type == "IN"
    assert result.movement.quantity == 10
    assert result.movement.reason == "Initial stock"
    assert reconcile_item(db_session, result.item.id).consistent is True


def test_create_item_with_zero_quantity_records_no_movement(db_session, staff_user, supplies_category):
    result = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=0),
        actor_id=staff_user.id,
    )

    assert result.movement is None
    assert _movement_count(db_session, result.item.id) == 0
    assert classify_stock(result.item.quantity, result.item.min_stock, result.item.max_stock) == "OUT_OF_STOCK"


def test_create_item_applies_default_thresholds(db_session, staff_user, supplies_category):
    payload = _item_payload(supplies_category.id, min_stock=None, max_stock=None)
    item = create_item(db_session, payload=payload, actor_id=staff_user.id).item

    assert item.min_stock == 5
    assert item.max_stock == 100


def test_create_item_rejects_duplicate_sku(db_session, staff_user, supplies_category, stocked_item):
    with pytest.raises(ConflictError):
        create_item(db_session, payload=_item_payload(supplies_category.id), actor_id=staff_user.id)


def test_create_item_requires_existing_category(db_session, staff_user):
    with pytest.raises(NotFoundError):
        create_item(db_session, payload=_item_payload("missing-category"), actor_id=staff_user.id)


def test_out_movement_decrements_and_logs(db_session, staff_user, stocked_item):
    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="OUT",
        quantity=3,
        reason="Issued to Grade 5",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 7
    assert result.stock_status == "NORMAL"
    assert result.low_stock_triggered is False
    assert result.movement.reason == "Issued to Grade 5"
    assert _movement_count(db_session, stocked_item.id) == 2


def test_insufficient_stock_leaves_item_untouched(db_session, staff_user, stocked_item):
    with pytest.raises(InsufficientStockError) as exc_info:
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type="TRANSFER",
            quantity=11,
            reason="Moved to annex",
            actor_id=staff_user.id,
        )

    assert exc_info.value.available == 10
    assert exc_info.value.requested == 11
    assert _stored_quantity(db_session, stocked_item.id) == 10
    assert _movement_count(db_session, stocked_item.id) == 1


def test_out_to_exactly_zero_is_allowed(db_session, staff_user, stocked_item):
    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="OUT",
        quantity=10,
        reason="Issued for exams",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 0
    assert result.stock_status == "OUT_OF_STOCK"
    assert result.low_stock_triggered is True


def test_adjustment_always_adds(db_session, staff_user, stocked_item):
    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="ADJUSTMENT",
        quantity=4,
        reason="Found in storage",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 14
    assert result.low_stock_triggered is False


@pytest.mark.parametrize(
    ("movement_type", "quantity", "reason", "field"),
    [
        ("RETURN", 1, "Returned", "type"),
        ("IN", 0, "Delivery", "quantity"),
        ("IN", -2, "Delivery", "quantity"),
        ("IN", 2, "   ", "reason"),
    ],
)
def test_invalid_requests_are_rejected_without_side_effects(
    db_session, staff_user, stocked_item, movement_type, quantity, reason, field
):
    with pytest.raises(StockValidationError) as exc_info:
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason,
            actor_id=staff_user.id,
        )

    assert exc_info.value.field == field
    assert _stored_quantity(db_session, stocked_item.id) == 10
    assert _movement_count(db_session, stocked_item.id) == 1


def test_movement_on_unknown_item_is_not_found(db_session, staff_user):
    with pytest.raises(NotFoundError):
        record_movement(
            db_session,
            item_id="missing",
            movement_type="IN",
            quantity=1,
            reason="Delivery",
            actor_id=staff_user.id,
        )


def test_low_stock_crossing_queues_whole_board(db_session, staff_user, supplies_category, stocked_item):
    already_low = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, name="Chalk Box", sku="OFF-CHALK", quantity=2),
        actor_id=staff_user.id,
    ).item

    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="OUT",
        quantity=6,
        reason="Issued to faculty",
        actor_id=staff_user.id,
    )

    assert result.low_stock_triggered is True
    assert result.alert_id is not None
    alert = db_session.execute(select(LowStockAlert).where(LowStockAlert.id == result.alert_id)).scalar_one()
    assert alert.status == "pending"
    assert alert.trigger_movement_id == result.movement.id
    assert [row["id"] for row in alert.payload_json] == [already_low.id, stocked_item.id]
    assert alert.payload_json[1]["shortage"] == 1


def test_inbound_movement_never_triggers_alert(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=1),
        actor_id=staff_user.id,
    ).item

    result = record_movement(
        db_session,
        item_id=item.id,
        movement_type="IN",
        quantity=1,
        reason="Partial delivery",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 2
    assert result.low_stock_triggered is False
    assert db_session.execute(select(func.count(LowStockAlert.id))).scalar_one() == 0


def test_transfer_into_low_stock_queues_board(db_session, staff_user, stocked_item):
    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="TRANSFER",
        quantity=5,
        reason="Moved to annex supply room",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 5
    assert result.low_stock_triggered is True
    alert = db_session.execute(select(LowStockAlert).where(LowStockAlert.id == result.alert_id)).scalar_one()
    assert alert.trigger_movement_id == result.movement.id
    assert [row["id"] for row in alert.payload_json] == [stocked_item.id]


def test_adjustment_never_triggers_alert(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=0),
        actor_id=staff_user.id,
    ).item

    result = record_movement(
        db_session,
        item_id=item.id,
        movement_type="ADJUSTMENT",
        quantity=2,
        reason="Recount after audit",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 2
    assert result.stock_status == "LOW_STOCK"
    assert result.low_stock_triggered is False
    assert result.alert_id is None
    assert db_session.execute(select(func.count(LowStockAlert.id))).scalar_one() == 0


def test_alert_queue_failure_does_not_fail_movement(db_session, staff_user, stocked_item, monkeypatch):
    def broken_queue(*args, **kwargs):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr("schoolstock.services.stock_ledger.queue_low_stock_alert", broken_queue)

    result = record_movement(
        db_session,
        item_id=stocked_item.id,
        movement_type="OUT",
        quantity=8,
        reason="Issued",
        actor_id=staff_user.id,
    )

    assert result.low_stock_triggered is True
    assert result.alert_id is None
    assert _stored_quantity(db_session, stocked_item.id) == 2
    assert _movement_count(db_session, stocked_item.id) == 2


def test_failed_commit_persists_nothing(db_session, staff_user, stocked_item, monkeypatch):
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(LedgerPersistenceError):
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type="OUT",
            quantity=4,
            reason="Issued",
            actor_id=staff_user.id,
        )

    monkeypatch.undo()
    assert _stored_quantity(db_session, stocked_item.id) == 10
    assert _movement_count(db_session, stocked_item.id) == 1


def test_edit_books_quantity_difference(db_session, staff_user, supplies_category, stocked_item):
    payload = _item_payload(supplies_category.id, quantity=4, name="Bond Paper A4 (80gsm)")
    result = edit_item(db_session, item_id=stocked_item.id, payload=payload, actor_id=staff_user.id)

    assert result.item.quantity == 4
    assert result.item.name == "Bond Paper A4 (80gsm)"
    assert result.movement.type == "OUT"
    assert result.movement.quantity == 6
    assert result.movement.reason == "Stock adjustment"
    assert result.movement.notes == "Quantity updated from 10 to 4"
    assert result.alert_id is not None
    assert reconcile_item(db_session, stocked_item.id).consistent is True


def test_edit_without_quantity_change_records_nothing(db_session, staff_user, supplies_category, stocked_item):
    payload = _item_payload(supplies_category.id, location="Supply Room B", min_stock=None, max_stock=None)
    result = edit_item(db_session, item_id=stocked_item.id, payload=payload, actor_id=staff_user.id)

    assert result.movement is None
    assert result.item.location == "Supply Room B"
    assert result.item.min_stock == 5
    assert result.item.max_stock == 50
    assert _movement_count(db_session, stocked_item.id) == 1


def test_edit_rejects_threshold_inversion(db_session, staff_user, supplies_category, stocked_item):
    payload = _item_payload(supplies_category.id, min_stock=60, max_stock=None)

    with pytest.raises(StockValidationError):
        edit_item(db_session, item_id=stocked_item.id, payload=payload, actor_id=staff_user.id)


def test_correct_quantity_up_and_noop(db_session, staff_user, stocked_item):
    result = correct_quantity(db_session, item_id=stocked_item.id, new_quantity=25, actor_id=staff_user.id)
    assert result.movement.type == "IN"
    assert result.movement.quantity == 15

    unchanged = correct_quantity(db_session, item_id=stocked_item.id, new_quantity=25, actor_id=staff_user.id)
    assert unchanged.movement is None
    assert _movement_count(db_session, stocked_item.id) == 2


def test_movement_overflowing_quantity_column_is_rejected(db_session, staff_user, stocked_item):
    stocked_item.quantity = MAX_QUANTITY - 5
    db_session.commit()

    with pytest.raises(StockValidationError) as exc_info:
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type="IN",
            quantity=10,
            reason="Delivery",
            actor_id=staff_user.id,
        )

    assert exc_info.value.field == "quantity"
    assert _stored_quantity(db_session, stocked_item.id) == MAX_QUANTITY - 5
    assert _movement_count(db_session, stocked_item.id) == 1

    with pytest.raises(StockValidationError):
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type="IN",
            quantity=MAX_QUANTITY + 1,
            reason="Delivery",
            actor_id=staff_user.id,
        )
    assert _movement_count(db_session, stocked_item.id) == 1


def test_correct_quantity_rejects_values_beyond_column(db_session, staff_user, stocked_item):
    with pytest.raises(StockValidationError) as exc_info:
        correct_quantity(db_session, item_id=stocked_item.id, new_quantity=MAX_QUANTITY + 1, actor_id=staff_user.id)

    assert exc_info.value.field == "quantity"
    assert _stored_quantity(db_session, stocked_item.id) == 10
    assert _movement_count(db_session, stocked_item.id) == 1


def test_create_and_edit_reject_quantity_beyond_column(db_session, staff_user, supplies_category, stocked_item):
    oversized = _item_payload(supplies_category.id).model_copy(update={"quantity": MAX_QUANTITY + 1})

    with pytest.raises(StockValidationError):
        create_item(db_session, payload=oversized.model_copy(update={"sku": "OFF-BIG"}), actor_id=staff_user.id)
    with pytest.raises(StockValidationError):
        edit_item(db_session, item_id=stocked_item.id, payload=oversized, actor_id=staff_user.id)

    assert db_session.execute(select(func.count(InventoryItem.id))).scalar_one() == 1
    assert _stored_quantity(db_session, stocked_item.id) == 10


def test_item_schema_caps_quantity_at_column_limit(supplies_category):
    with pytest.raises(ValueError):
        _item_payload(supplies_category.id, quantity=MAX_QUANTITY + 1)

    assert _item_payload(supplies_category.id, quantity=MAX_QUANTITY).quantity == MAX_QUANTITY


def test_duplicate_sku_past_precheck_is_conflict(db_session, staff_user, supplies_category, stocked_item, monkeypatch):
    other = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, name="Chalk Box", sku="OFF-CHALK", quantity=3),
        actor_id=staff_user.id,
    ).item
    monkeypatch.setattr("schoolstock.services.stock_ledger._ensure_sku_available", lambda *args, **kwargs: None)

    with pytest.raises(ConflictError):
        create_item(db_session, payload=_item_payload(supplies_category.id, quantity=4), actor_id=staff_user.id)
    with pytest.raises(ConflictError):
        edit_item(
            db_session,
            item_id=other.id,
            payload=_item_payload(supplies_category.id, name="Chalk Box", quantity=3),
            actor_id=staff_user.id,
        )

    db_session.expire_all()
    assert db_session.execute(select(func.count(InventoryItem.id))).scalar_one() == 2
    assert db_session.get(InventoryItem, other.id).sku == "OFF-CHALK"
    assert _movement_count(db_session, stocked_item.id) == 1
    assert _movement_count(db_session, other.id) == 1


def test_deactivate_books_final_out_and_closes_ledger(db_session, staff_user, stocked_item):
    result = deactivate_item(db_session, item_id=stocked_item.id, actor_id=staff_user.id)

    assert result.movement.type == "OUT"
    assert result.movement.quantity == 10
    assert result.movement.reason == "Item deleted"
    assert result.item.is_active is False
    assert result.item.quantity == 10

    reconciliation = reconcile_item(db_session, stocked_item.id)
    assert reconciliation.ledger_quantity == 0
    assert reconciliation.movement_count == 2
    assert reconciliation.consistent is True

    with pytest.raises(NotFoundError):
        record_movement(
            db_session,
            item_id=stocked_item.id,
            movement_type="IN",
            quantity=1,
            reason="Late delivery",
            actor_id=staff_user.id,
        )


def test_reconciliation_detects_out_of_band_write(db_session, stocked_item):
    stocked_item.quantity = 99
    db_session.commit()

    reconciliation = reconcile_item(db_session, stocked_item.id)
    assert reconciliation.cached_quantity == 99
    assert reconciliation.ledger_quantity == 10
    assert reconciliation.consistent is False


@pytest.mark.parametrize(
    ("quantity", "min_stock", "max_stock", "expected"),
    [
        (0, 5, 100, "OUT_OF_STOCK"),
        (0, 0, 10, "OUT_OF_STOCK"),
        (5, 5, 100, "LOW_STOCK"),
        (6, 5, 100, "NORMAL"),
        (99, 5, 100, "NORMAL"),
        (100, 5, 100, "OVER_STOCK"),
    ],
)
def test_classify_stock_boundaries(quantity, min_stock, max_stock, expected):
    assert classify_stock(quantity, min_stock, max_stock) == expected


@pytest.mark.parametrize(
    ("quantity", "min_stock", "expected"),
    [
        (0, 10, ("Critical", "red")),
        (5, 10, ("Critical", "red")),
        (8, 10, ("Warning", "orange")),
        (9, 10, ("Low", "yellow")),
    ],
)
def test_alert_priority_bands(quantity, min_stock, expected):
    assert alert_priority(quantity, min_stock) == expected


def test_dashboard_urgency_and_messages():
    assert dashboard_urgency(0, 10) == "critical"
    assert dashboard_urgency(5, 10) == "high"
    assert dashboard_urgency(3, 7) == "high"
    assert dashboard_urgency(4, 7) == "medium"
    assert stock_message(0) == "Out of stock"
    assert stock_message(3) == "Only 3 left in stock"


def test_next_quantity_direction():
    assert next_quantity(10, "IN", 3) == 13
    assert next_quantity(10, "ADJUSTMENT", 3) == 13
    assert next_quantity(10, "OUT", 3) == 7
    assert next_quantity(2, "TRANSFER", 3) == -1


def test_restock_from_empty_lands_on_low_boundary(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=0),
        actor_id=staff_user.id,
    ).item

    result = record_movement(
        db_session,
        item_id=item.id,
        movement_type="IN",
        quantity=5,
        reason="Term delivery",
        actor_id=staff_user.id,
    )

    assert result.item.quantity == 5
    assert result.stock_status == "LOW_STOCK"
    assert result.low_stock_triggered is False
    assert alert_priority(5, 5) == ("Low", "yellow")


def test_edit_from_twenty_to_fifteen_books_out_five(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=20),
        actor_id=staff_user.id,
    ).item

    result = correct_quantity(db_session, item_id=item.id, new_quantity=15, actor_id=staff_user.id)

    assert result.item.quantity == 15
    assert result.movement.type == "OUT"
    assert result.movement.quantity == 5
    assert result.movement.notes == "Quantity updated from 20 to 15"
    assert result.alert_id is None


def test_deactivated_item_leaves_low_stock_scan(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=3),
        actor_id=staff_user.id,
    ).item
    assert [record.id for record in collect_low_stock_items(db_session)] == [item.id]

    deactivate_item(db_session, item_id=item.id, actor_id=staff_user.id)

    assert collect_low_stock_items(db_session) == []


def test_repeated_rejections_never_change_state(db_session, staff_user, supplies_category):
    item = create_item(
        db_session,
        payload=_item_payload(supplies_category.id, quantity=5),
        actor_id=staff_user.id,
    ).item

    for _ in range(3):
        with pytest.raises(InsufficientStockError):
            record_movement(
                db_session,
                item_id=item.id,
                movement_type="OUT",
                quantity=10,
                reason="Issued",
                actor_id=staff_user.id,
            )

    assert _stored_quantity(db_session, item.id) == 5
    assert _movement_count(db_session, item.id) == 1


@pytest.mark.parametrize(
    ("quantity", "expected"),
    [(0, "OUT_OF_STOCK"), (5, "LOW_STOCK"), (6, "NORMAL"), (49, "NORMAL"), (50, "OVER_STOCK")],
)
def test_classification_around_item_thresholds(quantity, expected):
    assert classify_stock(quantity, 5, 50) == expected
