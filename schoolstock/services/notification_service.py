import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from schoolstock.core.config import settings
from schoolstock.core.observability import log_event
from schoolstock.db.base import generate_id
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem
from schoolstock.models.notification import LowStockAlert
from schoolstock.models.user import User
from schoolstock.services.email_service import EmailDeliveryResult, send_low_stock_alert_email
from schoolstock.services.stock_health import shortage

NO_CATEGORY = "No category"

AlertSender = Callable[..., EmailDeliveryResult]


@dataclass(frozen=True)
class LowStockRecord:
    id: str
    name: str
    sku: str
    category: str
    current_stock: int
    min_stock: int
    shortage: int

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DispatchSummary:
    processed: int
    sent: int
    failed: int
    dead_lettered: int


def collect_low_stock_items(db: Session) -> list[LowStockRecord]:
    """Every active item at or below its own minimum, most depleted first."""
    rows = db.execute(
        select(InventoryItem, Category.name)
        .outerjoin(Category, Category.id == InventoryItem.category_id)
        .where(
            InventoryItem.is_active.is_(True),
            InventoryItem.quantity <= InventoryItem.min_stock,
        )
        .order_by(InventoryItem.quantity.asc(), InventoryItem.name.asc())
    ).all()
    return [
        LowStockRecord(
            id=item.id,
            name=item.name,
            sku=item.sku,
            category=category_name or NO_CATEGORY,
            current_stock=item.quantity,
            min_stock=item.min_stock,
            shortage=shortage(item.quantity, item.min_stock),
        )
        for item, category_name in rows
    ]


def queue_low_stock_alert(db: Session, *, trigger_movement_id: str | None = None) -> LowStockAlert | None:
    """
    Snapshot the whole low-stock board into the outbox and commit it.
    Returns None when alerts are disabled or nothing is low.
    """
    if not settings.low_stock_alerts_enabled:
        return None

    records = collect_low_stock_items(db)
    if not records:
        return None

    alert = LowStockAlert(
        id=generate_id(),
        trigger_movement_id=trigger_movement_id,
        item_count=len(records),
        payload_json=[record.as_payload() for record in records],
        status="pending",
        attempt_count=0,
        max_attempts=settings.low_stock_alert_max_attempts,
        next_attempt_at=datetime.now(timezone.utc),
    )
    db.add(alert)
    db.commit()
    log_event(
        "low_stock_alert.queued",
        alert_id=alert.id,
        trigger_movement_id=trigger_movement_id,
        item_count=len(records),
    )
    return alert


def _active_recipients(db: Session) -> list[tuple[str, str]]:
    rows = db.execute(
        select(User.email, User.first_name)
        .where(User.is_active.is_(True))
        .order_by(User.created_at.asc())
    ).all()
    return [(email, first_name) for email, first_name in rows]


DISPATCHABLE_STATUSES = ("pending", "failed", "sending")


def _claim_alert(db: Session, alert_id: str, *, now: datetime) -> bool:
    """Move one due alert to ``sending`` and commit, so concurrent dispatchers skip it.

    The claim doubles as a lease: a ``sending`` row whose ``next_attempt_at``
    has passed belongs to a dispatcher that died mid-send and may be reclaimed.
    """
    result = db.execute(
        update(LowStockAlert)
        .where(
            LowStockAlert.id == alert_id,
            LowStockAlert.status.in_(DISPATCHABLE_STATUSES),
            LowStockAlert.next_attempt_at <= now,
        )
        .values(
            status="sending",
            attempt_count=LowStockAlert.attempt_count + 1,
            next_attempt_at=now + timedelta(seconds=settings.low_stock_alert_retry_seconds),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def dispatch_due_low_stock_alerts(
    db: Session,
    *,
    limit: int = 20,
    sender: AlertSender | None = None,
) -> DispatchSummary:
    send = sender or send_low_stock_alert_email
    now = datetime.now(timezone.utc)
    alert_ids = db.execute(
        select(LowStockAlert.id)
        .where(
            LowStockAlert.status.in_(DISPATCHABLE_STATUSES),
            LowStockAlert.next_attempt_at <= now,
        )
        .order_by(LowStockAlert.created_at.asc())
        .limit(limit)
    ).scalars().all()

    processed = 0
    sent = 0
    failed = 0
    dead_lettered = 0
    recipients = _active_recipients(db) if alert_ids else []

    for alert_id in alert_ids:
        if not _claim_alert(db, alert_id, now=now):
            log_event("low_stock_alert.claim_skipped", alert_id=alert_id)
            continue
        alert = db.get(LowStockAlert, alert_id)
        processed += 1
        result = send(recipients=recipients, items=alert.payload_json)

        if result.status == "sent":
            alert.status = "sent"
            alert.last_error = None
            alert.delivered_at = now
            db.commit()
            sent += 1
            log_event("low_stock_alert.sent", alert_id=alert_id, recipients=result.delivered)
            continue

        alert.last_error = (result.detail or result.status)[:255]
        if alert.attempt_count >= alert.max_attempts:
            alert.status = "dead_letter"
            dead_lettered += 1
        else:
            alert.status = "failed"
            alert.next_attempt_at = now + timedelta(seconds=settings.low_stock_alert_retry_seconds)
            failed += 1
        db.commit()
        log_event(
            "low_stock_alert.dispatch_failed",
            level=logging.WARNING,
            alert_id=alert_id,
            attempt=alert.attempt_count,
            status=alert.status,
            error=alert.last_error,
        )

    return DispatchSummary(
        processed=processed,
        sent=sent,
        failed=failed,
        dead_lettered=dead_lettered,
    )


def run_low_stock_dispatch(session_factory: Callable[[], Session]) -> None:
    """Background task entry point. Owns its session and never raises."""
    db = session_factory()
    try:
        dispatch_due_low_stock_alerts(db)
    except Exception as exc:  # noqa: BLE001 - delivery failures stay out of the request path
        db.rollback()
        log_event("low_stock_alert.dispatch_crashed", level=logging.ERROR, error=str(exc))
    finally:
        db.close()


def schedule_low_stock_dispatch(background_tasks: BackgroundTasks, db: Session) -> None:
    """Dispatch after the response is sent, on a fresh session bound to the request's engine."""
    session_factory = sessionmaker(bind=db.get_bind(), autocommit=False, autoflush=False)
    background_tasks.add_task(run_low_stock_dispatch, session_factory)
