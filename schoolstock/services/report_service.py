import csv
import io
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolstock.core.money import stock_value
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.user import User
from schoolstock.services.notification_service import NO_CATEGORY, collect_low_stock_items
from schoolstock.services.stock_health import alert_priority, classify_stock

REPORT_COLUMNS: dict[str, list[str]] = {
    "INVENTORY_SUMMARY": [
        "sku",
        "name",
        "category",
        "quantity",
        "min_stock",
        "max_stock",
        "unit_price",
        "total_value",
        "stock_status",
        "location",
    ],
    "LOW_STOCK": ["sku", "name", "category", "current_stock", "min_stock", "shortage", "priority"],
    "CATEGORY_ANALYSIS": ["category", "item_count", "total_quantity", "total_value", "percentage"],
    "STOCK_MOVEMENT": ["created_at", "sku", "item_name", "type", "quantity", "reason", "notes", "user"],
}


def _inventory_rows(db: Session) -> list[dict]:
    rows = db.execute(
        select(InventoryItem, Category.name)
        .outerjoin(Category, Category.id == InventoryItem.category_id)
        .where(InventoryItem.is_active.is_(True))
        .order_by(InventoryItem.name.asc())
    ).all()
    return [
        {
            "sku": item.sku,
            "name": item.name,
            "category": category_name or NO_CATEGORY,
            "quantity": item.quantity,
            "min_stock": item.min_stock,
            "max_stock": item.max_stock,
            "unit_price": f"{item.unit_price:.2f}",
            "total_value": f"{stock_value(item.quantity, item.unit_price):.2f}",
            "stock_status": classify_stock(item.quantity, item.min_stock, item.max_stock),
            "location": item.location or "",
        }
        for item, category_name in rows
    ]


def _low_stock_rows(db: Session) -> list[dict]:
    return [
        {
            "sku": record.sku,
            "name": record.name,
            "category": record.category,
            "current_stock": record.current_stock,
            "min_stock": record.min_stock,
            "shortage": record.shortage,
            "priority": alert_priority(record.current_stock, record.min_stock)[0],
        }
        for record in collect_low_stock_items(db)
    ]


def _category_rows(db: Session) -> list[dict]:
    inventory = _inventory_rows(db)
    total_items = len(inventory)
    grouped: dict[str, list[dict]] = {}
    for row in inventory:
        grouped.setdefault(row["category"], []).append(row)
    result = []
    for category_name in sorted(grouped):
        members = grouped[category_name]
        total_value = sum(float(row["total_value"]) for row in members)
        result.append(
            {
                "category": category_name,
                "item_count": len(members),
                "total_quantity": sum(row["quantity"] for row in members),
                "total_value": f"{total_value:.2f}",
                "percentage": f"{len(members) / total_items * 100:.1f}" if total_items else "0.0",
            }
        )
    return result


def _movement_rows(db: Session, *, start_date: date | None, end_date: date | None) -> list[dict]:
    stmt = (
        select(StockMovement, InventoryItem.sku, InventoryItem.name, User.first_name, User.last_name)
        .join(InventoryItem, InventoryItem.id == StockMovement.item_id)
        .join(User, User.id == StockMovement.user_id)
    )
    if start_date:
        stmt = stmt.where(StockMovement.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date:
        end_exclusive = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        stmt = stmt.where(StockMovement.created_at < end_exclusive)
    rows = db.execute(stmt.order_by(StockMovement.created_at.desc())).all()
    return [
        {
            "created_at": movement.created_at.isoformat() if movement.created_at else "",
            "sku": sku,
            "item_name": item_name,
            "type": movement.type,
            "quantity": movement.quantity,
            "reason": movement.reason,
            "notes": movement.notes or "",
            "user": f"{first_name} {last_name}",
        }
        for movement, sku, item_name, first_name, last_name in rows
    ]


def build_report(
    db: Session,
    report_type: str,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[str, list[dict], str]:
    """Returns (filename, rows, csv_content)."""
    if report_type == "INVENTORY_SUMMARY":
        rows = _inventory_rows(db)
    elif report_type == "LOW_STOCK":
        rows = _low_stock_rows(db)
    elif report_type == "CATEGORY_ANALYSIS":
        rows = _category_rows(db)
    elif report_type == "STOCK_MOVEMENT":
        rows = _movement_rows(db, start_date=start_date, end_date=end_date)
    else:
        raise ValueError(f"Unknown report type: {report_type}")

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS[report_type])
    writer.writeheader()
    for row in rows:
        writer.writerow(row)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    filename = f"{report_type.lower()}_{stamp}.csv"
    return filename, rows, buffer.getvalue()
