from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from schoolstock.core.money import ZERO_MONEY, stock_value, to_money
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.user import User
from schoolstock.services.notification_service import NO_CATEGORY
from schoolstock.services.stock_health import (
    INBOUND_TYPES,
    LOW_STOCK,
    NORMAL,
    OUT_OF_STOCK,
    OUTBOUND_TYPES,
    OVER_STOCK,
    classify_stock,
    dashboard_urgency,
)

CHART_PALETTE = ["#2D5F3F", "#F4C430", "#87A96B", "#1B4B47", "#6B6B6B", "#4F46E5", "#EF4444", "#10B981"]
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _month_start(value: date, months_back: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months_back
    return datetime(month_index // 12, month_index % 12 + 1, 1, tzinfo=timezone.utc)


def _next_month(start: datetime) -> datetime:
    return _month_start(start.date(), -1)


def _percentage(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole > 0 else 0


def _active_items_with_category(db: Session) -> list[tuple[InventoryItem, str | None]]:
    return db.execute(
        select(InventoryItem, Category.name)
        .outerjoin(Category, Category.id == InventoryItem.category_id)
        .where(InventoryItem.is_active.is_(True))
    ).all()


def _count_movements(db: Session, *, types: list[str], start: datetime, end: datetime) -> int:
    return int(
        db.execute(
            select(func.count(StockMovement.id)).where(
                StockMovement.type.in_(types),
                StockMovement.created_at >= start,
                StockMovement.created_at < end,
            )
        ).scalar_one()
    )


def _sum_movements(db: Session, *, types: list[str], start: datetime, end: datetime) -> int:
    return int(
        db.execute(
            select(func.coalesce(func.sum(StockMovement.quantity), 0)).where(
                StockMovement.type.in_(types),
                StockMovement.created_at >= start,
                StockMovement.created_at < end,
            )
        ).scalar_one()
    )


def get_dashboard(db: Session, *, now: datetime | None = None) -> dict:
    now = now or _utcnow()
    rows = _active_items_with_category(db)
    items = [item for item, _ in rows]
    total_items = len(items)

    total_value: Decimal = ZERO_MONEY
    levels = {OUT_OF_STOCK: 0, LOW_STOCK: 0, NORMAL: 0, OVER_STOCK: 0}
    per_category: dict[str | None, list[InventoryItem]] = {}
    for item in items:
        total_value += stock_value(item.quantity, item.unit_price)
        levels[classify_stock(item.quantity, item.min_stock, item.max_stock)] += 1
        per_category.setdefault(item.category_id, []).append(item)

    categories = db.execute(select(Category).order_by(Category.name.asc())).scalars().all()
    category_stats = []
    for category in categories:
        category_items = per_category.get(category.id, [])
        category_value = sum(
            (stock_value(item.quantity, item.unit_price) for item in category_items),
            ZERO_MONEY,
        )
        category_stats.append(
            {
                "id": category.id,
                "name": category.name,
                "color": category.color,
                "item_count": len(category_items),
                "total_value": float(to_money(category_value)),
                "percentage": _percentage(len(category_items), total_items),
            }
        )

    low_rows = sorted(
        (row for row in rows if row[0].quantity <= row[0].min_stock),
        key=lambda row: (row[0].quantity, row[0].name),
    )

    movements_30d = int(
        db.execute(
            select(func.count(StockMovement.id)).where(StockMovement.created_at >= now - timedelta(days=30))
        ).scalar_one()
    )

    recent = db.execute(
        select(StockMovement, InventoryItem.name, User.first_name, User.last_name)
        .join(InventoryItem, InventoryItem.id == StockMovement.item_id)
        .join(User, User.id == StockMovement.user_id)
        .where(StockMovement.created_at >= now - timedelta(days=7))
        .order_by(StockMovement.created_at.desc())
        .limit(10)
    ).all()

    monthly_trends = []
    for months_back in range(5, -1, -1):
        start = _month_start(now.date(), months_back)
        end = _next_month(start)
        monthly_trends.append(
            {
                "month": start.strftime("%b"),
                "stock_in": _count_movements(db, types=["IN"], start=start, end=end),
                "stock_out": _count_movements(db, types=["OUT"], start=start, end=end),
            }
        )

    return {
        "summary": {
            "total_items": total_items,
            "low_stock_items": len(low_rows),
            "total_value": float(to_money(total_value)),
            "recent_movements": movements_30d,
            "out_of_stock_items": levels[OUT_OF_STOCK],
        },
        "category_stats": category_stats,
        "stock_levels": {
            "out_of_stock": levels[OUT_OF_STOCK],
            "low_stock": levels[LOW_STOCK],
            "normal_stock": levels[NORMAL],
            "over_stock": levels[OVER_STOCK],
        },
        "monthly_trends": monthly_trends,
        "recent_movements": [
            {
                "id": movement.id,
                "type": movement.type,
                "quantity": movement.quantity,
                "item_name": item_name,
                "user": f"{first_name} {last_name}",
                "reason": movement.reason,
                "created_at": movement.created_at,
            }
            for movement, item_name, first_name, last_name in recent
        ],
        "low_stock_alerts": [
            {
                "id": item.id,
                "name": item.name,
                "sku": item.sku,
                "current_stock": item.quantity,
                "min_stock": item.min_stock,
                "category": category_name or NO_CATEGORY,
                "urgency": dashboard_urgency(item.quantity, item.min_stock),
            }
            for item, category_name in low_rows[:5]
        ],
    }


def category_distribution(db: Session) -> list[dict]:
    rows = db.execute(
        select(Category, func.count(InventoryItem.id))
        .outerjoin(
            InventoryItem,
            (InventoryItem.category_id == Category.id) & InventoryItem.is_active.is_(True),
        )
        .group_by(Category.id)
        .order_by(Category.name.asc())
    ).all()
    total = sum(int(count) for _, count in rows)
    points = [
        {
            "name": category.name,
            "value": _percentage(int(count), total),
            "color": category.color or CHART_PALETTE[index % len(CHART_PALETTE)],
            "count": int(count),
        }
        for index, (category, count) in enumerate(rows)
    ]
    return sorted((point for point in points if point["count"] > 0), key=lambda point: -point["count"])


def movement_chart(db: Session, *, now: datetime | None = None, days: int = 7) -> list[dict]:
    """Daily inbound (IN, ADJUSTMENT) and outbound (OUT, TRANSFER) totals, oldest day first."""
    now = now or _utcnow()
    points = []
    for days_back in range(days - 1, -1, -1):
        day = (now - timedelta(days=days_back)).date()
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        points.append(
            {
                "day": DAY_NAMES[day.weekday()],
                "inbound": _sum_movements(db, types=sorted(INBOUND_TYPES), start=start, end=end),
                "outbound": _sum_movements(db, types=sorted(OUTBOUND_TYPES), start=start, end=end),
            }
        )
    return points


def stock_overview(db: Session, *, now: datetime | None = None) -> list[dict]:
    """Per month: on-hand total of active items created by month end, and how many of them are low."""
    now = now or _utcnow()
    points = []
    for months_back in range(5, -1, -1):
        start = _month_start(now.date(), months_back)
        end = _next_month(start)
        created_by_end = (
            InventoryItem.is_active.is_(True),
            InventoryItem.created_at < end,
        )
        in_stock = db.execute(
            select(func.coalesce(func.sum(InventoryItem.quantity), 0)).where(*created_by_end)
        ).scalar_one()
        low_stock = db.execute(
            select(func.count(InventoryItem.id)).where(
                *created_by_end,
                InventoryItem.quantity <= InventoryItem.min_stock,
            )
        ).scalar_one()
        points.append(
            {
                "month": start.strftime("%b"),
                "in_stock": int(in_stock),
                "low_stock": int(low_stock),
            }
        )
    return points
