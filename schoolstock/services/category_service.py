from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from schoolstock.core.errors import ConflictError, NotFoundError
from schoolstock.core.observability import log_event
from schoolstock.db.base import generate_id
from schoolstock.models.category import DEFAULT_CATEGORY_COLOR, Category
from schoolstock.models.inventory import InventoryItem
from schoolstock.schemas.category import CategoryIn


def _active_count_subquery():
    return (
        select(InventoryItem.category_id, func.count(InventoryItem.id).label("item_count"))
        .where(InventoryItem.is_active.is_(True))
        .group_by(InventoryItem.category_id)
        .subquery()
    )


def list_categories(db: Session) -> list[tuple[Category, int]]:
    counts = _active_count_subquery()
    rows = db.execute(
        select(Category, func.coalesce(counts.c.item_count, 0))
        .outerjoin(counts, counts.c.category_id == Category.id)
        .order_by(Category.name.asc())
    ).all()
    return [(category, int(item_count)) for category, item_count in rows]


def active_item_count(db: Session, category_id: str) -> int:
    return int(
        db.execute(
            select(func.count(InventoryItem.id)).where(
                InventoryItem.category_id == category_id,
                InventoryItem.is_active.is_(True),
            )
        ).scalar_one()
    )


def get_category(db: Session, category_id: str) -> Category:
    category = db.execute(select(Category).where(Category.id == category_id)).scalar_one_or_none()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_name_available(db: Session, name: str, *, exclude_id: str | None = None) -> None:
    stmt = select(Category.id).where(func.lower(Category.name) == name.lower())
    if exclude_id:
        stmt = stmt.where(Category.id != exclude_id)
    if db.execute(stmt).first():
        raise ConflictError("Category with this name already exists")


def _commit_category(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        log_event("category.name_conflict", error=str(exc.orig))
        raise ConflictError("Category with this name already exists") from exc


def create_category(db: Session, payload: CategoryIn) -> Category:
    _ensure_name_available(db, payload.name)
    category = Category(
        id=generate_id(),
        name=payload.name,
        description=payload.description,
        color=payload.color or DEFAULT_CATEGORY_COLOR,
    )
    db.add(category)
    _commit_category(db)
    return category


def update_category(db: Session, category_id: str, payload: CategoryIn) -> Category:
    category = get_category(db, category_id)
    _ensure_name_available(db, payload.name, exclude_id=category.id)
    category.name = payload.name
    category.description = payload.description
    category.color = payload.color or DEFAULT_CATEGORY_COLOR
    _commit_category(db)
    return category


def delete_category(db: Session, category_id: str) -> int:
    """
    Refuses while active items reference the category. Inactive items are
    detached first. Returns how many inactive items were detached.
    """
    category = get_category(db, category_id)
    active_items = active_item_count(db, category.id)
    if active_items > 0:
        raise ConflictError(
            f"Cannot delete category. It contains {active_items} active items. "
            "Please reassign or delete those items first."
        )

    detached = db.execute(
        update(InventoryItem)
        .where(
            and_(
                InventoryItem.category_id == category.id,
                InventoryItem.is_active.is_(False),
            )
        )
        .values(category_id=None)
    ).rowcount
    db.delete(category)
    db.commit()
    log_event("category.deleted", category_id=category_id, detached_items=detached)
    return int(detached or 0)
