from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.user import User
from schoolstock.schemas.inventory import CategoryRefOut, ItemOut
from schoolstock.schemas.stock_movement import StockMovementOut
from schoolstock.services.stock_health import classify_stock


def item_out(item: InventoryItem, category: Category | None) -> ItemOut:
    return ItemOut(
        id=item.id,
        name=item.name,
        description=item.description,
        sku=item.sku,
        barcode=item.barcode,
        quantity=item.quantity,
        min_stock=item.min_stock,
        max_stock=item.max_stock,
        unit_price=float(item.unit_price),
        location=item.location,
        image_urls=list(item.image_urls or []),
        category=(
            CategoryRefOut(id=category.id, name=category.name, color=category.color) if category else None
        ),
        created_by=item.created_by,
        is_active=item.is_active,
        stock_status=classify_stock(item.quantity, item.min_stock, item.max_stock),
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def load_item_out(db: Session, item: InventoryItem) -> ItemOut:
    category = None
    if item.category_id:
        category = db.execute(select(Category).where(Category.id == item.category_id)).scalar_one_or_none()
    return item_out(item, category)


def movement_out(
    movement: StockMovement,
    *,
    item_name: str | None = None,
    user: User | None = None,
) -> StockMovementOut:
    return StockMovementOut(
        id=movement.id,
        item_id=movement.item_id,
        item_name=item_name,
        type=movement.type,
        quantity=movement.quantity,
        reason=movement.reason,
        notes=movement.notes,
        user_id=movement.user_id,
        user_name=user.display_name if user else None,
        created_at=movement.created_at,
    )
