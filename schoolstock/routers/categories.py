from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolstock.core.api_docs import error_responses
from schoolstock.core.deps import get_db
from schoolstock.core.security_current import get_current_user
from schoolstock.models.category import Category
from schoolstock.models.user import User
from schoolstock.schemas.category import CategoryDeleteOut, CategoryIn, CategoryListOut, CategoryOut
from schoolstock.services.category_service import (
    active_item_count,
    create_category,
    delete_category,
    list_categories,
    update_category,
)

router = APIRouter(prefix="/categories", tags=["categories"])


def _category_out(category: Category, item_count: int) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        color=category.color,
        item_count=item_count,
        created_at=category.created_at,
    )


@router.get(
    "",
    response_model=CategoryListOut,
    summary="List categories with active item counts",
    responses=error_responses(401, 500),
)
def get_categories(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return CategoryListOut(items=[_category_out(category, count) for category, count in list_categories(db)])


@router.post(
    "",
    response_model=CategoryOut,
    status_code=201,
    summary="Create a category",
    responses=error_responses(401, 409, 422, 500),
)
def post_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    category = create_category(db, payload)
    return _category_out(category, 0)


@router.put(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Update a category",
    responses=error_responses(401, 404, 409, 422, 500),
)
def put_category(
    category_id: str,
    payload: CategoryIn,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    category = update_category(db, category_id, payload)
    return _category_out(category, active_item_count(db, category.id))


@router.delete(
    "/{category_id}",
    response_model=CategoryDeleteOut,
    summary="Delete a category with no active items",
    responses=error_responses(401, 404, 409, 500),
)
def remove_category(
    category_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    detached = delete_category(db, category_id)
    return CategoryDeleteOut(ok=True, detached_items=detached)
