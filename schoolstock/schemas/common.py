from pydantic import BaseModel, ConfigDict


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "page": 1,
                "limit": 10,
                "total": 42,
                "pages": 5,
                "has_next": True,
            }
        }
    )


def build_pagination(*, page: int, limit: int, total: int) -> PaginationMeta:
    pages = (total + limit - 1) // limit if limit else 0
    return PaginationMeta(page=page, limit=limit, total=total, pages=pages, has_next=page < pages)


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | None = None


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "insufficient_stock",
                    "message": "Insufficient stock",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/stock-movements",
                    "details": None,
                }
            }
        }
    )
