from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(default=None, max_length=20)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Category name is required")
        return cleaned

    @field_validator("color")
    @classmethod
    def normalize_color(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Laboratory Supplies",
                "description": "Beakers, test tubes and consumables",
                "color": "#2D5F3F",
            }
        }
    )


class CategoryOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    color: str
    item_count: int = 0
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CategoryListOut(BaseModel):
    items: list[CategoryOut]


class CategoryDeleteOut(BaseModel):
    ok: bool = True
    detached_items: int = 0
