from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

def dump(schema, obj: Any) -> dict:
    return schema.model_validate(obj).model_dump(mode="json", by_alias=True)

def dump_many(schema, objs) -> list:
    return [dump(schema, obj) for obj in objs]

def pagination(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "total": total,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
