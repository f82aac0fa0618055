"""
Response envelopes shared by every endpoint.

Single objects are returned as ``{"success": true, "data": ...}``; lists add
``count`` and, when paged, ``pagination``.
"""

import math
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, FrozenSet, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationInfo, field_validator
from sqlalchemy import inspect as sa_inspect

from hims.api.deps import PaginationParams

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: List[T]
    pagination: Optional[Pagination] = None


class DeleteResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any] = {}


class UpdateSchema(BaseModel):
    """Partial update body.

    Omitted fields are left alone. An explicit ``null`` is refused for any
    field backed by a NOT NULL column of ``orm_model``.
    """

    orm_model: ClassVar[Any] = None

    @classmethod
    def required_columns(cls) -> FrozenSet[str]:
        if cls.orm_model is None:
            return frozenset()
        return frozenset(c.key for c in sa_inspect(cls.orm_model).columns if not c.nullable)

    @field_validator("*")
    @classmethod
    def reject_null_for_required(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name in cls.required_columns():
            raise ValueError("Field cannot be null")
        return value


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def listing(items: Sequence[Any]) -> Dict[str, Any]:
    return {"success": True, "count": len(items), "data": list(items)}


def paginated(items: Sequence[Any], total: int, params: PaginationParams) -> Dict[str, Any]:
    return {
        "success": True,
        "count": len(items),
        "data": list(items),
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "total": total,
            "pages": math.ceil(total / params.limit) if params.limit else 0,
        },
    }


def deleted() -> Dict[str, Any]:
    return {"success": True, "data": {}}


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
