from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from fastapi import Query

from hims.core.config import settings
from hims.core.permissions import get_current_user, require_permissions  # noqa: F401
from hims.infrastructure.database import get_db  # noqa: F401


@dataclass
class PaginationParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def pagination_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit)


@dataclass
class DateRange:
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def bounds(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Inclusive dates as a half-open datetime interval"""
        start = datetime.combine(self.start_date, time.min) if self.start_date else None
        end = datetime.combine(self.end_date + timedelta(days=1), time.min) if self.end_date else None
        return start, end


def date_range_params(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> DateRange:
    return DateRange(start_date=start_date, end_date=end_date)
