"""
Query parameter helpers shared by the list endpoints
"""
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from stockdesk.core.errors import AppError
from stockdesk.lib.filters import decode_date_range, split_multi


def parse_uuid_list(raw: Optional[str], field: str) -> List[UUID]:
    """"a|b|c" -> [UUID, ...]"""
    values = []
    for part in split_multi(raw):
        try:
            values.append(UUID(part))
        except ValueError:
            raise AppError.validation(**{field: "invalid id"})
    return values


def parse_date(raw: Optional[str], field: str) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise AppError.validation(**{field: "expected YYYY-MM-DD"})


def parse_date_filters(
    date_range: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str]
) -> Tuple[Optional[date], Optional[date]]:
    """Explicit start/end win over an encoded "start|end" range"""
    range_start, range_end = decode_date_range(date_range)
    start = parse_date(start_date or range_start, "start_date")
    end = parse_date(end_date or range_end, "end_date")
    if start and end and start > end:
        raise AppError.validation(end_date="must not be before start date")
    return start, end
