"""
Common list/pagination schemas
"""
from pydantic import BaseModel
from typing import Any, List, Optional, Sequence

MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

class ListParams(BaseModel):
    """Generic list request: paging, sorting and free-text search"""
    page_index: int = 0
    page_size: int = MAX_PAGE_SIZE
    sort_by: str
    sort_dir: str = "asc"
    q: Optional[str] = None

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_dir == "desc"

    @classmethod
    def build(
        cls,
        allowed_sorts: Sequence[str],
        default_sort: str,
        default_dir: str = "asc",
        page_index: Any = None,
        page_size: Any = None,
        sort_by: Optional[str] = None,
        sort_dir: Optional[str] = None,
        q: Optional[str] = None,
    ) -> "ListParams":
        """Invalid values fall back to defaults instead of failing the request"""
        try:
            page_index = max(int(page_index), 0)
        except (TypeError, ValueError):
            page_index = 0
        try:
            page_size = min(max(int(page_size), MIN_PAGE_SIZE), MAX_PAGE_SIZE)
        except (TypeError, ValueError):
            page_size = MAX_PAGE_SIZE
        if sort_by not in allowed_sorts:
            sort_by = default_sort
        if sort_dir not in ("asc", "desc"):
            sort_dir = default_dir
        q = q.strip() if isinstance(q, str) else None
        return cls(
            page_index=page_index,
            page_size=page_size,
            sort_by=sort_by,
            sort_dir=sort_dir,
            q=q or None,
        )

def page_response(data: List[Any], total: int, params: ListParams) -> dict:
    page_count = (total + params.page_size - 1) // params.page_size if total else 0
    return {
        "data": data,
        "total": total,
        "page_index": params.page_index,
        "page_size": params.page_size,
        "page_count": page_count,
    }
