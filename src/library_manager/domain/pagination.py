import math
import re
from typing import Any, Optional

from library_manager.config import settings
from library_manager.schemas import Pagination
from library_manager.domain.identifiers import DB_INT_MAX

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")

def parse_page(raw: Any) -> int:
    """1-based page from a query value; anything unusable falls back to 1."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        page = raw
    else:
        m = _LEADING_INT.match(str(raw)) if raw is not None else None
        page = int(m.group(0)) if m else 1
    if page < 1:
        return 1
    return min(page, DB_INT_MAX)

def offset_for(page: int, page_size: int | None = None) -> int:
    size = page_size or settings.PAGE_SIZE
    # Far past the end is still just an empty page.
    return min((page - 1) * size, DB_INT_MAX)

def total_pages(count: int, page_size: int | None = None) -> int:
    size = page_size or settings.PAGE_SIZE
    return math.ceil(count / size)

def build_pagination(count: int, page: int, page_size: int | None = None, search: str = "") -> Optional[Pagination]:
    pages = total_pages(count, page_size)
    if pages <= 1:
        return None
    return Pagination(current_page=page, total_pages=pages, search_query=search or "")
