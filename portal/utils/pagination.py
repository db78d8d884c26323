from typing import Any, Dict, List, Optional
from portal.config import get_settings

settings = get_settings()

def clamp_page(page: Optional[int]) -> int:
    return max(1, page or 1)

def clamp_limit(limit: Optional[int]) -> int:
    if not limit:
        return settings.DEFAULT_PAGE_SIZE
    return min(max(limit, settings.MIN_PAGE_SIZE), settings.MAX_PAGE_SIZE)

def paginated(items: List[Any], total: int, page: int, page_size: int) -> Dict[str, Any]:
    total_pages = (total + page_size - 1) // page_size if total > 0 else 0
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }
