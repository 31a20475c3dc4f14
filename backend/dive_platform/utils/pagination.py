import math
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_pagination(
    page: Optional[int], limit: Optional[int], max_limit: int = MAX_LIMIT
) -> Tuple[int, int]:
    """Clamp page to >= 1 and limit to 1..max_limit."""
    page = max(1, page or 1)
    limit = min(max_limit, max(1, limit or DEFAULT_LIMIT))
    return page, limit


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def paginate(items: List[Any], total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }
