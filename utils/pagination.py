import math
from typing import Any, Dict
from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> Dict[str, Any]:
    """Apply offset/limit to a query and return the page with its counters"""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }
