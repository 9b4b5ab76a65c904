# backend/app/utils/pagination.py
# Page arithmetic and filter building for list endpoints

import math
import re
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId

HISTORY_SEARCH_FIELDS = (
    "order_number",
    "tracking_number",
    "pickup_location.address",
    "delivery_location.address",
)


def page_offset(page: int, limit: int) -> int:
    """Number of documents to skip for a 1-based page."""
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total: int, returned: int, total_key: str) -> Dict[str, Any]:
    """
    Pagination metadata in the shape every list endpoint returns.
    total_key names the total counter ("totalOrders", "totalShipments", ...).
    """
    skip = page_offset(page, limit)
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        total_key: total,
        "hasNext": skip + returned < total,
        "hasPrev": page > 1,
    }


def contains_pattern(text: str) -> Dict[str, str]:
    """Case-insensitive literal substring match."""
    return {"$regex": re.escape(text), "$options": "i"}


def build_history_filter(
    user_id: ObjectId,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """Mongo filter for the dispatch history of one user."""
    query: Dict[str, Any] = {"user": user_id}

    if status and status != "all":
        query["status"] = status

    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date

    if search and search.strip():
        pattern = contains_pattern(search.strip())
        query["$or"] = [{field: pattern} for field in HISTORY_SEARCH_FIELDS]

    return query
