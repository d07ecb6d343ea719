import math
from typing import List, Optional, Tuple

from pymongo import DESCENDING
from pymongo.collection import Collection

MAX_LIMIT = 100


def clamp(page: int, limit: int) -> Tuple[int, int]:
    return max(page, 1), min(max(limit, 1), MAX_LIMIT)


def page_meta(total: int, page: int, limit: int) -> dict:
    return {
        "total_pages": math.ceil(total / limit) if limit else 0,
        "current_page": page,
        "total": total,
    }


def paginate(
    collection: Collection,
    query: dict,
    page: int = 1,
    limit: int = 10,
    sort: Optional[List[tuple]] = None,
    projection: Optional[dict] = None,
) -> Tuple[list, dict]:
    """Run ``query`` and return ``(documents, meta)``."""
    page, limit = clamp(page, limit)
    cursor = collection.find(query, projection).sort(sort or [("created_at", DESCENDING)])
    docs = list(cursor.skip((page - 1) * limit).limit(limit))
    total = collection.count_documents(query)
    return docs, page_meta(total, page, limit)


def paginate_list(items: list, page: int = 1, limit: int = 10) -> Tuple[list, dict]:
    page, limit = clamp(page, limit)
    start = (page - 1) * limit
    return items[start:start + limit], page_meta(len(items), page, limit)
